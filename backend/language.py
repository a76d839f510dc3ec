"""Language code matching and subtitle display helpers.

Bazarr reports subtitle languages as 2-letter codes, sometimes with a
regional suffix ("pt-BR", "zh-CN"). Media servers ask for 2-letter codes,
3-letter codes or regional variants in either "-" or "_" form. Matching is
structural: compare the codes, their base languages and the known
2-letter/3-letter/name equivalents. Nothing in here raises.
"""

from typing import Iterable, Optional

from models import SubtitleCandidate

DEFAULT_LANGUAGE = "en"
DEFAULT_FORMAT = "SRT"

# Language tag mapping (ISO 639-1 -> ISO 639-2 variants and English name)
_LANGUAGE_TAGS = {
    "en": {"eng", "english"},
    "es": {"spa", "spanish"},
    "fr": {"fra", "fre", "french"},
    "de": {"deu", "ger", "german"},
    "it": {"ita", "italian"},
    "pt": {"por", "portuguese"},
    "nl": {"nld", "dut", "dutch"},
    "pl": {"pol", "polish"},
    "ru": {"rus", "russian"},
    "ja": {"jpn", "japanese"},
    "zh": {"zho", "chi", "chinese"},
    "ko": {"kor", "korean"},
    "ar": {"ara", "arabic"},
    "sv": {"swe", "swedish"},
    "da": {"dan", "danish"},
    "no": {"nor", "norwegian"},
    "fi": {"fin", "finnish"},
    "he": {"heb", "hebrew"},
    "tr": {"tur", "turkish"},
    "el": {"ell", "gre", "greek"},
    "cs": {"ces", "cze", "czech"},
    "hu": {"hun", "hungarian"},
    "ro": {"ron", "rum", "romanian"},
    "th": {"tha", "thai"},
    "vi": {"vie", "vietnamese"},
    "id": {"ind", "indonesian"},
    "uk": {"ukr", "ukrainian"},
    "bg": {"bul", "bulgarian"},
    "hr": {"hrv", "croatian"},
    "sk": {"slk", "slo", "slovak"},
    "sl": {"slv", "slovenian"},
}


def get_language_tags(lang_code: str) -> set[str]:
    """Get all known tags for a 2-letter language code (including itself)."""
    code = (lang_code or "").lower()
    return {code} | _LANGUAGE_TAGS.get(code, set())


def get_base_language(language: Optional[str]) -> str:
    """Strip a regional qualifier: "pt-BR" -> "pt", "zh_TW" -> "zh"."""
    if not language:
        return language or ""
    dash = language.find("-")
    if dash > 0:
        return language[:dash]
    underscore = language.find("_")
    if underscore > 0:
        return language[:underscore]
    return language


def _equivalent(subtitle_lang: str, requested_lang: str) -> bool:
    """Table lookup in both directions. Inputs must already be lower-cased."""
    if requested_lang in _LANGUAGE_TAGS.get(subtitle_lang, ()):
        return True
    return subtitle_lang in _LANGUAGE_TAGS.get(requested_lang, ())


def matches(candidate_language: Optional[str], requested_language: Optional[str]) -> bool:
    """True if a subtitle in candidate_language satisfies requested_language."""
    candidate = (candidate_language or "").lower()
    requested = (requested_language or "").lower()
    if not candidate or not requested:
        return False

    base_candidate = get_base_language(candidate)
    base_requested = get_base_language(requested)

    if candidate == requested:
        return True
    if candidate == base_requested or base_candidate == requested:
        return True
    if base_candidate == base_requested:
        return True

    return any(
        _equivalent(c, r)
        for c in (candidate, base_candidate)
        for r in (requested, base_requested)
    )


def filter_by_language(
    subtitles: Iterable[SubtitleCandidate], requested_language: str
) -> list[SubtitleCandidate]:
    """Keep the subtitles matching requested_language, preserving order."""
    return [s for s in subtitles if matches(s.language, requested_language)]


def resolve_language_code(language: Optional[str], two_letter_code: Optional[str]) -> str:
    """Pick the language to search for: two-letter code, full string, then "en"."""
    if two_letter_code:
        return two_letter_code
    if language:
        return language
    return DEFAULT_LANGUAGE


def get_subtitle_format(original_format: Optional[str]) -> str:
    """Normalize Bazarr's original_format for display.

    Bazarr uses the strings "False"/"True" as a null marker here.
    """
    if not original_format or original_format.lower() in ("false", "true"):
        return DEFAULT_FORMAT
    return original_format.upper()


def format_subtitle_comment(subtitle: SubtitleCandidate) -> str:
    """Provider, score and uploader, e.g. "opensubtitles - Score: 92% - by foo"."""
    parts = [subtitle.provider, f"Score: {subtitle.score}%"]
    if subtitle.uploader and subtitle.uploader.strip():
        parts.append(f"by {subtitle.uploader}")
    return " - ".join(parts)
