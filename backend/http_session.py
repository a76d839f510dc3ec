"""requests sessions for talking to Bazarr.

Catalog reads are cheap and idempotent, so they go through a session that
retries transient failures with backoff. Provider searches are expensive and
must not be repeated behind the caller's back, so they use a session with
retries disabled.
"""

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

USER_AGENT = "Subrelay/1.0"


def create_session(
    api_key: str,
    max_retries: int = 3,
    backoff_factor: float = 1.0,
    timeout: float | None = 30,
) -> "BazarrSession":
    """Create a BazarrSession authenticated with api_key.

    max_retries=0 disables urllib3 retries entirely.
    """
    session = BazarrSession(timeout=timeout)
    session.headers["User-Agent"] = USER_AGENT
    session.headers["X-API-KEY"] = api_key
    session.headers["Accept"] = "application/json"

    if max_retries > 0:
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
            redirect=False,
        )
    else:
        retry_strategy = Retry(total=0, redirect=False, raise_on_status=False)
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session


class BazarrSession(requests.Session):
    """Session with a default timeout that never follows redirects.

    A redirect from Bazarr almost always means a login page or proxy is in
    the way, so it is surfaced to the caller instead of followed.
    """

    def __init__(self, timeout: float | None = 30):
        super().__init__()
        self.default_timeout = timeout

    def request(self, method, url, **kwargs):
        kwargs.setdefault("timeout", self.default_timeout)
        kwargs.setdefault("allow_redirects", False)

        try:
            return super().request(method, url, **kwargs)
        except requests.ConnectionError as e:
            logger.warning("Connection error for %s %s: %s", method, url, e)
            raise
        except requests.Timeout:
            logger.warning("Timeout for %s %s", method, url)
            raise
