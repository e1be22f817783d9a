"""HTTP transport for providers.

One GET per call, no retries: a failed request surfaces as ``FetchError`` and
it is up to the caller to try again. Callers that restrict which hosts may be
contacted pass a ``check_url`` callable; redirects are then followed one hop
at a time and every target is checked before it is requested.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urljoin

import requests  # type: ignore[import-untyped]

from infoprovider.config import HEADERS, MAX_REDIRECTS, REQUEST_TIMEOUT
from infoprovider.errors import FetchError
from infoprovider.logging_config import get_logger, log_provider_event
from infoprovider.text_utils import decode_document

__all__ = ["FetchedPage", "Fetcher", "create_session"]

logger = get_logger("fetcher")


@dataclass(frozen=True)
class FetchedPage:
    """A fetched document, decoded to text."""

    url: str
    html: str
    status_code: int = 200


def create_session() -> requests.Session:
    """Create a requests Session with connection pooling and our headers."""
    session = requests.Session()
    session.headers.update(HEADERS)
    session.headers.setdefault("Accept-Encoding", "gzip, deflate")
    return session


class Fetcher:
    """Fetches pages with a shared session.

    The session is created once; ``get`` keeps all per-request state local,
    so one instance can serve concurrent calls.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = REQUEST_TIMEOUT):
        self.session = session or create_session()
        self.timeout = timeout

    def get(self, url: str, check_url: Optional[Callable[[str], Any]] = None) -> FetchedPage:
        """GET a URL and decode the body.

        Args:
            url: Address to fetch
            check_url: Called with every redirect target before it is requested;
                raising from it stops the fetch

        Raises:
            FetchError: On timeouts, connection problems, HTTP error status codes
                and redirect loops
        """
        log_provider_event("fetch", {"url": url}, level=logging.DEBUG, logger_name="fetcher")
        try:
            resp = self._send(url, check_url)
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            logger.error(f"HTTP error fetching {url}: {e}")
            raise FetchError(f"HTTP Error {status_code} fetching {url}", url, status_code) from e
        except requests.exceptions.Timeout as e:
            logger.error(f"Timeout fetching {url}: {e}")
            raise FetchError(f"Timeout fetching {url}", url) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error fetching {url}: {e}")
            raise FetchError(f"Failed to fetch {url}: {e}", url) from e

        declared = _declared_charset(resp.headers.get("Content-Type", ""))
        html = decode_document(resp.content, declared)
        return FetchedPage(url=str(resp.url or url), html=html, status_code=resp.status_code)

    def _send(self, url: str, check_url: Optional[Callable[[str], Any]]) -> requests.Response:
        if check_url is None:
            return self.session.get(url, timeout=self.timeout)

        resp = self.session.get(url, timeout=self.timeout, allow_redirects=False)
        hops = 0
        while resp.is_redirect:
            hops += 1
            if hops > MAX_REDIRECTS:
                raise requests.exceptions.TooManyRedirects(
                    f"Exceeded {MAX_REDIRECTS} redirects", response=resp
                )
            target = urljoin(resp.url or url, resp.headers["Location"])
            check_url(target)
            log_provider_event("redirect", {"url": url, "target": target}, level=logging.DEBUG, logger_name="fetcher")
            resp = self.session.get(target, timeout=self.timeout, allow_redirects=False)
        if resp.url:
            check_url(str(resp.url))
        return resp


def _declared_charset(content_type: str) -> Optional[str]:
    for part in content_type.split(";")[1:]:
        key, _, value = part.strip().partition("=")
        if key.lower() == "charset" and value:
            return value.strip().strip("\"'")
    return None
