"""HTTP access to the log archive: text fetches and directory listings."""

from __future__ import annotations

import logging
from html.parser import HTMLParser
from typing import List, Optional, Protocol

import httpx

from chatan.errors import FetchError

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "chatan/0.1 (+https://overrustlelogs.net)"
LISTING_CLASS = "list-group-item"


class TextFetcher(Protocol):
    def fetch(self, url: str) -> str: ...


class DirectoryLister(Protocol):
    def list(self, url: str) -> List[str]: ...


class LinkCollector(HTMLParser):
    """Collect ``href`` attributes of elements carrying a given CSS class."""

    def __init__(self, css_class: str = LISTING_CLASS) -> None:
        super().__init__(convert_charrefs=True)
        self.css_class = css_class
        self.links: List[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, Optional[str]]]) -> None:
        values = dict(attrs)
        classes = (values.get("class") or "").split()
        href = values.get("href")
        if self.css_class in classes and href:
            self.links.append(href)


def extract_links(html: str, css_class: str = LISTING_CLASS) -> List[str]:
    collector = LinkCollector(css_class)
    collector.feed(html)
    collector.close()
    return collector.links


class HttpClient:
    """Thin wrapper around ``httpx.Client`` implementing fetch and listing.

    Every transport problem, including timeouts, non-2xx statuses and
    malformed URLs, is
    reported as :class:`FetchError` so callers can treat it as a recoverable
    per-partition failure.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self._client = httpx.Client(
            timeout=timeout,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
            transport=transport,
        )

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch(self, url: str) -> str:
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise FetchError(url, f"timed out after {self.timeout}s") from exc
        except httpx.HTTPStatusError as exc:
            raise FetchError(url, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(url, str(exc) or type(exc).__name__) from exc
        except (httpx.InvalidURL, ValueError) as exc:
            raise FetchError(url, f"invalid URL: {exc}") from exc
        LOGGER.debug("Fetched %s (%d bytes)", url, len(response.content))
        return response.text

    def list(self, url: str) -> List[str]:
        """Return hrefs of the listing entries found on the page at ``url``."""
        return extract_links(self.fetch(url))
