"""Live validation of reference links suggested for entities."""

import asyncio
import logging
from typing import Dict, Optional
from urllib.parse import urlparse

import requests

from ..config import Settings

logger = logging.getLogger(__name__)


class LinkValidator:
    """Accept a URL only if it is in the allowed domain and finally answers 200.

    A rejected or unreachable link is reported as ``None``; nothing here raises.
    """

    def __init__(
        self,
        allowed_domain: str = "wikipedia.org",
        user_agent: str = "BiblicalCommentaryEnricher/1.0",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.allowed_domain = allowed_domain.lower()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self._cache: Dict[str, Optional[str]] = {}

    @classmethod
    def from_settings(cls, config: Settings) -> "LinkValidator":
        return cls(
            allowed_domain=config.link_allowed_domain,
            user_agent=config.link_user_agent,
            timeout=config.link_validation_timeout,
        )

    def is_allowed(self, url: str) -> bool:
        parsed = urlparse(url or "")
        host = (parsed.hostname or "").lower()
        if parsed.scheme not in ("http", "https") or not host:
            return False
        return host == self.allowed_domain or host.endswith("." + self.allowed_domain)

    def check(self, url: Optional[str]) -> Optional[str]:
        """Blocking check. Returns the final URL after redirects, or None."""
        if not url:
            return None
        if not self.is_allowed(url):
            logger.info(f"[Invalid Link] {url} is outside {self.allowed_domain}")
            return None

        try:
            response = self.session.get(url, timeout=self.timeout, allow_redirects=True, stream=True)
        except requests.RequestException as e:
            logger.warning(f"[Error Checking Link] {url}: {e}")
            return None

        try:
            if response.status_code != 200:
                logger.warning(f"[Invalid Link] {url} returned {response.status_code}")
                return None

            final_url = response.url if isinstance(response.url, str) and response.url else url
            if not self.is_allowed(final_url):
                logger.warning(f"[Invalid Link] {url} redirected outside {self.allowed_domain}: {final_url}")
                return None
            return final_url
        finally:
            response.close()

    async def validate(self, url: Optional[str]) -> Optional[str]:
        """Check a URL without blocking the event loop; results are memoized."""
        if not url:
            return None
        if url in self._cache:
            return self._cache[url]

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, self.check, url)
        self._cache[url] = result
        return result
