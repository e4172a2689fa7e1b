import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

import requests

from models import AppType, ScrapeResult

logger = logging.getLogger(__name__)

STORE_URL = "https://store.steampowered.com/app/{0}/"
STORE_DOMAIN = "store.steampowered.com"
# A birth date far enough in the past that the age gate never applies.
AGE_GATE_COOKIE = ("birthtime", "-2208959999")
MAX_REDIRECTS = 3
REQUEST_TIMEOUT = 30


class StoreScraper:
    """Classifies store ids by reading the public store page of each one."""

    GAME_CHECK = re.compile(r"<a[^>]*>All Games</a>", re.IGNORECASE)
    GENRE_BLOCK = re.compile(
        r'<div class="glance_details">\s*<div>\s*Genre:\s*((?:<a[^>]*>[^<]+</a>,?\s*)+)\s*<br>\s*</div>',
        re.IGNORECASE,
    )
    GENRE_NAME = re.compile(r"<a[^>]*>([^<]+)</a>", re.IGNORECASE)
    DLC_CHECK = re.compile(r'<div class="name">Downloadable Content</div>', re.IGNORECASE)
    SITE_ERROR = "<title>Site Error</title>"

    def __init__(self, session: Optional[requests.Session] = None, store_url: str = STORE_URL) -> None:
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.store_url = store_url

    def close(self) -> None:
        """Close the HTTP session if this scraper created it."""
        if self._owns_session:
            self.session.close()

    def scrape(self, app_id: int, redirect_count: int = 0) -> ScrapeResult:
        logger.debug(f"Initiating store scrape for game id {app_id}")
        redirected = False
        try:
            response = self.session.get(
                self.store_url.format(app_id),
                cookies={AGE_GATE_COOKIE[0]: AGE_GATE_COOKIE[1]},
                allow_redirects=True,
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.debug(f"Scraping {app_id}: page read failed. {exc}")
            return ScrapeResult(AppType.WEB_ERROR)

        segments = self._path_segments(response.url)
        if not segments:
            logger.debug(f"Scraping {app_id}: redirected to main store page")
            return ScrapeResult(AppType.NOT_FOUND)
        if segments[0] == "agecheck":
            target = segments[2] if len(segments) >= 3 else ""
            if redirect_count < MAX_REDIRECTS and target and target != str(app_id):
                try:
                    target_id = int(target)
                except ValueError:
                    logger.warning(f"Scraping {app_id}: stuck at age gate, redirect with no number ({response.url})")
                    return ScrapeResult(AppType.AGE_GATED)
                logger.debug(f"Scraping {app_id}: hit age check for id {target_id}, following")
                # The redirect target's classification is returned as-is.
                return self.scrape(target_id, redirect_count + 1)
            logger.debug(f"Scraping {app_id}: age check with no redirect, or too many redirects (on #{redirect_count})")
            return ScrapeResult(AppType.AGE_GATED)
        if segments[0] != "app":
            logger.debug(f"Scraping {app_id}: redirected to a non-app URL")
            return ScrapeResult(AppType.NON_APP)
        if len(segments) < 2 or segments[1] != str(app_id):
            logger.debug(f"Scraping {app_id}: redirected to another app id ({segments[1] if len(segments) > 1 else 'unknown'})")
            redirected = True

        return self.classify_page(app_id, response.text, redirected)

    def classify_page(self, app_id: int, page: str, redirected: bool = False) -> ScrapeResult:
        if self.SITE_ERROR in page:
            logger.debug(f"Scraping {app_id}: received site error")
            return ScrapeResult(AppType.SITE_ERROR)
        if not self.GAME_CHECK.search(page):
            logger.debug(f"Scraping {app_id}: could not parse info from page")
            return ScrapeResult(AppType.UNKNOWN)
        genre = self.genre_from_page(page)
        if self.DLC_CHECK.search(page):
            logger.debug(f"Scraping {app_id}: parsed. DLC. Genre: {genre}")
            return ScrapeResult(AppType.DLC, genre)
        logger.debug(f"Scraping {app_id}: parsed. Genre: {genre}. Redirect: {redirected}")
        return ScrapeResult(AppType.ID_REDIRECT if redirected else AppType.GAME, genre)

    @classmethod
    def genre_from_page(cls, page: str) -> Optional[str]:
        match = cls.GENRE_BLOCK.search(page)
        if not match:
            return None
        names = [name.strip() for name in cls.GENRE_NAME.findall(match.group(1))]
        return ", ".join(names) if names else None

    @staticmethod
    def _path_segments(url: str) -> List[str]:
        path = urlparse(url or "").path
        return [part for part in path.split("/") if part]
