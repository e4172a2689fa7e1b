import logging
from typing import Optional, Union
from urllib.parse import urlparse

import requests

from errors import FetchError, ProfileAccessError

logger = logging.getLogger(__name__)

PROFILE_GAMES_URL = "https://steamcommunity.com/profiles/{0}/games?tab=all"
CUSTOM_GAMES_URL = "https://steamcommunity.com/id/{0}/games?tab=all"
REQUEST_TIMEOUT = 30


def game_list_url(profile: Union[int, str], xml: bool = False) -> str:
    """Numeric profiles use the 64-bit id form of the URL, anything else the custom name form."""
    text = str(profile).strip()
    if not text:
        raise ValueError("A profile id or custom URL name is required.")
    template = PROFILE_GAMES_URL if text.isdigit() else CUSTOM_GAMES_URL
    url = template.format(text)
    if xml:
        url += "&xml=1"
    return url


def fetch_game_list(
    profile: Union[int, str],
    xml: bool = False,
    session: Optional[requests.Session] = None,
) -> str:
    url = game_list_url(profile, xml)
    kind = "XML" if xml else "HTML"
    logger.info(f"Attempting to download {kind} game list from {url}")
    client = session or requests.Session()
    try:
        response = client.get(url, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.error(f"Exception when downloading {kind} game list: {exc}")
        raise FetchError(f"Could not download game list from {url}: {exc}") from exc
    # Private profiles redirect to the profile page itself, dropping the /games segment.
    segments = [part for part in urlparse(response.url or url).path.split("/") if part]
    if len(segments) < 3:
        logger.error("Specified profile is not public")
        raise ProfileAccessError(f"The profile at {url} is not public.")
    logger.info(f"Downloaded {kind} game list from {url}")
    return response.text
