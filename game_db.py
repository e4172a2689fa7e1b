import logging
from typing import Dict, Iterable, List, Optional

from models import AppType, GameDBEntry
from utils import truncate_genre

logger = logging.getLogger(__name__)


class GameDB:
    """Local cache of catalog data: names, store classification and genre per app id."""

    def __init__(self) -> None:
        self.games: Dict[int, GameDBEntry] = {}

    def __contains__(self, app_id: object) -> bool:
        return app_id in self.games

    def __len__(self) -> int:
        return len(self.games)

    def get(self, app_id: int) -> Optional[GameDBEntry]:
        return self.games.get(app_id)

    def add(self, entry: GameDBEntry) -> GameDBEntry:
        self.games[entry.id] = entry
        return entry

    def ensure(self, app_id: int, name: Optional[str] = None) -> GameDBEntry:
        entry = self.games.get(app_id)
        if entry is None:
            entry = self.add(GameDBEntry(id=app_id, name=name))
        elif name and not entry.name:
            entry.name = name
        return entry

    def is_dlc(self, app_id: int) -> bool:
        entry = self.games.get(app_id)
        return entry is not None and entry.app_type == AppType.DLC

    def get_name(self, app_id: int) -> Optional[str]:
        entry = self.games.get(app_id)
        return entry.name if entry else None

    def get_genre(self, app_id: int, full: bool = True) -> Optional[str]:
        entry = self.games.get(app_id)
        if entry is None or not entry.genre:
            return None
        return entry.genre if full else truncate_genre(entry.genre)

    def pending_ids(self, candidates: Optional[Iterable[int]] = None) -> List[int]:
        """Ids that have never been classified. With ``candidates``, ids unknown to the cache count too."""
        if candidates is None:
            return [app_id for app_id, entry in self.games.items() if entry.app_type == AppType.NEW]
        pending: List[int] = []
        for app_id in candidates:
            if app_id <= 0:
                continue
            entry = self.games.get(app_id)
            if entry is None or entry.app_type == AppType.NEW:
                pending.append(app_id)
        return pending

    def integrate_names(self, names: Dict[int, str]) -> int:
        """Merge catalog names. Renamed entries are reset to NEW so they get classified again."""
        added = 0
        for app_id, name in names.items():
            entry = self.games.get(app_id)
            if entry is None:
                self.add(GameDBEntry(id=app_id, name=name))
                added += 1
            elif entry.name != name:
                entry.name = name
                entry.app_type = AppType.NEW
        logger.info(f"Loaded {added} new items into the game database")
        return added
