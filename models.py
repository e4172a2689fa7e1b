from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

FAVORITE_TAG = "favorite"


class AppType(Enum):
    NEW = "New"
    GAME = "Game"
    DLC = "DLC"
    ID_REDIRECT = "IdRedirect"
    NON_APP = "NonApp"
    NOT_FOUND = "NotFound"
    AGE_GATED = "AgeGated"
    SITE_ERROR = "SiteError"
    WEB_ERROR = "WebError"
    UNKNOWN = "Unknown"

    @property
    def carries_genre(self) -> bool:
        return self in (AppType.GAME, AppType.DLC, AppType.ID_REDIRECT)

    @classmethod
    def parse(cls, raw: object) -> "AppType":
        for member in cls:
            if raw == member.value or raw == member.name:
                return member
        return cls.NEW


@dataclass(frozen=True)
class ScrapeResult:
    app_type: AppType
    genre: Optional[str] = None


@dataclass(frozen=True)
class Category:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass
class Game:
    id: int
    name: str = ""
    category: Optional[str] = None
    favorite: bool = False
    launch_id: Optional[str] = None

    @property
    def is_external(self) -> bool:
        return self.id < 0

    @property
    def launch_key(self) -> Optional[str]:
        if self.id > 0:
            return str(self.id)
        return self.launch_id or None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category or "",
            "favorite": self.favorite,
            "external": self.is_external,
        }


@dataclass
class GameDBEntry:
    id: int
    name: Optional[str] = None
    genre: Optional[str] = None
    app_type: AppType = AppType.NEW

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": self.id, "type": self.app_type.value}
        if self.name:
            payload["name"] = self.name
        if self.genre:
            payload["genre"] = self.genre
        return payload
