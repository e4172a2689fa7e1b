import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from errors import ConfigFileError
from game_db import GameDB
from models import AppType, GameDBEntry
from utils import parse_id_set, parse_int

logger = logging.getLogger(__name__)

APP_NAME = "steamshelf"
ENV_DATA_DIR = "STEAMSHELF_DATA_DIR"
CONFIG_FILENAME = "steamshelf_config.json"
DATA_DIR_KEY = "data_dir"
STATE_FILENAME = "profile.json"
GAME_DB_FILENAME = "gamedb.json"
MIN_THREADS = 1
MAX_THREADS = 16
FLAG_FIELDS = ("ignore_dlc", "ignore_external", "overwrite_names", "prefer_shortcut_data", "discard_missing")


@dataclass
class ProfileState:
    steam_path: str = ""
    steam_id64: Optional[int] = None
    profile_name: str = ""
    ignore: List[int] = field(default_factory=list)
    ignore_dlc: bool = True
    ignore_external: bool = False
    overwrite_names: bool = False
    prefer_shortcut_data: bool = True
    discard_missing: bool = True
    scrape_threads: int = 5


def app_data_dir(app_name: str = APP_NAME) -> str:
    """Per-user config directory: LOCALAPPDATA on Windows, XDG_CONFIG_HOME (or ~/.config) elsewhere."""
    if os.name == "nt":
        candidates = ("LOCALAPPDATA", "APPDATA")
        fallback = os.path.expanduser("~")
    else:
        candidates = ("XDG_CONFIG_HOME",)
        fallback = os.path.join(os.path.expanduser("~"), ".config")
    for name in candidates:
        if os.getenv(name):
            return os.path.join(os.environ[name], app_name)
    return os.path.join(fallback, app_name)


def settings_path() -> str:
    return os.path.join(app_data_dir(), CONFIG_FILENAME)


def read_settings() -> Dict[str, str]:
    path = settings_path()
    try:
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning(f"Ignoring unreadable settings file {path}: {exc}")
        return {}
    if not isinstance(raw, dict):
        return {}
    return {key: value for key, value in raw.items() if isinstance(key, str) and isinstance(value, str)}


def write_settings(settings: Dict[str, str]) -> None:
    path = settings_path()
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(settings, fh, indent=2, sort_keys=True)
    except OSError as exc:
        logger.warning(f"Could not save settings file {path}: {exc}")


def set_configured_data_dir(data_dir: str) -> None:
    data_dir = (data_dir or "").strip()
    if data_dir:
        settings = read_settings()
        settings[DATA_DIR_KEY] = data_dir
        write_settings(settings)


def resolve_data_dir() -> str:
    """Directory holding the profile state and the game database.

    Checked in order: the STEAMSHELF_DATA_DIR environment variable, the
    ``data_dir`` setting, and finally app_data_dir().
    """
    data_dir = os.getenv(ENV_DATA_DIR) or read_settings().get(DATA_DIR_KEY, "").strip()
    return data_dir or app_data_dir()


def default_state_path(filename: str = STATE_FILENAME) -> str:
    return os.path.join(resolve_data_dir(), filename)



def load_state(path: str) -> ProfileState:
    state = ProfileState()
    if not os.path.exists(path):
        return state
    try:
        with open(path, "r", encoding="utf-8") as fh:
            payload = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(f"Ignoring unreadable profile state {path}: {exc}")
        return state
    if not isinstance(payload, dict):
        return state
    steam_path = payload.get("steam_path")
    if isinstance(steam_path, str):
        state.steam_path = steam_path.strip()
    steam_id = parse_int(payload.get("steam_id64"))
    if steam_id is not None and steam_id > 0:
        state.steam_id64 = steam_id
    profile_name = payload.get("profile_name")
    if isinstance(profile_name, str):
        state.profile_name = profile_name.strip()
    ignore = payload.get("ignore", [])
    if isinstance(ignore, list):
        state.ignore = sorted(parse_id_set(ignore))
    for key in FLAG_FIELDS:
        value = payload.get(key)
        if isinstance(value, bool):
            setattr(state, key, value)
    threads = parse_int(payload.get("scrape_threads"))
    if threads is not None:
        state.scrape_threads = max(MIN_THREADS, min(MAX_THREADS, threads))
    return state


def save_state(path: str, state: ProfileState) -> None:
    payload = {
        "steam_path": state.steam_path,
        "steam_id64": state.steam_id64,
        "profile_name": state.profile_name,
        "ignore": sorted(set(state.ignore)),
        "ignore_dlc": state.ignore_dlc,
        "ignore_external": state.ignore_external,
        "overwrite_names": state.overwrite_names,
        "prefer_shortcut_data": state.prefer_shortcut_data,
        "discard_missing": state.discard_missing,
        "scrape_threads": max(MIN_THREADS, min(MAX_THREADS, state.scrape_threads)),
    }
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)
    except OSError as exc:
        raise ConfigFileError(f"Could not save profile state {path}: {exc}") from exc


def load_game_db(path: str) -> GameDB:
    logger.info(f"Loading game database from {path}")
    db = GameDB()
    try:
        with open(path, "r", encoding="utf-8") as fh:
            payload = json.load(fh)
    except OSError as exc:
        raise ConfigFileError(f"Could not open game database {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigFileError(f"Game database {path} is not valid JSON: {exc}") from exc
    items = payload.get("games") if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        raise ConfigFileError(f"Game database {path} does not contain a game list.")
    for item in items:
        if not isinstance(item, dict):
            continue
        app_id = parse_int(item.get("id"))
        if app_id is None or app_id in db:
            continue
        name = item.get("name")
        genre = item.get("genre")
        db.add(
            GameDBEntry(
                id=app_id,
                name=name if isinstance(name, str) and name else None,
                genre=genre if isinstance(genre, str) and genre else None,
                app_type=AppType.parse(item.get("type")),
            )
        )
    logger.info(f"Game database loaded, {len(db)} entries")
    return db


def save_game_db(path: str, db: GameDB) -> None:
    logger.info(f"Saving game database to {path}")
    payload = {"games": [entry.to_dict() for entry in db.games.values()]}
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)
    except OSError as exc:
        raise ConfigFileError(f"Could not save game database {path}: {exc}") from exc
