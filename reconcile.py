import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from defusedxml import ElementTree
from defusedxml.common import DefusedXmlException

from errors import ConfigFileError, ParseError
from game_db import GameDB
from library import GameLibrary
from models import FAVORITE_TAG, Game
from utils import parse_int, process_unicode
from vdf import VdfNode, dumps_binary, dumps_text, loads_binary, loads_text

logger = logging.getLogger(__name__)

APPS_PATH = ("Software", "Valve", "Steam", "apps")
CONFIG_ROOT_KEY = "UserLocalConfigStore"
HTML_GAME_PATTERN = re.compile(r'"appid":([0-9]+),"name":"([^"]+)"')


@dataclass
class IntegrationResult:
    processed: int = 0
    new_items: int = 0
    removed_items: int = 0


# ---------------------------------------------------------------------------
# File access


def read_text_tree(path: str, first_as_root: bool = True) -> VdfNode:
    try:
        with open(path, "r", encoding="utf-8", errors="surrogateescape") as fh:
            text = fh.read()
    except OSError as exc:
        raise ConfigFileError(f"Could not open config file {path}: {exc}") from exc
    return loads_text(text, first_as_root)


def read_binary_tree(path: str) -> VdfNode:
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except OSError as exc:
        raise ConfigFileError(f"Could not open config file {path}: {exc}") from exc
    return loads_binary(data)


def _write_file(path: str, payload: Union[str, bytes]) -> None:
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        if isinstance(payload, bytes):
            with open(path, "wb") as fh:
                fh.write(payload)
        else:
            with open(path, "w", encoding="utf-8", errors="surrogateescape", newline="") as fh:
                fh.write(payload)
    except OSError as exc:
        raise ConfigFileError(f"Could not save config file {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Catalog lists


def _is_ignored(app_id: int, ignore: Optional[Set[int]], ignore_dlc: bool, game_db: Optional[GameDB]) -> bool:
    if ignore and app_id in ignore:
        return True
    return bool(ignore_dlc and game_db is not None and game_db.is_dlc(app_id))


def integrate_games(
    library: GameLibrary,
    pairs: Iterable[Tuple[int, str]],
    overwrite: bool = False,
    ignore: Optional[Set[int]] = None,
    ignore_dlc: bool = False,
    game_db: Optional[GameDB] = None,
) -> IntegrationResult:
    """Add (id, name) pairs from a catalog source. Existing names change only with ``overwrite``."""
    result = IntegrationResult()
    for app_id, name in pairs:
        if _is_ignored(app_id, ignore, ignore_dlc, game_db):
            logger.debug(f"Skipped integrating game {app_id} ({name})")
            continue
        is_new = library.set_game_name(app_id, name, overwrite)
        result.processed += 1
        if is_new:
            result.new_items += 1
        logger.debug(f"Integrated game {app_id} ({name}), new: {is_new}")
    return result


def parse_html_game_list(page: str) -> List[Tuple[int, str]]:
    return [(int(app_id), process_unicode(name)) for app_id, name in HTML_GAME_PATTERN.findall(page)]


def parse_xml_game_list(document: Union[str, bytes]) -> List[Tuple[int, str]]:
    try:
        root = ElementTree.fromstring(document)
    except (ElementTree.ParseError, DefusedXmlException) as exc:
        raise ParseError(f"Malformed game list XML: {exc}") from exc
    pairs: List[Tuple[int, str]] = []
    if root.tag != "gamesList":
        return pairs
    for node in root.findall("./games/game"):
        app_id = parse_int(node.findtext("appID"))
        name = node.findtext("name")
        if app_id is None or name is None:
            continue
        pairs.append((app_id, name))
    return pairs


def integrate_html_game_list(library: GameLibrary, page: str, **options) -> IntegrationResult:
    result = integrate_games(library, parse_html_game_list(page), **options)
    logger.info(f"Integrated HTML data into game list: {result.processed} total, {result.new_items} new")
    return result


def integrate_xml_game_list(library: GameLibrary, document: Union[str, bytes], **options) -> IntegrationResult:
    pairs = parse_xml_game_list(document)
    result = integrate_games(library, pairs, **options)
    logger.info(f"Integrated XML data into game list: {result.processed} total, {result.new_items} new")
    return result


# ---------------------------------------------------------------------------
# sharedconfig.vdf


def read_tags(tags_node: Optional[VdfNode], last_wins: bool = False) -> Tuple[Optional[str], bool]:
    """Return (category, favorite flag) for a tags block.

    The category is the first non-favorite tag, or the last one with ``last_wins``.
    """
    category: Optional[str] = None
    favorite = False
    if tags_node is None:
        return category, favorite
    for _key, tag in tags_node.items():
        name = tag.text
        if name is None:
            continue
        if name == FAVORITE_TAG:
            favorite = True
        elif category is None or last_wins:
            category = name
    return category, favorite


def integrate_config_tree(
    library: GameLibrary,
    apps_node: Optional[VdfNode],
    game_db: Optional[GameDB] = None,
    ignore: Optional[Set[int]] = None,
    ignore_dlc: bool = False,
) -> IntegrationResult:
    """Load category and favorite data from the ``apps`` block of a config tree.

    A game without a tags block is left untouched. A tags block always sets
    the favorite flag, but only replaces the category when it names one.
    """
    result = IntegrationResult()
    if apps_node is None:
        return result
    for key, game_node in apps_node.items():
        game_id = parse_int(key)
        if game_id is None:
            continue
        if _is_ignored(game_id, ignore, ignore_dlc, game_db):
            logger.debug(f"Skipped processing game {game_id}")
            continue
        tags_node = game_node.get("tags")
        if tags_node is None:
            continue
        result.processed += 1
        category, favorite = read_tags(tags_node)
        game = library.get_game(game_id)
        if game is None:
            name = (game_db.get_name(game_id) if game_db else None) or ""
            game = Game(id=game_id, name=name)
            library.add_game(game)
            result.new_items += 1
            logger.debug(f"Added new game {game_id} ({name})")
        if category is not None:
            game.category = library.get_category(category).name
        game.favorite = favorite
        logger.debug(f"Processed game {game_id}: category {category or '~none~'}, favorite {favorite}")
    return result


def import_config_file(
    library: GameLibrary,
    path: str,
    game_db: Optional[GameDB] = None,
    ignore: Optional[Set[int]] = None,
    ignore_dlc: bool = False,
) -> IntegrationResult:
    logger.info(f"Opening Steam config file {path}")
    root = read_text_tree(path, first_as_root=True)
    result = integrate_config_tree(library, root.get_node_at(APPS_PATH), game_db, ignore, ignore_dlc)
    logger.info(f"Steam config file loaded, {result.processed} games")
    return result


def write_config_tree(library: GameLibrary, root: VdfNode, discard_missing: bool = True) -> VdfNode:
    """Write categories of catalog games into ``root`` (the unwrapped config tree)."""
    apps_node = root.get_node_at(APPS_PATH, create=True)
    if discard_missing:
        for key, game_node in apps_node.items():
            game_id = parse_int(key)
            if game_id is None or game_id not in library:
                if game_node.remove_subnode("tags"):
                    logger.debug(f"Removing category of game {key} from Steam config")
    for game in library.games.values():
        if game.is_external:
            continue
        game_node = apps_node.get_node_at([str(game.id)], create=True)
        game_node.remove_subnode("tags")
        if game.category is None and not game.favorite:
            continue
        tags_node = game_node.get_node_at(["tags"], create=True)
        index = 0
        if game.category is not None:
            tags_node[str(index)] = game.category
            index += 1
        if game.favorite:
            tags_node[str(index)] = FAVORITE_TAG
    removed = apps_node.clean_tree()
    logger.debug(f"Cleaned Steam config tree, {removed} empty blocks removed")
    return root


def save_config_file(library: GameLibrary, path: str, discard_missing: bool = True) -> None:
    logger.info(f"Saving Steam config file {path}")
    if os.path.exists(path):
        root = read_text_tree(path, first_as_root=True)
    else:
        logger.warning(f"Steam config file {path} not found, creating a new one")
        root = VdfNode()
    write_config_tree(library, root, discard_missing)
    document = VdfNode()
    document[CONFIG_ROOT_KEY] = root
    _write_file(path, dumps_text(document))


# ---------------------------------------------------------------------------
# shortcuts.vdf


def load_launch_ids(source: Union[str, VdfNode, None]) -> Dict[str, str]:
    """Map shortcut name -> launch id from screenshots.vdf (first id per name wins)."""
    if source is None:
        return {}
    if isinstance(source, str):
        try:
            root = read_text_tree(source, first_as_root=True)
        except ConfigFileError as exc:
            logger.error(f"Could not load shortcut launch ids: {exc}")
            return {}
    else:
        root = source
    launch_ids: Dict[str, str] = {}
    names_node = root.get_node_at(["shortcutnames"])
    if names_node is None:
        return launch_ids
    for launch_id, name_node in names_node.items():
        name = name_node.text
        if name is not None and name not in launch_ids:
            launch_ids[name] = launch_id
    return launch_ids


def shortcut_id(key: str) -> Optional[int]:
    """Shortcut record ``n`` becomes game id ``-(n + 1)`` so it never collides with a catalog id."""
    index = parse_int(key)
    if index is None or index < 0:
        return None
    return -(index + 1)


def find_matching_shortcut(
    game_id: int,
    name: Optional[str],
    candidates: List[Game],
    launch_ids: Dict[str, str],
) -> Optional[int]:
    """Index of the candidate matching this shortcut: launch id, then id and name, then name alone."""
    launch_id = launch_ids.get(name) if name is not None else None
    if launch_id is not None:
        for idx, game in enumerate(candidates):
            if game.launch_key == launch_id:
                return idx
    for idx, game in enumerate(candidates):
        if game.id == game_id and game.name == name:
            return idx
    for idx, game in enumerate(candidates):
        if game.name == name:
            return idx
    return None


def _integrate_shortcut(
    library: GameLibrary,
    game_id: int,
    shortcut_node: VdfNode,
    old_shortcuts: List[Game],
    launch_ids: Dict[str, str],
    prefer_shortcut_data: bool,
) -> Tuple[bool, bool]:
    name_node = shortcut_node.get("appname")
    name = name_node.text if name_node is not None else None
    if game_id in library:
        return False, False
    game = Game(id=game_id, name=name or "", launch_id=launch_ids.get(name) if name is not None else None)
    library.add_game(game)

    match = find_matching_shortcut(game_id, name, old_shortcuts, launch_ids)
    old_game = old_shortcuts.pop(match) if match is not None else None
    old_cat_set = old_game is not None and old_game.category is not None

    tags_node = shortcut_node.get("tags")
    shortcut_tags_set = tags_node is not None and tags_node.is_array and len(tags_node) > 0
    if shortcut_tags_set and (prefer_shortcut_data or not old_cat_set):
        category, favorite = read_tags(tags_node, last_wins=True)
        game.category = library.get_category(category).name if category else None
        game.favorite = favorite
    elif old_game is not None:
        game.category = library.get_category(old_game.category).name if old_game.category else None
        game.favorite = old_game.favorite
    logger.debug(f"Integrated shortcut {game_id} ({name}), matched: {old_game is not None}")
    return True, old_game is None


def integrate_shortcuts_tree(
    library: GameLibrary,
    root: VdfNode,
    launch_ids: Optional[Dict[str, str]] = None,
    prefer_shortcut_data: bool = True,
) -> IntegrationResult:
    """Replace the library's external games with the entries of a shortcuts tree.

    Previously known external games are matched to the new entries so their
    categories survive shortcut reordering; those left unmatched are dropped.
    """
    result = IntegrationResult()
    shortcuts_node = root.get_node_at(["shortcuts"])
    if shortcuts_node is None:
        return result
    launch_ids = launch_ids or {}
    old_shortcuts = library.external_games()
    for game in old_shortcuts:
        library.remove_game(game.id)
    for key, shortcut_node in shortcuts_node.items():
        game_id = shortcut_id(key)
        if game_id is None or not shortcut_node.is_array:
            continue
        added, is_new = _integrate_shortcut(
            library, game_id, shortcut_node, old_shortcuts, launch_ids, prefer_shortcut_data
        )
        if added:
            result.processed += 1
            if is_new:
                result.new_items += 1
    result.removed_items = len(old_shortcuts)
    logger.info(
        f"Integrated shortcuts: {result.processed} found, {result.new_items} new, {result.removed_items} removed"
    )
    return result


def import_shortcuts_file(
    library: GameLibrary,
    path: str,
    screenshots_path: Optional[str] = None,
    prefer_shortcut_data: bool = True,
) -> IntegrationResult:
    logger.info(f"Opening shortcuts file {path}")
    root = read_binary_tree(path)
    return integrate_shortcuts_tree(library, root, load_launch_ids(screenshots_path), prefer_shortcut_data)


def write_shortcuts_tree(library: GameLibrary, root: VdfNode, launch_ids: Optional[Dict[str, str]] = None) -> int:
    """Write categories of external games into matching shortcut records. Returns the number written."""
    shortcuts_node = root.get_node_at(["shortcuts"])
    if shortcuts_node is None:
        return 0
    launch_ids = launch_ids or {}
    games_to_save = library.external_games()
    written = 0
    for key, shortcut_node in shortcuts_node.items():
        game_id = shortcut_id(key)
        if game_id is None or not shortcut_node.is_array:
            continue
        name_node = shortcut_node.get("appname")
        name = name_node.text if name_node is not None else None
        match = find_matching_shortcut(game_id, name, games_to_save, launch_ids)
        if match is None:
            continue
        game = games_to_save.pop(match)
        # Assigning over an existing key keeps the record's field order.
        tags_node = VdfNode()
        shortcut_node["tags"] = tags_node
        index = 0
        if game.category is not None:
            tags_node[str(index)] = game.category
            index += 1
        if game.favorite:
            tags_node[str(index)] = FAVORITE_TAG
        written += 1
        logger.debug(f"Adding game {game.id} to shortcuts file")
    return written


def save_shortcuts_file(library: GameLibrary, path: str, screenshots_path: Optional[str] = None) -> int:
    logger.info(f"Saving shortcuts file {path}")
    root = read_binary_tree(path)
    written = write_shortcuts_tree(library, root, load_launch_ids(screenshots_path))
    _write_file(path, dumps_binary(root))
    return written
