import os
import re
from typing import Iterable, Optional, Set, Union

_UNICODE_ESCAPE = re.compile(r"\\u(?P<value>[0-9a-fA-F]{4})")

# Offset between a 64-bit community id and the account id used for userdata folders.
STEAM_ID64_BASE = 0x0110000100000000


def process_unicode(raw: str) -> str:
    """Replace JavaScript style \\uXXXX escapes with the characters they encode."""
    return _UNICODE_ESCAPE.sub(lambda m: chr(int(m.group("value"), 16)), raw)


def truncate_genre(full: Optional[str]) -> Optional[str]:
    if full is None:
        return None
    return full.split(",", 1)[0]


def parse_int(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def parse_id_set(values: Iterable[object]) -> Set[int]:
    result: Set[int] = set()
    for value in values:
        parsed = parse_int(value)
        if parsed is not None:
            result.add(parsed)
    return result


def steam_id64_to_dir_name(steam_id64: Union[int, str]) -> str:
    account = int(steam_id64) - STEAM_ID64_BASE
    if account < 0:
        raise ValueError(f"Not a 64-bit Steam id: {steam_id64}")
    return str(account)


def _userdata_dir(steam_path: str, steam_id64: Union[int, str]) -> str:
    return os.path.join(steam_path, "userdata", steam_id64_to_dir_name(steam_id64))


def config_file_path(steam_path: str, steam_id64: Union[int, str]) -> str:
    return os.path.join(_userdata_dir(steam_path, steam_id64), "7", "remote", "sharedconfig.vdf")


def shortcuts_file_path(steam_path: str, steam_id64: Union[int, str]) -> str:
    return os.path.join(_userdata_dir(steam_path, steam_id64), "config", "shortcuts.vdf")


def screenshots_file_path(steam_path: str, steam_id64: Union[int, str]) -> str:
    return os.path.join(_userdata_dir(steam_path, steam_id64), "760", "screenshots.vdf")
