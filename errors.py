from typing import Optional


class SteamShelfError(Exception):
    """Base class for errors raised by the library reconciliation code."""


class ParseError(SteamShelfError):
    def __init__(self, message: str, line: Optional[int] = None, offset: Optional[int] = None) -> None:
        self.line = line
        self.offset = offset
        if line is not None:
            message = f"{message} (line {line})"
        elif offset is not None:
            message = f"{message} (offset {offset})"
        super().__init__(message)


class ConfigFileError(SteamShelfError):
    """A configuration file could not be read or written. The OSError is chained as __cause__."""


class ProfileAccessError(SteamShelfError):
    """The requested profile exists but its game list is not publicly readable."""


class FetchError(SteamShelfError):
    pass
