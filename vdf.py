import struct
from typing import Dict, IO, Iterator, List, Optional, Sequence, Tuple, Union

from errors import ParseError

LeafValue = Union[str, int]

# Binary record tags used by shortcuts.vdf.
TYPE_ARRAY = 0x00
TYPE_STRING = 0x01
TYPE_INT = 0x02
TYPE_END = 0x08

# Deeper documents are rejected so every tree walk stays within the recursion limit.
MAX_DEPTH = 256

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t", "\r": "\\r"}
_UNESCAPES = {"\\": "\\", '"': '"', "n": "\n", "t": "\t", "r": "\r"}


class VdfNode:
    """A KeyValues node: either a leaf holding a value or an ordered mapping of child nodes."""

    __slots__ = ("value", "children")

    def __init__(self, value: Optional[LeafValue] = None) -> None:
        self.value: Optional[LeafValue] = value
        self.children: Optional[Dict[str, "VdfNode"]] = {} if value is None else None

    @property
    def is_array(self) -> bool:
        return self.children is not None

    @property
    def text(self) -> Optional[str]:
        if self.children is not None:
            return None
        return str(self.value)

    def __len__(self) -> int:
        return len(self.children) if self.children is not None else 0

    def __iter__(self) -> Iterator[str]:
        return iter(list(self.children or {}))

    def __contains__(self, key: object) -> bool:
        return self.children is not None and key in self.children

    def __getitem__(self, key: str) -> "VdfNode":
        if self.children is None:
            raise KeyError(key)
        return self.children[key]

    def __setitem__(self, key: str, node: Union["VdfNode", LeafValue]) -> None:
        if not isinstance(node, VdfNode):
            node = VdfNode(node)
        self._ensure_array()[key] = node

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VdfNode):
            return NotImplemented
        if self.children is None or other.children is None:
            return self.children is None and other.children is None and self.value == other.value
        return list(self.children.items()) == list(other.children.items())

    def __repr__(self) -> str:
        if self.children is None:
            return f"VdfNode({self.value!r})"
        return f"VdfNode({{{', '.join(f'{k!r}: {v!r}' for k, v in self.children.items())}}})"

    def get(self, key: str, default: Optional["VdfNode"] = None) -> Optional["VdfNode"]:
        if self.children is None:
            return default
        return self.children.get(key, default)

    def items(self) -> List[Tuple[str, "VdfNode"]]:
        return list((self.children or {}).items())

    def _ensure_array(self) -> Dict[str, "VdfNode"]:
        if self.children is None:
            self.value = None
            self.children = {}
        return self.children

    def get_node_at(self, path: Sequence[str], create: bool = False) -> Optional["VdfNode"]:
        """Descend through ``path``; returns None when a step is missing unless ``create`` is set."""
        node = self
        for key in path:
            if node.children is None:
                if not create:
                    return None
                node._ensure_array()
            child = node.children.get(key)
            if child is None:
                if not create:
                    return None
                child = VdfNode()
                node.children[key] = child
            node = child
        return node

    def remove_subnode(self, key: str) -> bool:
        if self.children is None or key not in self.children:
            return False
        del self.children[key]
        return True

    def clean_tree(self) -> int:
        """Recursively drop interior children that are (or become) empty. Returns the count removed."""
        if self.children is None:
            return 0
        removed = 0
        for key, child in list(self.children.items()):
            if child.children is None:
                continue
            removed += child.clean_tree()
            if not child.children:
                del self.children[key]
                removed += 1
        return removed

    def prune(self, path: Sequence[str]) -> bool:
        """Remove the node at ``path`` and every ancestor below self left empty by the removal."""
        if not path:
            return False
        chain: List[VdfNode] = [self]
        for key in path[:-1]:
            nxt = chain[-1].get(key)
            if nxt is None or nxt.children is None:
                return False
            chain.append(nxt)
        if not chain[-1].remove_subnode(path[-1]):
            return False
        for depth in range(len(chain) - 1, 0, -1):
            if chain[depth].children:
                break
            chain[depth - 1].remove_subnode(path[depth - 1])
        return True


# ---------------------------------------------------------------------------
# Text encoding


class _Tokenizer:
    OPEN = "open"
    CLOSE = "close"
    STRING = "string"

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.line = 1

    def _skip_blank(self) -> None:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch == "\n":
                self.line += 1
                self.pos += 1
            elif ch.isspace():
                self.pos += 1
            elif text.startswith("//", self.pos):
                end = text.find("\n", self.pos)
                self.pos = len(text) if end == -1 else end
            else:
                return

    def next_token(self) -> Optional[Tuple[str, str, int]]:
        while True:
            self._skip_blank()
            if self.pos >= len(self.text):
                return None
            ch = self.text[self.pos]
            line = self.line
            if ch == "{":
                self.pos += 1
                return self.OPEN, ch, line
            if ch == "}":
                self.pos += 1
                return self.CLOSE, ch, line
            if ch == '"':
                return self.STRING, self._read_quoted(), line
            if ch == "[":
                # Platform conditionals such as [$WIN32] carry no data.
                end = self.text.find("]", self.pos)
                if end == -1:
                    raise ParseError("unterminated conditional", line=line)
                self.pos = end + 1
                continue
            return self.STRING, self._read_bare(), line

    def _read_quoted(self) -> str:
        start_line = self.line
        text = self.text
        self.pos += 1
        parts: List[str] = []
        while self.pos < len(text):
            ch = text[self.pos]
            if ch == '"':
                self.pos += 1
                return "".join(parts)
            if ch == "\\" and self.pos + 1 < len(text):
                nxt = text[self.pos + 1]
                if nxt in _UNESCAPES:
                    parts.append(_UNESCAPES[nxt])
                    self.pos += 2
                    continue
            if ch == "\n":
                self.line += 1
            parts.append(ch)
            self.pos += 1
        raise ParseError("unterminated quoted string", line=start_line)

    def _read_bare(self) -> str:
        text = self.text
        start = self.pos
        while self.pos < len(text):
            ch = text[self.pos]
            if ch.isspace() or ch in '{}"':
                break
            self.pos += 1
        return text[start:self.pos]


def _parse_text(tokens: _Tokenizer, root: VdfNode) -> None:
    # Open blocks, innermost last.
    stack: List[VdfNode] = [root]
    root._ensure_array()
    while True:
        token = tokens.next_token()
        if token is None:
            if len(stack) > 1:
                raise ParseError("unexpected end of input inside block", line=tokens.line)
            return
        kind, key, line = token
        if kind == _Tokenizer.CLOSE:
            if len(stack) == 1:
                raise ParseError("unbalanced closing brace", line=line)
            stack.pop()
            continue
        if kind == _Tokenizer.OPEN:
            raise ParseError("expected a key, found '{'", line=line)
        token = tokens.next_token()
        if token is None:
            raise ParseError(f"missing value for key {key!r}", line=line)
        kind, value, line = token
        if kind == _Tokenizer.STRING:
            stack[-1].children[key] = VdfNode(value)
        elif kind == _Tokenizer.OPEN:
            if len(stack) > MAX_DEPTH:
                raise ParseError("blocks nested too deeply", line=line)
            child = VdfNode()
            stack[-1].children[key] = child
            stack.append(child)
        else:
            raise ParseError(f"missing value for key {key!r}", line=line)


def loads_text(text: str, first_as_root: bool = False) -> VdfNode:
    """Parse text KeyValues.

    With ``first_as_root`` the single wrapping block Steam puts around its
    config files (``"UserLocalConfigStore" { ... }``) is unwrapped and its
    contents are returned as the root.
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    root = VdfNode()
    _parse_text(_Tokenizer(text), root)
    if not first_as_root or not root.children:
        return root
    first = next(iter(root.children.values()))
    if not first.is_array:
        raise ParseError("expected a top-level block", line=1)
    return first


def load_text(fp: IO[str], first_as_root: bool = False) -> VdfNode:
    return loads_text(fp.read(), first_as_root)


def _quote(value: str) -> str:
    return '"' + "".join(_ESCAPES.get(ch, ch) for ch in value) + '"'


def _dump_text_children(node: VdfNode, depth: int, out: List[str]) -> None:
    indent = "\t" * depth
    for key, child in node.items():
        if child.children is None:
            out.append(f"{indent}{_quote(key)}\t\t{_quote(str(child.value))}\n")
        else:
            out.append(f"{indent}{_quote(key)}\n{indent}{{\n")
            _dump_text_children(child, depth + 1, out)
            out.append(f"{indent}}}\n")


def dumps_text(node: VdfNode) -> str:
    """Write Steam's tab-indented text layout.

    The text form has no integer type: int leaves are written as their decimal
    text and read back as strings. Only the binary form keeps them as ints.
    """
    if not node.is_array:
        raise ValueError("Only an interior node can be written as a text document.")
    out: List[str] = []
    _dump_text_children(node, 0, out)
    return "".join(out)


def dump_text(node: VdfNode, fp: IO[str]) -> None:
    fp.write(dumps_text(node))


# ---------------------------------------------------------------------------
# Binary encoding


class _BinaryReader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def read_byte(self) -> int:
        if self.pos >= len(self.data):
            raise ParseError("truncated input, expected a record type", offset=self.pos)
        value = self.data[self.pos]
        self.pos += 1
        return value

    def read_cstring(self) -> str:
        end = self.data.find(b"\x00", self.pos)
        if end == -1:
            raise ParseError("truncated input, unterminated string", offset=self.pos)
        raw = self.data[self.pos:end]
        self.pos = end + 1
        return raw.decode("utf-8", errors="surrogateescape")

    def read_int32(self) -> int:
        if self.pos + 4 > len(self.data):
            raise ParseError("truncated input, incomplete integer", offset=self.pos)
        (value,) = struct.unpack_from("<i", self.data, self.pos)
        self.pos += 4
        return value


def _parse_binary(reader: _BinaryReader, root: VdfNode) -> None:
    # Child maps of the open objects, innermost last.
    stack: List[Dict[str, VdfNode]] = [root._ensure_array()]
    while stack:
        offset = reader.pos
        tag = reader.read_byte()
        if tag == TYPE_END:
            stack.pop()
            continue
        if tag not in (TYPE_ARRAY, TYPE_STRING, TYPE_INT):
            raise ParseError(f"unknown record type 0x{tag:02x}", offset=offset)
        key = reader.read_cstring()
        if tag == TYPE_ARRAY:
            if len(stack) > MAX_DEPTH:
                raise ParseError("objects nested too deeply", offset=offset)
            child = VdfNode()
            stack[-1][key] = child
            stack.append(child.children)
        elif tag == TYPE_STRING:
            stack[-1][key] = VdfNode(reader.read_cstring())
        else:
            stack[-1][key] = VdfNode(reader.read_int32())


def loads_binary(data: bytes) -> VdfNode:
    root = VdfNode()
    reader = _BinaryReader(bytes(data))
    _parse_binary(reader, root)
    if reader.pos != len(reader.data):
        raise ParseError("unexpected data after the closing record", offset=reader.pos)
    return root



def load_binary(fp: IO[bytes]) -> VdfNode:
    return loads_binary(fp.read())


def _encode(value: str) -> bytes:
    return value.encode("utf-8", errors="surrogateescape") + b"\x00"


def _dump_binary_children(node: VdfNode, out: bytearray) -> None:
    for key, child in node.items():
        if child.children is not None:
            out.append(TYPE_ARRAY)
            out += _encode(key)
            _dump_binary_children(child, out)
        elif isinstance(child.value, int):
            out.append(TYPE_INT)
            out += _encode(key)
            out += struct.pack("<i", child.value)
        else:
            out.append(TYPE_STRING)
            out += _encode(key)
            out += _encode(str(child.value))
    out.append(TYPE_END)


def dumps_binary(node: VdfNode) -> bytes:
    if not node.is_array:
        raise ValueError("Only an interior node can be written as a binary document.")
    out = bytearray()
    _dump_binary_children(node, out)
    return bytes(out)


def dump_binary(node: VdfNode, fp: IO[bytes]) -> None:
    fp.write(dumps_binary(node))
