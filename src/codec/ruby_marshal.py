"""Ruby Marshal (format 4.8) codec for the subset used by gem registries.

The registry publishes its index snapshots (``specs.4.8.gz`` and friends) and
answers ``/api/v1/dependencies`` in Ruby's Marshal format. Only the tags
those payloads use are supported:

====  =====================================  ==========================
Tag   Meaning                                Python value
====  =====================================  ==========================
0     nil                                    None
T/F   true / false                           True / False
i     fixnum                                 int
"     string (raw bytes)                     str
I     instance variables (string encoding)   applied to the wrapped str
:     symbol                                 Symbol (a str subclass)
;     symbol link                            Symbol
[     array                                  list
{ }   hash (``}`` carries a default value)   dict
@     object link                            the linked value
U     user-marshaled object (Gem::Version)   RubyObject
o     plain object                           RubyObject (ivars dict)
====  =====================================  ==========================

Anything else raises ``MarshalError``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from common.errors import MarshalError

MAJOR_VERSION = 4
MINOR_VERSION = 8

_FIXNUM_MIN = -(2 ** 30)
_FIXNUM_MAX = 2 ** 30 - 1

# Maximum nesting of arrays, hashes and objects in one payload.
MAX_DEPTH = 256


class Symbol(str):
    """A Ruby symbol. Compares equal to the plain string of the same name."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f":{str(self)}"


@dataclass
class RubyObject:
    """A Ruby object the codec does not map onto a Python type.

    ``data`` holds the marshal_dump payload for ``U`` objects and the
    instance variables (without the ``@`` prefix) for ``o`` objects.
    """

    class_name: str
    data: Any


@dataclass
class _PendingString:
    index: int
    raw: bytes


def _decode_text(raw: bytes, encoding: Optional[str]) -> str:
    if encoding:
        try:
            return raw.decode(encoding)
        except (LookupError, UnicodeDecodeError):
            pass
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


class _Loader:
    """Single-use reader over one Marshal payload."""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._pos = 0
        self._symbols: List[Symbol] = []
        self._objects: List[Any] = []
        self._depth = 0

    def load(self) -> Any:
        major, minor = self._byte(), self._byte()
        if (major, minor) != (MAJOR_VERSION, MINOR_VERSION):
            raise MarshalError(f"unsupported marshal format {major}.{minor}")
        value = self._read()
        if self._pos != len(self._data):
            raise MarshalError(
                f"trailing data after marshal payload at offset {self._pos}"
            )
        return value

    def _byte(self) -> int:
        if self._pos >= len(self._data):
            raise MarshalError(f"truncated marshal payload at offset {self._pos}")
        value = self._data[self._pos]
        self._pos += 1
        return value

    def _bytes(self, size: int) -> bytes:
        if size < 0:
            raise MarshalError(f"negative length {size} at offset {self._pos}")
        end = self._pos + size
        if end > len(self._data):
            raise MarshalError(f"truncated marshal payload at offset {self._pos}")
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def _long(self) -> int:
        c = self._byte()
        if c > 127:
            c -= 256
        if c == 0:
            return 0
        if c >= 5:
            return c - 5
        if c <= -5:
            return c + 5
        if c > 0:
            return int.from_bytes(self._bytes(c), "little")
        size = -c
        return int.from_bytes(self._bytes(size), "little") - (1 << (8 * size))

    def _entry(self, value: Any = None) -> int:
        self._objects.append(value)
        return len(self._objects) - 1

    def _read(self, in_ivar: bool = False) -> Any:
        if self._depth >= MAX_DEPTH:
            raise MarshalError(f"nesting too deep at offset {self._pos} (limit {MAX_DEPTH})")
        self._depth += 1
        try:
            return self._read_value(in_ivar)
        finally:
            self._depth -= 1

    def _read_value(self, in_ivar: bool) -> Any:
        offset = self._pos
        tag = chr(self._byte())

        if tag == "0":
            return None
        if tag == "T":
            return True
        if tag == "F":
            return False
        if tag == "i":
            return self._long()
        if tag == ":":
            symbol = Symbol(_decode_text(self._bytes(self._long()), "utf-8"))
            self._symbols.append(symbol)
            return symbol
        if tag == ";":
            index = self._long()
            if not 0 <= index < len(self._symbols):
                raise MarshalError(f"bad symbol link {index} at offset {offset}")
            return self._symbols[index]
        if tag == '"':
            index = self._entry()
            raw = self._bytes(self._long())
            if in_ivar:
                return _PendingString(index, raw)
            text = _decode_text(raw, None)
            self._objects[index] = text
            return text
        if tag == "I":
            return self._read_ivar()
        if tag == "[":
            items: List[Any] = []
            self._entry(items)
            for _ in range(self._count()):
                items.append(self._read())
            return items
        if tag in ("{", "}"):
            mapping: Dict[Any, Any] = {}
            self._entry(mapping)
            for _ in range(self._count()):
                key = self._read()
                try:
                    mapping[key] = self._read()
                except TypeError as exc:
                    raise MarshalError(f"unhashable hash key at offset {offset}") from exc
            if tag == "}":
                self._read()  # default value, unused
            return mapping
        if tag == "@":
            index = self._long()
            if not 0 <= index < len(self._objects):
                raise MarshalError(f"bad object link {index} at offset {offset}")
            return self._objects[index]
        if tag == "U":
            class_name = self._class_name(offset)
            index = self._entry()
            obj = RubyObject(class_name, self._read())
            self._objects[index] = obj
            return obj
        if tag == "o":
            class_name = self._class_name(offset)
            obj = RubyObject(class_name, {})
            self._entry(obj)
            for _ in range(self._count()):
                name = self._read()
                obj.data[str(name).lstrip("@")] = self._read()
            return obj

        raise MarshalError(f"unsupported marshal type tag {tag!r} at offset {offset}")

    def _read_ivar(self) -> Any:
        value = self._read(in_ivar=True)
        encoding: Optional[str] = None
        for _ in range(self._count()):
            key = self._read()
            ivar = self._read()
            if key == "E":
                encoding = "utf-8" if ivar is True else "us-ascii"
            elif key == "encoding" and isinstance(ivar, str):
                encoding = ivar
        if isinstance(value, _PendingString):
            text = _decode_text(value.raw, encoding)
            self._objects[value.index] = text
            return text
        return value

    def _count(self) -> int:
        offset = self._pos
        count = self._long()
        if count < 0:
            raise MarshalError(f"negative element count {count} at offset {offset}")
        return count

    def _class_name(self, offset: int) -> str:
        name = self._read()
        if not isinstance(name, Symbol):
            raise MarshalError(f"expected class name symbol at offset {offset}")
        return str(name)


class _Dumper:
    """Writer producing payloads Ruby's ``Marshal.load`` accepts."""

    def __init__(self) -> None:
        self._out = bytearray()
        self._symbols: Dict[str, int] = {}

    def dump(self, obj: Any) -> bytes:
        self._out += bytes((MAJOR_VERSION, MINOR_VERSION))
        self._write(obj)
        return bytes(self._out)

    def _write(self, obj: Any) -> None:
        if obj is None:
            self._out += b"0"
        elif obj is True:
            self._out += b"T"
        elif obj is False:
            self._out += b"F"
        elif isinstance(obj, Symbol):
            self._symbol(obj)
        elif isinstance(obj, int):
            if not _FIXNUM_MIN <= obj <= _FIXNUM_MAX:
                raise MarshalError(f"integer {obj} is outside the fixnum range")
            self._out += b"i"
            self._long(obj)
        elif isinstance(obj, str):
            raw = obj.encode("utf-8")
            self._out += b'I"'
            self._long(len(raw))
            self._out += raw
            self._long(1)
            self._symbol(Symbol("E"))
            self._out += b"T"
        elif isinstance(obj, bytes):
            self._out += b'"'
            self._long(len(obj))
            self._out += obj
        elif isinstance(obj, (list, tuple)):
            self._out += b"["
            self._long(len(obj))
            for item in obj:
                self._write(item)
        elif isinstance(obj, dict):
            self._out += b"{"
            self._long(len(obj))
            for key, value in obj.items():
                self._write(key)
                self._write(value)
        elif isinstance(obj, RubyObject):
            self._out += b"U"
            self._symbol(Symbol(obj.class_name))
            self._write(obj.data)
        else:
            raise MarshalError(f"cannot marshal {type(obj).__name__}")

    def _symbol(self, name: str) -> None:
        index = self._symbols.get(name)
        if index is not None:
            self._out += b";"
            self._long(index)
            return
        self._symbols[name] = len(self._symbols)
        raw = name.encode("utf-8")
        self._out += b":"
        self._long(len(raw))
        self._out += raw

    def _long(self, value: int) -> None:
        if value == 0:
            self._out.append(0)
        elif 0 < value < 123:
            self._out.append(value + 5)
        elif -124 < value < 0:
            self._out.append((value - 5) & 0xFF)
        else:
            buf = bytearray()
            x = value
            for size in range(1, 5):
                buf.append(x & 0xFF)
                x >>= 8
                if x == 0:
                    self._out.append(size)
                    break
                if x == -1:
                    self._out.append((-size) & 0xFF)
                    break
            else:
                raise MarshalError(f"integer {value} does not fit in a marshal long")
            self._out += buf


def loads(data: bytes) -> Any:
    """Decode one Marshal payload.

    Raises:
        MarshalError: If the payload is truncated, malformed or uses an unsupported tag.
    """
    return _Loader(data).load()


def dumps(obj: Any) -> bytes:
    """Encode ``obj`` using the same subset ``loads`` understands.

    ``str`` is written as a UTF-8 string, ``Symbol`` as a symbol, ``bytes`` as
    a binary string and ``RubyObject`` as a user-marshaled object.
    """
    return _Dumper().dump(obj)
