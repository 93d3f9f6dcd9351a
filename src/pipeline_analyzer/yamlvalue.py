# yamlvalue.py
"""
Tagged-union view over a decoded YAML document.

Pipeline configs are loosely typed: the same field may be a string, a list or
a mapping depending on who wrote the file. Parsers never inspect raw Python
types; they ask a YamlValue for the shape they expect and get either a typed
result or a ShapeMismatch, so every polymorphic field reads as a chain of
"try this shape, else that one".
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, TypeVar, Union

import yaml

from .errors import DecodeError

T = TypeVar("T")


class Kind(Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


class ShapeMismatch(ValueError):
    """A YAML value does not have the shape a parser asked for."""

    def __init__(self, expected: Kind, actual: Kind, where: str = ""):
        self.expected = expected
        self.actual = actual
        self.where = where
        at = f" at {where}" if where else ""
        super().__init__(f"expected {expected.value}, got {actual.value}{at}")


@dataclass(frozen=True)
class YamlValue:
    kind: Kind
    value: Any = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def wrap(cls, obj: Any, path: str = "") -> "YamlValue":
        """
        Wrap a safe_load result (recursively).

        A YAML alias may point at one of its own ancestors; safe_load builds
        that as a self-containing list or dict, which raises DecodeError here.
        """
        return cls._wrap(obj, set(), path)

    @classmethod
    def _wrap(cls, obj: Any, active: Set[int], path: str) -> "YamlValue":
        if isinstance(obj, YamlValue):
            return obj
        if obj is None:
            return NULL
        if isinstance(obj, bool):
            return cls(Kind.BOOL, obj)
        if isinstance(obj, (int, float)):
            return cls(Kind.NUMBER, obj)
        if isinstance(obj, str):
            return cls(Kind.STRING, obj)
        if isinstance(obj, (list, tuple, dict)):
            if id(obj) in active:
                raise DecodeError(path=path, message="recursive alias")
            active.add(id(obj))
            try:
                if isinstance(obj, dict):
                    # YAML allows non-string keys (ints, and `on` read as True)
                    return cls(Kind.MAPPING, {_key_text(k): cls._wrap(v, active, path) for k, v in obj.items()})
                return cls(Kind.SEQUENCE, tuple(cls._wrap(v, active, path) for v in obj))
            finally:
                active.discard(id(obj))
        # timestamps, binary, sets: keep their text
        return cls(Kind.STRING, str(obj))

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @property
    def is_null(self) -> bool:
        return self.kind is Kind.NULL

    @property
    def is_scalar(self) -> bool:
        return self.kind in (Kind.BOOL, Kind.NUMBER, Kind.STRING)

    @property
    def is_mapping(self) -> bool:
        return self.kind is Kind.MAPPING

    @property
    def is_sequence(self) -> bool:
        return self.kind is Kind.SEQUENCE

    @property
    def is_string(self) -> bool:
        return self.kind is Kind.STRING

    # ------------------------------------------------------------------
    # Strict accessors
    # ------------------------------------------------------------------

    def _expect(self, kind: Kind, where: str) -> None:
        if self.kind is not kind:
            raise ShapeMismatch(kind, self.kind, where)

    def as_str(self, where: str = "") -> str:
        self._expect(Kind.STRING, where)
        return self.value

    def as_bool(self, where: str = "") -> bool:
        self._expect(Kind.BOOL, where)
        return self.value

    def as_number(self, where: str = "") -> Union[int, float]:
        self._expect(Kind.NUMBER, where)
        return self.value

    def as_list(self, where: str = "") -> List["YamlValue"]:
        self._expect(Kind.SEQUENCE, where)
        return list(self.value)

    def as_mapping(self, where: str = "") -> Dict[str, "YamlValue"]:
        self._expect(Kind.MAPPING, where)
        return dict(self.value)

    # ------------------------------------------------------------------
    # Lenient helpers
    # ------------------------------------------------------------------

    def get(self, key: str) -> "YamlValue":
        """Child of a mapping, or NULL when the key is absent."""
        self._expect(Kind.MAPPING, key)
        return self.value.get(key, NULL)

    def keys(self) -> List[str]:
        self._expect(Kind.MAPPING, "")
        return list(self.value.keys())

    def scalar_text(self, where: str = "") -> str:
        """Text of any scalar: 2.1 -> "2.1", 3 -> "3", true -> "true"."""
        if self.kind is Kind.STRING:
            return self.value
        if self.kind is Kind.BOOL:
            return "true" if self.value else "false"
        if self.kind is Kind.NUMBER:
            if isinstance(self.value, float) and self.value.is_integer():
                return str(int(self.value))
            return str(self.value)
        raise ShapeMismatch(Kind.STRING, self.kind, where)

    def text_or(self, default: Optional[str] = None) -> Optional[str]:
        if self.is_scalar:
            return self.scalar_text()
        return default

    def string_list(self, where: str = "") -> List[str]:
        """A scalar or a list of scalars, as a list of strings. NULL is []."""
        if self.is_null:
            return []
        if self.is_scalar:
            return [self.scalar_text()]
        items = self.as_list(where)
        return [item.scalar_text(f"{where}[{i}]") for i, item in enumerate(items)]

    def to_plain(self) -> Any:
        """Plain Python data with no aliasing to this value."""
        if self.kind is Kind.SEQUENCE:
            return [v.to_plain() for v in self.value]
        if self.kind is Kind.MAPPING:
            return {k: v.to_plain() for k, v in self.value.items()}
        return self.value


NULL = YamlValue(Kind.NULL, None)


def _key_text(key: Any) -> str:
    if isinstance(key, bool):
        return "true" if key else "false"
    return str(key)


def first_shape(value: YamlValue, *readers: Callable[[YamlValue], T], default: Any = None) -> Any:
    """
    Try each reader in order and return the first result that does not raise
    ShapeMismatch. Falls back to `default` when no shape fits.
    """
    for reader in readers:
        try:
            return reader(value)
        except ShapeMismatch:
            continue
    return default


def str_map(value: YamlValue, where: str = "") -> Dict[str, str]:
    """Mapping of scalars (env blocks, labels). Non-scalar values keep their YAML text."""
    if value.is_null:
        return {}
    out: Dict[str, str] = {}
    for k, v in value.as_mapping(where).items():
        if v.is_null:
            out[k] = ""
        elif v.is_scalar:
            out[k] = v.scalar_text()
        else:
            out[k] = yaml.safe_dump(v.to_plain(), default_flow_style=True).strip()
    return out


# ----------------------------------------------------------------------
# Decoder
# ----------------------------------------------------------------------

def decode_yaml(data: Union[bytes, str], path: str = "") -> YamlValue:
    """
    Decode YAML bytes into a YamlValue tree.

    No schema is applied here. Multi-document files yield their first mapping
    document (a leading `---` header or a trailing empty document is common in
    CI configs).
    """
    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(path=path, message="file is not valid UTF-8", details={"decoder": str(e)}) from e
    else:
        text = data
    text = text.lstrip("\ufeff")

    try:
        documents = [doc for doc in yaml.safe_load_all(text) if doc is not None]
        if not documents:
            return NULL
        first = next((doc for doc in documents if isinstance(doc, dict)), documents[0])
        return YamlValue.wrap(first, path)
    except yaml.YAMLError as e:
        raise DecodeError(path=path, message="invalid YAML", details={"decoder": str(e)}) from e
    except RecursionError as e:
        raise DecodeError(path=path, message="YAML nested too deeply") from e


def plain_copy(obj: Any) -> Any:
    """Copy of decoded YAML data (dicts, lists, scalars) sharing no containers."""
    if isinstance(obj, dict):
        return {k: plain_copy(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [plain_copy(v) for v in obj]
    return obj


def name_list(value: YamlValue) -> List[str]:
    """
    Names from a dependency-style field: "a", ["a", "b"], [{a: ...}], or
    {a: ..., b: ...}. Entries of any other shape are skipped.
    """
    if value.is_null:
        return []
    if value.is_scalar:
        return [value.scalar_text()]
    if value.is_mapping:
        return value.keys()
    out: List[str] = []
    for item in value.as_list():
        if item.is_scalar:
            out.append(item.scalar_text())
        elif item.is_mapping:
            out.extend(item.keys())
    return out
