"""
Metadata adapter.

Normalizes the raw metadata document served by the gateway into a uniform,
read-only view keyed by interaction category. Storage, call and RPC shapes are
decoded once here into a closed set of descriptor variants so the schema
deriver never has to sniff raw dictionaries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class Category(str, Enum):
    """Interaction kinds offered by the interactor."""

    EXTRINSIC = "EXTRINSIC"
    QUERY = "QUERY"
    RPC = "RPC"
    CONSTANT = "CONSTANT"

    @classmethod
    def parse(cls, value: Union[str, "Category"]) -> "Category":
        """Accept enum members or case-insensitive names."""
        if isinstance(value, Category):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown category: {value!r}") from None


# Top-level document sections per category.
CATEGORY_SECTIONS: Dict[Category, str] = {
    Category.QUERY: "query",
    Category.EXTRINSIC: "tx",
    Category.RPC: "rpc",
    Category.CONSTANT: "consts",
}
JSONRPC_SECTION = "jsonrpc"


@dataclass(frozen=True, slots=True)
class NamespaceRef:
    name: str


@dataclass(frozen=True, slots=True)
class CallableRef:
    name: str


@dataclass(frozen=True, slots=True)
class ArgSpec:
    """A declared extrinsic argument."""

    name: str
    type_name: str


@dataclass(frozen=True, slots=True)
class RpcParamSpec:
    """A declared RPC parameter."""

    name: str
    type_name: str
    is_optional: bool = False


@dataclass(frozen=True, slots=True)
class Plain:
    """Storage item holding a single value."""


@dataclass(frozen=True, slots=True)
class SingleKeyMap:
    key_type: str


@dataclass(frozen=True, slots=True)
class DoubleKeyMap:
    key1_type: str
    key2_type: str


@dataclass(frozen=True, slots=True)
class ArgList:
    args: Tuple[ArgSpec, ...] = ()


@dataclass(frozen=True, slots=True)
class ParamList:
    params: Tuple[RpcParamSpec, ...] = ()


@dataclass(frozen=True, slots=True)
class NoShape:
    """Callable without a parameter shape (constants, unrecognized storage)."""


ShapeDescriptor = Union[Plain, SingleKeyMap, DoubleKeyMap, ArgList, ParamList, NoShape]


def _type_name(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        # Some encoders emit {"type": "AccountId"} or {"name": "AccountId"}.
        for key in ("type", "name", "typeName"):
            inner = value.get(key)
            if isinstance(inner, str):
                return inner
    if value is None:
        return ""
    return str(value)


def _decode_storage_type(raw_type: Any) -> ShapeDescriptor:
    if isinstance(raw_type, str):
        return Plain()
    if not isinstance(raw_type, Mapping):
        return NoShape()

    # Flag form: {"isMap": true, "asMap": {...}}
    if raw_type.get("isPlain"):
        return Plain()
    if raw_type.get("isMap"):
        as_map = raw_type.get("asMap")
        if isinstance(as_map, Mapping) and "key" in as_map:
            return SingleKeyMap(key_type=_type_name(as_map.get("key")))
        return NoShape()
    if raw_type.get("isDoubleMap"):
        as_double = raw_type.get("asDoubleMap")
        if isinstance(as_double, Mapping) and "key1" in as_double and "key2" in as_double:
            return DoubleKeyMap(
                key1_type=_type_name(as_double.get("key1")),
                key2_type=_type_name(as_double.get("key2")),
            )
        return NoShape()

    # Tagged form: {"plain": T} / {"map": {...}} / {"doubleMap": {...}}
    if "plain" in raw_type:
        return Plain()
    single = raw_type.get("map")
    if isinstance(single, Mapping) and "key" in single:
        return SingleKeyMap(key_type=_type_name(single.get("key")))
    double = raw_type.get("doubleMap")
    if isinstance(double, Mapping) and "key1" in double and "key2" in double:
        return DoubleKeyMap(
            key1_type=_type_name(double.get("key1")),
            key2_type=_type_name(double.get("key2")),
        )
    return NoShape()


def _decode_args(raw_args: Any) -> ArgList:
    if not isinstance(raw_args, list):
        return ArgList()
    args: List[ArgSpec] = []
    for item in raw_args:
        if not isinstance(item, Mapping):
            continue
        args.append(ArgSpec(name=_type_name(item.get("name")), type_name=_type_name(item.get("type"))))
    return ArgList(args=tuple(args))


def _decode_rpc_params(raw_params: Any) -> ParamList:
    if not isinstance(raw_params, list):
        return ParamList()
    params: List[RpcParamSpec] = []
    for item in raw_params:
        if not isinstance(item, Mapping):
            continue
        params.append(
            RpcParamSpec(
                name=_type_name(item.get("name")),
                type_name=_type_name(item.get("type")),
                is_optional=bool(item.get("isOptional") or False),
            )
        )
    return ParamList(params=tuple(params))


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


class MetadataView:
    """Read-only view over a raw metadata document."""

    def __init__(self, document: Optional[Mapping[str, Any]] = None) -> None:
        self._document: Mapping[str, Any] = _as_mapping(document)

    @classmethod
    def from_document(cls, document: Any) -> Optional["MetadataView"]:
        """Wrap a raw document; returns None when nothing usable was supplied."""
        if not isinstance(document, Mapping):
            return None
        return cls(document)

    @property
    def document(self) -> Mapping[str, Any]:
        return self._document

    def section(self, category: Category) -> Mapping[str, Any]:
        return _as_mapping(self._document.get(CATEGORY_SECTIONS[category]))

    def entries(self, category: Category, namespace: str) -> Mapping[str, Any]:
        return _as_mapping(self.section(category).get(namespace))

    def entry(self, category: Category, namespace: str, callable_name: str) -> Any:
        return self.entries(category, namespace).get(callable_name)

    def rpc_definition(self, namespace: str, callable_name: str) -> Any:
        definitions = _as_mapping(_as_mapping(self._document.get(JSONRPC_SECTION)).get(namespace))
        if callable_name in definitions:
            return definitions.get(callable_name)
        return self.entry(Category.RPC, namespace, callable_name)


def list_namespaces(metadata: Optional[MetadataView], category: Category) -> List[NamespaceRef]:
    """Namespaces exposing at least one callable, sorted ascending."""
    if metadata is None:
        return []
    section = metadata.section(Category.parse(category))
    return [
        NamespaceRef(name=name)
        for name in sorted(section)
        if len(_as_mapping(section.get(name))) > 0
    ]


def list_callables(
    metadata: Optional[MetadataView], category: Category, namespace: str
) -> List[CallableRef]:
    """Callable names under a namespace, sorted ascending."""
    if metadata is None or not namespace:
        return []
    entries = metadata.entries(Category.parse(category), namespace)
    return [CallableRef(name=name) for name in sorted(entries)]


def get_shape_descriptor(
    metadata: Optional[MetadataView],
    category: Category,
    namespace: str,
    callable_name: str,
) -> Optional[ShapeDescriptor]:
    """
    Decode the parameter shape for a callable.

    Returns None when nothing is selected yet (or metadata is absent), which
    callers treat as "no parameters to derive".
    """
    if metadata is None or not namespace or not callable_name:
        return None
    category = Category.parse(category)

    if category is Category.QUERY:
        raw_entry = _as_mapping(metadata.entry(category, namespace, callable_name))
        raw_meta = _as_mapping(raw_entry.get("meta")) or raw_entry
        return _decode_storage_type(raw_meta.get("type"))
    if category is Category.EXTRINSIC:
        raw_entry = _as_mapping(metadata.entry(category, namespace, callable_name))
        raw_meta = _as_mapping(raw_entry.get("meta")) or raw_entry
        return _decode_args(raw_meta.get("args"))
    if category is Category.RPC:
        definition = _as_mapping(metadata.rpc_definition(namespace, callable_name))
        return _decode_rpc_params(definition.get("params"))
    return NoShape()


def describe_constant(
    metadata: Optional[MetadataView], namespace: str, callable_name: str
) -> Dict[str, Any]:
    """Return the declared type and value of a compiled-in constant."""
    if metadata is None or not namespace or not callable_name:
        return {}
    raw_entry = metadata.entry(Category.CONSTANT, namespace, callable_name)
    if isinstance(raw_entry, Mapping):
        return {"type": _type_name(raw_entry.get("type")), "value": raw_entry.get("value")}
    # Bare values are accepted as-is.
    return {"type": "", "value": raw_entry}
