"""Parameter schema derivation from decoded shape descriptors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from pallet_interactor.interactor.metadata import (
    ArgList,
    Category,
    DoubleKeyMap,
    ParamList,
    Plain,
    ShapeDescriptor,
    SingleKeyMap,
)

# Canonical name prefix of the generic optional wrapper. Metadata encoded with a
# different wrapper name would silently report every argument as required.
OPTIONAL_TYPE_PREFIX = "Option<"


@dataclass(frozen=True, slots=True)
class ParameterDeclaration:
    name: str
    declared_type: str
    optional: bool = False

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.declared_type, "optional": self.optional}


def is_optional_type(type_name: Optional[str]) -> bool:
    """Textual prefix match on the type's canonical name."""
    if not isinstance(type_name, str):
        return False
    return type_name.startswith(OPTIONAL_TYPE_PREFIX)


def _key_declaration(key_type: str) -> ParameterDeclaration:
    return ParameterDeclaration(name=key_type, declared_type=key_type, optional=False)


def derive_parameters(
    category: Category, descriptor: Optional[ShapeDescriptor]
) -> List[ParameterDeclaration]:
    """
    Map a shape descriptor to the ordered parameter list of a callable.

    The function is total: missing descriptors, unrecognized shapes and
    category/shape mismatches all yield an empty list.
    """
    if descriptor is None:
        return []
    category = Category.parse(category)

    if category is Category.QUERY:
        if isinstance(descriptor, Plain):
            return []
        if isinstance(descriptor, SingleKeyMap):
            return [_key_declaration(descriptor.key_type)]
        if isinstance(descriptor, DoubleKeyMap):
            return [_key_declaration(descriptor.key1_type), _key_declaration(descriptor.key2_type)]
        return []

    if category is Category.EXTRINSIC:
        if isinstance(descriptor, ArgList):
            return [
                ParameterDeclaration(
                    name=arg.name,
                    declared_type=arg.type_name,
                    optional=is_optional_type(arg.type_name),
                )
                for arg in descriptor.args
            ]
        return []

    if category is Category.RPC:
        if isinstance(descriptor, ParamList):
            return [
                ParameterDeclaration(
                    name=param.name,
                    declared_type=param.type_name,
                    optional=bool(param.is_optional),
                )
                for param in descriptor.params
            ]
        return []

    # Constants take no parameters.
    return []
