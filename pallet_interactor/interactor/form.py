"""
Interaction form state machine.

Owns the selection state of one interaction panel (category, namespace,
callable and the positional input values) and applies the downstream resets
whenever an upstream selection changes. Each transition swaps in a new
immutable FormState snapshot, so observers never see a half-applied change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from pallet_interactor.interactor.errors import InvalidParamIndexError, InvalidTransitionError
from pallet_interactor.interactor.metadata import (
    CallableRef,
    Category,
    MetadataView,
    NamespaceRef,
    get_shape_descriptor,
    list_callables,
    list_namespaces,
)
from pallet_interactor.interactor.schema import ParameterDeclaration, derive_parameters

logger = logging.getLogger(__name__)


class FormPhase(str, Enum):
    IDLE = "IDLE"
    CATEGORY_SELECTED = "CATEGORY_SELECTED"
    NAMESPACE_SELECTED = "NAMESPACE_SELECTED"
    CALLABLE_SELECTED = "CALLABLE_SELECTED"
    PARAMETERS_BOUND = "PARAMETERS_BOUND"


@dataclass(frozen=True, slots=True)
class InputParam:
    declared_type: str
    value: str = ""


@dataclass(frozen=True, slots=True)
class FormState:
    category: Optional[Category] = None
    namespace: str = ""
    callable: str = ""
    input_params: Tuple[InputParam, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value if self.category is not None else None,
            "namespace": self.namespace,
            "callable": self.callable,
            "inputParams": [
                {"type": param.declared_type, "value": param.value} for param in self.input_params
            ],
        }


StateListener = Callable[[FormState], None]


def _seed_inputs(parameters: Tuple[ParameterDeclaration, ...]) -> Tuple[InputParam, ...]:
    return tuple(InputParam(declared_type=param.declared_type) for param in parameters)


class InteractionForm:
    """Mutable selection state for one interaction panel."""

    def __init__(
        self,
        metadata: Optional[MetadataView] = None,
        *,
        category: Optional[Category | str] = None,
    ) -> None:
        self._metadata = metadata
        self._state = FormState()
        self._namespaces: List[NamespaceRef] = []
        self._callables: List[CallableRef] = []
        self._parameters: Tuple[ParameterDeclaration, ...] = ()
        self._listeners: List[StateListener] = []
        if category is not None:
            self.select_category(category)

    # Read-only views

    @property
    def state(self) -> FormState:
        return self._state

    @property
    def metadata(self) -> Optional[MetadataView]:
        return self._metadata

    @property
    def namespaces(self) -> List[NamespaceRef]:
        return list(self._namespaces)

    @property
    def callables(self) -> List[CallableRef]:
        return list(self._callables)

    @property
    def parameters(self) -> Tuple[ParameterDeclaration, ...]:
        return self._parameters

    @property
    def phase(self) -> FormPhase:
        state = self._state
        if state.category is None:
            return FormPhase.IDLE
        if not state.namespace:
            return FormPhase.CATEGORY_SELECTED
        if not state.callable:
            return FormPhase.NAMESPACE_SELECTED
        if self.missing_required():
            return FormPhase.CALLABLE_SELECTED
        return FormPhase.PARAMETERS_BOUND

    def missing_required(self) -> List[str]:
        """Names of required parameters that still have an empty value."""
        missing: List[str] = []
        for declaration, param in zip(self._parameters, self._state.input_params):
            if not declaration.optional and not param.value.strip():
                missing.append(declaration.name)
        return missing

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback run after every transition; returns an unsubscribe handle."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # Transitions

    def select_category(self, category: Category | str) -> FormState:
        parsed = Category.parse(category)
        self._namespaces = list_namespaces(self._metadata, parsed)
        self._callables = []
        self._parameters = ()
        logger.debug("transition=select_category category=%s", parsed.value)
        return self._commit(FormState(category=parsed))

    def select_namespace(self, namespace: str) -> FormState:
        if self._state.category is None:
            raise InvalidTransitionError("Select a category before a namespace.", code="NO_CATEGORY")
        category = self._state.category
        self._callables = list_callables(self._metadata, category, namespace)
        self._parameters = ()
        logger.debug("transition=select_namespace category=%s namespace=%s", category.value, namespace)
        return self._commit(FormState(category=category, namespace=namespace))

    def select_callable(self, callable_name: str) -> FormState:
        if self._state.category is None or not self._state.namespace:
            raise InvalidTransitionError("Select a namespace before a callable.", code="NO_NAMESPACE")
        category = self._state.category
        namespace = self._state.namespace
        self._parameters = self._derive(category, namespace, callable_name)
        logger.debug(
            "transition=select_callable category=%s namespace=%s callable=%s params=%d",
            category.value,
            namespace,
            callable_name,
            len(self._parameters),
        )
        return self._commit(
            FormState(
                category=category,
                namespace=namespace,
                callable=callable_name,
                input_params=_seed_inputs(self._parameters),
            )
        )

    def set_param_value(self, index: int, value: str) -> FormState:
        inputs = self._state.input_params
        if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(inputs):
            raise InvalidParamIndexError(
                f"Parameter index {index!r} out of range for {len(inputs)} parameter(s).",
                code="INVALID_PARAM_INDEX",
            )
        updated = list(inputs)
        updated[index] = replace(inputs[index], value="" if value is None else str(value))
        return self._commit(replace(self._state, input_params=tuple(updated)))

    def set_metadata(self, metadata: Optional[MetadataView]) -> FormState:
        """Swap the metadata source, keeping selections and re-deriving parameters."""
        self._metadata = metadata
        state = self._state
        if state.category is None:
            return state
        self._namespaces = list_namespaces(metadata, state.category)
        self._callables = list_callables(metadata, state.category, state.namespace)
        if not state.callable:
            return state
        previous = self._parameters
        self._parameters = self._derive(state.category, state.namespace, state.callable)
        if self._parameters == previous and len(state.input_params) == len(previous):
            return state
        logger.debug(
            "transition=metadata_changed callable=%s params=%d", state.callable, len(self._parameters)
        )
        return self._commit(replace(state, input_params=_seed_inputs(self._parameters)))

    def reset(self) -> FormState:
        """Return to the initial empty state of the current category."""
        if self._state.category is None:
            self._namespaces = []
            self._callables = []
            self._parameters = ()
            return self._commit(FormState())
        return self.select_category(self._state.category)

    # Internals

    def _derive(
        self, category: Category, namespace: str, callable_name: str
    ) -> Tuple[ParameterDeclaration, ...]:
        descriptor = get_shape_descriptor(self._metadata, category, namespace, callable_name)
        return tuple(derive_parameters(category, descriptor))

    def _commit(self, state: FormState) -> FormState:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
        return state
