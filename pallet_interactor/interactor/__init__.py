"""Metadata-driven interaction core."""

from .errors import (
    InteractorError,
    InvalidParamIndexError,
    InvalidTransitionError,
    UnknownSessionError,
)
from .metadata import (
    CallableRef,
    Category,
    MetadataView,
    NamespaceRef,
    describe_constant,
    get_shape_descriptor,
    list_callables,
    list_namespaces,
)
from .schema import ParameterDeclaration, derive_parameters, is_optional_type
from .form import FormPhase, FormState, InputParam, InteractionForm
from .dispatch import (
    SIGNED_TX,
    UNSIGNED_TX,
    CallDescriptor,
    Dispatcher,
    SubmissionSink,
    SubmissionState,
    SubmissionStatus,
    allowed_modes,
    resolve,
    submission_error,
)
from .transfer import Account, TransferForm, account_choices, parse_accounts
from . import validators

__all__ = [
    "InteractorError",
    "InvalidParamIndexError",
    "InvalidTransitionError",
    "UnknownSessionError",
    "CallableRef",
    "Category",
    "MetadataView",
    "NamespaceRef",
    "describe_constant",
    "get_shape_descriptor",
    "list_callables",
    "list_namespaces",
    "ParameterDeclaration",
    "derive_parameters",
    "is_optional_type",
    "FormPhase",
    "FormState",
    "InputParam",
    "InteractionForm",
    "SIGNED_TX",
    "UNSIGNED_TX",
    "CallDescriptor",
    "Dispatcher",
    "SubmissionSink",
    "SubmissionState",
    "SubmissionStatus",
    "allowed_modes",
    "resolve",
    "submission_error",
    "Account",
    "TransferForm",
    "account_choices",
    "parse_accounts",
    "validators",
]
