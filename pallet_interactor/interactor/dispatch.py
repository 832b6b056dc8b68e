"""
Dispatch resolver.

Projects a form state into a call descriptor and hands it to the submission
sink (the gateway, in production). Outcomes come back as opaque status text on
a per-submission status observable; nothing here retries or rolls back form
state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from pallet_interactor.interactor.form import FormState
from pallet_interactor.interactor.metadata import Category

logger = logging.getLogger(__name__)

SIGNED_TX = "SIGNED-TX"
UNSIGNED_TX = "UNSIGNED-TX"
EXTRINSIC_MODES = (SIGNED_TX, UNSIGNED_TX)
PENDING_STATUS = "Sending..."


@dataclass(frozen=True, slots=True)
class CallDescriptor:
    category: Category
    namespace: str
    callable: str
    args: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "namespace": self.namespace,
            "callable": self.callable,
            "args": list(self.args),
        }


class SubmissionSink(Protocol):
    async def submit(
        self, descriptor: CallDescriptor, *, mode: str, signer: Optional[str] = None
    ) -> str:
        ...


class SubmissionState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


StatusListener = Callable[["SubmissionStatus"], None]


@dataclass(slots=True)
class SubmissionStatus:
    """Status observable owned by a single submission."""

    text: Optional[str] = None
    state: SubmissionState = SubmissionState.IDLE
    descriptor: Optional[CallDescriptor] = None
    _listeners: List[StatusListener] = field(default_factory=list, repr=False)

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def update(self, text: str, state: SubmissionState) -> None:
        self.text = text
        self.state = state
        for listener in list(self._listeners):
            listener(self)

    @property
    def done(self) -> bool:
        return self.state in (SubmissionState.SUCCEEDED, SubmissionState.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.text, "state": self.state.value}


def resolve(form_state: FormState) -> CallDescriptor:
    """Project a form state into a positional call descriptor."""
    category = form_state.category if form_state.category is not None else Category.EXTRINSIC
    return CallDescriptor(
        category=category,
        namespace=form_state.namespace,
        callable=form_state.callable,
        args=tuple(param.value for param in form_state.input_params),
    )


def default_mode(category: Category) -> str:
    """Submission mode used when the caller does not choose one."""
    if category is Category.EXTRINSIC:
        return SIGNED_TX
    return category.value


def allowed_modes(category: Category) -> Tuple[str, ...]:
    if category is Category.EXTRINSIC:
        return EXTRINSIC_MODES
    return (category.value,)


def submission_error(
    category: Category, mode: Optional[str] = None, signer: Optional[str] = None
) -> Optional[str]:
    """Return a user-facing message when mode/signer cannot be submitted, else None."""
    chosen_mode = mode or default_mode(category)
    if chosen_mode not in allowed_modes(category):
        return f"Invalid mode for {category.value}."
    if chosen_mode == SIGNED_TX and not signer:
        return f"{SIGNED_TX} requires a signer."
    return None


def format_failure(error: BaseException) -> str:
    message = str(error) or error.__class__.__name__
    return f"Submission failed: {message}"


class Dispatcher:
    """Hands resolved call descriptors to a submission sink."""

    def __init__(self, sink: SubmissionSink) -> None:
        self.sink = sink

    async def submit(
        self,
        form_state: FormState,
        *,
        mode: Optional[str] = None,
        signer: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
    ) -> SubmissionStatus:
        return await self.submit_descriptor(
            resolve(form_state), mode=mode, signer=signer, status=status
        )

    async def submit_descriptor(
        self,
        descriptor: CallDescriptor,
        *,
        mode: Optional[str] = None,
        signer: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
    ) -> SubmissionStatus:
        status = status if status is not None else SubmissionStatus()
        status.descriptor = descriptor
        chosen_mode = mode or default_mode(descriptor.category)
        status.update(PENDING_STATUS, SubmissionState.PENDING)
        logger.info(
            "submit category=%s call=%s.%s mode=%s args=%d",
            descriptor.category.value,
            descriptor.namespace,
            descriptor.callable,
            chosen_mode,
            len(descriptor.args),
            extra={"category": descriptor.category.value},
        )
        try:
            result = await self.sink.submit(descriptor, mode=chosen_mode, signer=signer)
        except Exception as exc:
            logger.warning(
                "submit outcome=error call=%s.%s error=%s",
                descriptor.namespace,
                descriptor.callable,
                exc,
                extra={"category": descriptor.category.value, "error": str(exc)},
            )
            status.update(format_failure(exc), SubmissionState.FAILED)
            return status
        status.update("" if result is None else str(result), SubmissionState.SUCCEEDED)
        return status

    def start(
        self,
        form_state: FormState,
        *,
        mode: Optional[str] = None,
        signer: Optional[str] = None,
    ) -> Tuple[SubmissionStatus, "asyncio.Task[SubmissionStatus]"]:
        """Schedule a submission on the running loop and return its status right away."""
        status = SubmissionStatus(
            text=PENDING_STATUS, state=SubmissionState.PENDING, descriptor=resolve(form_state)
        )
        task = asyncio.get_running_loop().create_task(
            self.submit(form_state, mode=mode, signer=signer, status=status)
        )
        return status, task
