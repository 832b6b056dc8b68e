"""
Interaction sessions.

Each session is one independent interaction panel: its own form and its own
submission status. Sessions share nothing but the read-only metadata view.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import OrderedDict
from threading import Lock
from typing import Any, Dict, List, Optional, Set

from pallet_interactor.config import default_config
from pallet_interactor.interactor import (
    Category,
    Dispatcher,
    FormState,
    InteractionForm,
    MetadataView,
    SubmissionStatus,
    UnknownSessionError,
)

logger = logging.getLogger(__name__)


class InteractionSession:
    """A form plus the status observable of its latest submission."""

    def __init__(
        self,
        session_id: str,
        metadata: Optional[MetadataView] = None,
        *,
        category: Optional[Category | str] = None,
    ) -> None:
        self.session_id = session_id
        self.created_at = time.time()
        self.updated_at = self.created_at
        self.form = InteractionForm(metadata, category=category)
        self.status = SubmissionStatus()
        self._pending: Set["asyncio.Task[SubmissionStatus]"] = set()
        self.form.subscribe(self._touch)

    def _touch(self, _state: FormState) -> None:
        self.updated_at = time.time()

    def _fresh_status(self) -> None:
        # In-flight submissions keep writing to the status object they captured.
        self.status = SubmissionStatus()

    def select_category(self, category: Category | str) -> FormState:
        state = self.form.select_category(category)
        self._fresh_status()
        return state

    def select_namespace(self, namespace: str) -> FormState:
        state = self.form.select_namespace(namespace)
        self._fresh_status()
        return state

    def select_callable(self, callable_name: str) -> FormState:
        state = self.form.select_callable(callable_name)
        self._fresh_status()
        return state

    def set_param_value(self, index: int, value: str) -> FormState:
        return self.form.set_param_value(index, value)

    async def submit(
        self, dispatcher: Dispatcher, *, mode: Optional[str] = None, signer: Optional[str] = None
    ) -> SubmissionStatus:
        status = SubmissionStatus()
        self.status = status
        return await dispatcher.submit(self.form.state, mode=mode, signer=signer, status=status)

    def start(
        self, dispatcher: Dispatcher, *, mode: Optional[str] = None, signer: Optional[str] = None
    ) -> "asyncio.Task[SubmissionStatus]":
        """Submit in the background; the new status is visible on the session at once."""
        status, task = dispatcher.start(self.form.state, mode=mode, signer=signer)
        self.status = status
        # The loop only keeps weak references to tasks.
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def to_dict(self) -> Dict[str, Any]:
        form = self.form
        return {
            "sessionId": self.session_id,
            "phase": form.phase.value,
            "form": form.state.to_dict(),
            "namespaces": [ref.name for ref in form.namespaces],
            "callables": [ref.name for ref in form.callables],
            "parameters": [param.to_dict() for param in form.parameters],
            "missingRequired": form.missing_required(),
            "status": self.status.to_dict(),
        }


class SessionStore:
    """Bounded registry of sessions; the least recently created is evicted first."""

    def __init__(self, max_sessions: int = 256) -> None:
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, InteractionSession]" = OrderedDict()
        self._metadata: Optional[MetadataView] = None
        self._lock = Lock()

    @property
    def metadata(self) -> Optional[MetadataView]:
        return self._metadata

    def create(self, *, category: Optional[Category | str] = None) -> InteractionSession:
        session = InteractionSession(uuid.uuid4().hex, self._metadata, category=category)
        with self._lock:
            self._sessions[session.session_id] = session
            while len(self._sessions) > self.max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info("session=%s evicted", evicted_id, extra={"session_id": evicted_id})
        return session

    def get(self, session_id: str) -> InteractionSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise UnknownSessionError(f"Unknown session: {session_id}", code="UNKNOWN_SESSION")
        return session

    def delete(self, session_id: str) -> None:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is None:
            raise UnknownSessionError(f"Unknown session: {session_id}", code="UNKNOWN_SESSION")

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def set_metadata(self, metadata: Optional[MetadataView]) -> None:
        """Point every session at a new metadata view."""
        with self._lock:
            self._metadata = metadata
            sessions = list(self._sessions.values())
        for session in sessions:
            session.form.set_metadata(metadata)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._metadata = None


default_store = SessionStore(max_sessions=default_config.max_sessions)
