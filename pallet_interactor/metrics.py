"""In-process metrics for interaction sessions (single process only)."""

from __future__ import annotations

from collections import Counter
from threading import Lock
from typing import Dict


class MetricsRecorder:
    def __init__(self) -> None:
        self._lock = Lock()
        self._requests = 0
        self._request_durations_ms: Dict[str, float] = {}
        self._rate_limited = 0
        self._sessions_created = 0
        self._transitions: Counter[str] = Counter()
        self._submit_success: Counter[str] = Counter()
        self._submit_error: Counter[str] = Counter()
        self._metadata_refreshes = 0

    def incr_request(self) -> None:
        with self._lock:
            self._requests += 1

    def record_duration(self, request_id: str, duration_ms: float) -> None:
        with self._lock:
            self._request_durations_ms[request_id] = duration_ms

    def incr_rate_limited(self) -> None:
        with self._lock:
            self._rate_limited += 1

    def incr_sessions_created(self) -> None:
        with self._lock:
            self._sessions_created += 1

    def incr_metadata_refresh(self) -> None:
        with self._lock:
            self._metadata_refreshes += 1

    def record_transition(self, transition: str) -> None:
        with self._lock:
            self._transitions[transition] += 1

    def record_submission(self, category: str, *, success: bool) -> None:
        with self._lock:
            if success:
                self._submit_success[category] += 1
            else:
                self._submit_error[category] += 1

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            return {
                "requests": self._requests,
                "rate_limited": self._rate_limited,
                "sessions_created": self._sessions_created,
                "metadata_refreshes": self._metadata_refreshes,
                "transitions": dict(self._transitions),
                "submit_success": dict(self._submit_success),
                "submit_error": dict(self._submit_error),
                "recent_request_durations_ms": dict(self._request_durations_ms),
            }

    def reset(self) -> None:
        with self._lock:
            self._requests = 0
            self._request_durations_ms.clear()
            self._rate_limited = 0
            self._sessions_created = 0
            self._metadata_refreshes = 0
            self._transitions.clear()
            self._submit_success.clear()
            self._submit_error.clear()


default_metrics = MetricsRecorder()
