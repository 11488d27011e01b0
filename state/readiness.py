"""
Readiness state for the per-identity backend link.

Readiness is a frozen value — Initializing | Ready | Failed(ErrorInfo) —
replaced wholesale on every transition, never mutated in place.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tools.replica_errors import ErrorInfo


class ReadinessState(str, Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class Readiness:
    state: ReadinessState
    error: Optional[ErrorInfo] = None

    @classmethod
    def initializing(cls) -> "Readiness":
        return cls(ReadinessState.INITIALIZING)

    @classmethod
    def ready(cls) -> "Readiness":
        return cls(ReadinessState.READY)

    @classmethod
    def failed(cls, error: ErrorInfo) -> "Readiness":
        return cls(ReadinessState.FAILED, error)

    @property
    def is_ready(self) -> bool:
        return self.state is ReadinessState.READY

    @property
    def is_failed(self) -> bool:
        return self.state is ReadinessState.FAILED

    @property
    def is_initializing(self) -> bool:
        return self.state is ReadinessState.INITIALIZING

    @property
    def error_message(self) -> Optional[str]:
        return self.error.message if self.error else None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None


@dataclass
class ReadinessEntry:
    """
    One cache slot per identity key.

    Only the initialization task that created the entry writes to it.
    `pending` is the in-flight ensure_initialized() task, None once settled.
    """
    readiness: Readiness
    pending: Optional[asyncio.Task] = None

    @property
    def in_flight(self) -> bool:
        return self.pending is not None and not self.pending.done()
