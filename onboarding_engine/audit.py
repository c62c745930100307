from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from hashlib import sha256
from typing import Any, Protocol

import structlog
from pydantic import ConfigDict
from pydantic.dataclasses import dataclass as pydantic_dataclass

from .models import StepId

SENSITIVE_KEYS = frozenset({"email", "password", "confirm_password", "digits"})


@pydantic_dataclass(config=ConfigDict(extra="forbid"))
class TransitionAuditRecord:
    session_id: str
    action: str
    from_step: StepId
    to_step: StepId | None
    timestamp: datetime
    details: dict[str, Any]


class AuditSink(Protocol):
    """Append-only sink for workflow audit records."""

    def append(self, record: TransitionAuditRecord) -> str:
        ...


@dataclass
class InMemoryAuditSink:
    records: dict[str, TransitionAuditRecord]

    def append(self, record: TransitionAuditRecord) -> str:
        audit_id = sha256(
            f"{record.session_id}:{record.action}:{record.from_step.value}:{record.timestamp.isoformat()}".encode()
        ).hexdigest()
        self.records[audit_id] = record
        return audit_id


@dataclass
class AuditLogger:
    sink: AuditSink
    logger: structlog.stdlib.BoundLogger

    def record(
        self,
        *,
        session_id: str,
        action: str,
        from_step: StepId,
        to_step: StepId | None,
        details: dict[str, Any] | None = None,
    ) -> str:
        record = TransitionAuditRecord(
            session_id=session_id,
            action=action,
            from_step=from_step,
            to_step=to_step,
            timestamp=datetime.now(timezone.utc),
            details=dict(details or {}),
        )
        audit_id = self.sink.append(record)
        self.logger.info(
            "onboarding_audit_record",
            audit_id=audit_id,
            session_id=session_id,
            action=action,
            from_step=from_step.value,
            to_step=to_step.value if to_step else None,
            details=self._masked(record.details),
            timestamp=record.timestamp.isoformat(),
        )
        return audit_id

    @classmethod
    def _masked(cls, payload: dict[str, Any]) -> dict[str, Any]:
        masked: dict[str, Any] = {}
        for key, value in payload.items():
            if key in SENSITIVE_KEYS:
                masked[key] = "***"
            elif isinstance(value, dict):
                masked[key] = cls._masked(value)
            else:
                masked[key] = value
        return masked
