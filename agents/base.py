from __future__ import annotations

from abc import ABC
from typing import Dict, List

from compliance.audit_logger import AuditLogger
from models.schemas import SessionContext, TurnAuditRecord, TurnState


class BaseAgent(ABC):
    def __init__(self, name: str, audit_logger: AuditLogger | None = None) -> None:
        self.name = name
        self.audit_logger = audit_logger or AuditLogger()

    def build_turn_log(
        self,
        session: SessionContext | None,
        session_key: str,
        state: TurnState,
        thread_id: str | None = None,
        run_id: str | None = None,
        run_status: str | None = None,
        substitutions: List[Dict[str, str]] | None = None,
        tier2_applied: bool = False,
        duration_ms: int = 0,
        outcome: str = "ok",
        error: str | None = None,
    ) -> TurnAuditRecord:
        record = TurnAuditRecord(
            session_key=session_key,
            thread_id=thread_id,
            run_id=run_id,
            state=state,
            run_status=run_status,
            profession=session.profession.value if session and session.profession else None,
            region=session.region if session else None,
            substitutions=list(substitutions or []),
            tier2_applied=tier2_applied,
            duration_ms=duration_ms,
            outcome=outcome,
            error=error,
        )
        self.audit_logger.log_turn(record)
        return record
