from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Profession(str, Enum):
    PHYSIO = "physio"
    CHIRO = "chiro"
    OSTEO = "osteo"
    RMT = "rmt"


class RunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    INCOMPLETE = "incomplete"


TERMINAL_RUN_STATUSES = frozenset(
    s.value for s in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED, RunStatus.EXPIRED)
)


class TurnState(str, Enum):
    NEW = "NEW"
    THREAD_READY = "THREAD_READY"
    MESSAGE_POSTED = "MESSAGE_POSTED"
    RUN_STARTED = "RUN_STARTED"
    POLLING = "POLLING"
    RUN_TERMINAL = "RUN_TERMINAL"
    REPLY_READY = "REPLY_READY"
    FAILED = "FAILED"


class SessionContext(BaseModel):
    session_key: str
    profession: Optional[Profession] = None
    region: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def missing_facts(self) -> List[str]:
        missing: List[str] = []
        if self.profession is None:
            missing.append("profession")
        if self.region is None:
            missing.append("region")
        return missing


class RunHandle(BaseModel):
    id: str
    status: str = RunStatus.QUEUED.value
    thread_id: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RUN_STATUSES


class ContentBlock(BaseModel):
    type: str
    text: str = ""


class ThreadMessage(BaseModel):
    id: str = ""
    role: str
    content: List[ContentBlock] = Field(default_factory=list)

    def text(self) -> str:
        return "\n".join(block.text for block in self.content if block.type == "text").strip()


class ComplianceResult(BaseModel):
    text: str
    substitutions: List[Dict[str, str]] = Field(default_factory=list)
    tier1_applied: bool = False
    tier2_attempted: bool = False
    tier2_applied: bool = False
    tier2_error: Optional[str] = None


class TurnResult(BaseModel):
    answer: str
    thread_id: str
    run_id: str
    state: TurnState = TurnState.REPLY_READY
    run_status: str = RunStatus.COMPLETED.value
    session: Optional[SessionContext] = None
    compliance: Optional[ComplianceResult] = None
    duration_ms: int = 0


class TurnAuditRecord(BaseModel):
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    session_key: str
    thread_id: Optional[str] = None
    run_id: Optional[str] = None
    state: TurnState
    run_status: Optional[str] = None
    profession: Optional[str] = None
    region: Optional[str] = None
    substitutions: List[Dict[str, str]] = Field(default_factory=list)
    tier2_applied: bool = False
    duration_ms: int = 0
    outcome: str = "ok"
    error: Optional[str] = None


class IngestItem(BaseModel):
    stamped_name: str
    file_id: str
    vs_file_id: str


class IngestResult(BaseModel):
    status: str = "uploaded"
    count: int = 0
    items: List[IngestItem] = Field(default_factory=list)
    applied_tags: Dict[str, Any] = Field(default_factory=dict)
