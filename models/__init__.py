from .schemas import (
    ComplianceResult,
    ContentBlock,
    IngestItem,
    IngestResult,
    Profession,
    RunHandle,
    RunStatus,
    SessionContext,
    TERMINAL_RUN_STATUSES,
    ThreadMessage,
    TurnAuditRecord,
    TurnResult,
    TurnState,
)

__all__ = [
    "ComplianceResult",
    "ContentBlock",
    "IngestItem",
    "IngestResult",
    "Profession",
    "RunHandle",
    "RunStatus",
    "SessionContext",
    "TERMINAL_RUN_STATUSES",
    "ThreadMessage",
    "TurnAuditRecord",
    "TurnResult",
    "TurnState",
]
