from .audit_logger import AuditLogger
from .filter import ADVISORY_NOTE, EMPTY_REPLY_PLACEHOLDER, ComplianceFilter, apply_local_rules, needs_remote_rewrite

__all__ = [
    "ADVISORY_NOTE",
    "EMPTY_REPLY_PLACEHOLDER",
    "AuditLogger",
    "ComplianceFilter",
    "apply_local_rules",
    "needs_remote_rewrite",
]
