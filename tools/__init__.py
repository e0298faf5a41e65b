from .assistant_service import AssistantService, OpenAIAssistantService
from .call_shape import KEYWORD, POSITIONAL, CallShape, CallShapeAdapter
from .ingest_tools import KnowledgeIngestor, build_tags, stamp_filename
from .retry import RETRIABLE_STATUS_CODES, RetryPolicy, retry_with_policy, with_retry

__all__ = [
    "AssistantService",
    "OpenAIAssistantService",
    "CallShape",
    "CallShapeAdapter",
    "KEYWORD",
    "POSITIONAL",
    "KnowledgeIngestor",
    "build_tags",
    "stamp_filename",
    "RETRIABLE_STATUS_CODES",
    "RetryPolicy",
    "retry_with_policy",
    "with_retry",
]
