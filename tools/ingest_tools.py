from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Iterable, Tuple

from agents.errors import IngestError
from models.schemas import IngestItem, IngestResult
from settings import SETTINGS
from tools.assistant_service import AssistantService
from tools.retry import RetryPolicy, retry_with_policy

logger = logging.getLogger(__name__)


def normalize_tag(value: Any) -> str:
    return re.sub(r"\s+", "-", str(value or "").strip())


def build_tags(profession: Any = None, region: Any = None, topic: Any = None, updated: Any = None) -> Dict[str, str]:
    return {
        "profession": normalize_tag(profession).lower(),
        "region": normalize_tag(region).upper(),
        "topic": normalize_tag(topic).lower(),
        "updated": normalize_tag(updated),
    }


def stamp_filename(filename: str, tags: Dict[str, str]) -> str:
    prefix = "_".join(v for v in (tags["profession"], tags["region"], tags["topic"], tags["updated"]) if v)
    return f"{prefix}__{filename}" if prefix else filename


class KnowledgeIngestor:
    """Uploads tagged documents and attaches them to the retrieval vector store."""

    def __init__(
        self,
        service: AssistantService,
        vector_store_id: str | None = None,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.service = service
        self.vector_store_id = SETTINGS.vector_store_id if vector_store_id is None else vector_store_id
        self.retry = retry or RetryPolicy(retries=SETTINGS.retry_attempts, base_delay=SETTINGS.retry_base_delay_seconds)
        self._sleep = sleep

    async def ingest(self, files: Iterable[Tuple[str, bytes]], tags: Dict[str, str]) -> IngestResult:
        vector_store_id = (self.vector_store_id or "").strip()
        if not vector_store_id:
            raise IngestError("VECTOR_STORE_ID missing in environment")
        files = list(files)
        if not files:
            raise IngestError('No files attached. Field name must be "files".')

        items = []
        for filename, data in files:
            stamped = stamp_filename(filename, tags)
            file_id = await retry_with_policy(lambda: self.service.upload_file(stamped, data), self.retry, sleep=self._sleep)
            logger.info("knowledge_file_uploaded", extra={"stamped_name": stamped, "file_id": file_id})
            vs_file_id = await retry_with_policy(
                lambda: self.service.attach_file(vector_store_id, file_id), self.retry, sleep=self._sleep
            )
            logger.info("knowledge_file_attached", extra={"file_id": file_id, "vs_file_id": vs_file_id})
            items.append(IngestItem(stamped_name=stamped, file_id=file_id, vs_file_id=vs_file_id))
        return IngestResult(count=len(items), items=items, applied_tags=dict(tags))
