from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from agents.instructions import PERSONA_INSTRUCTIONS
from agents.llm_runtime import LLMRuntime
from models.schemas import ContentBlock, RunHandle, ThreadMessage
from settings import SETTINGS
from tools.call_shape import CallShapeAdapter
from tools.retry import RetryPolicy

logger = logging.getLogger(__name__)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _page_items(page: Any) -> List[Any]:
    data = _field(page, "data")
    if data is None and isinstance(page, list):
        data = page
    return list(data or [])


def file_search_resources(vector_store_id: str | None) -> Dict[str, Any] | None:
    if not vector_store_id:
        return None
    return {"file_search": {"vector_store_ids": [vector_store_id]}}


def to_run_handle(raw: Any, thread_id: str | None = None) -> RunHandle:
    status = _field(raw, "status") or "queued"
    return RunHandle(
        id=str(_field(raw, "id", "")),
        status=str(getattr(status, "value", status)),
        thread_id=_field(raw, "thread_id") or thread_id,
    )


def to_thread_message(raw: Any) -> ThreadMessage:
    blocks: List[ContentBlock] = []
    for part in _field(raw, "content") or []:
        kind = str(_field(part, "type", ""))
        text = ""
        if kind == "text":
            inner = _field(part, "text")
            text = str(_field(inner, "value", "") if not isinstance(inner, str) else inner)
        blocks.append(ContentBlock(type=kind, text=text))
    return ThreadMessage(id=str(_field(raw, "id", "")), role=str(_field(raw, "role", "")), content=blocks)


class AssistantService(ABC):
    """Capabilities the turn orchestrator needs from the remote assistant service."""

    @abstractmethod
    async def create_thread(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def post_message(self, thread_id: str, role: str, content: str) -> str:
        raise NotImplementedError

    @abstractmethod
    async def list_messages(self, thread_id: str, limit: int = 10) -> List[ThreadMessage]:
        """Newest first."""
        raise NotImplementedError

    @abstractmethod
    async def start_run(
        self,
        thread_id: str,
        assistant_id: str,
        instructions: str,
        vector_store_id: str | None = None,
    ) -> RunHandle:
        raise NotImplementedError

    @abstractmethod
    async def retrieve_run(self, thread_id: str, run_id: str) -> RunHandle:
        raise NotImplementedError

    @abstractmethod
    async def list_runs(self, thread_id: str) -> List[RunHandle]:
        raise NotImplementedError

    @abstractmethod
    async def rewrite(self, system_prompt: str, text: str) -> str:
        raise NotImplementedError

    async def ensure_assistant(self) -> str:
        raise NotImplementedError

    async def create_vector_store(self, name: str) -> str:
        raise NotImplementedError

    async def upload_file(self, filename: str, data: bytes) -> str:
        raise NotImplementedError

    async def attach_file(self, vector_store_id: str, file_id: str) -> str:
        raise NotImplementedError


class OpenAIAssistantService(AssistantService):
    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        adapter: CallShapeAdapter | None = None,
        llm: LLMRuntime | None = None,
        assistant_id: str | None = None,
        vector_store_id: str | None = None,
        model: str | None = None,
        name: str | None = None,
    ) -> None:
        self.client = client or AsyncOpenAI(api_key=SETTINGS.openai_api_key or None, base_url=SETTINGS.openai_base_url)
        self.adapter = adapter or CallShapeAdapter(retry=RetryPolicy(retries=SETTINGS.chat_retry_attempts))
        self.llm = llm or LLMRuntime()
        self.configured_assistant_id = SETTINGS.assistant_id if assistant_id is None else assistant_id
        self.vector_store_id = SETTINGS.vector_store_id if vector_store_id is None else vector_store_id
        self.model = model or SETTINGS.assistant_model
        self.name = name or SETTINGS.assistant_name
        self._assistant_id: Optional[str] = None

    @property
    def _threads(self) -> Any:
        return self.client.beta.threads

    def _vector_stores(self) -> Any:
        # Promoted out of `beta` in newer SDK releases.
        stores = getattr(self.client, "vector_stores", None)
        if stores is None:
            stores = self.client.beta.vector_stores
        return stores

    async def create_thread(self) -> str:
        thread = await self.adapter.call("threads.create", self._threads.create)
        return str(_field(thread, "id"))

    async def post_message(self, thread_id: str, role: str, content: str) -> str:
        message = await self.adapter.call(
            "messages.create", self._threads.messages.create, thread_id, {"role": role, "content": content}
        )
        return str(_field(message, "id", ""))

    async def list_messages(self, thread_id: str, limit: int = 10) -> List[ThreadMessage]:
        page = await self.adapter.call(
            "messages.list", self._threads.messages.list, thread_id, {"limit": limit, "order": "desc"}
        )
        return [to_thread_message(item) for item in _page_items(page)]

    async def start_run(
        self,
        thread_id: str,
        assistant_id: str,
        instructions: str,
        vector_store_id: str | None = None,
    ) -> RunHandle:
        payload: Dict[str, Any] = {"assistant_id": assistant_id, "instructions": instructions}
        resources = file_search_resources(vector_store_id)
        if resources:
            payload["tool_resources"] = resources
        run = await self.adapter.call("runs.create", self._threads.runs.create, thread_id, payload)
        return to_run_handle(run, thread_id)

    async def retrieve_run(self, thread_id: str, run_id: str) -> RunHandle:
        run = await self.adapter.call("runs.retrieve", self._threads.runs.retrieve, thread_id, {"run_id": run_id})
        return to_run_handle(run, thread_id)

    async def list_runs(self, thread_id: str) -> List[RunHandle]:
        page = await self.adapter.call("runs.list", self._threads.runs.list, thread_id, {"limit": 20, "order": "desc"})
        return [to_run_handle(item, thread_id) for item in _page_items(page)]

    async def rewrite(self, system_prompt: str, text: str) -> str:
        return await self.llm.rewrite(system_prompt, text)

    async def ensure_assistant(self) -> str:
        if self._assistant_id:
            return self._assistant_id
        resources = file_search_resources(self.vector_store_id)
        base: Dict[str, Any] = {
            "model": self.model,
            "tools": [{"type": "file_search"}],
            "instructions": PERSONA_INSTRUCTIONS,
        }
        assistants = self.client.beta.assistants

        if self.configured_assistant_id:
            try:
                payload = dict(base)
                if resources:
                    payload["tool_resources"] = resources
                updated = await self.adapter.call(
                    "assistants.update", assistants.update, self.configured_assistant_id, payload, id_field="assistant_id"
                )
                self._assistant_id = str(_field(updated, "id"))
                return self._assistant_id
            except Exception as exc:
                logger.warning("assistant_update_failed", extra={"assistant_id": self.configured_assistant_id, "error": repr(exc)})

        try:
            payload = {"name": self.name, **base}
            if resources:
                payload["tool_resources"] = resources
            created = await self.adapter.call("assistants.create", assistants.create, None, payload)
        except Exception as exc:
            if not resources:
                raise
            logger.warning("assistant_create_with_resources_failed", extra={"error": repr(exc)})
            created = await self.adapter.call("assistants.create", assistants.create, None, {"name": self.name, **base})
        self._assistant_id = str(_field(created, "id"))
        logger.info("assistant_ready", extra={"assistant_id": self._assistant_id})
        return self._assistant_id

    async def create_vector_store(self, name: str) -> str:
        store = await self.adapter.call("vector_stores.create", self._vector_stores().create, None, {"name": name})
        return str(_field(store, "id"))

    async def upload_file(self, filename: str, data: bytes) -> str:
        uploaded = await self.client.files.create(file=(filename, data), purpose="assistants")
        return str(_field(uploaded, "id"))

    async def attach_file(self, vector_store_id: str, file_id: str) -> str:
        attached = await self.adapter.call(
            "vector_stores.files.create",
            self._vector_stores().files.create,
            vector_store_id,
            {"file_id": file_id},
            id_field="vector_store_id",
        )
        return str(_field(attached, "id"))
