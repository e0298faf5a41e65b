from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

from agents.base import BaseAgent
from agents.context_extractor import extract_profession, extract_region
from agents.errors import RunNotCompletedError, RunTimeoutError, TurnCancelledError
from agents.instructions import compose_instructions, with_disclaimer
from compliance.audit_logger import AuditLogger
from compliance.filter import EMPTY_REPLY_PLACEHOLDER, ComplianceFilter
from memory.session_memory import InMemorySessionStore, SessionStore
from models.schemas import RunHandle, SessionContext, ThreadMessage, TurnResult, TurnState
from settings import SETTINGS
from tools.assistant_service import AssistantService

logger = logging.getLogger(__name__)


def select_reply(messages: list[ThreadMessage]) -> str:
    """Text of the newest assistant message; `messages` is ordered newest first."""
    for message in messages:
        if message.role == "assistant":
            return message.text()
    return ""


class TurnOrchestrator(BaseAgent):
    """Drives one chat turn: thread, user message, run, poll, reply, compliance pass."""

    def __init__(
        self,
        service: AssistantService,
        session_store: SessionStore | None = None,
        compliance_filter: ComplianceFilter | None = None,
        assistant_id: str | None = None,
        vector_store_id: str | None = None,
        poll_interval: float | None = None,
        run_timeout: float | None = None,
        message_window: int | None = None,
        audit_logger: AuditLogger | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        super().__init__(name="turn_orchestrator", audit_logger=audit_logger)
        self.service = service
        self.session_store = session_store if session_store is not None else InMemorySessionStore()
        self.compliance_filter = compliance_filter or ComplianceFilter(rewriter=service)
        self.assistant_id = assistant_id or SETTINGS.assistant_id or None
        self.vector_store_id = SETTINGS.vector_store_id if vector_store_id is None else vector_store_id
        self.poll_interval = SETTINGS.poll_interval_seconds if poll_interval is None else poll_interval
        self.run_timeout = SETTINGS.run_timeout_seconds if run_timeout is None else run_timeout
        self.message_window = message_window or SETTINGS.message_window
        self._sleep = sleep

    async def run_turn(
        self,
        message: str,
        session_key: str,
        thread_id: str | None = None,
        show_disclaimer: bool = False,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> TurnResult:
        start = time.perf_counter()
        state = TurnState.NEW
        session: Optional[SessionContext] = None
        run: Optional[RunHandle] = None
        try:
            session = await self.update_session(session_key, message)
            assistant_id = await self.resolve_assistant_id()

            thread_id = await self.resolve_thread(thread_id)
            state = self._transition(state, TurnState.THREAD_READY, thread_id=thread_id)

            await self.post_user_message(thread_id, message, show_disclaimer)
            state = self._transition(state, TurnState.MESSAGE_POSTED, thread_id=thread_id)

            run = await self.start_run(thread_id, assistant_id, compose_instructions(session))
            state = self._transition(state, TurnState.RUN_STARTED, thread_id=thread_id, run_id=run.id)

            state = self._transition(state, TurnState.POLLING, thread_id=thread_id, run_id=run.id)
            run = await self.wait_for_run(thread_id, run, timeout=timeout, cancel_event=cancel_event)
            state = self._transition(state, TurnState.RUN_TERMINAL, thread_id=thread_id, run_id=run.id)
            if run.status != "completed":
                raise RunNotCompletedError(run.status, run_id=run.id)

            raw_reply = await self.read_reply(thread_id)
            compliance = await self.compliance_filter.apply(raw_reply)
            state = self._transition(state, TurnState.REPLY_READY, thread_id=thread_id, run_id=run.id)
        except Exception as exc:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.exception(
                "turn_failed",
                extra={"session_key": session_key, "thread_id": thread_id, "state": state.value},
            )
            self.build_turn_log(
                session,
                session_key,
                TurnState.FAILED,
                thread_id=thread_id,
                run_id=run.id if run else None,
                run_status=run.status if run else None,
                duration_ms=duration_ms,
                outcome="error",
                error=str(exc),
            )
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        self.build_turn_log(
            session,
            session_key,
            state,
            thread_id=thread_id,
            run_id=run.id,
            run_status=run.status,
            substitutions=compliance.substitutions,
            tier2_applied=compliance.tier2_applied,
            duration_ms=duration_ms,
        )
        return TurnResult(
            answer=compliance.text or EMPTY_REPLY_PLACEHOLDER,
            thread_id=thread_id,
            run_id=run.id,
            state=state,
            run_status=run.status,
            session=session,
            compliance=compliance,
            duration_ms=duration_ms,
        )

    def _transition(self, current: TurnState, target: TurnState, **extra: Any) -> TurnState:
        logger.debug("turn_state", extra={"from_state": current.value, "to_state": target.value, **extra})
        return target

    async def update_session(self, session_key: str, message: str) -> SessionContext:
        await self.session_store.get_or_create(session_key)
        return await self.session_store.merge_facts(
            session_key,
            profession=extract_profession(message),
            region=extract_region(message),
        )

    async def resolve_assistant_id(self) -> str:
        if not self.assistant_id:
            self.assistant_id = await self.service.ensure_assistant()
        return self.assistant_id

    async def resolve_thread(self, thread_id: str | None) -> str:
        if thread_id:
            return thread_id
        return await self.service.create_thread()

    async def post_user_message(self, thread_id: str, message: str, show_disclaimer: bool = False) -> None:
        content = with_disclaimer(message) if show_disclaimer else message
        await self.service.post_message(thread_id, "user", content)

    async def start_run(self, thread_id: str, assistant_id: str, instructions: str) -> RunHandle:
        if not self.vector_store_id:
            return await self.service.start_run(thread_id, assistant_id, instructions)
        try:
            return await self.service.start_run(thread_id, assistant_id, instructions, vector_store_id=self.vector_store_id)
        except Exception as exc:
            logger.warning("run_create_with_resources_failed", extra={"thread_id": thread_id, "error": repr(exc)})
            return await self.service.start_run(thread_id, assistant_id, instructions)

    async def wait_for_run(
        self,
        thread_id: str,
        run: RunHandle,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RunHandle:
        limit = self.run_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + limit if limit and limit > 0 else None

        while not run.is_terminal:
            if cancel_event is not None and cancel_event.is_set():
                raise TurnCancelledError(run.id)
            if deadline is not None and loop.time() >= deadline:
                raise RunTimeoutError(run.id, limit, run.status)
            await self._sleep(self.poll_interval)
            try:
                run = await self.service.retrieve_run(thread_id, run.id)
            except Exception as exc:
                logger.warning("run_retrieve_failed", extra={"thread_id": thread_id, "run_id": run.id, "error": repr(exc)})
                runs = await self.service.list_runs(thread_id)
                run = next((item for item in runs if item.id == run.id), run)
            logger.debug("run_status", extra={"thread_id": thread_id, "run_id": run.id, "status": run.status})
        return run

    async def read_reply(self, thread_id: str) -> str:
        messages = await self.service.list_messages(thread_id, limit=self.message_window)
        return select_reply(messages)
