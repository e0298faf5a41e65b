from __future__ import annotations

import asyncio

import pytest

from agents.errors import RunNotCompletedError, RunTimeoutError, TurnCancelledError
from agents.instructions import DISCLAIMER
from agents.orchestrator import TurnOrchestrator, select_reply
from compliance.audit_logger import AuditLogger
from compliance.filter import ADVISORY_NOTE, ComplianceFilter
from memory.session_memory import InMemorySessionStore
from models.schemas import ContentBlock, RunHandle, ThreadMessage, TurnState
from tests.fakes import FakeAssistantService


def _orchestrator(service: FakeAssistantService, **kwargs) -> TurnOrchestrator:
    kwargs.setdefault("assistant_id", "asst_test")
    kwargs.setdefault("vector_store_id", "")
    kwargs.setdefault("poll_interval", 0)
    kwargs.setdefault("run_timeout", 5)
    kwargs.setdefault("session_store", InMemorySessionStore(ttl_seconds=60, max_entries=100))
    return TurnOrchestrator(service=service, audit_logger=AuditLogger(path=""), **kwargs)


def test_poll_stops_after_completed_status():
    async def _run():
        service = FakeAssistantService(statuses=["queued", "in_progress", "in_progress", "completed"])
        result = await _orchestrator(service).run_turn("I run a physio clinic in Ontario", session_key="s1")
        assert service.calls["retrieve_run"] == 4
        assert result.run_status == "completed"
        assert result.state == TurnState.REPLY_READY
        assert result.thread_id == "thread_1"
        assert result.run_id == "run_1"
        assert result.answer == "Here is a compliant plan for your clinic."

    asyncio.run(_run())


def test_failed_run_raises_without_reading_reply():
    async def _run():
        service = FakeAssistantService(statuses=["in_progress", "failed"])
        with pytest.raises(RunNotCompletedError) as err:
            await _orchestrator(service).run_turn("hello", session_key="s1")
        assert "failed" in str(err.value)
        assert err.value.status == "failed"
        assert "list_messages" not in service.calls

    asyncio.run(_run())


def test_supplied_thread_is_reused_without_remote_create():
    async def _run():
        service = FakeAssistantService()
        result = await _orchestrator(service).run_turn("hello", session_key="s1", thread_id="thread_existing")
        assert result.thread_id == "thread_existing"
        assert "create_thread" not in service.calls
        assert service.posted[0]["thread_id"] == "thread_existing"

    asyncio.run(_run())


def test_disclaimer_is_appended_when_requested():
    async def _run():
        service = FakeAssistantService()
        await _orchestrator(service).run_turn("Write a Facebook ad", session_key="s1", show_disclaimer=True)
        posted = service.posted[0]
        assert posted["role"] == "user"
        assert posted["content"].startswith("Write a Facebook ad")
        assert posted["content"].endswith(DISCLAIMER)

    asyncio.run(_run())


def test_instructions_ask_for_missing_facts():
    async def _run():
        service = FakeAssistantService()
        orchestrator = _orchestrator(service)
        await orchestrator.run_turn("Help me with ads", session_key="s1")
        first = service.runs_started[0]["instructions"]
        assert "profession=unknown; region=unknown" in first
        assert "Ask for both in one short sentence" in first

        await orchestrator.run_turn("I'm a chiropractor", session_key="s1")
        second = service.runs_started[1]["instructions"]
        assert "profession=chiropractic; region=unknown" in second
        assert "Ask only for their province or state" in second

        await orchestrator.run_turn("In Alberta", session_key="s1")
        third = service.runs_started[2]["instructions"]
        assert "profession=chiropractic; region=AB" in third
        assert "Do not ask for them again" in third
        assert "No testimonials" in third

    asyncio.run(_run())


def test_run_retries_without_tool_resources_when_rejected():
    async def _run():
        service = FakeAssistantService(reject_tool_resources=True)
        result = await _orchestrator(service, vector_store_id="vs_123").run_turn("hello", session_key="s1")
        assert result.run_status == "completed"
        assert [r["vector_store_id"] for r in service.runs_started] == ["vs_123", None]

    asyncio.run(_run())


def test_retrieve_failure_falls_back_to_listing_runs():
    async def _run():
        service = FakeAssistantService(statuses=[], retrieve_failures=1, listed_status="completed")
        result = await _orchestrator(service).run_turn("hello", session_key="s1")
        assert service.calls["list_runs"] == 1
        assert result.run_status == "completed"

    asyncio.run(_run())


def test_missing_run_in_listing_keeps_last_known_status():
    async def _run():
        service = FakeAssistantService(statuses=["completed"], retrieve_failures=1)
        result = await _orchestrator(service).run_turn("hello", session_key="s1")
        assert service.calls["list_runs"] == 1
        assert service.calls["retrieve_run"] == 2
        assert result.run_status == "completed"

    asyncio.run(_run())


def test_poll_deadline_raises_timeout():
    async def _run():
        service = FakeAssistantService(statuses=["in_progress"] * 1000)

        async def slow_sleep(_delay):
            await asyncio.sleep(0.01)

        orchestrator = _orchestrator(service, sleep=slow_sleep)
        with pytest.raises(RunTimeoutError) as err:
            await orchestrator.run_turn("hello", session_key="s1", timeout=0.05)
        assert err.value.last_status == "in_progress"
        assert "list_messages" not in service.calls

    asyncio.run(_run())


def test_cancel_event_stops_polling():
    async def _run():
        service = FakeAssistantService(statuses=["in_progress"] * 1000)
        cancel = asyncio.Event()
        checks = {"n": 0}

        async def counting_sleep(_delay):
            checks["n"] += 1
            if checks["n"] == 3:
                cancel.set()

        orchestrator = _orchestrator(service, sleep=counting_sleep)
        with pytest.raises(TurnCancelledError):
            await orchestrator.run_turn("hello", session_key="s1", cancel_event=cancel)
        assert service.calls["retrieve_run"] == 3

    asyncio.run(_run())


def test_reply_passes_through_compliance_filter():
    async def _run():
        service = FakeAssistantService(reply="We are the best clinic, first visit free!")
        orchestrator = _orchestrator(service, compliance_filter=ComplianceFilter())
        result = await orchestrator.run_turn("Write an ad", session_key="s1")
        assert "best" not in result.answer
        assert "trusted clinic" in result.answer
        assert result.answer.endswith(ADVISORY_NOTE)
        assert result.compliance is not None and result.compliance.tier1_applied

    asyncio.run(_run())


def test_assistant_id_is_resolved_once_when_not_configured():
    async def _run():
        service = FakeAssistantService()
        orchestrator = _orchestrator(service)
        orchestrator.assistant_id = None
        await orchestrator.run_turn("hello", session_key="s1")
        await orchestrator.run_turn("hello again", session_key="s1")
        assert service.calls["ensure_assistant"] == 1
        assert service.runs_started[1]["assistant_id"] == "asst_fake"

    asyncio.run(_run())


def test_select_reply_uses_newest_assistant_text_blocks():
    messages = [
        ThreadMessage(role="user", content=[ContentBlock(type="text", text="latest question")]),
        ThreadMessage(
            role="assistant",
            content=[
                ContentBlock(type="text", text=" First part."),
                ContentBlock(type="image_file"),
                ContentBlock(type="text", text="Second part. "),
            ],
        ),
        ThreadMessage(role="assistant", content=[ContentBlock(type="text", text="older answer")]),
    ]
    assert select_reply(messages) == "First part.\nSecond part."
    assert select_reply([]) == ""


def test_run_handle_terminal_statuses():
    assert RunHandle(id="r", status="expired").is_terminal
    assert RunHandle(id="r", status="cancelled").is_terminal
    assert not RunHandle(id="r", status="requires_action").is_terminal


def test_injected_empty_store_is_used():
    async def _run():
        store = InMemorySessionStore(ttl_seconds=60, max_entries=100)
        assert len(store) == 0
        orchestrator = _orchestrator(FakeAssistantService(), session_store=store)
        assert orchestrator.session_store is store
        await orchestrator.run_turn("I'm a physio in Ontario", session_key="s1")
        assert len(store) == 1
        ctx = await store.get("s1")
        assert ctx is not None and ctx.region == "ON"

    asyncio.run(_run())
