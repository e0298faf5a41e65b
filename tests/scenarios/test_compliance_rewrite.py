from __future__ import annotations

import asyncio

from agents.orchestrator import TurnOrchestrator
from compliance.audit_logger import AuditLogger
from compliance.filter import ADVISORY_NOTE, ComplianceFilter
from memory.session_memory import InMemorySessionStore
from tests.fakes import FakeAssistantService, FakeStatusError


def _orchestrator(service: FakeAssistantService, audit_path: str = "") -> TurnOrchestrator:
    return TurnOrchestrator(
        service=service,
        session_store=InMemorySessionStore(ttl_seconds=60, max_entries=10),
        compliance_filter=ComplianceFilter(rewriter=service),
        assistant_id="asst_test",
        vector_store_id="",
        poll_interval=0,
        run_timeout=5,
        audit_logger=AuditLogger(path=audit_path),
    )


def test_guarantee_claim_is_rewritten_remotely(tmp_path):
    async def _run():
        service = FakeAssistantService(
            reply="We guarantee you will be pain free, the best care in Ontario.",
            rewrite_text="Our team works with you on a care plan suited to your goals.",
        )
        audit_path = tmp_path / "audit.jsonl"
        result = await _orchestrator(service, str(audit_path)).run_turn("Write an ad", session_key="s1")

        assert result.answer == "Our team works with you on a care plan suited to your goals."
        assert result.compliance.tier2_applied
        # The remote pass sees the locally cleaned copy.
        assert "best" not in service.rewrites[0]
        assert "trusted care" in service.rewrites[0]

        records = AuditLogger(path=str(audit_path)).read_all()
        assert records[-1]["outcome"] == "ok"
        assert records[-1]["tier2_applied"] is True

    asyncio.run(_run())


def test_rewrite_outage_keeps_locally_filtered_reply():
    async def _run():
        service = FakeAssistantService(
            reply="The leading clinic for back pain.",
            rewrite_error=FakeStatusError(503, "upstream unavailable"),
        )
        result = await _orchestrator(service).run_turn("Write an ad", session_key="s1")
        assert result.answer.startswith("The trusted clinic for back pain.")
        assert result.answer.endswith(ADVISORY_NOTE)
        assert result.compliance.tier2_attempted and not result.compliance.tier2_applied

    asyncio.run(_run())


def test_clean_reply_skips_remote_rewrite():
    async def _run():
        service = FakeAssistantService(reply="Share a short video on posture tips.")
        result = await _orchestrator(service).run_turn("Give me an idea", session_key="s1")
        assert result.answer == "Share a short video on posture tips."
        assert "rewrite" not in service.calls

    asyncio.run(_run())
