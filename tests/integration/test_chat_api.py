from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from agents.instructions import DISCLAIMER
from agents.orchestrator import TurnOrchestrator
from api.main import create_app
from compliance.audit_logger import AuditLogger
from compliance.filter import ComplianceFilter
from memory.session_memory import InMemorySessionStore
from tests.fakes import FakeAssistantService
from tools.ingest_tools import KnowledgeIngestor


def _client(service: FakeAssistantService | None = None, vector_store_id: str = "vs_1"):
    service = service or FakeAssistantService()
    store = InMemorySessionStore(ttl_seconds=60, max_entries=100)
    orchestrator = TurnOrchestrator(
        service=service,
        session_store=store,
        compliance_filter=ComplianceFilter(),
        assistant_id="asst_test",
        vector_store_id="",
        poll_interval=0,
        run_timeout=5,
        audit_logger=AuditLogger(path=""),
    )
    app = create_app(
        assistant_service=service,
        session_store=store,
        orchestrator=orchestrator,
        ingestor=KnowledgeIngestor(service, vector_store_id=vector_store_id),
    )
    return TestClient(app), service, store


def test_chat_endpoint_end_to_end():
    client, service, _ = _client()
    resp = client.post("/chat", json={"message": "I'm a physio in Ontario, help with Instagram"})
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data == {
        "answer": "Here is a compliant plan for your clinic.",
        "thread_id": "thread_1",
        "run_id": "run_1",
    }
    assert service.calls["create_thread"] == 1


def test_chat_reuses_thread_and_accepts_camel_case_fields():
    client, service, _ = _client()
    resp = client.post("/chat", json={"message": "Next step?", "threadId": "thread_9", "showDisclaimer": True})
    assert resp.status_code == 200, resp.text
    assert resp.json()["thread_id"] == "thread_9"
    assert "create_thread" not in service.calls
    assert service.posted[0]["content"].endswith(DISCLAIMER)


def test_chat_rejects_bad_requests():
    client, service, _ = _client()
    for body in ({}, {"message": ""}, {"message": "   "}, {"message": 42}):
        resp = client.post("/chat", json=body)
        assert resp.status_code == 400, body
        assert "error" in resp.json()
    resp = client.post("/chat", content=b"{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    resp = client.post("/chat", json=["message"])
    assert resp.status_code == 400
    assert service.calls == {}


def test_chat_reports_failed_run_as_server_error():
    client, service, _ = _client(FakeAssistantService(statuses=["failed"]))
    resp = client.post("/chat", json={"message": "hello"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Run not completed: failed"}
    assert "list_messages" not in service.calls


def test_session_header_scopes_profile_memory():
    client, service, store = _client()
    client.post("/chat", json={"message": "I'm an RMT"}, headers={"X-Session-Id": "clinic-a"})
    client.post("/chat", json={"message": "We're in Nova Scotia"}, headers={"X-Session-Id": "clinic-a"})
    client.post("/chat", json={"message": "Hello"}, headers={"X-Session-Id": "clinic-b"})

    first = asyncio.run(store.get("clinic-a"))
    assert first is not None
    assert first.profession is not None and first.profession.value == "rmt"
    assert first.region == "NS"
    other = asyncio.run(store.get("clinic-b"))
    assert other is not None and other.profession is None and other.region is None
    assert "profession=registered massage therapy; region=NS" in service.runs_started[1]["instructions"]


def test_reply_is_filtered_before_returning():
    client, _, _ = _client(FakeAssistantService(reply="The #1 clinic in town. Book now and get 20% off!"))
    answer = client.post("/chat", json={"message": "Write an ad"}).json()["answer"]
    assert "#1" not in answer
    assert "20% off" not in answer
    assert "introductory rate" in answer


def test_ping_and_banner():
    client, _, _ = _client()
    assert client.get("/ping").json() == {"ok": True}
    banner = client.get("/")
    assert banner.status_code == 200
    assert banner.json()["ok"] is True


def test_ingest_uploads_tagged_files():
    client, service, _ = _client()
    resp = client.post(
        "/ingest",
        files=[("files", ("ads.pdf", b"%PDF-1.4", "application/pdf"))],
        data={"profession": "Physio", "region": "on", "topic": "social ads"},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["status"] == "uploaded"
    assert data["count"] == 1
    assert data["items"][0]["stamped_name"] == "physio_ON_social-ads__ads.pdf"
    assert service.calls["attach_file"] == 1


def test_ingest_requires_files_and_vector_store():
    client, _, _ = _client()
    resp = client.post("/ingest", data={"profession": "physio"})
    assert resp.status_code == 400
    assert "files" in resp.json()["error"]

    client, _, _ = _client(vector_store_id="")
    resp = client.post("/ingest", files=[("files", ("a.txt", b"x", "text/plain"))])
    assert resp.status_code == 400
    assert "VECTOR_STORE_ID" in resp.json()["error"]


def test_admin_bootstrap_endpoints():
    client, service, _ = _client()
    assert client.post("/init-assistant").json() == {"assistant_id": "asst_fake"}
    assert client.get("/init-vector-store").json() == {"vector_store_id": "vs_fake"}
    assert service.calls["ensure_assistant"] == 1


def test_responses_carry_timing_and_session_headers():
    client, _, _ = _client()
    resp = client.post("/chat", json={"message": "hello"}, headers={"X-Session-Id": "clinic-z"})
    assert resp.headers["X-Session-Id"] == "clinic-z"
    assert int(resp.headers["X-Process-Time-Ms"]) >= 0
    assert "X-Session-Id" not in client.get("/ping").headers


def test_app_and_default_orchestrator_share_injected_empty_store():
    service = FakeAssistantService()
    store = InMemorySessionStore(ttl_seconds=60, max_entries=100)
    app = create_app(assistant_service=service, session_store=store, ingestor=KnowledgeIngestor(service, vector_store_id="vs_1"))
    assert app.state.session_store is store
    assert app.state.orchestrator.session_store is store


def test_validation_errors_name_the_failing_field():
    client, service, _ = _client()
    resp = client.post("/chat", json={"message": "hi", "threadId": 5})
    assert resp.status_code == 400
    assert resp.json() == {"error": "threadId must be a string"}
    resp = client.post("/chat", json={"message": "hi", "showDisclaimer": "yes"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "showDisclaimer must be a boolean"}
    resp = client.post("/chat", json={"threadId": 5})
    assert resp.json() == {"error": "message is required and must be a non-empty string"}
    assert service.calls == {}
