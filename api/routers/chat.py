from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError

from agents.orchestrator import TurnOrchestrator


router = APIRouter(tags=["chat"])
logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: StrictStr
    thread_id: Optional[StrictStr] = Field(default=None, alias="threadId")
    show_disclaimer: StrictBool = Field(default=False, alias="showDisclaimer")


def _orchestrator(request: Request) -> TurnOrchestrator:
    return request.app.state.orchestrator


def session_key_for(request: Request) -> str:
    header = (request.headers.get("X-Session-Id") or "").strip()
    if header:
        return header
    return request.client.host if request.client else "anonymous"


MESSAGE_REQUIRED = "message is required and must be a non-empty string"

FIELD_ERRORS = {
    "message": MESSAGE_REQUIRED,
    "threadId": "threadId must be a string",
    "thread_id": "threadId must be a string",
    "showDisclaimer": "showDisclaimer must be a boolean",
    "show_disclaimer": "showDisclaimer must be a boolean",
}


def validation_message(exc: ValidationError) -> str:
    """First failing field in declaration order, so a missing message wins over other problems."""
    for err in exc.errors():
        loc = err.get("loc") or ()
        if loc and str(loc[0]) in FIELD_ERRORS:
            return FIELD_ERRORS[str(loc[0])]
    return "Invalid request body"


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@router.post("/chat")
async def post_chat(request: Request):
    try:
        body = await request.json()
    except ValueError:
        return _error("Request body must be valid JSON", 400)
    if not isinstance(body, dict):
        return _error("Request body must be a JSON object", 400)
    try:
        payload = ChatRequest.model_validate(body)
    except ValidationError as exc:
        return _error(validation_message(exc), 400)
    if not payload.message.strip():
        return _error(MESSAGE_REQUIRED, 400)

    session_key = session_key_for(request)
    try:
        result = await _orchestrator(request).run_turn(
            payload.message,
            session_key=session_key,
            thread_id=payload.thread_id or None,
            show_disclaimer=payload.show_disclaimer,
        )
    except Exception as exc:
        logger.error("chat_endpoint_failed", extra={"session_key": session_key, "error": repr(exc)})
        return _error(str(exc) or exc.__class__.__name__, 500)
    return {"answer": result.answer, "thread_id": result.thread_id, "run_id": result.run_id}
