from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from settings import SETTINGS


router = APIRouter(tags=["admin"])
logger = logging.getLogger(__name__)


@router.api_route("/init-vector-store", methods=["GET", "POST"])
async def init_vector_store(request: Request):
    try:
        vector_store_id = await request.app.state.assistant_service.create_vector_store(SETTINGS.vector_store_name)
    except Exception as exc:
        logger.exception("init_vector_store_failed")
        return JSONResponse({"error": str(exc)}, status_code=500)
    return {"vector_store_id": vector_store_id}


@router.api_route("/init-assistant", methods=["GET", "POST"])
async def init_assistant(request: Request):
    try:
        assistant_id = await request.app.state.assistant_service.ensure_assistant()
    except Exception as exc:
        logger.exception("init_assistant_failed")
        return JSONResponse({"error": str(exc)}, status_code=500)
    return {"assistant_id": assistant_id}
