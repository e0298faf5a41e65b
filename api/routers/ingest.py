from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from agents.errors import IngestError
from tools.ingest_tools import KnowledgeIngestor, build_tags


router = APIRouter(tags=["ingest"])
logger = logging.getLogger(__name__)


def _ingestor(request: Request) -> KnowledgeIngestor:
    return request.app.state.ingestor


@router.post("/ingest")
async def ingest_files(
    request: Request,
    files: Optional[List[UploadFile]] = File(None),
    profession: str = Form(""),
    region: str = Form(""),
    topic: str = Form(""),
    updated: str = Form(""),
):
    tags = build_tags(profession=profession, region=region, topic=topic, updated=updated)
    blobs = [(upload.filename or "upload", await upload.read()) for upload in files or []]
    try:
        result = await _ingestor(request).ingest(blobs, tags)
    except IngestError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except Exception as exc:
        logger.exception("ingest_failed", extra={"count": len(blobs)})
        return JSONResponse({"error": str(exc) or "Ingest failed"}, status_code=500)
    return result.model_dump(mode="json")
