"""Event log + webhook ingestion routes."""
from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

router = APIRouter()


class WebhookBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int | None = None
    idempotency_key: str | None = None
    event_type: str = "webhook"
    received_at: str | None = None
    data: Any = None


@router.get("/events")
async def list_all_events(
    request: Request,
    limit: int = Query(100, ge=1),
    offset: int = Query(0, ge=0),
):
    store = request.app.state.event_store
    return [e.to_dict() for e in store.query_all(limit=limit, offset=offset)]


@router.get("/events/sources")
async def list_event_sources(request: Request):
    return request.app.state.event_store.list_sources()


@router.get("/events/{source}")
async def list_source_events(
    source: str,
    request: Request,
    limit: int = Query(100, ge=1),
    offset: int = Query(0, ge=0),
):
    store = request.app.state.event_store
    return [e.to_dict() for e in store.query(source, limit=limit, offset=offset)]


@router.post("/webhooks/{source}", status_code=201)
async def receive_webhook(source: str, body: WebhookBody, request: Request):
    ingestor = request.app.state.ingestor
    now = datetime.now(timezone.utc)
    key = body.idempotency_key
    if body.id is None and not key:
        # No natural key: every delivery is a distinct event
        key = f"{source}:{uuid.uuid4().hex}"
    raw: dict[str, Any] = {
        "id": body.id if body.id is not None else int(time.time() * 1000),
        "idempotency_key": key,
        "received_at": body.received_at or now.isoformat(),
        "source": source,
        "event_type": body.event_type,
        "data": body.data,
    }
    try:
        stored = ingestor.ingest(raw)
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    if stored is None:
        return JSONResponse({"duplicate": True}, status_code=200)
    return stored.to_dict()
