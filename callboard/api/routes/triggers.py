"""Per-agent trigger CRUD + backtest routes."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from ...core.models import TriggerCreate, TriggerFilter

router = APIRouter()

BACKTEST_RESPONSE_CAP = 50


class BacktestBody(BaseModel):
    filter: TriggerFilter
    limit: int = Field(500, ge=1)


def _require_agent(alias: str, request: Request) -> None:
    from ...core.agent import agent_exists
    if not agent_exists(alias, request.app.state.config):
        raise HTTPException(status_code=404, detail=f"Agent not found: {alias}")


@router.get("/agents/{alias}/triggers")
async def list_triggers(alias: str, request: Request):
    _require_agent(alias, request)
    triggers = request.app.state.triggers.list(alias)
    return {"triggers": [t.to_dict() for t in triggers]}


# Registered before /{trigger_id} so "backtest" is never taken for an id
@router.post("/agents/{alias}/triggers/backtest")
async def backtest(alias: str, body: BacktestBody, request: Request):
    from ...core.filters import backtest_filter
    from ...core.models import BacktestResult

    _require_agent(alias, request)
    events = request.app.state.event_store.query_all(limit=body.limit)
    matches = backtest_filter(events, body.filter)
    result = BacktestResult(
        total_scanned=len(events),
        match_count=len(matches),
        matches=matches[:BACKTEST_RESPONSE_CAP],
    )
    return result.to_dict()


@router.get("/agents/{alias}/triggers/{trigger_id}")
async def get_trigger(alias: str, trigger_id: str, request: Request):
    _require_agent(alias, request)
    trigger = request.app.state.triggers.get(alias, trigger_id)
    if trigger is None:
        raise HTTPException(status_code=404, detail=f"Trigger not found: {trigger_id}")
    return {"trigger": trigger.to_dict()}


@router.post("/agents/{alias}/triggers", status_code=201)
async def create_trigger(alias: str, body: TriggerCreate, request: Request):
    _require_agent(alias, request)
    body = body.model_copy(update={
        "name": body.name.strip(),
        "description": body.description.strip(),
    })
    if not body.name:
        raise HTTPException(status_code=400, detail="name is required")
    trigger = request.app.state.triggers.create(alias, body)
    return {"trigger": trigger.to_dict()}


@router.put("/agents/{alias}/triggers/{trigger_id}")
async def update_trigger(
    alias: str,
    trigger_id: str,
    request: Request,
    updates: dict[str, Any] = Body(...),
):
    _require_agent(alias, request)
    try:
        trigger = request.app.state.triggers.update(alias, trigger_id, updates)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if trigger is None:
        raise HTTPException(status_code=404, detail=f"Trigger not found: {trigger_id}")
    return {"trigger": trigger.to_dict()}


@router.delete("/agents/{alias}/triggers/{trigger_id}")
async def delete_trigger(alias: str, trigger_id: str, request: Request):
    _require_agent(alias, request)
    if not request.app.state.triggers.delete(alias, trigger_id):
        raise HTTPException(status_code=404, detail=f"Trigger not found: {trigger_id}")
    return {"ok": True}
