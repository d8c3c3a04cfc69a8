"""
Alert rule configuration API endpoints
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from presence_monitor.api.dependencies import get_current_user, get_orchestrator, get_rule_store
from presence_monitor.core.models import SensorState, UserRecord
from presence_monitor.core.rules import (
    CLOCK_PATTERN,
    DEFAULT_END_TIME,
    DEFAULT_RULE_NAME,
    DEFAULT_START_TIME,
    evaluate,
    format_clock,
)
from presence_monitor.sensing.rule_store import RuleStore
from presence_monitor.services.orchestrator import ServiceOrchestrator

logger = logging.getLogger(__name__)
router = APIRouter()

CLOCK = CLOCK_PATTERN.pattern


class RuleCreate(BaseModel):
    """New alert rule; omitted fields take the defaults."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(default=DEFAULT_RULE_NAME)
    mac: str = Field(default="", description="Device MAC; empty matches every device")
    state: SensorState = Field(default=SensorState.MOVE)
    start_time: str = Field(default=DEFAULT_START_TIME, alias="startTime", pattern=CLOCK)
    end_time: str = Field(default=DEFAULT_END_TIME, alias="endTime", pattern=CLOCK)
    enabled: bool = Field(default=True)


class RuleUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    mac: Optional[str] = None
    state: Optional[SensorState] = None
    start_time: Optional[str] = Field(default=None, alias="startTime", pattern=CLOCK)
    end_time: Optional[str] = Field(default=None, alias="endTime", pattern=CLOCK)
    enabled: Optional[bool] = None


class RuleEvaluation(BaseModel):
    """A state message to test against the configured rules."""

    mac: str = Field(..., min_length=1)
    state: SensorState
    time: Optional[str] = Field(default=None, pattern=CLOCK, description="HH:MM; defaults to now")


@router.get("/rules")
def list_rules(
    current_user: UserRecord = Depends(get_current_user),
    rule_store: RuleStore = Depends(get_rule_store),
):
    return {"success": True, "rules": [rule.to_dict() for rule in rule_store.rules]}


@router.post("/rules", status_code=status.HTTP_201_CREATED)
def create_rule(
    body: RuleCreate,
    current_user: UserRecord = Depends(get_current_user),
    rule_store: RuleStore = Depends(get_rule_store),
):
    rule = rule_store.add(**body.model_dump())
    return {"success": True, "rule": rule.to_dict()}


@router.put("/rules/{rule_id}")
def update_rule(
    rule_id: str,
    body: RuleUpdate,
    current_user: UserRecord = Depends(get_current_user),
    rule_store: RuleStore = Depends(get_rule_store),
):
    changes = body.model_dump(exclude_none=True, by_alias=True)
    rule = rule_store.update(rule_id, changes)
    return {"success": True, "rule": rule.to_dict()}


@router.delete("/rules/{rule_id}")
def delete_rule(
    rule_id: str,
    current_user: UserRecord = Depends(get_current_user),
    rule_store: RuleStore = Depends(get_rule_store),
):
    rule_store.delete(rule_id)
    return {"success": True, "deleted": rule_id}


@router.post("/rules/{rule_id}/toggle")
def toggle_rule(
    rule_id: str,
    current_user: UserRecord = Depends(get_current_user),
    rule_store: RuleStore = Depends(get_rule_store),
):
    rule = rule_store.toggle(rule_id)
    return {"success": True, "rule": rule.to_dict()}


@router.post("/rules/evaluate")
def evaluate_rules(
    body: RuleEvaluation,
    current_user: UserRecord = Depends(get_current_user),
    rule_store: RuleStore = Depends(get_rule_store),
    orchestrator: ServiceOrchestrator = Depends(get_orchestrator),
):
    """Return the rules a state message would match."""
    now = body.time or format_clock(orchestrator.clock())
    matched = evaluate(rule_store.rules, body.mac, body.state, now)
    return {
        "success": True,
        "time": now,
        "matched": [rule.to_dict() for rule in matched],
    }
