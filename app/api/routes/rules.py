"""Reconciliation rule endpoints (owner-scoped CRUD)."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response

from app.api.deps import get_rule_repository
from app.core.auth import get_current_user_id
from app.models.rule import ReconciliationRule
from app.schemas.rule import RuleCreate, RuleResponse, RuleUpdate
from app.services.reconciliation.rule_repository import RuleRepository

router = APIRouter()


@router.get("/rules", response_model=List[RuleResponse])
def list_rules(
    user_id: str = Depends(get_current_user_id),
    rules: RuleRepository = Depends(get_rule_repository),
) -> list[ReconciliationRule]:
    """The caller's rules in evaluation order (ascending priority)."""
    return rules.list(user_id)


@router.post("/rules", response_model=RuleResponse, status_code=201)
def create_rule(
    body: RuleCreate,
    user_id: str = Depends(get_current_user_id),
    rules: RuleRepository = Depends(get_rule_repository),
) -> ReconciliationRule:
    return rules.create(user_id, body)


@router.patch("/rules/{rule_id}", response_model=RuleResponse)
def update_rule(
    rule_id: UUID,
    body: RuleUpdate,
    user_id: str = Depends(get_current_user_id),
    rules: RuleRepository = Depends(get_rule_repository),
) -> ReconciliationRule:
    """Partial update; only the fields present in the body change."""
    return rules.update(user_id, rule_id, body)


@router.delete("/rules/{rule_id}", status_code=204)
def delete_rule(
    rule_id: UUID,
    user_id: str = Depends(get_current_user_id),
    rules: RuleRepository = Depends(get_rule_repository),
) -> Response:
    """Delete a rule.  Transactions it already matched are left untouched."""
    rules.delete(user_id, rule_id)
    return Response(status_code=204)
