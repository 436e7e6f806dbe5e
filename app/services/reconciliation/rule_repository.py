"""Owner-scoped storage for reconciliation rules."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.core.logging import get_logger
from app.models.rule import ReconciliationRule
from app.schemas.rule import RuleActions, RuleConditions, RuleCreate, RuleUpdate

logger = get_logger(__name__)


class RuleRepository:
    """CRUD over ``ReconciliationRule`` rows belonging to one owner at a time.

    Rules of another owner are indistinguishable from missing ones: both
    raise ``NotFoundError``.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def create(self, owner_id: str, data: RuleCreate) -> ReconciliationRule:
        rule = ReconciliationRule(
            id=uuid.uuid4(),
            owner_id=owner_id,
            name=data.name,
            priority=data.priority,
            is_active=data.is_active,
        )
        self._apply_conditions(rule, data.conditions)
        self._apply_actions(rule, data.actions)
        self.db.add(rule)
        self.db.commit()
        self.db.refresh(rule)

        logger.info(
            "Rule created: id=%s owner=%s name=%r priority=%d auto_match=%s",
            rule.id,
            owner_id,
            rule.name,
            rule.priority,
            rule.auto_match,
        )
        return rule

    def list(
        self, owner_id: str, active_only: bool = False
    ) -> list[ReconciliationRule]:
        """Owner's rules, lowest priority number first."""
        stmt = select(ReconciliationRule).where(ReconciliationRule.owner_id == owner_id)
        if active_only:
            stmt = stmt.where(ReconciliationRule.is_active.is_(True))
        stmt = stmt.order_by(
            ReconciliationRule.priority,
            ReconciliationRule.created_at,
            ReconciliationRule.id,
        )
        return list(self.db.scalars(stmt).all())

    def get(self, owner_id: str, rule_id: uuid.UUID) -> ReconciliationRule:
        rule: Optional[ReconciliationRule] = self.db.get(ReconciliationRule, rule_id)
        if rule is None or rule.owner_id != owner_id:
            raise NotFoundError("Rule not found")
        return rule

    def update(
        self, owner_id: str, rule_id: uuid.UUID, data: RuleUpdate
    ) -> ReconciliationRule:
        rule = self.get(owner_id, rule_id)

        if data.name is not None:
            rule.name = data.name
        if data.priority is not None:
            rule.priority = data.priority
        if data.is_active is not None:
            rule.is_active = data.is_active
        if data.conditions is not None:
            self._apply_conditions(rule, data.conditions)
        if data.actions is not None:
            self._apply_actions(rule, data.actions)

        self.db.commit()
        self.db.refresh(rule)
        logger.info("Rule updated: id=%s owner=%s", rule.id, owner_id)
        return rule

    def delete(self, owner_id: str, rule_id: uuid.UUID) -> None:
        """Remove the rule.  Transactions it already matched stay as they are."""
        rule = self.get(owner_id, rule_id)
        self.db.delete(rule)
        self.db.commit()
        logger.info("Rule deleted: id=%s owner=%s", rule_id, owner_id)

    # ── Private helpers ──────────────────────────────────────────────

    @staticmethod
    def _apply_conditions(rule: ReconciliationRule, conditions: RuleConditions) -> None:
        rule.description_pattern = conditions.description_pattern
        rule.payer_name_pattern = conditions.payer_name_pattern
        if conditions.amount_range is not None:
            rule.amount_min = conditions.amount_range.min
            rule.amount_max = conditions.amount_range.max
        else:
            rule.amount_min = None
            rule.amount_max = None

    @staticmethod
    def _apply_actions(rule: ReconciliationRule, actions: RuleActions) -> None:
        rule.match_to_property_id = actions.match_to_property_id
        rule.match_to_tenant_id = actions.match_to_tenant_id
        rule.category = actions.category
        rule.auto_match = actions.auto_match
        rule.tolerance = actions.tolerance
