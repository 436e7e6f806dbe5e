"""Tests for owner-scoped rule storage."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.core.errors import NotFoundError
from app.schemas.rule import (
    AmountRange,
    RuleActions,
    RuleConditions,
    RuleCreate,
    RuleUpdate,
)
from app.services.reconciliation.rule_repository import RuleRepository

OWNER = "owner-1"


@pytest.fixture
def rules(db_session) -> RuleRepository:
    return RuleRepository(db_session)


def _create(rules: RuleRepository, name: str, priority: int = 50, owner=OWNER):
    return rules.create(owner, RuleCreate(name=name, priority=priority))


def test_create_stores_conditions_and_actions(rules) -> None:
    rule = rules.create(
        OWNER,
        RuleCreate(
            name="Zelle rent",
            priority=5,
            conditions=RuleConditions(
                description_pattern="zelle",
                amount_range=AmountRange(min=Decimal("1000"), max=Decimal("2000")),
                payer_name_pattern="smith",
            ),
            actions=RuleActions(
                match_to_property_id="prop-1",
                category="rent",
                auto_match=True,
            ),
        ),
    )

    assert rule.owner_id == OWNER
    assert rule.conditions["amount_range"] == {
        "min": Decimal("1000"),
        "max": Decimal("2000"),
    }
    assert rule.actions["match_to_property_id"] == "prop-1"
    assert rule.actions["tolerance"] == Decimal("0.50")
    assert rule.is_active is True


def test_list_orders_by_priority_and_scopes_owner(rules) -> None:
    _create(rules, "late", priority=90)
    _create(rules, "early", priority=1)
    _create(rules, "mid", priority=50)
    _create(rules, "theirs", priority=1, owner="owner-2")

    assert [r.name for r in rules.list(OWNER)] == ["early", "mid", "late"]


def test_list_active_only(rules) -> None:
    _create(rules, "on")
    off = _create(rules, "off")
    rules.update(OWNER, off.id, RuleUpdate(is_active=False))

    assert [r.name for r in rules.list(OWNER, active_only=True)] == ["on"]


def test_update_is_partial(rules) -> None:
    rule = rules.create(
        OWNER,
        RuleCreate(
            name="Rent",
            conditions=RuleConditions(description_pattern="rent"),
        ),
    )

    updated = rules.update(OWNER, rule.id, RuleUpdate(priority=7))

    assert updated.priority == 7
    assert updated.name == "Rent"
    assert updated.description_pattern == "rent"


def test_update_replaces_conditions(rules) -> None:
    rule = rules.create(
        OWNER,
        RuleCreate(
            name="Rent",
            conditions=RuleConditions(
                description_pattern="rent",
                amount_range=AmountRange(min=Decimal("1"), max=Decimal("2")),
            ),
        ),
    )

    updated = rules.update(
        OWNER,
        rule.id,
        RuleUpdate(conditions=RuleConditions(payer_name_pattern="doe")),
    )

    assert updated.description_pattern is None
    assert updated.amount_min is None
    assert updated.payer_name_pattern == "doe"


def test_other_owner_sees_not_found(rules) -> None:
    rule = _create(rules, "mine")

    with pytest.raises(NotFoundError):
        rules.get("owner-2", rule.id)
    with pytest.raises(NotFoundError):
        rules.update("owner-2", rule.id, RuleUpdate(name="stolen"))
    with pytest.raises(NotFoundError):
        rules.delete("owner-2", rule.id)


def test_delete(rules) -> None:
    rule = _create(rules, "gone")

    rules.delete(OWNER, rule.id)

    assert rules.list(OWNER) == []
    with pytest.raises(NotFoundError):
        rules.get(OWNER, rule.id)


def test_unknown_rule(rules) -> None:
    with pytest.raises(NotFoundError):
        rules.get(OWNER, uuid.uuid4())


def test_amount_range_must_be_ordered() -> None:
    with pytest.raises(ValidationError):
        AmountRange(min=Decimal("10"), max=Decimal("5"))
