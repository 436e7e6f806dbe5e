"""Pydantic schemas for reconciliation rules."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AmountRange(BaseModel):
    """Inclusive amount bounds a transaction must fall within."""

    min: Decimal = Field(..., max_digits=15, decimal_places=2)
    max: Decimal = Field(..., max_digits=15, decimal_places=2)

    @model_validator(mode="after")
    def _check_bounds(self) -> AmountRange:
        if self.min > self.max:
            raise ValueError("amount_range.min must not exceed amount_range.max")
        return self


class RuleConditions(BaseModel):
    """Conditions are AND-combined; omitted ones always hold."""

    model_config = ConfigDict(from_attributes=True)

    description_pattern: Optional[str] = Field(
        None,
        max_length=255,
        description="Case-insensitive regex (or plain text) found in the description",
    )
    amount_range: Optional[AmountRange] = None
    payer_name_pattern: Optional[str] = Field(None, max_length=255)


class RuleActions(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    match_to_property_id: Optional[str] = Field(None, max_length=64)
    match_to_tenant_id: Optional[str] = Field(None, max_length=64)
    category: Optional[str] = Field(None, max_length=100)
    auto_match: bool = False
    tolerance: Decimal = Field(
        Decimal("0.50"),
        ge=0,
        le=100,
        decimal_places=2,
        description="Absolute amount tolerance when auto-matching",
    )


class RuleCreate(BaseModel):
    """Request body for creating a rule."""

    name: str = Field(..., min_length=1, max_length=100)
    priority: int = Field(50, ge=1, le=100, description="Lower runs first")
    is_active: bool = True
    conditions: RuleConditions = Field(default_factory=RuleConditions)
    actions: RuleActions = Field(default_factory=RuleActions)


class RuleUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    priority: Optional[int] = Field(None, ge=1, le=100)
    is_active: Optional[bool] = None
    conditions: Optional[RuleConditions] = None
    actions: Optional[RuleActions] = None


class RuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    priority: int
    is_active: bool
    conditions: RuleConditions
    actions: RuleActions
    created_at: datetime
    updated_at: Optional[datetime] = None
