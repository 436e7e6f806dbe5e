"""Bank-transaction-to-payment matching strategies.

This module picks the expected payment a bank transaction most likely
pays.  Strategies run from most to least certain and the first one that
finds a payment wins:

  1. exact  - same amount, due within a week of the posted date
  2. rule   - the user's own rules, lowest priority number first
  3. fuzzy  - amount within a few percent, due within two weeks
  4. none   - nothing plausible was found

The evaluator never decides whether a match is good enough to apply;
the lifecycle manager compares the confidence against its threshold.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional

from app.core.config import Settings
from app.core.logging import get_logger
from app.services.ledger.base import PaymentLedger
from app.services.reconciliation.patterns import PatternMatcher, pattern_matches
from app.services.reconciliation.tolerance import (
    amount_window,
    day_window,
    percent_window,
    scaled_confidence,
)

logger = get_logger(__name__)


class MatchType:
    EXACT = "exact"
    RULE = "rule"
    FUZZY = "fuzzy"
    NONE = "none"


@dataclass(frozen=True)
class MatchDecision:
    """Best candidate found for one transaction.

    Attributes:
        payment_id: Ledger id of the candidate, ``None`` when nothing matched.
        confidence: 0-100 tiered score (100 only for exact matches).
        match_type: Which strategy produced the candidate.
        rule_id: The winning rule for ``rule`` matches.
    """

    payment_id: Optional[str]
    confidence: Decimal
    match_type: str
    rule_id: Optional[uuid.UUID] = None

    @property
    def found(self) -> bool:
        return self.payment_id is not None


NO_MATCH = MatchDecision(
    payment_id=None,
    confidence=Decimal("0"),
    match_type=MatchType.NONE,
)


class MatchingStrategyEvaluator:
    """Runs the exact -> rule -> fuzzy cascade for a single transaction."""

    EXACT_CONFIDENCE = Decimal("100")
    RULE_BASE, RULE_FLOOR = Decimal("100"), Decimal("50")
    FUZZY_BASE, FUZZY_FLOOR = Decimal("80"), Decimal("30")

    def __init__(
        self,
        ledger: PaymentLedger,
        config: Settings,
        pattern_matcher: PatternMatcher = pattern_matches,
    ) -> None:
        self.ledger = ledger
        self.config = config
        self.pattern_matcher = pattern_matcher

    # ── Public API ───────────────────────────────────────────────────

    def find_match(
        self,
        transaction: Any,
        active_rules: Iterable[Any],
        owner_id: str,
    ) -> MatchDecision:
        """Return the best payment candidate for ``transaction``.

        Args:
            transaction: Object with ``amount``, ``posted_date``,
                ``description`` and ``payer_name``.
            active_rules: The owner's rules; inactive ones are skipped here.
            owner_id: Only payments owned by this user are considered.
        """
        decision = (
            self._exact_match(transaction, owner_id)
            or self._rule_match(transaction, active_rules, owner_id)
            or self._fuzzy_match(transaction, owner_id)
            or NO_MATCH
        )
        logger.debug(
            "Match decision: amount=%s type=%s payment=%s confidence=%s",
            transaction.amount,
            decision.match_type,
            decision.payment_id,
            decision.confidence,
        )
        return decision

    def categorize(self, transaction: Any, rules: Iterable[Any]) -> Optional[str]:
        """Category of the first applicable rule that carries one.

        Categorisation does not depend on ``auto_match``.
        """
        for rule in self._ordered(rules):
            if rule.category and self.conditions_hold(rule, transaction):
                return rule.category
        return None

    def conditions_hold(self, rule: Any, transaction: Any) -> bool:
        """True when every condition present on ``rule`` holds."""
        if rule.description_pattern and not self.pattern_matcher(
            rule.description_pattern, transaction.description or ""
        ):
            return False

        if rule.amount_min is not None and transaction.amount < rule.amount_min:
            return False
        if rule.amount_max is not None and transaction.amount > rule.amount_max:
            return False

        # A transaction without a payer name is not held against the pattern
        if (
            rule.payer_name_pattern
            and transaction.payer_name
            and not self.pattern_matcher(
                rule.payer_name_pattern, transaction.payer_name
            )
        ):
            return False

        return True

    # ── Strategies ───────────────────────────────────────────────────

    def _exact_match(self, transaction: Any, owner_id: str) -> Optional[MatchDecision]:
        due_from, due_to = day_window(
            transaction.posted_date, self.config.exact_match_window_days
        )
        payment = self.ledger.find_pending_payment(
            owner_id,
            amount_min=transaction.amount,
            amount_max=transaction.amount,
            due_from=due_from,
            due_to=due_to,
        )
        if payment is None:
            return None
        return MatchDecision(payment.id, self.EXACT_CONFIDENCE, MatchType.EXACT)

    def _rule_match(
        self,
        transaction: Any,
        rules: Iterable[Any],
        owner_id: str,
    ) -> Optional[MatchDecision]:
        for rule in self._ordered(rules):
            if not rule.auto_match or not self.conditions_hold(rule, transaction):
                continue

            amount_min, amount_max = amount_window(transaction.amount, rule.tolerance)
            payment = self.ledger.find_pending_payment(
                owner_id,
                amount_min=amount_min,
                amount_max=amount_max,
                property_id=rule.match_to_property_id,
                tenant_id=rule.match_to_tenant_id,
            )
            if payment is None:
                continue

            confidence = scaled_confidence(
                self.RULE_BASE,
                self.RULE_FLOOR,
                payment.amount - transaction.amount,
                payment.amount,
            )
            logger.info(
                "Rule %r (priority=%d) matched payment %s",
                rule.name,
                rule.priority,
                payment.id,
            )
            return MatchDecision(payment.id, confidence, MatchType.RULE, rule.id)
        return None

    def _fuzzy_match(self, transaction: Any, owner_id: str) -> Optional[MatchDecision]:
        amount_min, amount_max = percent_window(
            transaction.amount, self.config.fuzzy_amount_tolerance_percent
        )
        due_from, due_to = day_window(
            transaction.posted_date, self.config.fuzzy_match_window_days
        )
        payment = self.ledger.find_pending_payment(
            owner_id,
            amount_min=amount_min,
            amount_max=amount_max,
            due_from=due_from,
            due_to=due_to,
        )
        if payment is None:
            return None

        confidence = scaled_confidence(
            self.FUZZY_BASE,
            self.FUZZY_FLOOR,
            payment.amount - transaction.amount,
            payment.amount,
        )
        return MatchDecision(payment.id, confidence, MatchType.FUZZY)

    # ── Private helpers ──────────────────────────────────────────────

    @staticmethod
    def _ordered(rules: Iterable[Any]) -> list[Any]:
        """Active rules, lowest priority number first (stable on ties)."""
        return sorted((r for r in rules if r.is_active), key=lambda r: r.priority)
