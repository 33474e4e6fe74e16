"""
Weighted-score matching engine for statement reconciliation.
Scores every bank/system pair and accepts pairs greedily by score.
"""

from datetime import datetime
from decimal import Decimal
from typing import Sequence
import logging

from ..models.transaction import MatchableTransaction, MatchResult
from ..config import ReconConfig
from .strategies import (
    MatchingRule,
    AmountRule,
    DateRule,
    TypeRule,
    DescriptionRule,
)

logger = logging.getLogger(__name__)


class MatchingEngine:
    """
    Matches bank transactions to system transactions 1:1.

    Scoring is a pure function of the pair. Assignment walks candidates in
    descending score order and accepts a pair only if neither side has been
    claimed yet, which approximates a maximum-weight bipartite matching.
    Equal scores are ordered by bank id, then system id.
    """

    def __init__(self, config: ReconConfig):
        """
        Initialize the matching engine.

        Args:
            config: Application configuration
        """
        self.config = config
        self.settings = config.matching
        self.rules = self._build_rules()

    def _build_rules(self) -> list[MatchingRule]:
        """Build scoring rules from the matching settings."""
        settings = self.settings
        weights = settings.weights
        return [
            AmountRule(weight=weights.amount, tolerance=Decimal(str(settings.amount_tolerance))),
            DateRule(weight=weights.date, tolerance_days=settings.date_tolerance_days),
            TypeRule(weight=weights.type),
            DescriptionRule(
                weight=weights.description,
                similarity_threshold=settings.description_similarity_threshold,
                min_word_length=settings.min_word_length,
            ),
        ]

    def score_breakdown(
        self,
        bank_txn: MatchableTransaction,
        system_txn: MatchableTransaction,
    ) -> dict[str, float]:
        """Contribution of each rule for a pair."""
        return {rule.name: rule.evaluate(bank_txn, system_txn) for rule in self.rules}

    def score(
        self,
        bank_txn: MatchableTransaction,
        system_txn: MatchableTransaction,
    ) -> float:
        """Overall match score for a pair, between 0.0 and 1.0."""
        return sum(self.score_breakdown(bank_txn, system_txn).values())

    def find_candidates(
        self,
        bank_txns: Sequence[MatchableTransaction],
        system_txns: Sequence[MatchableTransaction],
    ) -> list[MatchResult]:
        """
        Score the full cross-product and keep pairs above the minimum score.

        Args:
            bank_txns: Unmatched bank transactions
            system_txns: Unmatched system transactions

        Returns:
            Candidates sorted by descending score, ties by (bank id, system id)
        """
        candidates: list[MatchResult] = []

        for bank_txn in bank_txns:
            for system_txn in system_txns:
                breakdown = self.score_breakdown(bank_txn, system_txn)
                score = sum(breakdown.values())
                if score <= self.settings.min_match_score:
                    continue

                candidates.append(self._build_result(bank_txn, system_txn, score, breakdown))

        candidates.sort(
            key=lambda c: (-c.score, str(c.bank_transaction.id), str(c.system_transaction.id))
        )
        return candidates

    def auto_match(
        self,
        bank_txns: Sequence[MatchableTransaction],
        system_txns: Sequence[MatchableTransaction],
    ) -> list[MatchResult]:
        """
        Select a 1:1 set of pairs from the candidates.

        The caller passes only currently unmatched transactions, so running
        again after a match pass is a no-op for what was already matched.

        Args:
            bank_txns: Unmatched bank transactions
            system_txns: Unmatched system transactions

        Returns:
            Accepted pairs in acceptance order
        """
        start_time = datetime.now()
        logger.info(
            f"Starting auto-match: {len(bank_txns)} bank txns, "
            f"{len(system_txns)} system txns"
        )

        candidates = self.find_candidates(bank_txns, system_txns)

        claimed_bank: set[str] = set()
        claimed_system: set[str] = set()
        accepted: list[MatchResult] = []

        for candidate in candidates:
            bank_id = str(candidate.bank_transaction.id)
            system_id = str(candidate.system_transaction.id)
            if bank_id in claimed_bank or system_id in claimed_system:
                continue

            claimed_bank.add(bank_id)
            claimed_system.add(system_id)
            accepted.append(candidate)
            logger.debug(f"Accepted {bank_id} <-> {system_id} ({candidate.reason})")

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Auto-match complete in {elapsed:.2f}s: {len(candidates)} candidates, "
            f"{len(accepted)} accepted"
        )

        return accepted

    def _build_result(
        self,
        bank_txn: MatchableTransaction,
        system_txn: MatchableTransaction,
        score: float,
        breakdown: dict[str, float],
    ) -> MatchResult:
        amount_variance = None
        if bank_txn.amount != system_txn.amount:
            amount_variance = Decimal(bank_txn.amount) - Decimal(system_txn.amount)

        date_variance = None
        if bank_txn.transaction_date != system_txn.transaction_date:
            date_variance = abs((bank_txn.transaction_date - system_txn.transaction_date).days)

        reason = ", ".join(f"{name} {value:.2f}" for name, value in breakdown.items())

        return MatchResult(
            bank_transaction=bank_txn,
            system_transaction=system_txn,
            score=score,
            reason=f"Score {score:.2f} ({reason})",
            amount_variance=amount_variance,
            date_variance_days=date_variance,
        )
