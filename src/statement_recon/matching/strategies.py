"""
Scoring rules for bank-to-system transaction matching.
Each rule contributes one weighted term of the overall match score.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from ..models.transaction import MatchableTransaction


class MatchingRule(ABC):
    """Abstract base class for weighted scoring rules."""

    name: str = "rule"

    def __init__(self, weight: float):
        """
        Initialize with the rule's weight.

        Args:
            weight: Maximum contribution of this rule to the score
        """
        self.weight = weight

    @abstractmethod
    def evaluate(
        self,
        bank_txn: MatchableTransaction,
        system_txn: MatchableTransaction,
    ) -> float:
        """
        Calculate this rule's contribution for a pair.

        Args:
            bank_txn: Transaction from the bank statement
            system_txn: Transaction from the books

        Returns:
            Contribution between 0.0 and ``weight``
        """
        pass


class AmountRule(MatchingRule):
    """Linear credit for amounts within an absolute tolerance."""

    name = "amount"

    def __init__(self, weight: float = 0.4, tolerance: Decimal = Decimal("2")):
        super().__init__(weight)
        self.tolerance = Decimal(str(tolerance))

    def evaluate(self, bank_txn, system_txn) -> float:
        amount_diff = abs(Decimal(bank_txn.amount) - Decimal(system_txn.amount))
        if amount_diff > self.tolerance:
            return 0.0
        if self.tolerance == 0:
            return self.weight
        return float(1 - amount_diff / self.tolerance) * self.weight


class DateRule(MatchingRule):
    """Linear credit for dates within a tolerance in days."""

    name = "date"

    def __init__(self, weight: float = 0.3, tolerance_days: int = 2):
        super().__init__(weight)
        self.tolerance_days = tolerance_days

    def evaluate(self, bank_txn, system_txn) -> float:
        date_diff = abs((bank_txn.transaction_date - system_txn.transaction_date).days)
        if date_diff > self.tolerance_days:
            return 0.0
        if self.tolerance_days == 0:
            return self.weight
        return (1 - date_diff / self.tolerance_days) * self.weight


class TypeRule(MatchingRule):
    """Full credit when both sides move money in the same direction."""

    name = "type"

    def __init__(self, weight: float = 0.1):
        super().__init__(weight)

    def evaluate(self, bank_txn, system_txn) -> float:
        return self.weight if bank_txn.type == system_txn.type else 0.0


class DescriptionRule(MatchingRule):
    """
    Word-set similarity of descriptions.

    Only words of at least ``min_word_length`` characters count, and the
    term contributes nothing unless the similarity clears the threshold.
    """

    name = "description"

    def __init__(
        self,
        weight: float = 0.2,
        similarity_threshold: float = 0.6,
        min_word_length: int = 3,
    ):
        super().__init__(weight)
        self.similarity_threshold = similarity_threshold
        self.min_word_length = min_word_length

    def evaluate(self, bank_txn, system_txn) -> float:
        similarity = self.similarity(bank_txn.description, system_txn.description)
        if similarity > self.similarity_threshold:
            return similarity * self.weight
        return 0.0

    def similarity(self, text1: str, text2: str) -> float:
        """Jaccard similarity of the two descriptions' word sets."""
        words1 = self._words(text1)
        words2 = self._words(text2)

        if not words1 and not words2:
            return 1.0
        if not words1 or not words2:
            return 0.0

        return len(words1 & words2) / len(words1 | words2)

    def _words(self, text: str) -> set[str]:
        return {w for w in (text or "").lower().split() if len(w) >= self.min_word_length}
