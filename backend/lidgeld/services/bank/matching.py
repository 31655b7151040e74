"""
Fee Matching Engine

Suggests what an imported bank transaction belongs to:
- Incoming payments are scored against the open membership fees
- Outgoing payments get an expense category from keywords
- User-defined match rules add a bonus and can force a link
- Possible duplicates of earlier imports are penalised

The outcome is a suggestion only; a fee is marked paid when the user
confirms it.
"""
import logging
import re
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from lidgeld.models.fee import Fee, FeeStatus
from lidgeld.models.member import Member
from lidgeld.models.transaction import (
    BankTransaction,
    MatchStatus,
    TransactionStatus,
)
from lidgeld.repositories import FeeRepository, MemberRepository
from lidgeld.schemas.imports import CanonicalTransaction, MatchResult, MatchRule
from lidgeld.services.logging import structured_logger
from lidgeld.services.money import normalize_iban
from lidgeld.services.period import from_iso

logger = logging.getLogger(__name__)

FEE_CATEGORY = "lidgeld"

# (keywords, category, score, reason); the first entry with a keyword in the description wins
EXPENSE_CATEGORIES: List[Tuple[Tuple[str, ...], str, int, str]] = [
    (("elektriciteit", "stroom"), "utilities", 30, "Geclassificeerd als nutsvoorziening"),
    (("water", "gas"), "utilities", 30, "Geclassificeerd als nutsvoorziening"),
    (("verzekering",), "insurance", 30, "Geclassificeerd als verzekering"),
    (("onderhoud", "reparatie"), "maintenance", 25, "Geclassificeerd als onderhoud"),
]


def to_bank_transaction(
    transaction: CanonicalTransaction,
    transaction_id: str,
    status: TransactionStatus = TransactionStatus.ONTVANGEN,
) -> BankTransaction:
    """Build the matcher's view of a normalized transaction."""
    try:
        booking_date = from_iso(transaction.date)
    except ValueError:
        booking_date = None
    return BankTransaction(
        id=transaction_id,
        amount=Decimal(str(transaction.amount)),
        type=transaction.type,
        booking_date=booking_date,
        description=transaction.description or "",
        counterparty=transaction.counterparty,
        iban=transaction.iban,
        reference=transaction.reference,
        status=status,
    )


def match_status(score: int) -> MatchStatus:
    if score >= FeeMatchingEngine.SUGGESTED_SCORE:
        return MatchStatus.VOORGESTELD
    if score >= FeeMatchingEngine.PARTIAL_SCORE:
        return MatchStatus.GEDEELTELIJK_GEMATCHT
    return MatchStatus.ONTVANGEN


def _contains_token(text: str, token: str) -> bool:
    """``token`` occurs in ``text`` and is not part of a longer word or number."""
    if not token:
        return False
    pattern = rf"(?<![0-9a-z]){re.escape(token.lower())}(?![0-9a-z])"
    return re.search(pattern, text) is not None


class FeeMatchingEngine:
    """
    Matching engine for imported bank transactions.

    Scores are additive; a transaction with a score of 70 or more gets a
    suggested match, 40 or more a partial match.
    """

    # Amount difference for a full / partial amount match
    AMOUNT_TOLERANCE = Decimal("0.50")
    AMOUNT_TOLERANCE_CLOSE = Decimal("2.00")

    # Days a payment may arrive before its period starts
    PAYMENT_WINDOW_BEFORE = 30

    DUPLICATE_DATE_TOLERANCE = 1
    DUPLICATE_PENALTY = 50
    RULE_BONUS = 15

    # A fee needs at least this score to be linked
    MIN_FEE_SCORE = 20

    SUGGESTED_SCORE = 70
    PARTIAL_SCORE = 40

    def __init__(self, fee_repository: FeeRepository, member_repository: MemberRepository):
        self.fees = fee_repository
        self.members = member_repository

    def _open_fees(self) -> List[Fee]:
        fees = self.fees.list(status=FeeStatus.OPEN) + self.fees.list(status=FeeStatus.OVERDUE)
        return sorted(fees, key=lambda fee: (fee.period_start, fee.member_id))

    # ============ Public API ============

    def suggest_matches(
        self,
        transaction: BankTransaction,
        rules: Sequence[MatchRule] = (),
        existing: Sequence[BankTransaction] = (),
    ) -> MatchResult:
        """Suggest a match for a single transaction."""
        return self._suggest(transaction, self._open_fees(), rules, existing)

    def suggest_batch(
        self,
        transactions: Iterable[BankTransaction],
        rules: Sequence[MatchRule] = (),
        existing: Sequence[BankTransaction] = (),
    ) -> List[MatchResult]:
        """
        Suggest matches for several transactions, in order.

        A fee that received a suggested match is not offered to the
        transactions that follow.
        """
        open_fees = self._open_fees()
        claimed: Set[str] = set()
        results: List[MatchResult] = []

        for transaction in transactions:
            candidates = [fee for fee in open_fees if fee.id not in claimed]
            result = self._suggest(transaction, candidates, rules, existing)
            if result.status == MatchStatus.VOORGESTELD and result.matched_fee_id:
                claimed.add(result.matched_fee_id)
            results.append(result)

        structured_logger.transactions_matched(
            total=len(results),
            suggested=sum(1 for r in results if r.status == MatchStatus.VOORGESTELD),
            partial=sum(1 for r in results if r.status == MatchStatus.GEDEELTELIJK_GEMATCHT),
            duplicates=sum(1 for r in results if "Mogelijke duplicaat gedetecteerd" in r.reasons),
        )
        return results

    # ============ Scoring ============

    def _suggest(
        self,
        transaction: BankTransaction,
        fees: List[Fee],
        rules: Sequence[MatchRule],
        existing: Sequence[BankTransaction],
    ) -> MatchResult:
        if transaction.status != TransactionStatus.ONTVANGEN:
            return MatchResult(
                transaction_id=transaction.id,
                match_score=0,
                status=MatchStatus.ONTVANGEN,
                reasons=["Transactie al verwerkt"],
            )

        score = 0
        reasons: List[str] = []
        link: Dict[str, Optional[str]] = {
            "matched_fee_id": None,
            "matched_member_id": None,
            "category_id": None,
            "vendor_id": None,
        }

        if self._is_duplicate(transaction, existing):
            score -= self.DUPLICATE_PENALTY
            reasons.append("Mogelijke duplicaat gedetecteerd")

        if transaction.is_credit:
            fee_match = self._match_fee(transaction, fees)
            if fee_match:
                fee, fee_score, fee_reasons = fee_match
                score += fee_score
                link["matched_fee_id"] = fee.id
                link["matched_member_id"] = fee.member_id
                link["category_id"] = FEE_CATEGORY
                reasons.extend(fee_reasons)
        else:
            expense = self._match_expense_category(transaction)
            if expense:
                category, expense_score, reason = expense
                score += expense_score
                link["category_id"] = category
                reasons.append(reason)

        rule = self._find_rule(transaction, rules)
        if rule:
            score += self.RULE_BONUS
            reasons.append(f"Regel toegepast: {rule.name}")
            for key, value in (
                ("category_id", rule.category_id),
                ("vendor_id", rule.vendor_id),
                ("matched_fee_id", rule.fee_id),
                ("matched_member_id", rule.member_id),
            ):
                if value:
                    link[key] = value
            if rule.fee_id and not rule.member_id:
                linked = self.fees.get(rule.fee_id)
                link["matched_member_id"] = linked.member_id if linked else link["matched_member_id"]

        return MatchResult(
            transaction_id=transaction.id,
            match_score=max(0, min(100, score)),
            status=match_status(score),
            reasons=reasons,
            **link,
        )

    def _is_duplicate(self, transaction: BankTransaction, existing: Sequence[BankTransaction]) -> bool:
        """Same direction and amount, booked within a day or with the same reference."""
        for other in existing:
            if other.id == transaction.id or other.type != transaction.type:
                continue
            if abs(other.amount - transaction.amount) >= Decimal("0.01"):
                continue
            if transaction.booking_date and other.booking_date:
                days = abs((transaction.booking_date - other.booking_date).days)
                if days <= self.DUPLICATE_DATE_TOLERANCE:
                    return True
            if transaction.reference and other.reference == transaction.reference:
                return True
        return False

    def _match_fee(
        self,
        transaction: BankTransaction,
        fees: List[Fee],
    ) -> Optional[Tuple[Fee, int, List[str]]]:
        best: Optional[Tuple[Fee, int, List[str]]] = None
        for fee in fees:
            member = self.members.get(fee.member_id)
            score, reasons = self._score_fee(transaction, fee, member)
            if score >= self.MIN_FEE_SCORE and (best is None or score > best[1]):
                best = (fee, score, reasons)

        if best is None:
            return None
        fee, score, reasons = best
        name = fee.member_name or (member_name(self.members.get(fee.member_id)) or fee.member_id)
        return fee, score, [f"Gematcht met lidgeld voor {name}"] + reasons

    def _score_fee(
        self,
        transaction: BankTransaction,
        fee: Fee,
        member: Optional[Member],
    ) -> Tuple[int, List[str]]:
        score = 0
        reasons: List[str] = []
        text = f"{transaction.description} {transaction.reference or ''}".lower()

        amount_diff = abs(transaction.amount - Decimal(fee.amount))
        if amount_diff <= self.AMOUNT_TOLERANCE:
            score += 40
            reasons.append(f"Bedrag komt overeen (±€{amount_diff:.2f})")
        elif amount_diff <= self.AMOUNT_TOLERANCE_CLOSE:
            score += 20
            reasons.append(f"Bedrag bijna overeen (verschil €{amount_diff:.2f})")

        number = fee.member_number or (member.member_number if member else None)
        if number and _contains_token(text, number):
            score += 25
            reasons.append(f"Lidnummer {number} in mededeling")

        name = fee.member_name or member_name(member)
        name_text = f"{text} {transaction.counterparty or ''}".lower()
        if name and name.lower() in name_text:
            score += 15
            reasons.append(f"Naam {name} in mededeling")

        known_ibans = {normalize_iban(iban) for iban in (fee.iban, member.iban if member else None) if iban}
        if transaction.iban and normalize_iban(transaction.iban) in known_ibans:
            score += 10
            reasons.append("IBAN van het lid")

        window_start = fee.period_start - timedelta(days=self.PAYMENT_WINDOW_BEFORE)
        if transaction.booking_date and window_start <= transaction.booking_date <= fee.period_end:
            score += 10
            reasons.append("Betaald binnen de periode")
        elif _contains_token(text, str(fee.period_start.year)):
            score += 10
            reasons.append(f"Jaartal {fee.period_start.year} in mededeling")

        return score, reasons

    def _match_expense_category(self, transaction: BankTransaction) -> Optional[Tuple[str, int, str]]:
        description = transaction.description.lower()
        for keywords, category, score, reason in EXPENSE_CATEGORIES:
            if any(keyword in description for keyword in keywords):
                return category, score, reason
        return None

    def _find_rule(self, transaction: BankTransaction, rules: Sequence[MatchRule]) -> Optional[MatchRule]:
        """First active rule that holds, highest priority first."""
        ordered = sorted((rule for rule in rules if rule.active), key=lambda rule: -rule.priority)
        for rule in ordered:
            if self._rule_matches(transaction, rule):
                logger.info("Rule %s matched transaction %s", rule.name, transaction.id)
                return rule
        return None

    def _rule_matches(self, transaction: BankTransaction, rule: MatchRule) -> bool:
        """Check if a transaction meets every criterion the rule sets."""
        if not rule.contains and not rule.iban and rule.target_amount is None:
            return False

        if rule.contains:
            description = transaction.description.lower()
            if not any(keyword.lower() in description for keyword in rule.contains if keyword):
                return False

        if rule.iban:
            if not transaction.iban or normalize_iban(rule.iban) not in transaction.iban:
                return False

        if rule.target_amount is not None:
            if abs(transaction.amount - rule.target_amount) > rule.amount_tolerance:
                return False

        return True


def member_name(member: Optional[Member]) -> Optional[str]:
    return member.full_name if member else None
