"""Scoring of a single document against a single claim.

Scores combine an amount component, a date component and a keyword
component on a 0-100 scale. Calendar events carry no amounts, so their
date proximity is weighted like an exact amount match.
"""

import math
from typing import Iterable, List, Optional, Tuple

from claimlink.core.config import MatchingSettings, settings
from claimlink.database.models import Claim, MedicalDocument
from claimlink.schemas.documents import DetectedAmount
from claimlink.schemas.enums import MatchReasonType
from claimlink.schemas.matching import (
    AmountMatchDetails,
    DateMatchDetails,
    MatchReason,
    MatchResult,
)
from claimlink.utils.dates import days_between, ensure_utc
from claimlink.utils.logging import get_logger

LOGGER = get_logger(__name__)

LINE_ITEM_EXACT_WEIGHT = 0.5


def compare_amounts(
    document_amount: float,
    document_currency: str,
    claim_amount: float,
    claim_currency: str,
) -> Tuple[float, float]:
    """Absolute and relative difference between two amounts.

    Amounts in different currencies never match (infinite difference). A
    zero claim amount yields a relative difference of 1.
    """
    if document_currency != claim_currency:
        return math.inf, math.inf

    difference = abs(document_amount - claim_amount)
    difference_percent = difference / claim_amount if claim_amount > 0 else 1
    return difference, difference_percent


def find_best_amount_match(
    amounts: Iterable[DetectedAmount],
    claim_amount: float,
    claim_currency: str,
) -> Optional[DetectedAmount]:
    """Detected amount with the smallest relative difference, first wins ties."""
    best_match = None
    best_difference = math.inf
    for amount in amounts:
        _, difference_percent = compare_amounts(
            amount.value, amount.currency, claim_amount, claim_currency
        )
        if difference_percent < best_difference:
            best_difference = difference_percent
            best_match = amount
    return best_match


class MatchScorer:
    """Scores document/claim pairs using configurable thresholds."""

    def __init__(self, thresholds: Optional[MatchingSettings] = None):
        self.thresholds = thresholds or settings.matching

    def calculate_match_score(
        self, document: MedicalDocument, claim: Claim
    ) -> Optional[MatchResult]:
        """Score a document against a claim.

        Returns:
            MatchResult with the contributing reasons, or None when the dates
            are too far apart or the total is below the candidate minimum
        """
        t = self.thresholds
        is_calendar = document.is_calendar
        reasons: List[MatchReason] = []
        total = 0.0

        amount_details = None
        if not is_calendar:
            amount_score, amount_details = self._score_amount(document, claim, reasons)
            total += amount_score

        date_details = None
        document_date = ensure_utc(document.effective_date)
        if document_date is not None:
            date_details = self._nearest_treatment_date(document_date, claim)
            days = date_details.days_difference
            if days > t.max_date_mismatch_days:
                LOGGER.debug(
                    f"Document {document.id} is {days} days from claim {claim.id}, skipping"
                )
                return None
            total += self._score_date(date_details, is_calendar, reasons)
        else:
            penalty = t.date_mismatch_penalty / 2
            total -= penalty
            reasons.append(
                MatchReason(
                    type=MatchReasonType.DATE_PROXIMITY,
                    score=-penalty,
                    description="No date found on document - temporal relevance uncertain",
                )
            )

        total += self._score_keywords(document, claim, reasons)

        if total < t.minimum_candidate_score:
            return None

        return MatchResult(
            document_id=document.id,
            claim_id=claim.id,
            score=max(0.0, min(100.0, total)),
            reasons=reasons,
            amount_match_details=amount_details,
            date_match_details=date_details,
        )

    def _score_amount(
        self, document: MedicalDocument, claim: Claim, reasons: List[MatchReason]
    ) -> Tuple[float, Optional[AmountMatchDetails]]:
        t = self.thresholds
        amounts = document.amounts
        best = find_best_amount_match(amounts, claim.claim_amount, claim.claim_currency)
        if best is None:
            return 0.0, None

        difference, difference_percent = compare_amounts(
            best.value, best.currency, claim.claim_amount, claim.claim_currency
        )
        details = AmountMatchDetails(
            document_amount=best.value,
            document_currency=best.currency,
            claim_amount=claim.claim_amount,
            claim_currency=claim.claim_currency,
            difference=difference,
            difference_percent=difference_percent,
        )

        score = 0.0
        if difference_percent <= t.exact_amount_tolerance:
            score += t.exact_amount_score
            reasons.append(
                MatchReason(
                    type=MatchReasonType.EXACT_AMOUNT,
                    score=t.exact_amount_score,
                    description=(
                        f"Exact amount match: {best.currency} {best.value:.2f} "
                        f"matches claim {claim.claim_currency} {claim.claim_amount:.2f}"
                    ),
                )
            )
        elif difference_percent <= t.approximate_amount_tolerance:
            score += t.approximate_amount_score
            reasons.append(
                MatchReason(
                    type=MatchReasonType.APPROXIMATE_AMOUNT,
                    score=t.approximate_amount_score,
                    description=(
                        f"Approximate amount match: {best.currency} {best.value:.2f} "
                        f"~ claim {claim.claim_currency} {claim.claim_amount:.2f} "
                        f"({difference_percent * 100:.1f}% diff)"
                    ),
                )
            )

        for line_item in claim.line_items:
            line_match = find_best_amount_match(
                amounts, line_item.claim_amount, line_item.claim_currency
            )
            if line_match is None:
                continue
            _, line_percent = compare_amounts(
                line_match.value,
                line_match.currency,
                line_item.claim_amount,
                line_item.claim_currency,
            )
            if line_percent <= t.exact_amount_tolerance:
                line_score = t.exact_amount_score * LINE_ITEM_EXACT_WEIGHT
                score += line_score
                reasons.append(
                    MatchReason(
                        type=MatchReasonType.EXACT_AMOUNT,
                        score=line_score,
                        description=(
                            f"Line item match: {line_match.currency} {line_match.value:.2f} "
                            f'matches "{line_item.treatment_description}"'
                        ),
                    )
                )
                # Only the first exact line item counts
                break

        return score, details

    @staticmethod
    def _nearest_treatment_date(document_date, claim: Claim) -> DateMatchDetails:
        best_date = ensure_utc(claim.treatment_date)
        best_days = days_between(document_date, best_date)
        for line_item in claim.line_items:
            line_date = ensure_utc(line_item.treatment_date)
            line_days = days_between(document_date, line_date)
            if line_days < best_days:
                best_days = line_days
                best_date = line_date
        return DateMatchDetails(
            document_date=document_date,
            claim_date=best_date,
            days_difference=best_days,
        )

    def _score_date(
        self, details: DateMatchDetails, is_calendar: bool, reasons: List[MatchReason]
    ) -> float:
        t = self.thresholds
        days = details.days_difference
        document_day = details.document_date.date().isoformat()
        claim_day = details.claim_date.date().isoformat()

        if days > t.date_mismatch_penalty_threshold:
            reasons.append(
                MatchReason(
                    type=MatchReasonType.DATE_PROXIMITY,
                    score=-t.date_mismatch_penalty,
                    description=(
                        f"Date mismatch penalty: document {document_day} is {days} days "
                        f"from nearest treatment {claim_day}"
                    ),
                )
            )
            return -t.date_mismatch_penalty

        if days > t.date_proximity_days:
            return 0.0

        base = t.exact_amount_score if is_calendar else t.date_proximity_bonus
        if is_calendar and days == 0:
            score = base
        else:
            score = base * (1 - days / t.date_proximity_days)

        if is_calendar:
            relation = "matches" if days == 0 else "near"
            description = (
                f"Calendar event on {document_day} {relation} treatment {claim_day} "
                f"({days} days diff)"
            )
        else:
            description = (
                f"Date proximity: document {document_day} is {days} days from treatment {claim_day}"
            )
        reasons.append(
            MatchReason(type=MatchReasonType.DATE_PROXIMITY, score=score, description=description)
        )
        return score

    def _score_keywords(
        self, document: MedicalDocument, claim: Claim, reasons: List[MatchReason]
    ) -> float:
        t = self.thresholds
        claim_description = " ".join(
            line_item.treatment_description or "" for line_item in claim.line_items
        ).lower()

        searchable = list(document.medical_keywords or [])
        if document.is_calendar:
            searchable.extend([document.calendar_summary, document.calendar_location])

        for keyword in searchable:
            if not keyword or keyword.lower() not in claim_description:
                continue
            if document.is_calendar:
                score = t.provider_match_bonus * 2
                description = f'Calendar event "{document.calendar_summary}" matches treatment description'
            else:
                score = t.provider_match_bonus
                description = f'Keyword match: "{keyword}" found in claim description'
            reasons.append(
                MatchReason(type=MatchReasonType.PROVIDER_MATCH, score=score, description=description)
            )
            return score
        return 0.0
