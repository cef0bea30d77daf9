"""
Split validation.

Rules are collected, not short-circuited, so the caller can show every
problem at once:
- share must be non-negative
- no single share may exceed the transaction amount
- percentage splits: each percentage in [0, 100], sum <= 100
- equal and custom splits: shares sum exactly to the amount
- no duplicate participants

Only a missing participant list or a negative total raise; everything else
comes back as a ValidationResult.
"""

import logging
from decimal import Decimal
from typing import List, Sequence, Union

from settleup.core.errors import InvariantViolation
from settleup.models.money import Money, max_minor_units
from settleup.models.split import Participant, SplitType, ValidationResult

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)
OUT_OF_RANGE = "amount exceeds the maximum allowed value"


def validate_split(
    total: Money,
    split_type: Union[SplitType, str],
    participants: Sequence[Participant],
) -> ValidationResult:
    if not participants:
        raise InvariantViolation("At least one participant is required")
    if total.is_negative():
        raise InvariantViolation(f"Transaction amount must be non-negative, got {total}")

    split_type = SplitType(split_type)
    errors: List[str] = []

    user_ids = [p.user_id for p in participants]
    if len(user_ids) != len(set(user_ids)):
        errors.append("Duplicate participants are not allowed")

    for index, p in enumerate(participants, start=1):
        errors.extend(_participant_errors(index, p, total, split_type))

    if split_type == SplitType.PERCENTAGE:
        total_percentage = sum((p.percentage or Decimal(0) for p in participants), Decimal(0))
        if total_percentage > HUNDRED:
            errors.append(
                f"percentages must sum to 100% or less (got {total_percentage:.2f}%)"
            )
    else:
        # Raw ints so an oversized sum is reported instead of raised
        total_shares = sum(p.share.minor for p in participants)
        if abs(total_shares) > max_minor_units():
            errors.append(OUT_OF_RANGE)
        elif total_shares != total.minor:
            errors.append(
                "shares must sum to transaction amount "
                f"(got {Money.of_minor(total_shares, total.currency).to_decimal_string()}, "
                f"expected {total.to_decimal_string()})"
            )

    if errors:
        logger.info("Rejected %s split of %s: %s", split_type.value, total, "; ".join(errors))
    return ValidationResult.from_errors(errors)


def _participant_errors(
    index: int, participant: Participant, total: Money, split_type: SplitType
) -> List[str]:
    errors = []
    share = participant.share

    if share.currency != total.currency:
        errors.append(
            f"Participant {index}: share currency {share.currency} does not match {total.currency}"
        )
        return errors

    if share.is_negative():
        errors.append(f"Participant {index}: share must be a non-negative number")

    if share.minor > total.minor:
        errors.append(
            f"Participant {index}: share ({share.to_decimal_string()}) "
            f"cannot exceed transaction amount ({total.to_decimal_string()})"
        )

    if split_type == SplitType.PERCENTAGE:
        percentage = participant.percentage
        if percentage is None:
            errors.append(f"Participant {index}: percentage is required for percentage splits")
        elif percentage < 0:
            errors.append(f"Participant {index}: percentage cannot be negative")
        elif percentage > HUNDRED:
            errors.append(f"Participant {index}: percentage cannot exceed 100%")

    return errors
