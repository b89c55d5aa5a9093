"""Draft validator: builds the field -> message error map.

Keys are the camelCase wire names of the offending draft fields, so a
client can highlight exactly those inputs. An empty map means the draft can
be committed.
"""

import re
from decimal import Decimal
from typing import Dict, Optional

from policy_intake.schemas.draft import PolicyDraft
from policy_intake.services.intake.normalizer import parse_date

REQUIRED = "required"
INVALID_DATE = "invalid date"
DATE_ORDER = "must be after start date"
NEGATIVE = "must be non-negative"
INVALID_FORMAT = "invalid format"

ERROR_KEYS = frozenset({"policyNumber", "startDate", "endDate", "premium", "holderAfm"})

_AFM_PATTERN = re.compile(r"^\d{9}$")


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def is_valid_afm(value: str) -> bool:
    """A Greek tax id is exactly 9 digits once whitespace is removed."""
    return bool(_AFM_PATTERN.match(re.sub(r"\s+", "", value)))


def validate_draft(draft: PolicyDraft) -> Dict[str, str]:
    """Validate a draft.

    Total: never raises, whatever the draft holds.

    Args:
        draft: Draft to check

    Returns:
        Error map keyed by camelCase field name; empty when valid
    """
    errors: Dict[str, str] = {}

    if _blank(draft.policy_number):
        errors["policyNumber"] = REQUIRED

    start = end = None
    for key, value in (("startDate", draft.start_date), ("endDate", draft.end_date)):
        if _blank(value):
            errors[key] = REQUIRED
            continue
        parsed = parse_date(value)
        if parsed is None:
            errors[key] = INVALID_DATE
        elif key == "startDate":
            start = parsed
        else:
            end = parsed

    if start is not None and end is not None and start >= end:
        errors["endDate"] = DATE_ORDER

    if draft.premium is None:
        errors["premium"] = REQUIRED
    elif draft.premium < Decimal(0):
        errors["premium"] = NEGATIVE

    if not _blank(draft.holder_afm) and not is_valid_afm(draft.holder_afm):
        errors["holderAfm"] = INVALID_FORMAT

    return errors
