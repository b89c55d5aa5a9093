"""Field normalizer: maps a Candidate Extraction Record onto the flat Policy
Draft.

Every function here is total. Malformed values become "unset" (``None``),
never zero, so the validator can tell a missing premium from a free one.
Applying :func:`normalize` to the candidate reshaped from its own output
(:func:`draft_to_candidate`) yields the same draft.
"""

import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from policy_intake.schemas.draft import (
    BeneficiaryInput,
    ChildEntities,
    CoverageInput,
    DriverInput,
    PolicyDraft,
    PropertyDetails,
    VehicleDetails,
)
from policy_intake.schemas.extraction import CandidateExtractionRecord
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y")
# Money and percentage columns are stored with two decimal places
CENTS = Decimal("0.01")

_NULL_TOKENS = {"null", "none", "n/a", "-"}
_CURRENCY_PATTERN = re.compile(r"[€$£]|\b(?:EUR|USD|GBP|euro?s?)\b", re.IGNORECASE)
_THOUSANDS_DOT = re.compile(r"^-?[1-9]\d{0,2}(\.\d{3})+$")
_THOUSANDS_COMMA = re.compile(r"^-?[1-9]\d{0,2}(,\d{3})+$")
_FREQUENCY_ALIASES = {
    "yearly": "annual",
    "annually": "annual",
    "year": "annual",
    "month": "monthly",
    "quarter": "quarterly",
    "semi-annual": "semiannual",
    "semi_annual": "semiannual",
    "semiannually": "semiannual",
    "half-yearly": "semiannual",
}


# ---------------------------------------------------------------------------
# Scalar coercion
# ---------------------------------------------------------------------------

def clean_text(value: Any) -> Optional[str]:
    """Strip text; empty, whitespace-only and placeholder values become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        value = int(value) if value.is_integer() else value
    text = str(value).strip()
    if not text or text.lower() in _NULL_TOKENS:
        return None
    return text


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a numeric-looking value to Decimal.

    Handles currency symbols, spaces, thousands separators and a decimal
    comma. Anything unparseable is None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else None

    text = clean_text(value)
    if text is None:
        return None
    text = _CURRENCY_PATTERN.sub("", text)
    text = re.sub(r"\s+", "", text)
    if not text:
        return None

    if "," in text and "." in text:
        # Whichever separator comes last is the decimal point
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", "") if _THOUSANDS_COMMA.match(text) else text.replace(",", ".")
    elif _THOUSANDS_DOT.match(text):
        text = text.replace(".", "")

    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def money(value: Any) -> Optional[Decimal]:
    """Decimal rounded half-up to cents when it carries more precision."""
    number = to_decimal(value)
    if number is None or number.as_tuple().exponent >= -2:
        return number
    return number.quantize(CENTS, rounding=ROUND_HALF_UP)


def non_negative_decimal(value: Any) -> Optional[Decimal]:
    number = to_decimal(value)
    if number is None or number < 0:
        return None
    return number


def non_negative_money(value: Any) -> Optional[Decimal]:
    number = money(value)
    if number is None or number < 0:
        return None
    return number


def to_int(value: Any) -> Optional[int]:
    number = to_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def parse_date(value: Any) -> Optional[date]:
    """Parse a date in any accepted format, or None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = clean_text(value)
    if text is None:
        return None
    if len(text) > 10 and text[10] in "T ":
        text = text[:10]
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(value: Any) -> Optional[str]:
    """ISO ``YYYY-MM-DD`` when parseable; otherwise the text verbatim so the
    validator can flag it."""
    parsed = parse_date(value)
    if parsed is not None:
        return parsed.isoformat()
    return clean_text(value)


def compact_text(value: Any) -> Optional[str]:
    """Text with all whitespace removed, for identifiers such as tax ids."""
    text = clean_text(value)
    return re.sub(r"\s+", "", text) if text else None


def lower_text(value: Any) -> Optional[str]:
    text = clean_text(value)
    return text.lower() if text else None


def premium_frequency(value: Any) -> Optional[str]:
    text = lower_text(value)
    if text is None:
        return None
    return _FREQUENCY_ALIASES.get(text, text)


def string_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = [value]
    return [text for text in (clean_text(item) for item in value) if text]


Coercer = Callable[[Any], Any]

# Draft field -> coercer
DRAFT_FIELDS: Dict[str, Coercer] = {
    "insurer_id": clean_text,
    "insurer_name": clean_text,
    "policy_type": lower_text,
    "policy_number": clean_text,
    "policy_name": clean_text,
    "start_date": normalize_date,
    "end_date": normalize_date,
    # A negative premium is kept so the validator can report it
    "premium": money,
    "premium_frequency": premium_frequency,
    "coverage_amount": non_negative_money,
    "deductible": non_negative_money,
    "holder_name": clean_text,
    "holder_afm": compact_text,
    "holder_address": clean_text,
    "holder_phone": clean_text,
    "holder_email": clean_text,
    "notes": clean_text,
}

# Draft field -> (candidate group key, coercer)
VEHICLE_FIELDS: Dict[str, tuple] = {
    "vehicle_type": ("type", lower_text),
    "make": ("make", clean_text),
    "model": ("model", clean_text),
    "year": ("year", to_int),
    "license_plate": ("plate", clean_text),
    "vin": ("vin", clean_text),
    "engine_size": ("engine_size", clean_text),
    "fuel_type": ("fuel_type", clean_text),
    "color": ("color", clean_text),
    "market_value": ("market_value", non_negative_decimal),
    "primary_use": ("primary_use", clean_text),
}

PROPERTY_FIELDS: Dict[str, tuple] = {
    "property_type": ("type", lower_text),
    "address": ("address", clean_text),
    "city": ("city", clean_text),
    "postal_code": ("postal_code", clean_text),
    "region": ("region", clean_text),
    "country": ("country", clean_text),
    "square_meters": ("sqm", non_negative_decimal),
    "year_built": ("year_built", to_int),
    "construction_type": ("construction_type", clean_text),
    "building_value": ("building_value", non_negative_decimal),
    "contents_value": ("contents_value", non_negative_decimal),
}

COVERAGE_FIELDS: Dict[str, tuple] = {
    "coverage_type": ("type", clean_text),
    "coverage_name": ("name", clean_text),
    "description": ("description", clean_text),
    "limit_amount": ("limit", money),
    "limit_type": ("limit_type", lower_text),
    "deductible": ("deductible", money),
    "co_pay_percent": ("co_pay_percent", money),
    "waiting_period": ("waiting_period", to_int),
    "exclusions": ("exclusions", string_list),
    "conditions": ("conditions", string_list),
}

BENEFICIARY_FIELDS: Dict[str, tuple] = {
    "full_name": ("name", clean_text),
    "relationship": ("relationship", lower_text),
    "beneficiary_type": ("type", lower_text),
    "date_of_birth": ("date_of_birth", normalize_date),
    "afm": ("afm", compact_text),
    "id_number": ("id_number", clean_text),
    "percentage": ("percentage", money),
    "address": ("address", clean_text),
    "phone": ("phone", clean_text),
    "email": ("email", clean_text),
}

DRIVER_FIELDS: Dict[str, tuple] = {
    "full_name": ("name", clean_text),
    "driver_type": ("type", lower_text),
    "date_of_birth": ("date_of_birth", normalize_date),
    "afm": ("afm", compact_text),
    "license_number": ("license_number", clean_text),
    "license_issue_date": ("license_issue_date", normalize_date),
    "license_expiry_date": ("license_expiry_date", normalize_date),
    "license_categories": ("license_categories", string_list),
    "years_licensed": ("years_licensed", to_int),
    "address": ("address", clean_text),
    "phone": ("phone", clean_text),
    "email": ("email", clean_text),
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _is_empty(value: Any) -> bool:
    return value is None or value == [] or value == {}


def _as_dict(value: Any) -> Dict[str, Any]:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def _resolve_key(key: str, fields: Mapping[str, Any]) -> Optional[str]:
    """Map a snake_case or camelCase key onto a known field name."""
    if key in fields:
        return key
    for name in fields:
        if to_camel(name) == key:
            return name
    return None


def _from_group(group: Any, spec: Dict[str, tuple]) -> Dict[str, Any]:
    """Read a candidate group through a field table, dropping empty values."""
    raw = _as_dict(group)
    values = {}
    for field, (source, coerce) in spec.items():
        value = coerce(raw.get(source))
        if not _is_empty(value):
            values[field] = value
    return values


def _coerce_fields(raw: Mapping[str, Any], spec: Dict[str, tuple]) -> Dict[str, Any]:
    """Coerce a mapping keyed by draft field names (snake or camel case)."""
    values = {}
    for key, value in raw.items():
        name = _resolve_key(key, spec)
        if name is None:
            continue
        coerced = spec[name][1](value)
        if not _is_empty(coerced):
            values[name] = coerced
    return values


def _block(model: Type[BaseModel], values: Dict[str, Any]) -> Optional[BaseModel]:
    return model(**values) if values else None


def _merge_block(
    model: Type[BaseModel], base: Any, top: Dict[str, Any]
) -> Optional[BaseModel]:
    merged = {k: v for k, v in _as_dict(base).items() if not _is_empty(v)}
    merged.update(top)
    return _block(model, merged)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize(
    record: CandidateExtractionRecord,
    defaults: Optional[PolicyDraft] = None,
) -> PolicyDraft:
    """Flatten a Candidate Extraction Record into a Policy Draft.

    Extracted values win over ``defaults`` (hints or values already typed
    into a form); empty extracted values never overwrite a default.

    Args:
        record: Raw extraction output
        defaults: Caller-supplied values used where extraction is silent

    Returns:
        The normalized draft
    """
    policy = _as_dict(record.policy)
    insurer = _as_dict(record.insurer)
    holder = _as_dict(record.policyholder)

    extracted_raw = {
        "insurer_id": insurer.get("id"),
        "insurer_name": insurer.get("name"),
        "policy_type": policy.get("type"),
        "policy_number": policy.get("number"),
        "policy_name": policy.get("name"),
        "start_date": policy.get("start_date"),
        "end_date": policy.get("end_date"),
        "premium": policy.get("premium"),
        "premium_frequency": policy.get("premium_frequency"),
        "coverage_amount": policy.get("coverage_amount"),
        "deductible": policy.get("deductible"),
        "holder_name": holder.get("name"),
        "holder_afm": holder.get("afm"),
        "holder_address": holder.get("address"),
        "holder_phone": holder.get("phone"),
        "holder_email": holder.get("email"),
    }

    values: Dict[str, Any] = {}
    if defaults is not None:
        values.update(
            {k: v for k, v in defaults.flat_fields().items() if not _is_empty(v)}
        )
    for field, value in extracted_raw.items():
        coerced = DRAFT_FIELDS[field](value)
        if coerced is not None:
            values[field] = coerced

    base_vehicle = defaults.vehicle if defaults is not None else None
    base_property = defaults.property if defaults is not None else None
    values["vehicle"] = _merge_block(VehicleDetails, base_vehicle, _from_group(record.vehicle, VEHICLE_FIELDS))
    values["property"] = _merge_block(PropertyDetails, base_property, _from_group(record.property, PROPERTY_FIELDS))

    return PolicyDraft(**values)


def normalize_children(record: CandidateExtractionRecord) -> ChildEntities:
    """Map the child groups of a candidate record onto child entities.

    Entirely empty items are dropped; incomplete ones are kept so the
    orchestrator can report them.
    """
    coverages = [CoverageInput(**v) for v in (_from_group(g, COVERAGE_FIELDS) for g in record.coverages) if v]
    beneficiaries = [
        BeneficiaryInput(**v) for v in (_from_group(g, BENEFICIARY_FIELDS) for g in record.beneficiaries) if v
    ]
    drivers = [DriverInput(**v) for v in (_from_group(g, DRIVER_FIELDS) for g in record.drivers) if v]

    return ChildEntities(
        coverages=coverages,
        beneficiaries=beneficiaries,
        drivers=drivers,
        vehicle=_block(VehicleDetails, _from_group(record.vehicle, VEHICLE_FIELDS)),
        property=_block(PropertyDetails, _from_group(record.property, PROPERTY_FIELDS)),
    )


def draft_to_candidate(draft: PolicyDraft) -> CandidateExtractionRecord:
    """Reshape a draft into the candidate record it would normalize from."""
    data = {
        "policy": {
            "number": draft.policy_number,
            "name": draft.policy_name,
            "type": draft.policy_type,
            "start_date": draft.start_date,
            "end_date": draft.end_date,
            "premium": draft.premium,
            "premium_frequency": draft.premium_frequency,
            "coverage_amount": draft.coverage_amount,
            "deductible": draft.deductible,
        },
        "insurer": {"id": draft.insurer_id, "name": draft.insurer_name},
        "policyholder": {
            "name": draft.holder_name,
            "afm": draft.holder_afm,
            "address": draft.holder_address,
            "phone": draft.holder_phone,
            "email": draft.holder_email,
        },
    }
    if draft.vehicle is not None:
        vehicle = draft.vehicle.model_dump()
        data["vehicle"] = {source: vehicle[field] for field, (source, _) in VEHICLE_FIELDS.items()}
    if draft.property is not None:
        prop = draft.property.model_dump()
        data["property"] = {source: prop[field] for field, (source, _) in PROPERTY_FIELDS.items()}
    return CandidateExtractionRecord.model_validate(data)


def coerce_draft_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerce a flat mapping keyed by draft field names (snake or camel case).

    Unknown keys are ignored. Empty values are returned as ``None`` so the
    caller can decide whether they clear or are skipped.
    """
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in ("vehicle", "property"):
            values[key] = value
            continue
        name = _resolve_key(key, DRAFT_FIELDS)
        if name is None:
            LOGGER.debug(f"Ignoring unknown draft field '{key}'")
            continue
        values[name] = DRAFT_FIELDS[name](value)
    return values


def merge_partial(draft: PolicyDraft, partial: Any) -> PolicyDraft:
    """Merge a partial draft into ``draft``; empty partial values are ignored.

    Args:
        draft: Current draft
        partial: PolicyDraft or mapping with snake/camel case keys

    Returns:
        New draft; ``draft`` is not modified
    """
    raw = _as_dict(partial)
    if isinstance(partial, BaseModel):
        raw = {k: v for k, v in raw.items() if not _is_empty(v)}

    values = draft.model_dump()
    values["vehicle"] = draft.vehicle
    values["property"] = draft.property
    for name, value in coerce_draft_fields(raw).items():
        if name == "vehicle":
            values["vehicle"] = _merge_block(VehicleDetails, draft.vehicle, _coerce_fields(_as_dict(value), VEHICLE_FIELDS))
        elif name == "property":
            values["property"] = _merge_block(PropertyDetails, draft.property, _coerce_fields(_as_dict(value), PROPERTY_FIELDS))
        elif value is not None:
            values[name] = value
    return PolicyDraft(**values)


def apply_edits(draft: PolicyDraft, edits: Mapping[str, Any]) -> PolicyDraft:
    """Apply user edits to a draft.

    Unlike :func:`merge_partial`, an empty edit clears the field. Nested
    fields may be addressed as ``vehicle.make`` / ``property.city``.

    Returns:
        New draft; ``draft`` is not modified
    """
    values = draft.model_dump()
    vehicle_edits: Dict[str, Any] = {}
    property_edits: Dict[str, Any] = {}
    flat_edits: Dict[str, Any] = {}

    for key, value in edits.items():
        head, _, tail = key.partition(".")
        if head in ("vehicle", "property") and tail:
            (vehicle_edits if head == "vehicle" else property_edits)[tail] = value
        elif head in ("vehicle", "property"):
            # Whole-block edit replaces the block
            values[head] = None
            if value is not None:
                (vehicle_edits if head == "vehicle" else property_edits).update(_as_dict(value))
        else:
            flat_edits[key] = value

    values.update(coerce_draft_fields(flat_edits))

    for name, model, spec, block_edits in (
        ("vehicle", VehicleDetails, VEHICLE_FIELDS, vehicle_edits),
        ("property", PropertyDetails, PROPERTY_FIELDS, property_edits),
    ):
        current = {k: v for k, v in _as_dict(values.get(name)).items() if not _is_empty(v)}
        for key, value in block_edits.items():
            field = _resolve_key(key, spec)
            if field is None:
                continue
            coerced = spec[field][1](value)
            if _is_empty(coerced):
                current.pop(field, None)
            else:
                current[field] = coerced
        values[name] = _block(model, current)

    return PolicyDraft(**values)


def normalize_draft(draft: PolicyDraft) -> PolicyDraft:
    """Re-run normalization over a draft built outside the extractor."""
    return normalize(draft_to_candidate(draft), defaults=PolicyDraft(notes=draft.notes))


def normalize_child_entities(children: ChildEntities) -> ChildEntities:
    """Re-run the child field coercers over entities built outside the extractor."""

    def items(model: Type[BaseModel], entities: List[BaseModel], spec: Dict[str, tuple]) -> list:
        return [model(**_coerce_fields(_as_dict(entity), spec)) for entity in entities]

    def block(model: Type[BaseModel], entity: Any, spec: Dict[str, tuple]) -> Optional[BaseModel]:
        return _block(model, _coerce_fields(_as_dict(entity), spec))

    return ChildEntities(
        coverages=items(CoverageInput, children.coverages, COVERAGE_FIELDS),
        beneficiaries=items(BeneficiaryInput, children.beneficiaries, BENEFICIARY_FIELDS),
        drivers=items(DriverInput, children.drivers, DRIVER_FIELDS),
        vehicle=block(VehicleDetails, children.vehicle, VEHICLE_FIELDS),
        property=block(PropertyDetails, children.property, PROPERTY_FIELDS),
    )
