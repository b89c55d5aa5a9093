"""Unit tests for the field normalizer."""

from decimal import Decimal

import pytest

from policy_intake.schemas.draft import BeneficiaryInput, ChildEntities, CoverageInput, PolicyDraft, VehicleDetails
from policy_intake.schemas.extraction import CandidateExtractionRecord
from policy_intake.services.intake.normalizer import (
    apply_edits,
    draft_to_candidate,
    merge_partial,
    normalize,
    normalize_child_entities,
    normalize_children,
    normalize_date,
    normalize_draft,
    to_decimal,
)


@pytest.fixture
def extracted_payload():
    return {
        "policy": {
            "number": " POL-77 ",
            "name": "Home Plus",
            "type": "Home",
            "startDate": "01/03/2024",
            "endDate": "28.02.2025",
            "premium": "€ 1.234,50",
            "premiumFrequency": "Yearly",
            "coverageAmount": "150,000",
            "deductible": -50,
        },
        "insurer": {"id": "interamerican", "name": "Interamerican"},
        "policyholder": {"name": "Nikos K.", "afm": 123456789, "email": "  "},
        "property": {"type": "Apartment", "address": "Patision 10", "city": "Athens", "sqm": "85"},
        "beneficiaries": [
            {"name": "Eleni", "relationship": "Spouse", "percentage": "50"},
            "not an object",
            {},
        ],
        "coverages": [{"type": "fire", "name": "Fire", "limit": "100000", "exclusions": ["war", ""]}],
        "drivers": "none",
        "confidence": {"overall": 91},
    }


def test_flattens_and_coerces(extracted_payload):
    record = CandidateExtractionRecord.model_validate(extracted_payload)

    draft = normalize(record)

    assert draft.policy_number == "POL-77"
    assert draft.policy_type == "home"
    assert draft.start_date == "2024-03-01"
    assert draft.end_date == "2025-02-28"
    assert draft.premium == Decimal("1234.50")
    assert draft.premium_frequency == "annual"
    assert draft.coverage_amount == Decimal("150000")
    assert draft.deductible is None
    assert draft.insurer_id == "interamerican"
    assert draft.holder_afm == "123456789"
    assert draft.holder_email is None
    assert draft.property.address == "Patision 10"
    assert draft.property.square_meters == Decimal("85")
    assert draft.vehicle is None


def test_malformed_shapes_contribute_nothing():
    record = CandidateExtractionRecord.model_validate(
        {"policy": "POL-1", "insurer": ["x"], "policyholder": {"name": {"first": "A"}}, "coverages": {"a": 1}}
    )

    assert normalize(record) == PolicyDraft()


def test_absent_values_are_unset_not_zero():
    record = CandidateExtractionRecord.model_validate({"policy": {"premium": "n/a", "coverageAmount": ""}})

    draft = normalize(record)

    assert draft.premium is None
    assert draft.coverage_amount is None


def test_extracted_values_win_over_defaults_but_empty_ones_do_not():
    record = CandidateExtractionRecord.model_validate(
        {"policy": {"type": "auto", "number": ""}, "insurer": {"id": None}}
    )
    defaults = PolicyDraft(insurer_id="hint-insurer", policy_type="home", policy_number="TYPED-1")

    draft = normalize(record, defaults=defaults)

    assert draft.policy_type == "auto"
    assert draft.insurer_id == "hint-insurer"
    assert draft.policy_number == "TYPED-1"


def test_unparseable_date_is_kept_verbatim():
    record = CandidateExtractionRecord.model_validate({"policy": {"startDate": "early spring"}})
    assert normalize(record).start_date == "early spring"


def test_normalization_is_idempotent(extracted_payload):
    first = normalize(CandidateExtractionRecord.model_validate(extracted_payload))

    second = normalize(draft_to_candidate(first))
    third = normalize(draft_to_candidate(second))

    assert second == first
    assert third == first


def test_idempotent_with_vehicle_and_negative_premium():
    record = CandidateExtractionRecord.model_validate(
        {
            "policy": {"number": "A1", "premium": "-20", "startDate": "2024-01-01T00:00:00Z"},
            "vehicle": {"make": "Toyota", "model": "Yaris", "year": "2019", "plate": "IKA-1234"},
        }
    )
    first = normalize(record)

    assert first.premium == Decimal("-20")
    assert first.vehicle == VehicleDetails(make="Toyota", model="Yaris", year=2019, license_plate="IKA-1234")
    assert normalize(draft_to_candidate(first)) == first


def test_children_are_mapped_and_empty_items_dropped(extracted_payload):
    children = normalize_children(CandidateExtractionRecord.model_validate(extracted_payload))

    assert len(children.beneficiaries) == 1
    assert children.beneficiaries[0].full_name == "Eleni"
    assert children.beneficiaries[0].relationship == "spouse"
    assert children.beneficiaries[0].percentage == Decimal("50")
    assert children.coverages[0].coverage_name == "Fire"
    assert children.coverages[0].limit_amount == Decimal("100000")
    assert children.coverages[0].exclusions == ["war"]
    assert children.drivers == []
    assert children.property.city == "Athens"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1,234.56", Decimal("1234.56")),
        ("1.234,56", Decimal("1234.56")),
        ("12,5", Decimal("12.5")),
        ("€500", Decimal("500")),
        ("500 EUR", Decimal("500")),
        ("1.500.000", Decimal("1500000")),
        (750, Decimal("750")),
        (12.5, Decimal("12.5")),
        ("abc", None),
        ("", None),
        (True, None),
    ],
)
def test_to_decimal(raw, expected):
    assert to_decimal(raw) == expected


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("2024-01-31", "2024-01-31"),
        ("31/01/2024", "2024-01-31"),
        ("31-01-2024", "2024-01-31"),
        ("31.01.2024", "2024-01-31"),
        ("2024-02-30", "2024-02-30"),
        ("  ", None),
    ],
)
def test_normalize_date(raw, expected):
    assert normalize_date(raw) == expected


def test_merge_partial_ignores_empty_values(valid_draft):
    merged = merge_partial(valid_draft, {"policyName": "", "premium": "650", "holderPhone": "2101234567"})

    assert merged.policy_name == valid_draft.policy_name
    assert merged.premium == Decimal("650")
    assert merged.holder_phone == "2101234567"
    assert valid_draft.premium == Decimal("500.00")


def test_apply_edits_clears_and_sets_nested(valid_draft):
    edited = apply_edits(
        valid_draft,
        {"policyName": "", "vehicle.make": "Fiat", "vehicle.year": "2020", "unknownField": "x"},
    )

    assert edited.policy_name is None
    assert edited.vehicle == VehicleDetails(make="Fiat", year=2020)
    assert edited.policy_number == valid_draft.policy_number


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1.234,567", "1234.57"),
        ("12.3456", "12.35"),
        ("510", "510"),
        ("99,5", "99.5"),
    ],
)
def test_premium_is_kept_to_cents(raw, expected):
    draft = normalize(CandidateExtractionRecord.model_validate({"policy": {"premium": raw}}))

    assert str(draft.premium) == expected


def test_normalize_draft_matches_column_shapes(valid_draft):
    draft = valid_draft.model_copy(
        update={
            "holder_afm": "123 456 789",
            "start_date": "2024-01-01T00:00:00Z",
            "premium": Decimal("500.005"),
        }
    )

    normalized = normalize_draft(draft)

    assert normalized.holder_afm == "123456789"
    assert normalized.start_date == "2024-01-01"
    assert normalized.premium == Decimal("500.01")
    assert normalize_draft(valid_draft) == valid_draft


def test_normalize_child_entities_keeps_positions():
    children = ChildEntities(
        coverages=[CoverageInput(coverage_type="fire", coverage_name="Fire", limit_amount=Decimal("1000.999"))],
        beneficiaries=[
            BeneficiaryInput(full_name=" Eleni ", afm="987 654 321", percentage=Decimal("33.335")),
            BeneficiaryInput(),
        ],
    )

    normalized = normalize_child_entities(children)

    assert normalized.coverages[0].limit_amount == Decimal("1001.00")
    assert normalized.beneficiaries[0].full_name == "Eleni"
    assert normalized.beneficiaries[0].afm == "987654321"
    assert normalized.beneficiaries[0].percentage == Decimal("33.34")
    assert normalized.beneficiaries[1] == BeneficiaryInput()
    assert normalized.vehicle is None
