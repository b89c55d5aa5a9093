"""Tests for the identifier search entry."""

from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy.exc import OperationalError

from policy_intake.core.exceptions import DatabaseError
from policy_intake.services.intake.lookup_service import PolicyLookupService


@pytest.fixture
def directory():
    directory = Mock()
    directory.find = AsyncMock(return_value=None)
    return directory


@pytest.mark.asyncio
async def test_found_policy_is_seeded_with_identifiers(directory):
    directory.find.return_value = {
        "policyName": "Home Plus",
        "policyType": "home",
        "premium": "350,00",
        "startDate": "01/01/2024",
        "policyNumber": "",
        "property": {"address": "Patision 10", "city": "Athens"},
    }

    draft = await PolicyLookupService(directory).search(" interamerican ", "H-55")

    directory.find.assert_awaited_once_with("interamerican", "H-55")
    assert draft.insurer_id == "interamerican"
    assert draft.policy_number == "H-55"
    assert draft.policy_name == "Home Plus"
    assert draft.premium == Decimal("350.00")
    assert draft.start_date == "2024-01-01"
    assert draft.property.city == "Athens"


@pytest.mark.asyncio
async def test_miss_returns_none(directory):
    assert await PolicyLookupService(directory).search("ethniki", "NOPE") is None


@pytest.mark.asyncio
async def test_blank_identifiers_skip_the_lookup(directory):
    assert await PolicyLookupService(directory).search("ethniki", "   ") is None
    directory.find.assert_not_called()


@pytest.mark.asyncio
async def test_storage_error_is_wrapped(directory):
    directory.find.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

    with pytest.raises(DatabaseError):
        await PolicyLookupService(directory).search("ethniki", "POL-1")
