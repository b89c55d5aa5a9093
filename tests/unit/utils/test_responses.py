from decimal import Decimal
from unittest.mock import Mock

from policy_intake.schemas.draft import PolicyDraft
from policy_intake.utils.responses import create_api_response, create_error_detail


def _request(path="/api/v1/intake/commit", correlation_id="corr-1"):
    request = Mock()
    request.state.correlation_id = correlation_id
    request.url.path = path
    return request


def test_models_are_dumped_with_camel_case_keys():
    response = create_api_response(PolicyDraft(policy_number="P-1", premium=Decimal("10.5")), request=_request())

    assert response["status"] is True
    assert response["data"]["policyNumber"] == "P-1"
    assert response["data"]["premium"] == "10.5"
    assert response["meta"]["request_id"] == "corr-1"


def test_non_dict_payloads_are_wrapped():
    assert create_api_response([1, 2])["data"] == {"items": [1, 2]}
    assert create_api_response(None)["data"] == {}
    assert create_api_response(3)["data"] == {"value": 3}


def test_error_detail_carries_field_errors():
    detail = create_error_detail(
        title="Draft Validation Failed",
        status=422,
        detail="Draft has 1 validation error(s)",
        request=_request(),
        errors={"premium": "required"},
    )

    assert detail.instance == "/api/v1/intake/commit"
    assert detail.request_id == "corr-1"
    assert detail.errors == {"premium": "required"}
