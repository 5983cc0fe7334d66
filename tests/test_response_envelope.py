from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.errors import AppException, ErrorCode
from core.response_envelope import (
    apply_response_documentation,
    document_response,
    error_payload,
    http_exception_response,
    success_payload,
)


def test_success_payload_includes_request_id():
    payload = success_payload(data={"value": 1}, message="ok", request_id="req-123")

    assert payload["success"] is True
    assert payload["data"] == {"value": 1}
    assert payload["requestId"] == "req-123"


def test_success_payload_omits_missing_request_id():
    payload = success_payload(data=None)

    assert "requestId" not in payload
    assert payload["message"] == "Success"


def test_error_payload_includes_request_id():
    payload = error_payload(
        message="failed",
        data={"code": "X"},
        request_id="req-999",
    )
    assert payload["success"] is False
    assert payload["data"]["code"] == "X"
    assert payload["requestId"] == "req-999"


def test_app_exception_is_rendered_in_error_envelope():
    exc = AppException(
        status_code=400,
        code=ErrorCode.INSUFFICIENT_BALANCE,
        message="Insufficient balance",
        details={"providerCode": "NOT_ENOUGH_FUNDS"},
    )

    response = http_exception_response(exc)

    assert response.status_code == 400
    assert b'"code":"INSUFFICIENT_BALANCE"' in response.body
    assert b'"message":"Insufficient balance"' in response.body


def test_document_response_wraps_result_and_sets_status_code():
    app = FastAPI()

    @app.post("/things")
    @document_response(message="Thing created", status_code=202, response_codes={400: "Bad thing"})
    async def create_thing():
        return {"id": "thing-1"}

    apply_response_documentation(app)
    client = TestClient(app)

    response = client.post("/things")

    assert response.status_code == 202
    assert response.json() == {"success": True, "message": "Thing created", "data": {"id": "thing-1"}}
    operation = app.openapi()["paths"]["/things"]["post"]
    assert "202" in operation["responses"]
    assert operation["responses"]["400"]["description"] == "Bad thing"
