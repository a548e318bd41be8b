"""Tests for the exception hierarchy."""

import pytest

from arcfx.exceptions import (
    ArcfxError,
    AuthenticationError,
    DeliveryTransientFailure,
    NotFoundError,
    StorageError,
    ValidationError,
)


@pytest.mark.parametrize(
    "exc",
    [
        ValidationError("endpoint", "bad url"),
        NotFoundError("webhook", "whk_1"),
        StorageError("store down"),
        DeliveryTransientFailure("HTTP 500", status_code=500),
        AuthenticationError("nope"),
    ],
)
def test_all_inherit_from_base(exc):
    assert isinstance(exc, ArcfxError)


class TestToDict:
    def test_base_error(self):
        assert ArcfxError("boom").to_dict() == {
            "error": {"code": "arcfx_error", "message": "boom"}
        }

    def test_validation_error(self):
        exc = ValidationError("event_types", "unknown event type")
        assert exc.field == "event_types"
        assert exc.to_dict() == {
            "error": {
                "code": "validation_error",
                "field": "event_types",
                "message": "event_types: unknown event type",
            }
        }

    def test_not_found_error(self):
        exc = NotFoundError("webhook", "whk_1")
        assert exc.to_dict()["error"] == {
            "code": "not_found",
            "resource_type": "webhook",
            "resource_id": "whk_1",
            "message": "webhook not found: whk_1",
        }

    def test_storage_error_code(self):
        assert StorageError("down").to_dict()["error"]["code"] == "storage_error"


class TestDeliveryTransientFailure:
    def test_carries_status_code(self):
        exc = DeliveryTransientFailure("HTTP 503", status_code=503)
        assert exc.status_code == 503
        assert exc.message == "HTTP 503"
        assert exc.code == "delivery_failed"

    def test_status_code_optional(self):
        assert DeliveryTransientFailure("timeout").status_code is None


@pytest.mark.parametrize(
    ("exc", "status"),
    [
        (ValidationError("status", "not allowed"), 400),
        (AuthenticationError("expired"), 401),
        (NotFoundError("webhook", "whk_1"), 404),
        (StorageError("down"), 500),
        (ArcfxError("boom"), 500),
    ],
)
def test_http_status(exc, status):
    assert exc.http_status == status


def test_delivery_failure_details():
    assert DeliveryTransientFailure("HTTP 500", status_code=500).to_dict()["error"] == {
        "code": "delivery_failed",
        "status_code": 500,
        "message": "HTTP 500",
    }
    assert DeliveryTransientFailure("timeout").details() == {}
