"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
import asyncio
import json
import logging

from starlette.requests import Request

from classmetrics.core.errors import (
    AuthenticationRequiredError,
    CourseNotFoundError,
    FieldNotPatchableError,
    InvalidPeriodTypeError,
    TermAlreadyCompletedError,
    TermNotFoundError,
    UserNotFoundError,
    unhandled_exception_handler,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_authentication_required(self):
        err = AuthenticationRequiredError()
        assert err.http_status == 401
        assert err.code == "AUTHENTICATION_REQUIRED"
        assert "details" not in err.to_dict()

    def test_user_not_found_without_id(self):
        err = UserNotFoundError()
        assert err.http_status == 404
        assert err.to_dict() == {"code": "USER_NOT_FOUND", "message": "User not found."}

    def test_user_not_found_with_id(self):
        assert UserNotFoundError(7).to_dict()["details"] == {"user_id": 7}

    def test_term_and_course_not_found(self):
        assert TermNotFoundError(3).details == {"term_id": 3}
        assert TermNotFoundError(3).code == "TERM_NOT_FOUND"
        assert CourseNotFoundError(4).details == {"course_id": 4}
        assert CourseNotFoundError(4).http_status == 404

    def test_term_already_completed(self):
        err = TermAlreadyCompletedError(5)
        assert err.http_status == 409
        assert err.code == "TERM_ALREADY_COMPLETED"
        assert "5" in err.message

    def test_invalid_period_type(self):
        err = InvalidPeriodTypeError("hourly")
        assert err.http_status == 500
        assert err.to_dict()["details"]["period_type"] == "hourly"

    def test_field_not_patchable(self):
        err = FieldNotPatchableError(["predicted_term_gpa"])
        assert err.http_status == 422
        assert err.to_dict() == {
            "code": "FIELD_NOT_PATCHABLE",
            "message": "Fields not patchable: predicted_term_gpa",
            "details": {"fields": ["predicted_term_gpa"]},
        }


# ---------------------------------------------------------------------------
# Integration tests on HTTP error responses
# ---------------------------------------------------------------------------

class TestErrorEnvelope:
    def test_validation_error_shape(self, client, auth):
        r = client.post("/metrics/calculate", json={}, headers=auth)
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert isinstance(body["details"]["errors"], list)
        assert body["details"]["errors"][0]["field"] == "period_type"

    def test_authentication_error_shape(self, client):
        r = client.post("/gpa/calculate")
        assert r.status_code == 401
        body = r.json()
        assert set(body) == {"code", "message"}

    def test_blank_subject_header_is_anonymous(self, client):
        r = client.post("/metrics/calculate-all", headers={"X-User-Subject": "   "})
        assert r.status_code == 401

    def test_limit_out_of_range(self, client, auth):
        r = client.get("/gpa/history", params={"limit": 0}, headers=auth)
        assert r.status_code == 422


class TestUnhandledErrors:
    def test_logged_and_hidden_from_client(self, caplog):
        request = Request({
            "type": "http",
            "method": "POST",
            "scheme": "http",
            "server": ("testserver", 80),
            "path": "/gpa/calculate",
            "root_path": "",
            "query_string": b"",
            "headers": [],
        })
        with caplog.at_level(logging.ERROR, logger="classmetrics.core.errors"):
            response = asyncio.run(
                unhandled_exception_handler(request, RuntimeError("db went away"))
            )

        assert response.status_code == 500
        assert json.loads(response.body) == {
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        }
        (record,) = [r for r in caplog.records if r.name == "classmetrics.core.errors"]
        assert record.getMessage() == "Unhandled error on POST /gpa/calculate"
        assert record.exc_info[0] is RuntimeError
