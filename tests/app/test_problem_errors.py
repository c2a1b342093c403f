"""Unit tests for reqmanager.app.errors."""

from __future__ import annotations

from flask import Flask, abort

from reqmanager.app.errors import (
    PROBLEM_CONTENT_TYPE,
    STORE_OPERATION_FAILED,
    SYNTHESIS_FAILED,
    ReconcileError,
    StoreOperationFailed,
    SynthesisFailed,
    register_error_handlers,
)


class TestReconcileErrors:
    def test_store_operation_failed(self):
        exc = StoreOperationFailed("delete", "testns/test", RuntimeError("timeout"))
        assert exc.error_type == STORE_OPERATION_FAILED
        assert exc.detail == "delete testns/test failed: timeout"
        assert exc.reason == "storeOperationFailed"
        assert exc.retryable is True
        assert isinstance(exc, ReconcileError)

    def test_without_cause(self):
        assert StoreOperationFailed("list", "x").detail == "list x failed"

    def test_synthesis_failed(self):
        exc = SynthesisFailed("testns/test", ValueError("bad ip"))
        assert exc.error_type == SYNTHESIS_FAILED
        assert "bad ip" in exc.detail
        assert exc.to_dict() == {
            "type": SYNTHESIS_FAILED,
            "detail": exc.detail,
            "retryable": True,
        }


def _make_app() -> Flask:
    app = Flask("test_errors")
    register_error_handlers(app)

    @app.route("/reconcile-error")
    def reconcile_error():
        raise StoreOperationFailed("get", "testns/test")

    @app.route("/not-found")
    def not_found():
        abort(404)

    @app.route("/crash")
    def crash():
        raise RuntimeError("bug")

    return app


class TestErrorHandlers:
    def test_reconcile_error_is_problem_document(self):
        resp = _make_app().test_client().get("/reconcile-error")
        assert resp.status_code == 500
        assert resp.headers["Content-Type"] == PROBLEM_CONTENT_TYPE
        assert resp.get_json()["type"] == STORE_OPERATION_FAILED

    def test_http_exception(self):
        resp = _make_app().test_client().get("/not-found")
        assert resp.status_code == 404
        body = resp.get_json()
        assert body["type"] == "about:blank"
        assert body["title"] == "Not Found"

    def test_unexpected_exception_hides_details(self):
        resp = _make_app().test_client().get("/crash")
        assert resp.status_code == 500
        assert resp.get_json()["detail"] == "Internal server error"
        assert resp.headers["Cache-Control"] == "no-store"
