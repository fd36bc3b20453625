from __future__ import annotations

import unittest

from tests._bootstrap import bootstrap_backend_imports, reset_caches


bootstrap_backend_imports()
reset_caches()

from fastapi import FastAPI, HTTPException  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from watchbot.batch.errors import AlreadyOpenError  # noqa: E402
from watchbot.common.exceptions import ApiException, register_exception_handlers  # noqa: E402
from watchbot.common.schemas import CamelModel, to_camel  # noqa: E402


class ExceptionHandlersTests(unittest.TestCase):
    def _make_app(self) -> FastAPI:
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/api_exc")
        def api_exc():
            raise ApiException(status_code=400, code=40001, message="X", details={"d": 1})

        @app.get("/conflict")
        def conflict():
            raise AlreadyOpenError(3)

        @app.get("/http_exc")
        def http_exc():
            raise HTTPException(status_code=404, detail="Missing")

        @app.get("/boom")
        def boom():
            raise RuntimeError("boom")

        return app

    def test_api_exception_handler(self) -> None:
        resp = TestClient(self._make_app()).get("/api_exc")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(
            resp.json(),
            {"success": False, "code": 40001, "message": "X", "data": {"d": 1}},
        )

    def test_precondition_errors_are_conflicts(self) -> None:
        resp = TestClient(self._make_app()).get("/conflict")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["code"], 40901)
        self.assertEqual(resp.json()["data"], {"userId": 3})

    def test_starlette_http_exception_handler(self) -> None:
        resp = TestClient(self._make_app()).get("/http_exc")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["message"], "Missing")

    def test_unhandled_exception_handler(self) -> None:
        client = TestClient(self._make_app(), raise_server_exceptions=False)
        resp = client.get("/boom")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["code"], 50000)
        self.assertIsNone(resp.json()["data"])


class CamelModelTests(unittest.TestCase):
    def test_to_camel(self) -> None:
        self.assertEqual(to_camel("last_processed_id"), "lastProcessedId")
        self.assertEqual(to_camel("a__b"), "aB")

    def test_camel_model_accepts_both_names(self) -> None:
        class M(CamelModel):
            ref_id: int

        self.assertEqual(M(refId=1).ref_id, 1)
        self.assertEqual(M(ref_id=2).model_dump(by_alias=True), {"refId": 2})


if __name__ == "__main__":
    unittest.main()
