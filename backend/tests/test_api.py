"""HTTP tests for the ingest and outbox routes."""
from __future__ import annotations

import unittest

from tests._bootstrap import bootstrap_backend_imports, reset_caches
from tests._db import make_session_factory


bootstrap_backend_imports()
reset_caches()

from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from watchbot.common.exceptions import register_exception_handlers  # noqa: E402
from watchbot.database import get_db  # noqa: E402
from watchbot.ingest.handler import IngestHandler  # noqa: E402
from watchbot.ingest.router import get_ingest_handler, router as ingest_router  # noqa: E402
from watchbot.outbox.router import router as outbox_router  # noqa: E402


class ApiTests(unittest.TestCase):
    def _make_app(self, *, allowed_users=()) -> FastAPI:
        app = FastAPI()
        register_exception_handlers(app)
        app.include_router(ingest_router)
        app.include_router(outbox_router)

        handler = IngestHandler(self.Session, allowed_users=allowed_users)

        def _get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_ingest_handler] = lambda: handler
        return app

    def setUp(self) -> None:
        reset_caches()
        self.Session = make_session_factory()

    def _post(self, client: TestClient, **message):
        return client.post("/api/ingest/messages", json={"externalUserId": 5, **message})

    def test_ingest_message_returns_outcome(self) -> None:
        client = TestClient(self._make_app())

        resp = self._post(client, text="==BEGIN==")
        self.assertEqual(resp.status_code, 200)
        payload = resp.json()
        self.assertTrue(payload["success"])
        self.assertEqual(payload["data"], {"replies": ["Batch opened."], "resourceIds": []})

        resp = self._post(client, text="note", messageId=11)
        self.assertEqual(len(resp.json()["data"]["resourceIds"]), 1)

    def test_ingest_rejects_disallowed_user(self) -> None:
        client = TestClient(self._make_app(allowed_users=[1]))
        resp = self._post(client, text="hi")
        self.assertEqual(resp.status_code, 403)
        payload = resp.json()
        self.assertFalse(payload["success"])
        self.assertEqual(payload["code"], 40301)

    def test_ingest_validation_error(self) -> None:
        client = TestClient(self._make_app())
        resp = client.post("/api/ingest/messages", json={"text": "missing user"})
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["code"], 42200)

    def test_outbox_stats_and_tasks(self) -> None:
        client = TestClient(self._make_app())
        self._post(client, text="==BEGIN==")
        self._post(client, text="one")
        self._post(client, text="==COMMIT==")
        self._post(client, text="Title")

        stats = client.get("/api/outbox/stats").json()["data"]
        self.assertEqual(stats, {"remaining": 2, "due": 2, "maxAttempt": 0, "lastProcessedId": 0})

        tasks = client.get("/api/outbox/tasks").json()["data"]
        self.assertEqual([t["kind"] for t in tasks], ["push_batch", "push_resource"])
        self.assertEqual(
            set(tasks[0]),
            {"id", "userId", "kind", "refId", "attempt", "dueAt", "lastError"},
        )
        self.assertEqual(tasks[0]["attempt"], 0)
        self.assertIsNone(tasks[0]["lastError"])

    def test_outbox_tasks_limit(self) -> None:
        client = TestClient(self._make_app())
        self._post(client, text="a")
        self._post(client, text="b")
        tasks = client.get("/api/outbox/tasks", params={"limit": 1}).json()["data"]
        self.assertEqual(len(tasks), 1)


if __name__ == "__main__":
    unittest.main()
