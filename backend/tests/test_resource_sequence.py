"""Tests for per-batch sequencing and standalone resources."""
from __future__ import annotations

import unittest
from unittest.mock import patch

from tests._bootstrap import bootstrap_backend_imports, reset_caches
from tests._db import make_session_factory


bootstrap_backend_imports()
reset_caches()


class ResourceSequenceTests(unittest.TestCase):
    def setUp(self) -> None:
        from watchbot.user.service import UserService

        self.Session = make_session_factory()
        with self.Session() as db:
            self.alice = UserService(db).get_or_create(1).id
            self.bob = UserService(db).get_or_create(2).id

    def test_nth_insert_gets_sequence_n(self) -> None:
        from watchbot.batch.service import BatchService
        from watchbot.resource.models import Resource, ResourceKind
        from watchbot.resource.service import ResourceService

        with self.Session() as db:
            batch_id = BatchService(db).open(self.alice)
            svc = ResourceService(db)
            ids = [svc.insert(self.alice, batch_id, ResourceKind.TEXT, f"t{i}") for i in range(5)]
            self.assertEqual([db.get(Resource, rid).sequence for rid in ids], [1, 2, 3, 4, 5])

    def test_interleaved_batches_keep_independent_sequences(self) -> None:
        from watchbot.batch.service import BatchService
        from watchbot.resource.models import ResourceKind
        from watchbot.resource.service import ResourceService

        with self.Session() as db:
            batches = BatchService(db)
            a = batches.open(self.alice)
            b = batches.open(self.bob)
            svc = ResourceService(db)
            svc.insert(self.alice, a, ResourceKind.TEXT, "a1")
            svc.insert(self.bob, b, ResourceKind.TEXT, "b1")
            svc.insert(self.alice, a, ResourceKind.PHOTO, "/m/a2.jpg")
            svc.insert(self.bob, b, ResourceKind.TEXT, "b2")
            svc.insert(self.alice, a, ResourceKind.TEXT, "a3")

            self.assertEqual([r.sequence for r in svc.list_for_batch(a)], [1, 2, 3])
            self.assertEqual([r.content for r in svc.list_for_batch(a)], ["a1", "/m/a2.jpg", "a3"])
            self.assertEqual([r.sequence for r in svc.list_for_batch(b)], [1, 2])

    def test_sequences_are_computed_across_sessions(self) -> None:
        from watchbot.batch.service import BatchService
        from watchbot.resource.models import Resource, ResourceKind
        from watchbot.resource.service import ResourceService

        with self.Session() as db:
            batch_id = BatchService(db).open(self.alice)
        with self.Session() as db:
            ResourceService(db).insert(self.alice, batch_id, ResourceKind.TEXT, "first")
        with self.Session() as db:
            rid = ResourceService(db).insert(self.alice, batch_id, ResourceKind.TEXT, "second")
            self.assertEqual(db.get(Resource, rid).sequence, 2)

    def test_standalone_resource_gets_sequence_one_and_its_own_task(self) -> None:
        from watchbot.outbox.models import OutboxKind, OutboxTask
        from watchbot.resource.models import Resource, ResourceKind
        from watchbot.resource.service import ResourceService

        with self.Session() as db:
            svc = ResourceService(db)
            first = svc.insert(self.alice, None, ResourceKind.TEXT, "loose")
            second = svc.insert(self.alice, None, ResourceKind.TEXT, "another")

            self.assertEqual(db.get(Resource, first).sequence, 1)
            self.assertEqual(db.get(Resource, second).sequence, 1)
            self.assertIsNone(db.get(Resource, first).batch_id)

            tasks = db.query(OutboxTask).order_by(OutboxTask.id.asc()).all()
            self.assertEqual([(t.kind, t.ref_id) for t in tasks], [
                (OutboxKind.PUSH_RESOURCE, first),
                (OutboxKind.PUSH_RESOURCE, second),
            ])

    def test_text_defaults_to_content_for_text_resources_only(self) -> None:
        from watchbot.resource.models import Resource, ResourceKind
        from watchbot.resource.service import ResourceService

        with self.Session() as db:
            svc = ResourceService(db)
            text_id = svc.insert(self.alice, None, ResourceKind.TEXT, "hello", source_message_id=42)
            photo_id = svc.insert(self.alice, None, "photo", "/m/p.jpg", media_name="p.jpg")

            text = db.get(Resource, text_id)
            self.assertEqual(text.text, "hello")
            self.assertEqual(text.source_message_id, 42)

            photo = db.get(Resource, photo_id)
            self.assertEqual(photo.kind, ResourceKind.PHOTO)
            self.assertIsNone(photo.text)
            self.assertEqual(photo.content, "/m/p.jpg")
            self.assertEqual(photo.media_name, "p.jpg")

    def test_unknown_kind_is_rejected(self) -> None:
        from watchbot.resource.service import ResourceService

        with self.Session() as db:
            with self.assertRaises(ValueError):
                ResourceService(db).insert(self.alice, None, "audio", "/m/a.ogg")

    def test_sequence_conflict_is_retried(self) -> None:
        from watchbot.batch.service import BatchService
        from watchbot.resource.models import Resource, ResourceKind
        from watchbot.resource.service import ResourceService

        with self.Session() as db:
            batch_id = BatchService(db).open(self.alice)
            ResourceService(db).insert(self.alice, batch_id, ResourceKind.TEXT, "first")

        real_next_sequence = ResourceService._next_sequence
        calls: list[int | None] = []

        def stale_then_real(svc, batch_id_arg):
            # First read misses the row another writer just committed.
            calls.append(batch_id_arg)
            return 1 if len(calls) == 1 else real_next_sequence(svc, batch_id_arg)

        with self.Session() as db:
            with patch.object(ResourceService, "_next_sequence", stale_then_real):
                rid = ResourceService(db).insert(self.alice, batch_id, ResourceKind.TEXT, "second")

            self.assertEqual(len(calls), 2)
            self.assertEqual(db.get(Resource, rid).sequence, 2)
            self.assertEqual(db.query(Resource).filter(Resource.batch_id == batch_id).count(), 2)

    def test_persistent_sequence_conflict_is_raised(self) -> None:
        from sqlalchemy.exc import IntegrityError

        from watchbot.batch.service import BatchService
        from watchbot.resource import service as resource_service
        from watchbot.resource.models import Resource, ResourceKind
        from watchbot.resource.service import ResourceService

        with self.Session() as db:
            batch_id = BatchService(db).open(self.alice)
            ResourceService(db).insert(self.alice, batch_id, ResourceKind.TEXT, "first")

        calls: list[int | None] = []

        def always_one(svc, batch_id_arg):
            calls.append(batch_id_arg)
            return 1

        with self.Session() as db:
            with patch.object(ResourceService, "_next_sequence", always_one):
                with self.assertRaises(IntegrityError):
                    ResourceService(db).insert(self.alice, batch_id, ResourceKind.TEXT, "second")

        self.assertEqual(len(calls), resource_service._INSERT_RETRIES)
        with self.Session() as db:
            self.assertEqual(db.query(Resource).filter(Resource.batch_id == batch_id).count(), 1)


if __name__ == "__main__":
    unittest.main()
