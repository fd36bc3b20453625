"""Unit tests for outbox backoff, ordering and ack/retry bookkeeping."""
from __future__ import annotations

import unittest
from datetime import timedelta

from tests._bootstrap import bootstrap_backend_imports, reset_caches
from tests._db import make_session_factory


bootstrap_backend_imports()
reset_caches()


class ComputeBackoffTests(unittest.TestCase):
    def test_doubles_from_five_seconds(self) -> None:
        from watchbot.outbox.repo import compute_backoff

        self.assertEqual(compute_backoff(0), timedelta(seconds=5))
        self.assertEqual(compute_backoff(1), timedelta(seconds=10))
        self.assertEqual(compute_backoff(2), timedelta(seconds=20))
        self.assertEqual(compute_backoff(9), timedelta(seconds=2560))

    def test_capped_by_ceiling(self) -> None:
        from watchbot.outbox.repo import compute_backoff

        self.assertEqual(compute_backoff(10), timedelta(seconds=3600))
        self.assertEqual(compute_backoff(50), timedelta(seconds=3600))
        self.assertEqual(compute_backoff(4, cap_sec=60), timedelta(seconds=60))

    def test_exponent_stops_growing_after_ten(self) -> None:
        from watchbot.outbox.repo import compute_backoff

        big_cap = 10**9
        self.assertEqual(compute_backoff(10, big_cap), compute_backoff(25, big_cap))
        self.assertEqual(compute_backoff(10, big_cap), timedelta(seconds=5 * 1024))

    def test_non_positive_cap_falls_back_to_default(self) -> None:
        from watchbot.outbox.repo import compute_backoff

        self.assertEqual(compute_backoff(20, cap_sec=0), timedelta(seconds=3600))
        self.assertEqual(compute_backoff(20, cap_sec=-5), timedelta(seconds=3600))

    def test_monotonic_until_cap_then_stable(self) -> None:
        from watchbot.outbox.repo import compute_backoff

        delays = [compute_backoff(n, cap_sec=300) for n in range(15)]
        for earlier, later in zip(delays, delays[1:]):
            self.assertLessEqual(earlier, later)
        self.assertEqual(delays[-1], timedelta(seconds=300))
        self.assertEqual(delays[-5:], [timedelta(seconds=300)] * 5)


class OutboxRepoTests(unittest.TestCase):
    def setUp(self) -> None:
        from watchbot.common.time import utcnow
        from watchbot.user.service import UserService

        self.Session = make_session_factory()
        self.now = utcnow()
        with self.Session() as db:
            self.user_id = UserService(db).get_or_create(7).id

    def _enqueue(self, kind, ref_id: int, due_in_sec: float) -> int:
        from watchbot.outbox.repo import enqueue

        with self.Session() as db:
            task = enqueue(db, self.user_id, kind, ref_id, self.now + timedelta(seconds=due_in_sec))
            db.commit()
            return task.id

    def test_enqueue_does_not_commit(self) -> None:
        from watchbot.outbox.models import OutboxKind
        from watchbot.outbox.repo import OutboxRepo, enqueue

        with self.Session() as db:
            task = enqueue(db, self.user_id, OutboxKind.PUSH_BATCH, 1, self.now)
            self.assertIsNotNone(task.id)
            db.rollback()
            self.assertEqual(OutboxRepo(db).count_remaining(), 0)

    def test_next_due_prefers_batches_then_oldest(self) -> None:
        from watchbot.outbox.models import OutboxKind
        from watchbot.outbox.repo import OutboxRepo

        old_resource = self._enqueue(OutboxKind.PUSH_RESOURCE, 10, -60)
        newer_batch = self._enqueue(OutboxKind.PUSH_BATCH, 1, -5)
        older_batch = self._enqueue(OutboxKind.PUSH_BATCH, 2, -10)
        self._enqueue(OutboxKind.PUSH_BATCH, 3, 30)  # not due yet

        with self.Session() as db:
            repo = OutboxRepo(db)
            self.assertEqual(repo.next_due(self.now).id, older_batch)
            self.assertEqual(
                [t.id for t in repo.list_due(self.now)],
                [older_batch, newer_batch, old_resource],
            )
            self.assertEqual(repo.count_due(self.now), 3)
            self.assertEqual(repo.count_remaining(), 4)

    def test_next_due_breaks_ties_by_id(self) -> None:
        from watchbot.outbox.models import OutboxKind
        from watchbot.outbox.repo import OutboxRepo

        first = self._enqueue(OutboxKind.PUSH_RESOURCE, 1, -1)
        self._enqueue(OutboxKind.PUSH_RESOURCE, 2, -1)

        with self.Session() as db:
            self.assertEqual(OutboxRepo(db).next_due(self.now).id, first)

    def test_next_due_none_when_nothing_due(self) -> None:
        from watchbot.outbox.models import OutboxKind
        from watchbot.outbox.repo import OutboxRepo

        self._enqueue(OutboxKind.PUSH_BATCH, 1, 5)
        with self.Session() as db:
            self.assertIsNone(OutboxRepo(db).next_due(self.now))

    def test_mark_failed_increments_attempt_and_pushes_due_at(self) -> None:
        from watchbot.common.time import as_utc
        from watchbot.outbox.models import OutboxKind
        from watchbot.outbox.repo import OutboxRepo

        task_id = self._enqueue(OutboxKind.PUSH_BATCH, 1, -1)
        with self.Session() as db:
            repo = OutboxRepo(db)
            first = repo.mark_failed(task_id=task_id, now=self.now, error_message="boom")
            second = repo.mark_failed(task_id=task_id, now=self.now, error_message="x" * 5000)

            task = repo.get(task_id)
            self.assertEqual(task.attempt, 2)
            self.assertEqual(first, self.now + timedelta(seconds=5))
            self.assertEqual(second, self.now + timedelta(seconds=10))
            self.assertEqual(as_utc(task.due_at), self.now + timedelta(seconds=10))
            self.assertEqual(len(task.last_error), 4000)
            self.assertEqual(repo.max_attempt(), 2)

    def test_mark_failed_respects_cap(self) -> None:
        from watchbot.outbox.models import OutboxKind
        from watchbot.outbox.repo import OutboxRepo

        task_id = self._enqueue(OutboxKind.PUSH_BATCH, 1, -1)
        with self.Session() as db:
            repo = OutboxRepo(db)
            for _ in range(6):
                due = repo.mark_failed(task_id=task_id, now=self.now, error_message="e", cap_sec=30)
            self.assertEqual(due, self.now + timedelta(seconds=30))

    def test_mark_succeeded_deletes_task_and_moves_cursor(self) -> None:
        from watchbot.outbox.models import OutboxKind
        from watchbot.outbox.repo import OutboxRepo

        first = self._enqueue(OutboxKind.PUSH_BATCH, 1, -1)
        second = self._enqueue(OutboxKind.PUSH_RESOURCE, 2, -1)

        with self.Session() as db:
            repo = OutboxRepo(db)
            self.assertEqual(repo.last_processed_id(), 0)

            self.assertTrue(repo.mark_succeeded(task_id=first))
            self.assertEqual(repo.last_processed_id(), first)
            self.assertTrue(repo.mark_succeeded(task_id=second))
            self.assertEqual(repo.last_processed_id(), second)

            self.assertEqual(repo.count_remaining(), 0)
            self.assertFalse(repo.mark_succeeded(task_id=first))

    def test_mark_failed_on_missing_task_returns_none(self) -> None:
        from watchbot.outbox.repo import OutboxRepo

        with self.Session() as db:
            self.assertIsNone(OutboxRepo(db).mark_failed(task_id=999, now=self.now, error_message="x"))


if __name__ == "__main__":
    unittest.main()
