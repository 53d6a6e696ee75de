from __future__ import annotations

from datetime import datetime, timedelta

from ads_test_support import AdsApiTestCase

from classifieds.extensions import db
from classifieds.models import OutboxEvent
from classifieds.services.outbox_service import OutboxService, OutboxStatus
from classifieds.tasks.outbox_tasks import outbox_cleanup


class OutboxServiceTestCase(AdsApiTestCase):
    def setUp(self):
        super().setUp()
        self.outbox = OutboxService(retention_days=7)

    def test_enqueue_starts_pending_and_pending_is_oldest_first(self):
        with self.app.app_context():
            first = self.outbox.enqueue("ad.created", {"adId": 1})
            second = self.outbox.enqueue("ad.created", {"adId": 2})
            self.assertEqual(first.status, OutboxStatus.PENDING)
            self.assertEqual(first.retry_count, 0)
            self.assertEqual([e.id for e in self.outbox.pending()], [first.id, second.id])
            self.assertEqual(second.payload, {"adId": 2})

    def test_happy_path_stamps_processed_at(self):
        with self.app.app_context():
            event = self.outbox.enqueue("ad.created", {"adId": 1})
            self.outbox.mark_processing(event.id)
            self.assertIsNone(db.session.get(OutboxEvent, event.id).processed_at)
            done = self.outbox.mark_completed(event.id)
            self.assertEqual(done.status, OutboxStatus.COMPLETED)
            self.assertIsNotNone(done.processed_at)
            self.assertEqual(self.outbox.pending(), [])

    def test_failure_records_error_and_retry(self):
        with self.app.app_context():
            event = self.outbox.enqueue("ad.created", {"adId": 1})
            self.outbox.mark_processing(event.id)
            failed = self.outbox.mark_failed(event.id, "consumer timeout")
            self.assertEqual(failed.status, OutboxStatus.FAILED)
            self.assertEqual(failed.error, "consumer timeout")
            self.assertEqual(failed.retry_count, 1)

    def test_illegal_transitions_rejected(self):
        with self.app.app_context():
            event = self.outbox.enqueue("ad.created", {"adId": 1})
            with self.assertRaises(ValueError) as ctx:
                self.outbox.mark_completed(event.id)
            self.assertIn("invalid_outbox_transition pending->completed", str(ctx.exception))
            self.outbox.mark_processing(event.id)
            self.outbox.mark_completed(event.id)
            with self.assertRaises(ValueError):
                self.outbox.mark_processing(event.id)

    def test_unknown_event_raises_lookup_error(self):
        with self.app.app_context():
            with self.assertRaises(LookupError):
                self.outbox.mark_processing(404)

    def test_cleanup_removes_only_old_terminal_events(self):
        with self.app.app_context():
            old_done = self.outbox.enqueue("ad.created", {"adId": 1})
            fresh_done = self.outbox.enqueue("ad.created", {"adId": 2})
            waiting = self.outbox.enqueue("ad.created", {"adId": 3})
            for event in (old_done, fresh_done):
                self.outbox.mark_processing(event.id)
                self.outbox.mark_completed(event.id)
            db.session.get(OutboxEvent, old_done.id).processed_at = datetime.utcnow() - timedelta(days=10)
            db.session.commit()

            self.assertEqual(self.outbox.cleanup(), 1)
            remaining = {e.id for e in OutboxEvent.query.all()}
            self.assertEqual(remaining, {fresh_done.id, waiting.id})

    def test_cleanup_task_uses_configured_service(self):
        with self.app.app_context():
            event = self.outbox.enqueue("ad.created", {"adId": 1})
            self.outbox.mark_processing(event.id)
            self.outbox.mark_failed(event.id, "boom")
            db.session.get(OutboxEvent, event.id).processed_at = datetime.utcnow() - timedelta(days=30)
            db.session.commit()
            result = outbox_cleanup.run()
            self.assertEqual(result, {"ok": True, "removed": 1})

    def test_cleanup_cli_command(self):
        with self.app.app_context():
            event = self.outbox.enqueue("ad.created", {"adId": 1})
            self.outbox.mark_processing(event.id)
            self.outbox.mark_completed(event.id)
            db.session.get(OutboxEvent, event.id).processed_at = datetime.utcnow() - timedelta(days=2)
            db.session.commit()
        result = self.app.test_cli_runner().invoke(args=["outbox-cleanup", "--retention-days", "1"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("removed=1", result.output)
