"""
Unit tests for notifications/dispatcher.py

Tests a cron run end to end against an in-memory Supabase: sending in
order, stopping on failure, author status emails and the CLI wrapper.
"""

import unittest
from datetime import datetime, timezone
from unittest.mock import Mock, patch

from models.notification import RecipientResult
from notifications.dispatcher import (
    STATUS_CHANGED_REPORT,
    DispatchItem,
    DispatchReport,
    Dispatcher,
    main,
)
from notifications.errors import NotificationDeliveryError
from tests.fixtures.mock_helpers import FakeSupabase
from tests.fixtures.notification_factory import (
    create_seed_tables,
    create_test_header,
    create_test_pending,
    create_test_queue,
)

NOW = datetime(2026, 3, 1, 9, 10, tzinfo=timezone.utc)


def create_dispatch_tables():
    tables = create_seed_tables()
    tables["articles"].append(
        {
            "id": 43,
            "title": "Library closed on Friday",
            "creator_id": 7,
            "created": "2026-02-27T10:00:00+00:00",
            "release_time": "2026-03-01T08:00:00+00:00",
        }
    )
    tables["article_notify"] = [
        create_test_header(id=1, article_id=42, send_after="2026-03-01T09:05:00+00:00"),
        create_test_header(id=2, article_id=43, send_after="2026-03-01T08:05:00+00:00"),
        create_test_header(id=3, article_id=42, method_id=2, send_after="2026-03-02T09:00:00+00:00"),
    ]
    tables["article_notify_rms"] = [
        {"id": 1, "article_notify_id": 1, "recip_meth_id": 101},
        {"id": 2, "article_notify_id": 1, "recip_meth_id": 102},
        {"id": 3, "article_notify_id": 2, "recip_meth_id": 101},
    ]
    return tables


class DispatcherTestCase(unittest.TestCase):

    def setUp(self):
        self.db = FakeSupabase(create_dispatch_tables())
        self.queue = create_test_queue(self.db)
        self.method = self.queue.methods.get("email")
        self.author_sender = Mock(return_value={"success": True, "email_id": "msg_1"})
        self.dispatcher = Dispatcher(self.queue, author_sender=self.author_sender)

    def status(self, header_id):
        return next(r["status"] for r in self.db.rows("article_notify") if r["id"] == header_id)


class TestDispatcherRun(DispatcherTestCase):
    """Tests for Dispatcher.run()"""

    def test_sends_due_notifications_in_order(self):
        report = self.dispatcher.run(NOW)

        self.assertEqual([p.id for p in report.pending], [2, 1])
        self.assertEqual(
            [(i.notification_id, i.name, i.state) for i in report.items],
            [(2, "All Staff", "sent"), (1, "All Staff", "sent"), (1, "Year Students", "sent")],
        )
        self.assertEqual(self.status(1), "sent")
        self.assertEqual(self.status(2), "sent")
        self.assertEqual(self.status(3), "pending")
        self.assertFalse(report.aborted)

    def test_reports_next_notification_time(self):
        report = self.dispatcher.run(NOW)

        self.assertEqual(report.next_time, datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))

    def test_all_recipients_cover_every_pending_notification(self):
        self.dispatcher.run(NOW)

        self.assertEqual(
            self.method.sent[0]["all_recipients"], {"email": ["staff", "staff", "students"]}
        )

    def test_author_told_about_each_notification(self):
        self.dispatcher.run(NOW)

        self.assertEqual(self.author_sender.call_count, 2)
        author, article, method_name, results = self.author_sender.call_args_list[0][0]
        self.assertEqual(author.email, "jo.bloggs@example.com")
        self.assertEqual(article.id, 43)
        self.assertEqual(method_name, "email")
        self.assertEqual(results[0].state, "sent")

    def test_dry_run_sends_nothing(self):
        report = self.dispatcher.run(NOW, dry_run=True)

        self.assertEqual(len(report.pending), 2)
        self.assertEqual(report.items, [])
        self.assertEqual(self.method.sent, [])
        self.assertEqual(self.status(1), "pending")

    def test_nothing_pending(self):
        report = self.dispatcher.run(datetime(2026, 3, 1, 7, 0, tzinfo=timezone.utc))

        self.assertEqual(report.pending, [])
        self.assertIn("No pending notifications to send.", report.render())
        self.author_sender.assert_not_called()


class TestDispatcherFailures(DispatcherTestCase):
    """Tests for delivery failures and status changes during a run"""

    @patch("notifications.dispatcher.log_notification_error")
    def test_delivery_error_stops_run(self, mock_log):
        mock_log.return_value = "/tmp/notification_error_sending.txt"
        self.method.error = NotificationDeliveryError("relay unavailable", method="email")

        report = self.dispatcher.run(NOW)

        self.assertTrue(report.aborted)
        self.assertEqual(len(self.method.sent), 1)
        self.assertEqual(self.status(2), "failed")
        self.assertEqual(self.status(1), "pending")
        self.assertEqual(report.items[-1].state, "error")
        self.assertEqual(mock_log.call_args.kwargs["error_type"], "sending")
        results = self.author_sender.call_args[0][3]
        self.assertEqual(results[0].state, "error")
        self.assertEqual(results[0].message, "relay unavailable")
        self.assertIn("Processing stopped", report.render())

    def test_status_changed_since_lookup(self):
        report = DispatchReport(pending=self.queue.get_pending_notifications(NOW))
        self.queue.cancel_notifications(43)

        self.dispatcher._send_pending(report)

        self.assertEqual(report.items[0].notification_id, 2)
        self.assertEqual(report.items[0].message, STATUS_CHANGED_REPORT)
        self.assertEqual(self.status(2), "cancelled")
        self.assertEqual(self.status(1), "sent")

    def test_skipped_results_do_not_notify_author(self):
        self.queue.store.claim_notification = Mock(return_value=False)

        report = self.dispatcher.run(NOW)

        self.assertEqual({i.state for i in report.items}, {"skipped"})
        self.author_sender.assert_not_called()

    @patch("notifications.dispatcher.log_notification_error")
    def test_author_email_failure_does_not_stop_run(self, mock_log):
        self.author_sender.side_effect = RuntimeError("Resend rate limit")

        report = self.dispatcher.run(NOW)

        self.assertEqual(self.status(1), "sent")
        self.assertEqual(self.status(2), "sent")
        self.assertFalse(report.aborted)
        self.assertEqual(mock_log.call_count, 2)
        self.assertEqual(mock_log.call_args.kwargs["error_type"], "author")

    @patch("notifications.dispatcher.log_notification_error")
    def test_unsuccessful_author_email_is_logged(self, mock_log):
        self.author_sender.return_value = {"success": False, "error": "Invalid API key"}

        error = self.dispatcher._notify_author(
            create_test_pending(id=1), [RecipientResult(name="All Staff", state="sent")]
        )

        self.assertEqual(error, "Invalid API key")
        mock_log.assert_called_once()


class TestDispatchReport(unittest.TestCase):
    """Tests for DispatchReport"""

    def test_stats(self):
        report = DispatchReport(
            items=[
                DispatchItem(42, 1, 5, "email", "All Staff", "sent"),
                DispatchItem(42, 1, 5, "email", "Year Students", "error", "bounced"),
                DispatchItem(43, 2, 5, "email", "all", "skipped"),
                DispatchItem(44, 3, 5, "email", "", "", STATUS_CHANGED_REPORT),
            ]
        )

        self.assertEqual(report.stats, {"sent": 1, "failed": 1, "skipped": 2})

    def test_render_lists_items(self):
        report = DispatchReport(
            pending=[create_test_pending(id=1)],
            items=[DispatchItem(42, 1, 5, "email", "Year Students", "error", "bounced")],
        )

        text = report.render()

        self.assertIn("article 42, notification 1, year 5, method email", text)
        self.assertIn("Year Students: error (bounced)", text)


class TestMain(unittest.TestCase):
    """Tests for the command line entry point"""

    @patch("notifications.dispatcher.print_summary")
    @patch("notifications.dispatcher.create_notification_queue")
    def test_dry_run(self, mock_create, mock_summary):
        db = FakeSupabase(create_dispatch_tables())
        mock_create.return_value = create_test_queue(db)

        exit_code = main(["--dry-run", "--quiet"])

        self.assertEqual(exit_code, 0)
        mock_summary.assert_called_once_with(sent=0, skipped=0, failed=0)
        self.assertEqual(
            {r["status"] for r in db.rows("article_notify")}, {"pending"}
        )

    @patch("notifications.dispatcher.log_notification_error")
    @patch("notifications.dispatcher.create_notification_queue")
    def test_setup_failure_returns_error(self, mock_create, mock_log):
        mock_create.side_effect = ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
        mock_log.return_value = "/tmp/notification_error_cron.txt"

        exit_code = main([])

        self.assertEqual(exit_code, 1)
        self.assertEqual(mock_log.call_args.kwargs["error_type"], "cron")


if __name__ == "__main__":
    unittest.main()
