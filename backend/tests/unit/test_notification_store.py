"""
Unit tests for notifications/store.py

Tests the queries the store builds against a mocked Supabase client.
"""

import unittest
from datetime import datetime, timezone
from unittest.mock import call

from notifications.errors import NotificationQueueError
from notifications.store import NotificationStore
from tests.fixtures.mock_helpers import create_mock_supabase


class TestClaimNotification(unittest.TestCase):
    """Tests for claim_notification()"""

    def test_claim_is_conditional_on_pending(self):
        mock_supabase = create_mock_supabase(return_data=[{"id": 5, "status": "sending"}])
        store = NotificationStore(mock_supabase)

        claimed = store.claim_notification(5)

        self.assertTrue(claimed)
        mock_supabase.table.assert_called_with("article_notify")
        update_values = mock_supabase.update.call_args[0][0]
        self.assertEqual(update_values["status"], "sending")
        mock_supabase.eq.assert_has_calls([call("id", 5), call("status", "pending")])

    def test_claim_lost_when_no_row_updated(self):
        mock_supabase = create_mock_supabase(return_data=[])
        store = NotificationStore(mock_supabase)

        self.assertFalse(store.claim_notification(5))


class TestInsertHeader(unittest.TestCase):
    """Tests for insert_header() and insert_recipient_methods()"""

    def test_insert_header_returns_id(self):
        mock_supabase = create_mock_supabase(return_data=[{"id": 12}])
        store = NotificationStore(mock_supabase)

        header_id = store.insert_header(
            42, 1, 5, "timed", datetime(2026, 4, 1, 10, 0, tzinfo=timezone.utc), "draft"
        )

        self.assertEqual(header_id, 12)
        inserted = mock_supabase.insert.call_args[0][0]
        self.assertEqual(inserted["article_id"], 42)
        self.assertEqual(inserted["status"], "draft")
        self.assertEqual(inserted["send_mode"], "timed")
        self.assertEqual(inserted["send_after"], "2026-04-01T10:00:00+00:00")

    def test_insert_header_with_no_rows_raises(self):
        store = NotificationStore(create_mock_supabase(return_data=[]))

        with self.assertRaises(NotificationQueueError):
            store.insert_header(42, 1, 5, "delay", datetime.now(timezone.utc), "draft")

    def test_insert_recipient_methods(self):
        mock_supabase = create_mock_supabase(return_data=[{"id": 1}, {"id": 2}])
        store = NotificationStore(mock_supabase)

        store.insert_recipient_methods(12, [101, 102])

        mock_supabase.table.assert_called_with("article_notify_rms")
        mock_supabase.insert.assert_called_once_with(
            [
                {"article_notify_id": 12, "recip_meth_id": 101},
                {"article_notify_id": 12, "recip_meth_id": 102},
            ]
        )

    def test_insert_recipient_methods_short_insert_raises(self):
        store = NotificationStore(create_mock_supabase(return_data=[{"id": 1}]))

        with self.assertRaises(NotificationQueueError):
            store.insert_recipient_methods(12, [101, 102])

    def test_no_recipient_methods_skips_insert(self):
        mock_supabase = create_mock_supabase()
        store = NotificationStore(mock_supabase)

        store.insert_recipient_methods(12, [])

        mock_supabase.insert.assert_not_called()


class TestDraftHeaders(unittest.TestCase):
    """Tests for promote_headers() and discard_draft_header()"""

    def test_promotion_is_conditional_on_draft(self):
        mock_supabase = create_mock_supabase(return_data=[{"id": 1}, {"id": 2}])
        store = NotificationStore(mock_supabase)

        promoted = store.promote_headers([1, 2])

        self.assertEqual(promoted, 2)
        self.assertEqual(mock_supabase.update.call_args[0][0]["status"], "pending")
        mock_supabase.in_.assert_called_once_with("id", [1, 2])
        mock_supabase.eq.assert_called_once_with("status", "draft")

    def test_discard_draft_removes_links_and_header(self):
        mock_supabase = create_mock_supabase(return_data=[{"id": 1}])
        store = NotificationStore(mock_supabase)

        self.assertTrue(store.discard_draft_header(1))

        mock_supabase.eq.assert_has_calls(
            [call("id", 1), call("status", "draft"), call("article_notify_id", 1), call("id", 1)]
        )
        self.assertEqual(mock_supabase.delete.call_count, 2)

    def test_discard_skips_header_no_longer_draft(self):
        mock_supabase = create_mock_supabase(return_data=[])
        store = NotificationStore(mock_supabase)

        self.assertFalse(store.discard_draft_header(1))

        mock_supabase.delete.assert_not_called()


class TestCancelHeaders(unittest.TestCase):
    """Tests for cancel_headers()"""

    def test_only_cancellable_statuses(self):
        mock_supabase = create_mock_supabase(return_data=[{"id": 1}, {"id": 2}])
        store = NotificationStore(mock_supabase)

        count = store.cancel_headers(42)

        self.assertEqual(count, 2)
        mock_supabase.in_.assert_called_once_with("status", ["draft", "pending"])
        mock_supabase.eq.assert_called_once_with("article_id", 42)

    def test_method_filter(self):
        mock_supabase = create_mock_supabase(return_data=[])
        store = NotificationStore(mock_supabase)

        store.cancel_headers(42, method_id=3)

        mock_supabase.eq.assert_has_calls([call("article_id", 42), call("method_id", 3)])


class TestHeaderLookups(unittest.TestCase):
    """Tests for due header and next send time queries"""

    def test_due_headers_filter(self):
        mock_supabase = create_mock_supabase(return_data=[{"id": 1}])
        store = NotificationStore(mock_supabase)

        rows = store.get_due_headers(datetime(2026, 3, 1, 9, 10, tzinfo=timezone.utc))

        self.assertEqual(rows, [{"id": 1}])
        mock_supabase.eq.assert_called_once_with("status", "pending")
        mock_supabase.lte.assert_called_once_with("send_after", "2026-03-01T09:10:00+00:00")

    def test_next_send_after(self):
        mock_supabase = create_mock_supabase(
            return_data=[{"send_after": "2026-03-01T12:00:00+00:00"}]
        )
        store = NotificationStore(mock_supabase)

        result = store.get_next_send_after(datetime(2026, 3, 1, 9, 10, tzinfo=timezone.utc))

        self.assertEqual(result, "2026-03-01T12:00:00+00:00")
        mock_supabase.order.assert_called_once_with("send_after")
        mock_supabase.limit.assert_called_once_with(1)

    def test_get_header_missing(self):
        store = NotificationStore(create_mock_supabase(return_data=[]))

        self.assertIsNone(store.get_header(99))

    def test_empty_id_lists_skip_queries(self):
        mock_supabase = create_mock_supabase()
        store = NotificationStore(mock_supabase)

        self.assertEqual(store.get_headers([]), [])
        self.assertEqual(store.get_matrix_rows([]), [])
        self.assertEqual(store.get_recipients([]), {})
        self.assertEqual(store.get_year_settings([], 5), {})
        mock_supabase.table.assert_not_called()


class TestTableOverrides(unittest.TestCase):
    """Tests for custom table names"""

    def test_custom_table_name(self):
        mock_supabase = create_mock_supabase(return_data=[])
        store = NotificationStore(mock_supabase, tables={"article_notify": "newsagent_article_notify"})

        store.get_header(1)

        mock_supabase.table.assert_called_with("newsagent_article_notify")


if __name__ == "__main__":
    unittest.main()
