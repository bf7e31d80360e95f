import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from notiqueue.errors import PersistenceError
from notiqueue.records import LocalNotification, NotificationPayload, RepeatIntervalUnit
from notiqueue.storage import JsonFileQueueStore


class JsonFileQueueStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "state" / "queue.json"
        self.store = JsonFileQueueStore(self.path)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_missing_file_loads_empty(self):
        self.assertEqual(self.store.load(), [])

    def test_save_then_load(self):
        record = LocalNotification(
            fire_date=datetime(2030, 1, 1, 9, tzinfo=timezone.utc),
            repeat_interval_unit=RepeatIntervalUnit.WEEK,
            payload=NotificationPayload(alert_body="standup", user_info={"team": "core"}),
        )
        prepared, _ = record.prepare_to_be_scheduled()
        self.store.save([prepared])

        loaded = self.store.load()
        self.assertEqual(len(loaded), 1)
        self.assertEqual(loaded[0], prepared)
        self.assertEqual(loaded[0].fire_date, prepared.fire_date)
        self.assertEqual(dict(loaded[0].payload.user_info), {"team": "core"})
        self.assertEqual(list(self.path.parent.glob("*.tmp")), [])

    def test_corrupt_file_raises(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(PersistenceError):
            self.store.load()

    def test_unknown_version_raises(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text(json.dumps({"version": 99, "notifications": []}), encoding="utf-8")
        with self.assertRaises(PersistenceError):
            self.store.load()

    def test_unserialisable_user_info_raises(self):
        record = LocalNotification(
            fire_date=datetime(2030, 1, 1, tzinfo=timezone.utc),
            payload=NotificationPayload(user_info={"bad": object()}),
        )
        with self.assertRaises(PersistenceError):
            self.store.save([record])
        self.assertFalse(self.path.exists())


if __name__ == "__main__":
    unittest.main()
