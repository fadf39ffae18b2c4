"""
Unit tests for the key-value store backends
"""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from database import JsonFileStore, MongoStore, build_store
from settings import Settings


class TestJsonFileStore(unittest.TestCase):
    """Test the local JSON file store"""

    def test_missing_file_means_absent(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = JsonFileStore(str(Path(tmpdir) / "store.json"))
            self.assertIsNone(store.get("luxetrack_orders"))

    def test_set_then_get(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "store.json"
            store = JsonFileStore(str(path))
            store.set("luxetrack_orders", '[{"id": "#DH1"}]')
            store.set("other", "x")

            self.assertTrue(path.exists())
            self.assertEqual(store.get("luxetrack_orders"), '[{"id": "#DH1"}]')
            self.assertEqual(JsonFileStore(str(path)).get("other"), "x")

    def test_corrupt_file_raises_value_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "store.json"
            path.write_text("{broken", encoding="utf-8")
            with self.assertRaises(ValueError):
                JsonFileStore(str(path)).get("luxetrack_orders")

    def test_set_rewrites_unreadable_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "store.json"
            path.write_text("{broken", encoding="utf-8")
            store = JsonFileStore(str(path))
            store.set("luxetrack_orders", "[]")
            self.assertEqual(store.get("luxetrack_orders"), "[]")

    def test_failed_write_removes_temp_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "store.json"
            store = JsonFileStore(str(path))
            with patch("database.os.replace", side_effect=OSError("disk full")):
                with self.assertRaises(OSError):
                    store.set("luxetrack_orders", "[]")
            self.assertFalse(Path(f"{path}.tmp").exists())
            self.assertFalse(path.exists())


class TestMongoStore(unittest.TestCase):
    """Test the MongoDB-backed store against a mocked collection"""

    def test_get(self):
        collection = MagicMock()
        collection.find_one.return_value = {"_id": "luxetrack_orders", "value": "[]"}
        store = MongoStore(collection)

        self.assertEqual(store.get("luxetrack_orders"), "[]")
        collection.find_one.assert_called_once_with({"_id": "luxetrack_orders"})

    def test_get_absent(self):
        collection = MagicMock()
        collection.find_one.return_value = None
        self.assertIsNone(MongoStore(collection).get("luxetrack_orders"))

    def test_set_upserts(self):
        collection = MagicMock()
        MongoStore(collection).set("luxetrack_orders", "[]")
        collection.replace_one.assert_called_once_with(
            {"_id": "luxetrack_orders"},
            {"_id": "luxetrack_orders", "value": "[]"},
            upsert=True,
        )


class TestBuildStore(unittest.TestCase):
    """Test backend selection from settings"""

    def test_file_backend(self):
        store = build_store(Settings(STORE_BACKEND="file", STORE_FILE="x/store.json"))
        self.assertIsInstance(store, JsonFileStore)
        self.assertEqual(store.path, "x/store.json")

    def test_mongo_backend_requires_url(self):
        with self.assertRaises(ValueError):
            build_store(Settings(STORE_BACKEND="mongo", DATABASE_URL=None, DATABASE_NAME=None))

    @patch("database.MongoClient")
    def test_mongo_backend(self, mock_client):
        settings = Settings(STORE_BACKEND="mongo", DATABASE_URL="mongodb://localhost:27017",
                            DATABASE_NAME="luxetrack", STORE_COLLECTION="kv")
        store = build_store(settings)

        self.assertIsInstance(store, MongoStore)
        mock_client.assert_called_once_with("mongodb://localhost:27017")
        mock_client.return_value.__getitem__.assert_called_once_with("luxetrack")

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            build_store(Settings(STORE_BACKEND="redis"))


if __name__ == "__main__":
    unittest.main()
