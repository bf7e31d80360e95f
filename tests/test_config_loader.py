import tempfile
import unittest
from pathlib import Path

from notiqueue.config_loader import load_config


class LoadConfigTests(unittest.TestCase):
    def _write(self, content: str) -> Path:
        handle = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False, encoding="utf-8")
        with handle:
            handle.write(content)
        path = Path(handle.name)
        self.addCleanup(path.unlink)
        return path

    def test_full_configuration(self):
        path = self._write(
            """
platform:
  base_url: http://localhost:8080/api/
  request_timeout: 2s
  api_token: secret
  capacity: 32
scheduler:
  capacity: 16
  queue_path: /tmp/notiqueue/queue.json
logging:
  level: debug
"""
        )
        config = load_config(path)
        self.assertEqual(config.platform.base_url, "http://localhost:8080/api/")
        self.assertEqual(config.platform.request_timeout, 2.0)
        self.assertEqual(config.platform.api_token, "secret")
        self.assertEqual(config.platform.capacity, 32)
        self.assertEqual(config.scheduler.capacity, 16)
        self.assertEqual(config.scheduler.queue_path, Path("/tmp/notiqueue/queue.json"))
        self.assertEqual(config.logging.level, "DEBUG")

    def test_defaults(self):
        config = load_config(self._write("platform:\n  base_url: http://localhost\n"))
        self.assertEqual(config.platform.capacity, 64)
        self.assertEqual(config.platform.request_timeout, 5.0)
        self.assertIsNone(config.scheduler.capacity)
        self.assertEqual(config.scheduler.queue_path, Path("./state/queue.json"))
        self.assertEqual(config.logging.level, "INFO")

    def test_rejects_non_mapping_root(self):
        with self.assertRaises(ValueError):
            load_config(self._write("- a\n- b\n"))

    def test_rejects_missing_base_url(self):
        with self.assertRaises(ValueError):
            load_config(self._write("platform: {}\n"))

    def test_rejects_zero_capacity(self):
        with self.assertRaises(ValueError):
            load_config(self._write("platform:\n  base_url: http://x\n  capacity: 0\n"))


if __name__ == "__main__":
    unittest.main()
