"""File logging setup tests."""

from __future__ import annotations

import logging
import tempfile
import unittest
from pathlib import Path

from infradeck.errors import ConfigurationError
from infradeck.logs import PACKAGE_LOGGER, configure_logging


class ConfigureLoggingTests(unittest.TestCase):
    def tearDown(self) -> None:
        logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    def test_reconfiguring_replaces_the_file_handler(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "logs" / "infradeck.log"
            configure_logging(path, "info")
            handler = configure_logging(path, "DEBUG")

            logging.getLogger("infradeck.git_repo").debug("checked out %s", "dev")
            handler.flush()
            text = path.read_text(encoding="utf-8")
            self.assertEqual(logging.getLogger(PACKAGE_LOGGER).handlers, [handler])
            self.tearDown()

        self.assertIn("DEBUG infradeck.git_repo: checked out dev", text)

    def test_unknown_level_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ConfigurationError):
                configure_logging(Path(tmp) / "x.log", "LOUD")


if __name__ == "__main__":
    unittest.main()
