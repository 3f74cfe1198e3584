"""Tests for bsonbench.logging."""

from __future__ import annotations

import io
import logging
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from bsonbench.logging import get_logger, setup_logging


class TestSetupLogging(unittest.TestCase):
    def tearDown(self) -> None:
        logger = logging.getLogger("bsonbench")
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.propagate = True

    def test_console_levels(self) -> None:
        for kwargs, level in (
            ({}, logging.INFO),
            ({"verbose": True}, logging.DEBUG),
            ({"quiet": True}, logging.WARNING),
            ({"verbose": True, "quiet": True}, logging.DEBUG),
        ):
            with self.subTest(**kwargs):
                logger = setup_logging(**kwargs)
                self.assertEqual(len(logger.handlers), 1)
                self.assertEqual(logger.handlers[0].level, level)

    def test_log_file_always_debug(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "run.log"
            logger = setup_logging(quiet=True, log_file=path)
            get_logger("task").debug("spawned worker")
            for handler in logger.handlers:
                handler.flush()
            self.assertIn("bsonbench.task: spawned worker", path.read_text())
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()

    def test_worker_tags_lines_with_pid(self) -> None:
        stream = io.StringIO()
        with patch("bsonbench.logging.sys.stderr", stream):
            logger = setup_logging(verbose=True, worker=True)
        get_logger("worker").warning("fixture unreadable")
        line = stream.getvalue().strip()
        self.assertRegex(line, r"^worker\[\d+\] WARNING\s+bsonbench\.worker: fixture unreadable$")
        self.assertFalse(logger.propagate)

    def test_worker_ignores_log_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "run.log"
            logger = setup_logging(worker=True, log_file=path)
            self.assertEqual(len(logger.handlers), 1)
            self.assertFalse(path.exists())

    def test_reconfiguration_replaces_handlers(self) -> None:
        setup_logging(worker=True)
        logger = setup_logging()
        self.assertEqual(len(logger.handlers), 1)
        self.assertTrue(logger.propagate)


if __name__ == "__main__":
    unittest.main()
