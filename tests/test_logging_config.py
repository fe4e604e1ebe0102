import logging
import shutil
import sys
import unittest
from pathlib import Path
from uuid import uuid4

from loguru import logger

from docuchat_agent.logging_config import InterceptHandler, setup_logging

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class SetupLoggingTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = PROJECT_ROOT / ".test-artifacts" / f"setuploggingtests-{uuid4().hex}"
        self._log_path = self._tmp_dir / "docuchat.log"
        self._root_handlers = list(logging.root.handlers)

    def tearDown(self) -> None:
        logger.remove()
        logger.add(sys.stderr)
        logging.root.handlers = self._root_handlers
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def _read_log(self) -> str:
        # Removing the sinks drains the enqueued file writer.
        logger.remove()
        return self._log_path.read_text()

    def test_file_lines_tagged_with_session(self) -> None:
        setup_logging("INFO", [{"type": "file", "path": str(self._log_path)}])

        logger.info("startup")
        with logger.contextualize(session_id="s1"):
            logger.info("answering")

        lines = self._read_log().splitlines()
        self.assertIn("session=- |", lines[0])
        self.assertIn("session=s1 |", lines[1])
        self.assertTrue(lines[1].endswith("answering"))

    def test_uvicorn_records_routed_through_loguru(self) -> None:
        setup_logging("INFO", [{"type": "file", "path": str(self._log_path)}])

        logging.getLogger("uvicorn.access").info("GET /health 200")

        self.assertTrue(any(isinstance(h, InterceptHandler) for h in logging.root.handlers))
        self.assertIn("GET /health 200", self._read_log())

    def test_unknown_consumer_skipped(self) -> None:
        descriptions = setup_logging(
            "DEBUG",
            [{"type": "syslog"}, {"type": "file", "path": str(self._log_path), "level": "WARNING"}],
        )

        self.assertEqual([f"file ({self._log_path}, WARNING)"], descriptions)


if __name__ == "__main__":
    unittest.main()
