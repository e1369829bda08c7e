import logging
import unittest
from fakes import WorkspaceMixin


class TradingLoggerTests(WorkspaceMixin, unittest.TestCase):
    def test_child_writes_to_the_run_file(self):
        self.logger.child("router").info("jito accepted buy MintA in 12ms")
        for handler in self.logger.logger.handlers:
            handler.flush()

        files = list((self.tmp_path / "logs").glob("memebot_*.log"))
        self.assertEqual(len(files), 1)
        text = files[0].read_text(encoding="utf-8")
        self.assertIn(".router: jito accepted buy MintA in 12ms", text)
        self.assertIn("[INFO]", text)

    def test_transport_loggers_are_quiet(self):
        self.assertEqual(logging.getLogger("websockets").level, logging.WARNING)


if __name__ == "__main__":
    unittest.main()
