import json
import logging
import unittest
from typing import List

from miniml.logging import JSONFormatter, MiniMLLogger


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: List[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


class TestMiniMLLogger(unittest.TestCase):
    def setUp(self) -> None:
        self.logger = logging.getLogger('miniml.tests.test_logging')
        self.logger.propagate = False
        self.handler = _ListHandler()
        self.logger.addHandler(self.handler)
        self.addCleanup(self.logger.removeHandler, self.handler)

    def test_format_arguments(self) -> None:
        self.logger.setLevel(logging.DEBUG)
        MiniMLLogger(self.logger).debug('{} and {name}', 1, name='two')
        [record] = self.handler.records
        self.assertEqual(record.getMessage(), '1 and two')

    def test_disabled_level_is_skipped(self) -> None:
        self.logger.setLevel(logging.INFO)
        MiniMLLogger(self.logger).debug('hidden {}', object())
        self.assertEqual(self.handler.records, [])

    def test_json_formatter_reports_caller(self) -> None:
        self.logger.setLevel(logging.DEBUG)
        MiniMLLogger(self.logger).debug('hello {}', 'world')
        [record] = self.handler.records
        formatted = json.loads(JSONFormatter().format(record))
        self.assertEqual(formatted['message'], 'hello world')
        self.assertEqual(formatted['level_name'], 'DEBUG')
        self.assertEqual(
            formatted['function_name'], 'test_json_formatter_reports_caller'
        )
        self.assertEqual(formatted['file_name'], 'test_logging.py')
        self.assertIsNone(formatted['exception'])
