"""
Test the main driver that you would run with `python -m miniml`.
"""

import json
import os
import os.path
import sys
import tempfile
import unittest

from scripttest import TestFileEnvironment

example_dir = os.path.join(os.path.dirname(__file__), '..', 'examples')
examples = [
    os.path.abspath(os.path.join(example_dir, x))
    for x in sorted(os.listdir(example_dir))
    if x.endswith('.ml')
]


def expected_output(path: str) -> str:
    """Tested files each must start with a '(* OUT:' comment holding the
    expected standard output."""
    with open(path) as program:
        text = program.read()
    start, end = '(* OUT:\n', '*)'
    if not text.startswith(start):
        raise Exception('No output specified for file {}'.format(path))
    return text[len(start) : text.index(end)]


class TestMain(unittest.TestCase):
    def setUp(self) -> None:
        temporary_directory = tempfile.TemporaryDirectory()
        self.addCleanup(temporary_directory.cleanup)
        self.env = TestFileEnvironment(
            os.path.join(temporary_directory.name, 'test-output')
        )

    def run_miniml(self, *args: str, stdin: str = '', **kwargs):
        return self.env.run(
            sys.executable,
            '-m',
            'miniml',
            *args,
            stdin=stdin.encode(),
            **kwargs,
        )

    def test_examples(self) -> None:
        """Test all the examples in miniml/examples for correctness."""
        for path in examples:
            with self.subTest(example=path):
                result = self.run_miniml(path)
                self.assertEqual(result.stdout, expected_output(path))

    def test_stdin(self) -> None:
        result = self.run_miniml(stdin='let id x = x\n')
        self.assertEqual(result.stdout, "val id : 'a -> 'a\n")

    def test_type_error(self) -> None:
        result = self.run_miniml(
            stdin='let x = 1\nlet f = x true\n',
            expect_error=True,
            expect_stderr=True,
        )
        self.assertEqual(result.returncode, 1)
        self.assertEqual(result.stdout, '')
        self.assertIn('Static analysis error', result.stderr)
        self.assertIn('cannot unify int with bool -> ', result.stderr)
        self.assertIn('let f = x true\n        ^', result.stderr)

    def test_parse_error(self) -> None:
        result = self.run_miniml(
            stdin='let = 1\n', expect_error=True, expect_stderr=True
        )
        self.assertEqual(result.returncode, 1)
        self.assertIn('Parse error', result.stderr)
        self.assertIn('at line 1, column 5:\nlet = 1\n    ^', result.stderr)

    def test_lexical_error(self) -> None:
        result = self.run_miniml(
            stdin='let x = $\n', expect_error=True, expect_stderr=True
        )
        self.assertEqual(result.returncode, 1)
        self.assertIn('Lexical error', result.stderr)
        self.assertIn('column 9', result.stderr)

    def test_tokenize(self) -> None:
        result = self.run_miniml('--tokenize', stdin='let x = 1')
        tokens = json.loads(result.stdout)
        self.assertEqual(
            [token['type'] for token in tokens],
            ['LET', 'NAME', 'OPERATOR', 'INT', 'ENDMARKER'],
        )

    def test_no_preamble(self) -> None:
        result = self.run_miniml(
            '--no-preamble',
            stdin='let x = 1 + 2\n',
            expect_error=True,
            expect_stderr=True,
        )
        self.assertIn("name '+' not previously defined", result.stderr)

    def test_log_file(self) -> None:
        log_path = os.path.join(self.env.base_path, 'log.jsonl')
        self.run_miniml('--log-file', log_path, stdin='let id x = x\n')
        with open(log_path) as log:
            records = [json.loads(line) for line in log]
        self.assertTrue(records)
        self.assertTrue(
            any('generalized' in record['message'] for record in records)
        )
