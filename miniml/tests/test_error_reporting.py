import io
import unittest

import parsy

import miniml.lex
import miniml.parse
from miniml.error_reporting import (
    create_lexical_error_message,
    create_parsing_failure_message,
    create_static_analysis_error_message,
    get_line_at,
)


class TestErrorReporting(unittest.TestCase):
    def test_get_line_at(self) -> None:
        file = io.StringIO('let x = 1\nlet y = 2\n')
        self.assertEqual(get_line_at(file, (2, 4)), 'let y = 2\n')

    def test_parsing_failure_points_at_bad_token(self) -> None:
        code = 'let x = 1\nlet = 2\n'
        tokens = miniml.lex.tokenize(code)
        with self.assertRaises(parsy.ParseError) as cm:
            miniml.parse.build_parsers().parse(tokens)
        message = create_parsing_failure_message(
            io.StringIO(code), tokens, cm.exception
        )
        self.assertTrue(message.startswith('Expected '))
        self.assertIn('at line 2, column 5:\nlet = 2\n    ^', message)

    def test_lexical_error_message(self) -> None:
        message = create_lexical_error_message(
            io.StringIO('let x = $\n'), (1, 8), "unexpected character '$'"
        )
        self.assertEqual(
            message,
            'Cannot tokenize file at line 1, column 9 '
            "(unexpected character '$'):\n"
            'let x = $\n'
            '        ^\n',
        )

    def test_static_analysis_error_message(self) -> None:
        message = create_static_analysis_error_message(
            io.StringIO('let y = z\n'), (1, 8), "name 'z' not previously defined"
        )
        self.assertEqual(
            message,
            "name 'z' not previously defined at line 1, column 9:\n"
            'let y = z\n'
            '        ^\n',
        )
