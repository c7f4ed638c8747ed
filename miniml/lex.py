"""The MiniML lexer."""

from __future__ import annotations

import dataclasses
import json
import re
import sys
from typing import List, Optional, Tuple

from miniml.location import Location, format_location


@dataclasses.dataclass
class Token:
    """Class to represent tokens.

    self.type - token type, as string.
    self.value - token value, as string.
    self.start - starting position of token in source, as (line, col)
    self.end - ending position of token in source, as (line, col)
    """

    type: str = ''
    value: str = ''
    start: Location = (0, 0)
    end: Location = (0, 0)


class TokenEncoder(json.JSONEncoder):
    """Extension of the default JSON Encoder that supports Token objects."""

    def default(self, obj):
        if isinstance(obj, Token):
            return obj.__dict__
        return super().default(obj)


class LexicalError(Exception):
    def __init__(self, message: str, location: Location) -> None:
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self) -> str:
        return '{} at {}'.format(self.message, format_location(self.location))


keywords = {
    'let',
    'rec',
    'and',
    'in',
    'fun',
    'function',
    'match',
    'with',
    'if',
    'then',
    'else',
    'true',
    'false',
    'type',
    'None',
    'Some',
}

operators = [
    '::',
    '&&',
    '||',
    '<>',
    '<=',
    '>=',
    '+.',
    '-.',
    '*.',
    '/.',
    '+',
    '-',
    '*',
    '/',
    '=',
    '<',
    '>',
]

_punctuation = {
    ';;': 'DOUBLESEMI',
    '->': 'ARROW',
    '(': 'LPAR',
    ')': 'RPAR',
    '[': 'LSQB',
    ']': 'RSQB',
    ',': 'COMMA',
    ';': 'SEMI',
    '|': 'BAR',
    ':': 'COLON',
    '^': 'CARET',
}

_token_specification = [
    ('NEWLINE', r'\n'),
    ('WHITESPACE', r'[ \t\r\f]+'),
    ('MEASURE_ATTRIBUTE', r'\[<\s*Measure\s*>\]'),
    ('FLOAT', r'\d+\.\d*(?:[eE][+-]?\d+)?|\d+[eE][+-]?\d+'),
    ('INT', r'\d+'),
    ('CHAR', r"'(?:\\.|[^\\'\n])'"),
    ('TYVAR', r"'[A-Za-z_][A-Za-z0-9_']*"),
    ('STRING', r'"(?:\\.|[^"\\\n])*"'),
    ('NAME', r"[A-Za-z_][A-Za-z0-9_']*"),
    (
        'SYMBOL',
        '|'.join(
            re.escape(symbol)
            for symbol in sorted(
                [*_punctuation, *operators], key=len, reverse=True
            )
        ),
    ),
]

_token_regex = re.compile(
    '|'.join(f'(?P<{name}>{regex})' for name, regex in _token_specification)
)


def tokenize(code: str) -> List[Token]:
    lexer = Lexer()
    lexer.input(code)
    tokens = []
    while True:
        token = lexer.token()
        if token is None:
            break
        tokens.append(token)
    return tokens


class Lexer:
    """Lexes the input given at initialization.

    Use token() to get the next token. The last token is always an
    ENDMARKER."""

    def input(self, data: str) -> None:
        """Initialize the Lexer object with the data to tokenize."""
        self.data = data
        self.lexpos = 0
        self.lineno = 1
        self._line_start = 0
        self._finished = False

    def token(self) -> Optional[Token]:
        """Return the next token as a Token object."""
        while True:
            if self._finished:
                return None
            if self.lexpos >= len(self.data):
                self._finished = True
                location = self._location()
                return Token('ENDMARKER', '', location, location)
            if self.data.startswith('(*', self.lexpos) and not (
                self.data.startswith('(*)', self.lexpos)
            ):
                self._skip_comment()
                continue
            match = _token_regex.match(self.data, self.lexpos)
            if match is None:
                raise LexicalError(
                    f'unexpected character {self.data[self.lexpos]!r}',
                    self._location(),
                )
            kind = match.lastgroup
            value = match.group()
            start = self._location()
            self._advance(value)
            if kind in {'NEWLINE', 'WHITESPACE'}:
                continue
            tok = Token(self._token_type(kind, value), value, start)
            tok.end = self._location()
            return tok

    def _token_type(self, kind: Optional[str], value: str) -> str:
        if kind == 'NAME':
            if value in keywords:
                return value.upper()
            if value == '_':
                return 'UNDERSCORE'
            return 'NAME'
        if kind == 'SYMBOL':
            return _punctuation.get(value, 'OPERATOR')
        assert kind is not None
        return kind

    def _skip_comment(self) -> None:
        start = self._location()
        depth = 0
        while self.lexpos < len(self.data):
            if self.data.startswith('(*', self.lexpos):
                depth += 1
                self._advance('(*')
            elif self.data.startswith('*)', self.lexpos):
                depth -= 1
                self._advance('*)')
                if depth == 0:
                    return
            else:
                self._advance(self.data[self.lexpos])
        raise LexicalError('unterminated comment', start)

    def _advance(self, text: str) -> None:
        for offset, char in enumerate(text):
            if char == '\n':
                self.lineno += 1
                self._line_start = self.lexpos + offset + 1
        self.lexpos += len(text)

    def _location(self) -> Location:
        return (self.lineno, self.lexpos - self._line_start)


def to_tokens(*tok_tuples: Tuple[str, str, Location, Location]) -> List[Token]:
    return [Token(*tuple) for tuple in tok_tuples]


if __name__ == '__main__':
    for token_ in tokenize(sys.stdin.read()):
        print(repr(token_))
