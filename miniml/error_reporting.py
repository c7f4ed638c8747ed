import io
from typing import Sequence, TextIO

import parsy

import miniml.lex
from miniml.location import Location


def get_line_at(file: TextIO, location: Location) -> str:
    file.seek(0, io.SEEK_SET)
    lines = [*file]
    if location[0] - 1 >= len(lines):
        return ''
    return lines[location[0] - 1]


def _caret_line(file: TextIO, location: Location) -> str:
    line = get_line_at(file, location)
    return f'{line.rstrip()}\n{' ' * location[1] + '^'}'


def create_parsing_failure_message(
    file: TextIO,
    stream: Sequence[miniml.lex.Token],
    failure: parsy.ParseError,
) -> str:
    if failure.index < len(stream):
        location = stream[failure.index].start
    elif stream:
        location = stream[-1].start
    else:
        location = (1, 0)
    expected = ' or '.join(sorted(failure.expected))
    message = (
        f'Expected {expected} at line {location[0]}, '
        f'column {location[1] + 1}:\n'
        f'{_caret_line(file, location)}'
    )
    return message


def create_lexical_error_message(
    file: TextIO, location: Location, message: str
) -> str:
    message = (
        f'Cannot tokenize file at line {location[0]}, '
        f'column {location[1] + 1} ({message}):\n'
        f'{_caret_line(file, location)}\n'
    )
    return message


def create_static_analysis_error_message(
    file: TextIO, location: Location, message: str
) -> str:
    return (
        f'{message} at line {location[0]}, column {location[1] + 1}:\n'
        f'{_caret_line(file, location)}\n'
    )
