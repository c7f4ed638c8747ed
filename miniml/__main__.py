"""Infer and print the types of a MiniML program."""

import argparse
import io
import json
import logging
import sys
from typing import IO, AnyStr, Callable, List, Optional, Sequence

import parsy

import miniml.lex
import miniml.logging
import miniml.parse
import miniml.typecheck
from miniml.error_reporting import (
    create_lexical_error_message,
    create_parsing_failure_message,
    create_static_analysis_error_message,
)
from miniml.typecheck.errors import StaticAnalysisError

filename = '<stdin>'


def file_type(mode: str) -> Callable[[str], IO[AnyStr]]:
    """Capture the filename and create a file object."""

    def func(name: str) -> IO[AnyStr]:
        global filename
        filename = name
        return open(name, mode=mode)

    return func


arg_parser = argparse.ArgumentParser(
    prog='miniml', description='Infer the types of a MiniML program.'
)
arg_parser.add_argument(
    'file',
    nargs='?',
    type=file_type('r'),
    default=sys.stdin,
    help='file to check',
)
arg_parser.add_argument(
    '--verbose',
    action='store_true',
    default=False,
    help='print internal logs and errors',
)
arg_parser.add_argument(
    '--log-file',
    default=None,
    help='write internal logs as JSON lines to this file',
)
arg_parser.add_argument(
    '--tokenize',
    action='store_true',
    default=False,
    help=(
        'tokenize input from the given file and print the tokens as a JSON '
        'array'
    ),
)
arg_parser.add_argument(
    '--no-preamble',
    action='store_true',
    default=False,
    help="don't make the builtin operators and functions available",
)


def configure_logging(args: argparse.Namespace) -> None:
    logger = logging.getLogger('miniml')
    if args.verbose:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
    if args.log_file is not None:
        file_handler = logging.FileHandler(args.log_file)
        file_handler.setFormatter(miniml.logging.JSONFormatter())
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)


def check(args: argparse.Namespace) -> int:
    tokens: List[miniml.lex.Token] = []
    # Standard input can't seek, so keep the source around for messages.
    source = io.StringIO(args.file.read())
    try:
        tokens = miniml.lex.tokenize(source.getvalue())
        structure = miniml.parse.build_parsers().parse(tokens)
        env = miniml.typecheck.run_infer(
            structure, with_preamble=not args.no_preamble
        )
    except miniml.lex.LexicalError as e:
        print('Lexical error:', file=sys.stderr)
        print(
            create_lexical_error_message(source, e.location, e.message),
            file=sys.stderr,
        )
        return 1
    except parsy.ParseError as e:
        print('Parse error:', file=sys.stderr)
        print(
            create_parsing_failure_message(source, tokens, e),
            file=sys.stderr,
        )
        return 1
    except StaticAnalysisError as e:
        print(f'Static analysis error in {filename}:', file=sys.stderr)
        if e.location:
            print(
                create_static_analysis_error_message(
                    source, e.location, e.message
                ),
                file=sys.stderr,
            )
        else:
            print(e, file=sys.stderr)
        if args.verbose:
            raise
        return 1
    finally:
        args.file.close()
    for name, scheme in env.items():
        print(f'val {miniml.parse.IdentifierNode(name)} : {scheme}')
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = arg_parser.parse_args(argv)
    configure_logging(args)
    if args.tokenize:
        code = args.file.read()
        tokens = miniml.lex.tokenize(code)
        json.dump(tokens, sys.stdout, cls=miniml.lex.TokenEncoder)
        sys.exit()
    sys.exit(check(args))


if __name__ == '__main__':
    main()
