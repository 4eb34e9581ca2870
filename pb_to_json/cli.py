"""Console script for pb_to_json."""
import argparse
import os
import sys
import textwrap
from typing import List, Optional

from pydantic import ValidationError
from typing_extensions import Literal

from pb_to_json import __version__
from pb_to_json.pb_to_json import (
    EnvVariable, Converter, ConverterOptions, MalformedLineError, POLICY_NAMES
)

OutputFormat = Literal['json', 'yaml']
OUTPUT_FORMATS: List[OutputFormat] = ['json', 'yaml']

STDIN_STDOUT = '-'


def get_width() -> int:
    """Help text width, taken from $COLUMNS the same way argparse sizes its own help"""
    try:
        width = int(os.environ['COLUMNS'])
    except (KeyError, ValueError):
        width = 80
    width -= 2

    return width


def wrap_text(unformatted_text, **kwargs):
    width = get_width()
    return_str = ''
    for line in textwrap.wrap(unformatted_text, width, **kwargs):
        return_str += line + "\n"
    return return_str


def get_command_description() -> str:
    return wrap_text(
        "Convert protobuf-like text (`key: \"value\"` lines and `key { ... }` blocks) to JSON.  Every value comes"
        " out as a string and repeated top level fields become lists"
    )


def get_command_epilogue() -> str:
    return_str = 'Environment Variables:\n'
    for env_variable in EnvVariable.registry:
        return_str += wrap_text(
            f"{env_variable.env_name}: {env_variable.description}\n",
            initial_indent=' ' * 4,
            subsequent_indent=' ' * 8
        )
    return return_str


def get_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='pb2json',
        description=get_command_description(),
        epilog=get_command_epilogue(),
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument('file', nargs='?', default=STDIN_STDOUT,
                        help='File to convert.  Default: read from stdin')
    parser.add_argument('-o', '--output', default=STDIN_STDOUT,
                        help='File to write the output to.  Default: stdout')
    parser.add_argument('-f', '--format', default='json', choices=OUTPUT_FORMATS, type=str.lower,
                        help='Output format.  Default: json')
    parser.add_argument('--indent', type=int, default=None,
                        help='Spaces to indent JSON output with')
    parser.add_argument('--sort-keys', action='store_true', default=None,
                        help='Sort the output keys instead of keeping the input order')
    parser.add_argument('--no-sort-keys', action='store_false', dest='sort_keys', default=None,
                        help='Keep the input order, even if PB2JSON_SORT_KEYS is set')
    parser.add_argument('--on-malformed-line', choices=POLICY_NAMES, default=None,
                        help='What to do with lines that cannot be parsed')
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")

    return parser


def read_input(file: str) -> str:
    if file == STDIN_STDOUT:
        return sys.stdin.read()
    else:
        with open(file, 'r', encoding='utf-8', errors='replace') as fh:
            return fh.read()


def write_output(output: str, file: str) -> None:
    if not output.endswith("\n"):
        output += "\n"
    if file == STDIN_STDOUT:
        sys.stdout.write(output)
    else:
        with open(file, 'w', encoding='utf-8') as fh:
            fh.write(output)


def main(passed_argv: Optional[List[str]] = None) -> int:
    """Console script for pb_to_json."""
    if passed_argv is None:
        argv = sys.argv
    else:
        argv = passed_argv

    args = get_arg_parser().parse_args(argv[1:])

    try:
        options = ConverterOptions.from_env(
            on_malformed_line=args.on_malformed_line,
            indent=args.indent,
            sort_keys=args.sort_keys
        )
    except (ValidationError, TypeError) as e:
        print(f"ERROR: Bad options: {str(e)}", file=sys.stderr)
        return 2

    try:
        text = read_input(args.file)
    except OSError as e:
        print(f"ERROR: Could not read {args.file!r}: {str(e)}", file=sys.stderr)
        return 2

    converter = Converter(options)
    try:
        result = converter.parse(text)
    except MalformedLineError as e:
        print(f"ERROR: {str(e)}", file=sys.stderr)
        return 1

    for warning in result.warnings:
        print(f"WARNING: {warning}", file=sys.stderr)

    if args.format == 'yaml':
        output = converter.dumps_yaml(result.document)
    else:
        output = converter.dumps(result.document)

    write_output(output, args.output)

    return 0


if __name__ == '__main__':
    exit(main())
