"""serdekit command-line interface.

Usage:
    echo '{"a": [1, 2]}' | python3 -m serdekit convert --from json --to msgpack -o out.bin
    python3 -m serdekit convert --from msgpack --to json --pretty -i out.bin
    echo "{a: 1, // note
    }" | python3 -m serdekit check --from json5
    echo '{"a": true}' | python3 -m serdekit hexdump
    python3 -m serdekit version
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, List, NoReturn, Optional

from . import __version__, json, msgpack
from ._constants import DEFAULT_INDENT, DEFAULT_MAX_DEPTH
from ._errors import ErrorInfo
from ._io import read_file, write_file

_INPUTS = ("json", "json5", "msgpack")
_OUTPUTS = ("json", "msgpack")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="serdekit",
        description="serdekit — convert and validate JSON, JSON5 and MessagePack",
    )
    sub = parser.add_subparsers(dest="command")

    def add_input(p: argparse.ArgumentParser, default: str) -> None:
        p.add_argument("--from", dest="source", choices=_INPUTS, default=default,
                       help="Input format (default: %(default)s)")
        p.add_argument("--input", "-i", metavar="FILE",
                       help="Read from FILE instead of stdin")
        p.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH, metavar="N",
                       help="Nesting limit (default: %(default)s)")

    # ── convert ──
    convert_p = sub.add_parser("convert", help="Convert between formats")
    add_input(convert_p, "json")
    convert_p.add_argument("--to", dest="target", choices=_OUTPUTS, required=True,
                           help="Output format")
    convert_p.add_argument("--pretty", action="store_true",
                           help="Indented JSON output")
    convert_p.add_argument("--indent", metavar="S",
                           help="Indent unit for --pretty (default: two spaces)")
    convert_p.add_argument("--output", "-o", metavar="FILE",
                           help="Write to FILE instead of stdout")

    # ── hexdump ──
    hex_p = sub.add_parser("hexdump", help="Print the canonical MessagePack encoding as hex")
    add_input(hex_p, "json")

    # ── check ──
    check_p = sub.add_parser("check", help="Validate input; exit 0 if it parses")
    add_input(check_p, "json")

    # ── version ──
    sub.add_parser("version", help="Print version and exit")

    return parser


def _die(info: ErrorInfo) -> NoReturn:
    print(f"serdekit: error [{info.kind}]: {_describe(info)}", file=sys.stderr)
    sys.exit(2)


def _describe(info: ErrorInfo) -> str:
    if info.has_position:
        return f"{info.message} at {info.describe_position()}"
    return info.message


def _read_input(filepath: Optional[str]) -> bytes:
    """Read raw bytes from a file or stdin."""
    if filepath:
        res = read_file(filepath)
        if res.is_err():
            _die(res.error)
        return res.value
    if sys.stdin.isatty():
        print("serdekit: reading from stdin (Ctrl-D to end)...", file=sys.stderr)
    return sys.stdin.buffer.read()


def _load(args: argparse.Namespace) -> Any:
    raw = _read_input(args.input)
    if args.source == "msgpack":
        res = msgpack.from_array_to_value(raw, max_depth=args.max_depth)
    else:
        res = json.from_str(raw, json5=args.source == "json5", max_depth=args.max_depth)
    if res.is_err():
        _die(res.error)
    return res.value


def _cmd_convert(args: argparse.Namespace) -> None:
    value = _load(args)

    if args.target == "msgpack":
        res = msgpack.to_array(value, max_depth=args.max_depth)
    else:
        if args.pretty or args.indent is not None:
            indent = DEFAULT_INDENT if args.indent is None else args.indent
            res = json.to_string_pretty_indent(value, indent, max_depth=args.max_depth)
        else:
            res = json.to_string(value, max_depth=args.max_depth)
        res = res.map(lambda text: (text + "\n").encode("utf-8"))
    if res.is_err():
        _die(res.error)

    if args.output:
        written = write_file(args.output, res.value)
        if written.is_err():
            _die(written.error)
    else:
        sys.stdout.buffer.write(res.value)
        sys.stdout.buffer.flush()


def _cmd_hexdump(args: argparse.Namespace) -> None:
    value = _load(args)
    res = msgpack.to_string(value, max_depth=args.max_depth)
    if res.is_err():
        _die(res.error)
    print(res.value)


def _cmd_check(args: argparse.Namespace) -> None:
    _load(args)
    print("ok")


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "version":
        print(f"serdekit {__version__}")
        return

    try:
        if args.command == "convert":
            _cmd_convert(args)
        elif args.command == "hexdump":
            _cmd_hexdump(args)
        elif args.command == "check":
            _cmd_check(args)
    except ValueError as e:
        # bad --indent or --max-depth
        print(f"serdekit: error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
