"""Command-line interface for svgflip convert/layers workflows."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import traceback
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from .builder import parse
from .compose import compose
from .config import config
from .errors import ParseError, UnknownRuleError
from .layers import calc_layers
from .probe import ImageRatioProbe
from .rules import RULE_DESCRIPTIONS, apply_rules, resolve_rules

SUBCOMMANDS = "convert, layers, rules, proxy"


@dataclass
class CliError(Exception):
    code: str
    message: str
    hint: Optional[str] = None
    exit_code: int = 1
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    retryable: bool = True


class UsageError(Exception):
    pass


class FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # pragma: no cover - argparse callback
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = FriendlyArgumentParser(
        prog="svgflip",
        description="Rewrite image encodings in article svg markup and rank images for preloading.",
    )
    parser.add_argument("--error-format", choices=["text", "json"], default="text")
    parser.add_argument("--debug", action="store_true")

    subparsers = parser.add_subparsers(dest="command")

    convert_parser = subparsers.add_parser("convert", help="Apply rewrite rules to markup")
    convert_parser.add_argument("input", nargs="?", help="Input markup file")
    convert_parser.add_argument("--text", help="Raw markup source")
    convert_parser.add_argument(
        "--rules",
        required=True,
        help="Comma-separated rule names, applied left-to-right (see `svgflip rules`)",
    )
    convert_parser.add_argument("--proxy-url", help="Image proxy used when measuring hotlink-protected images")
    convert_parser.add_argument("--stdout", action="store_true", help="Write markup to stdout")
    convert_parser.add_argument("-o", "--output", help="Output path")

    layers_parser = subparsers.add_parser("layers", help="Rank images by estimated paint order")
    layers_parser.add_argument("input", nargs="?", help="Input markup file")
    layers_parser.add_argument("--text", help="Raw markup source")
    layers_parser.add_argument("--top", type=int, default=3, help="Number of images to preload")
    layers_parser.add_argument("--json", action="store_true", help="Print the full report as JSON")

    subparsers.add_parser("rules", help="List available rewrite rules")

    proxy_parser = subparsers.add_parser("proxy", help="Run the image proxy service")
    proxy_parser.add_argument("--host", default=None)
    proxy_parser.add_argument("--port", type=int, default=None)

    return parser


def _read_input(path: Optional[str], text: Optional[str]) -> tuple[str, str, Optional[Path]]:
    if path and text is not None:
        raise CliError(
            "E_ARGS",
            "--text cannot be combined with file input",
            hint="Use either FILE or --text.",
            exit_code=2,
        )

    if text is not None:
        return text, "<text>", None

    if path:
        input_path = Path(path)
        if not input_path.exists():
            raise CliError(
                "E_IO_READ",
                f"input file not found: {input_path}",
                exit_code=2,
                file=str(input_path),
            )
        try:
            return input_path.read_text(encoding="utf-8"), str(input_path), input_path
        except OSError as exc:
            raise CliError(
                "E_IO_READ",
                f"failed to read input file: {input_path}",
                hint=str(exc),
                exit_code=2,
                file=str(input_path),
            )

    if sys.stdin.isatty():
        raise CliError(
            "E_ARGS",
            "no input provided",
            hint="Use a subcommand with FILE, --text, or pipe stdin.",
            exit_code=2,
        )

    data = sys.stdin.read()
    if not data.strip():
        raise CliError(
            "E_ARGS",
            "stdin was empty",
            hint="Pipe markup into stdin.",
            exit_code=2,
        )
    return data, "<stdin>", None


def _write_text(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise CliError(
            "E_IO_WRITE",
            f"failed to write output file: {path}",
            hint=str(exc),
            exit_code=4,
            file=str(path),
        )


def _error_from_exception(exc: Exception) -> CliError:
    if isinstance(exc, CliError):
        return exc
    if isinstance(exc, ParseError):
        return CliError(
            exc.code,
            f"failed to parse markup: {exc}",
            hint="The markup is still not well-formed after repair; check for stray tags.",
            exit_code=2,
            line=exc.line,
            column=exc.column,
            retryable=True,
        )
    if isinstance(exc, UnknownRuleError):
        return CliError(
            exc.code,
            str(exc),
            hint="Run `svgflip rules` to list rule names.",
            exit_code=3,
            retryable=True,
        )
    return CliError(
        "E_INTERNAL",
        str(exc) or exc.__class__.__name__,
        hint="Re-run with --debug to see traceback.",
        exit_code=1,
        retryable=False,
    )


def _emit_error(err: CliError, *, error_format: str) -> None:
    if error_format == "json":
        payload = {
            "ok": False,
            "code": err.code,
            "message": err.message,
            "file": err.file,
            "line": err.line,
            "column": err.column,
            "hint": err.hint,
            "retryable": err.retryable,
        }
        sys.stderr.write(json.dumps(payload) + "\n")
        return

    sys.stderr.write(f"error[{err.code}]: {err.message}\n")
    if err.hint:
        sys.stderr.write(f"hint: {err.hint}\n")


def _split_rules(value: str) -> List[str]:
    return resolve_rules(value.split(","))


def _handle_convert(args: argparse.Namespace) -> int:
    if args.stdout and args.output:
        raise CliError(
            "E_ARGS",
            "--stdout and --output are mutually exclusive",
            hint="Choose either --stdout or --output.",
            exit_code=2,
        )

    rule_names = _split_rules(args.rules)
    source, _source_name, source_path = _read_input(args.input, args.text)
    probe = ImageRatioProbe(proxy_url=args.proxy_url or config.proxy_url, timeout=config.probe_timeout)

    tree = parse(source)
    asyncio.run(apply_rules(tree, rule_names, probe=probe, timeout=config.probe_timeout))
    markup = compose(tree)

    if args.stdout or (source_path is None and not args.output):
        sys.stdout.write(markup)
        if not markup.endswith("\n"):
            sys.stdout.write("\n")
        return 0

    output_path = Path(args.output) if args.output else source_path.with_name(f"{source_path.stem}.flipped{source_path.suffix}")
    _write_text(output_path, markup)
    print(f"Wrote {output_path}")
    return 0


def _handle_layers(args: argparse.Namespace) -> int:
    source, _source_name, _source_path = _read_input(args.input, args.text)
    report = calc_layers(parse(source), args.top)

    if args.json:
        print(json.dumps(asdict(report), ensure_ascii=False, indent=2))
        return 0

    for detail in report.details:
        print(f"{detail.layer:>8.2f}  #{detail.global_order:<3d} {detail.url}")
    if report.top_urls:
        print(report.preload_fragment)
    return 0


def _handle_rules(_args: argparse.Namespace) -> int:
    for name, description in RULE_DESCRIPTIONS.items():
        print(f"{name:<12} {description}")
    return 0


def _handle_proxy(args: argparse.Namespace) -> int:
    from .proxy import serve

    serve(host=args.host, port=args.port)
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    parser = _build_parser()

    if not raw_argv:
        err = CliError(
            "E_ARGS",
            "missing subcommand",
            hint=f"Use one of: {SUBCOMMANDS}.",
            exit_code=2,
        )
        _emit_error(err, error_format="text")
        return err.exit_code

    debug_enabled = "--debug" in raw_argv or config.debug
    error_format = "text"
    if "--error-format" in raw_argv:
        idx = raw_argv.index("--error-format")
        if idx + 1 < len(raw_argv):
            error_format = raw_argv[idx + 1]

    logging.basicConfig(
        level=logging.DEBUG if debug_enabled else getattr(logging, config.log_level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        args = parser.parse_args(raw_argv)
        error_format = args.error_format

        if args.command == "convert":
            return _handle_convert(args)
        if args.command == "layers":
            return _handle_layers(args)
        if args.command == "rules":
            return _handle_rules(args)
        if args.command == "proxy":
            return _handle_proxy(args)

        raise CliError(
            "E_ARGS",
            "missing subcommand",
            hint=f"Use one of: {SUBCOMMANDS}.",
            exit_code=2,
        )
    except UsageError as exc:
        err = CliError(
            "E_ARGS",
            str(exc),
            hint=f"Use subcommands: {SUBCOMMANDS}.",
            exit_code=2,
        )
        _emit_error(err, error_format=error_format)
        return err.exit_code
    except Exception as exc:  # pragma: no cover - exercised in integration tests
        err = _error_from_exception(exc)
        _emit_error(err, error_format=error_format)
        if debug_enabled:
            traceback.print_exc(file=sys.stderr)
        return err.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
