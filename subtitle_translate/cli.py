"""Command-line interface for subtitle-translate.

WHY: Users need a single command that takes a subtitle file, a target
language and an output path, and leaves a translated subtitle file
behind with the original timing and styling. The CLI wires together
parsing, the translation engine, a backend, and file saving.

HOW: Uses argparse to accept the source file, target language and
destination, plus backend, throttling and failure-policy options whose
defaults come from config.py. Runs the async pipeline via
asyncio.run(). Status messages go to stderr; logging is configured on
stderr from -v/-q. Ctrl-C sets the run's cancellation event.

RULES:
- Positional arguments: SOURCE TARGET_LANGUAGE DESTINATION
- Language codes are lowercased before use
- Output format: --output-format, else the destination suffix, else the
  source file's own format (SRT for input-only ASS/SSA sources)
- The destination is only written when the run succeeds
- Exit codes: 0 ok, 1 I/O or configuration error, 2 usage, 3 parse
  error, 4 translation error, 130 interrupted
- Status output goes to stderr (not stdout)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from subtitle_translate import __version__
from subtitle_translate.backends import BACKENDS, create_backend
from subtitle_translate.backends.base import TranslationBackend
from subtitle_translate.codecs import WRITABLE_FORMATS, output_format, parse, serialize
from subtitle_translate.config import (
    DEFAULT_BACKEND,
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_BATCH_CHARS,
    DEFAULT_RATE_LIMIT,
    DEFAULT_RATE_WINDOW_S,
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_SOURCE_LANGUAGE,
    LIBRETRANSLATE_URL,
    SUPPORTED_EXTENSIONS,
)
from subtitle_translate.core.driver import DriverSettings, FailurePolicy
from subtitle_translate.core.errors import DriverError, DriverErrorKind, ParseError
from subtitle_translate.core.model import Document
from subtitle_translate.core.pipeline import TranslationReport, translate_document

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_IO_ERROR = 1
EXIT_USAGE = 2
EXIT_PARSE_ERROR = 3
EXIT_DRIVER_ERROR = 4
EXIT_INTERRUPTED = 130


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so the CLI can be piped.

    RULES:
    - All status messages go to stderr
    - Always flush after writing
    """
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str, code: int) -> None:
    print("Error: {}".format(msg), file=sys.stderr, flush=True)
    sys.exit(code)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError("expected an integer, got '{}'".format(value))
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1, got {}".format(number))
    return number


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError("expected a number, got '{}'".format(value))
    if number <= 0:
        raise argparse.ArgumentTypeError("must be positive, got {}".format(value))
    return number


def _configure_logging(verbose: int, quiet: bool) -> None:
    """Route engine logging to stderr at the level chosen by -v/-q."""
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _resolve_output_format(args: argparse.Namespace, destination: Path) -> Optional[str]:
    """Pick the output format key, or None to keep the source format.

    A destination suffix naming an input-only format (.ass, .ssa) does
    not count; the document is then written in its default output format.
    """
    if args.output_format:
        return args.output_format
    fmt = SUPPORTED_EXTENSIONS.get(destination.suffix.lower())
    return fmt if fmt in WRITABLE_FORMATS else None


def _build_settings(args: argparse.Namespace) -> DriverSettings:
    policy = None
    if args.strict is not None:
        policy = FailurePolicy.STRICT if args.strict else FailurePolicy.DEGRADED
    return DriverSettings(
        concurrency=args.concurrency,
        rate_limit=args.rate_limit,
        rate_window_s=args.rate_window,
        max_attempts=args.max_attempts,
        request_timeout_s=args.timeout,
        policy=policy,
    )


async def _run_translation(
    document: Document,
    args: argparse.Namespace,
    backend: TranslationBackend,
    settings: DriverSettings,
) -> TranslationReport:
    """Run the pipeline with Ctrl-C wired to the cancellation event."""
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # Windows event loops: Ctrl-C surfaces as KeyboardInterrupt instead.
        handler_installed = False

    try:
        async with backend:
            return await translate_document(
                document,
                args.target_language,
                backend,
                source_language=args.language_from,
                max_batch_size=args.max_batch_size,
                settings=settings,
                cancel=cancel,
            )
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def run(args: argparse.Namespace) -> None:
    """Execute a full translation from parsed arguments.

    WHY: Separated from main() so every failure path maps to exactly one
    exit code in one place.

    HOW: Validates paths and settings, parses the source, runs the
    pipeline, serialises, and writes the destination. Each stage's
    typed error becomes its exit code via _fail().
    """
    source = Path(args.source)
    destination = Path(args.destination)
    quiet = args.quiet

    if not source.is_file():
        _fail("File not found: {}".format(source), EXIT_IO_ERROR)
    if not destination.parent.is_dir():
        _fail("Output directory does not exist: {}".format(destination.parent), EXIT_IO_ERROR)

    target_format = _resolve_output_format(args, destination)
    try:
        settings = _build_settings(args)
    except ValueError as e:
        _fail(str(e), EXIT_IO_ERROR)

    if not quiet:
        _status("Reading {}...".format(source.name))
    try:
        raw = source.read_bytes()
    except OSError as e:
        _fail("Could not read {}: {}".format(source, e), EXIT_IO_ERROR)

    try:
        document = parse(raw, encoding=args.encoding)
    except ParseError as e:
        _fail("Could not parse {}: {}".format(source.name, e), EXIT_PARSE_ERROR)
    if not quiet:
        _status("  {} cues ({})".format(len(document), document.format.value))
    if target_format is None:
        target_format = output_format(document).value
        if target_format != document.format.value and not quiet:
            _status("  {} output is not supported; writing {}".format(
                document.format.value, target_format
            ))

    backend = create_backend(
        args.backend,
        url=args.libretranslate_instance,
        api_key=args.libretranslate_apikey,
        timeout=args.timeout,
    )
    if not quiet:
        _status("Translating {} to {} via {}...".format(
            args.language_from, args.target_language, backend.name
        ))

    try:
        report = asyncio.run(_run_translation(document, args, backend, settings))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(EXIT_INTERRUPTED)
    except DriverError as e:
        if e.kind is DriverErrorKind.CANCELLED:
            _status("\nCancelled by user.")
            sys.exit(EXIT_INTERRUPTED)
        _fail("Translation failed: {}".format(e), EXIT_DRIVER_ERROR)

    try:
        data = serialize(report.document, target_format, encoding=args.encoding)
    except UnicodeEncodeError as e:
        _fail("Translated text cannot be encoded as {}: {}".format(args.encoding, e), EXIT_IO_ERROR)

    try:
        destination.write_bytes(data)
    except OSError as e:
        _fail("Could not write {}: {}".format(destination, e), EXIT_IO_ERROR)

    if report.fallback_cues:
        _status("Warning: {} cue(s) kept their source text: {}".format(
            len(report.fallback_cues), ", ".join(str(n) for n in report.fallback_cues)
        ))
        for failure in report.failures:
            _status("  {}".format(failure))
    if not quiet:
        _status("Done! Saved {}".format(destination))


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable: tests can inspect the parser without running the pipeline.

    RULES:
    - Positional: source, target_language, destination
    - Defaults for every tuning flag come from config.py (and so from .env)
    - --strict/--no-strict overrides SUBTITLE_TRANSLATE_FAILURE_POLICY
    """
    parser = argparse.ArgumentParser(
        prog="subtitle-translate",
        description="Translate SRT, WebVTT, ASS and SSA subtitle files with LibreTranslate, "
                    "keeping timing and styling intact.",
    )

    parser.add_argument("source", help="Subtitle file to translate (.srt, .vtt, .ass or .ssa).")
    parser.add_argument(
        "target_language",
        type=str.lower,
        help="Language code to translate into, e.g. 'de'.",
    )
    parser.add_argument("destination", help="Where to write the translated subtitles.")

    parser.add_argument(
        "-L", "--libretranslate-instance",
        default=LIBRETRANSLATE_URL,
        help="LibreTranslate translate endpoint (default: %(default)s).",
    )
    parser.add_argument(
        "-A", "--libretranslate-apikey",
        default=None,
        help="LibreTranslate API key (default: LIBRETRANSLATE_API_KEY from the environment).",
    )
    parser.add_argument(
        "-f", "--language-from",
        type=str.lower,
        default=DEFAULT_SOURCE_LANGUAGE,
        help="Source language code, or 'auto' to detect (default: %(default)s).",
    )
    parser.add_argument(
        "--backend",
        choices=sorted(BACKENDS),
        default=DEFAULT_BACKEND,
        help="Translation backend (default: %(default)s).",
    )
    parser.add_argument(
        "-C", "--concurrency",
        type=_positive_int,
        default=DEFAULT_CONCURRENCY,
        help="Maximum requests in flight (default: %(default)s).",
    )
    parser.add_argument(
        "-B", "--max-batch-size",
        type=_positive_int,
        default=DEFAULT_MAX_BATCH_CHARS,
        help="Maximum characters per request (default: %(default)s).",
    )
    parser.add_argument(
        "--rate-limit",
        type=_positive_int,
        default=DEFAULT_RATE_LIMIT,
        help="Maximum requests per rate window (default: %(default)s).",
    )
    parser.add_argument(
        "--rate-window",
        type=_positive_float,
        default=DEFAULT_RATE_WINDOW_S,
        help="Rate window in seconds (default: %(default)s).",
    )
    parser.add_argument(
        "--max-attempts",
        type=_positive_int,
        default=DEFAULT_MAX_ATTEMPTS,
        help="Attempts per batch before giving up (default: %(default)s).",
    )
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=DEFAULT_REQUEST_TIMEOUT_S,
        help="Seconds to wait for each request (default: %(default)s).",
    )
    parser.add_argument(
        "--strict",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Abort on the first failed batch instead of keeping its source text.",
    )
    parser.add_argument(
        "--output-format",
        choices=WRITABLE_FORMATS,
        default=None,
        help="Output format (default: from the destination suffix, else the source format).",
    )
    parser.add_argument(
        "--encoding",
        default="utf-8",
        help="Text encoding of the source and destination files (default: %(default)s).",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log more (-v info, -vv debug).",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only print errors and fallback warnings.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s {}".format(__version__),
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    WHY: This is the function that __main__.py and the
    ``subtitle-translate`` console script call.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)
    run(args)


if __name__ == "__main__":
    main()
