"""Command-line interface for gitbook2tex."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import core, hacks
from .errors import GitbookError, PandocNotFoundError, ReplacementFileError
from .version import __version__


def _get_usage() -> str:
    return (
        f"gitbook2tex {__version__} - Converts a GitBook directory to LaTeX using Pandoc\n"
        "Usage:\n"
        "  gitbook2tex [--help] [--version|--ver]\n"
        "  gitbook2tex --source DIR --dest DIR [options]\n\n"
        "Options:\n"
        "  -s, --source DIR             Folder containing the source files\n"
        "  -d, --dest DIR               Folder where the LaTeX files will be copied\n"
        "  -p, --prefix SEGMENT         Subfolder of --dest receiving the output\n"
        "  -r, --replace-from FILE      Apply regex replacements taken from FILE\n"
        "  --pandoc PATH                Pandoc executable (fallback: GITBOOK2TEX_PANDOC, then pandoc)\n"
        "  --strict                     Abort when pandoc fails on a document\n"
        "  --verbose                    Verbose progress logs\n"
        "  --debug                      Debug logs"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False, allow_abbrev=False)
    parser.add_argument("--help", action="store_true")
    parser.add_argument("--version", action="store_true")
    parser.add_argument("--ver", action="store_true")
    parser.add_argument("-s", "--source", help="Folder containing the source files")
    parser.add_argument("-d", "--dest", help="Folder where the LaTeX files will be copied")
    parser.add_argument("-p", "--prefix", default="", help="Subfolder of --dest receiving the output")
    parser.add_argument("-r", "--replace-from", help="Apply regex replacements taken from a file")
    parser.add_argument("--pandoc", help="Pandoc executable")
    parser.add_argument("--strict", action="store_true", help="Abort when pandoc fails on a document")
    parser.add_argument("--verbose", action="store_true", help="Verbose progress logs")
    parser.add_argument("--debug", action="store_true", help="Debug logs")
    return parser


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    try:
        args, unknown = parser.parse_known_args(argv)
    except SystemExit:
        # argparse has already printed its error message.
        print(_get_usage(), file=sys.stderr)
        return core.EXIT_USAGE
    if unknown:
        print(_get_usage(), file=sys.stderr)
        print(f"Unrecognized arguments: {' '.join(unknown)}", file=sys.stderr)
        return core.EXIT_USAGE

    if args.help:
        print(_get_usage())
        return core.EXIT_OK

    if args.version or args.ver:
        print(__version__)
        return core.EXIT_OK

    if not args.source or not args.dest:
        print(_get_usage(), file=sys.stderr)
        return core.EXIT_USAGE

    core.setup_logging(args.verbose, args.debug)

    config = core.ConversionConfig(
        pandoc_path=core.resolve_pandoc_path(args.pandoc),
        strict=bool(args.strict),
        verbose=bool(args.verbose),
        debug=bool(args.debug),
    )
    pandoc = core.Pandoc(config.pandoc_path)
    try:
        pandoc.ensure_available()
    except PandocNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return core.EXIT_UNAVAILABLE

    converter = core.GitbookConverter(
        Path(args.source).expanduser(),
        Path(args.dest).expanduser(),
        prefix=args.prefix or "",
        config=config,
        pandoc=pandoc,
    )

    if args.replace_from:
        replace_path = Path(args.replace_from).expanduser()
        try:
            rules = hacks.load_replacements(replace_path)
        except ReplacementFileError as exc:
            print(str(exc), file=sys.stderr)
            return core.EXIT_UNAVAILABLE
        converter.add_text_hack(hacks.BatchReplace(rules))
        core.LOG.info("Using %d replacement(s) from %s", len(rules), replace_path)

    try:
        master = converter.run()
    except GitbookError as exc:
        print(str(exc), file=sys.stderr)
        return core.EXIT_OK

    core.LOG.info("Master file written to %s", master)
    return core.EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
