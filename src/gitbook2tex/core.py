"""Core pipeline for gitbook2tex."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Dict, List, Optional

from . import hacks
from .errors import (
    ConversionError,
    CopyError,
    GitbookError,
    MissingSummaryError,
    PandocNotFoundError,
    PreambleError,
    SourceDecodeError,
)

LOG = logging.getLogger("gitbook2tex")

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_UNAVAILABLE = 2

PANDOC_ENV = "GITBOOK2TEX_PANDOC"

_SUMMARY_LINK_RE = re.compile(r"\((.*?)\)")


class Depth(IntEnum):
    CHAPTER = 1
    SUBCHAPTER = 2


@dataclass
class ConversionConfig:
    pandoc_path: str = "pandoc"
    summary_filename: str = "summary.md"
    chapter_marker: str = "readme"
    header_filename: str = "body.tex"
    big_markdown_filename: str = "all.temp.md"
    big_latex_filename: str = "all.temp.tex"
    pandoc_include_filename: str = "pandoc.inc.tex"
    target_suffix: str = ".tex"
    strict: bool = False
    verbose: bool = False
    debug: bool = False


def resolve_pandoc_path(explicit: Optional[str] = None) -> str:
    if explicit:
        return explicit
    override = os.environ.get(PANDOC_ENV)
    if override is not None and override.strip():
        return override.strip()
    return ConversionConfig.pandoc_path


_LOG_FORMAT = "%(levelname)s: %(message)s"


def setup_logging(verbose: bool, debug: bool) -> int:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    LOG.setLevel(level)
    LOG.propagate = False
    for old in list(LOG.handlers):
        LOG.removeHandler(old)
    # Bound to the current stderr on every call.
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    LOG.addHandler(handler)
    return level


def _log_progress(current: int, total: int, detail: str, width: int = 24) -> None:
    filled = width * current // total if total > 0 else 0
    LOG.info("Converting [%s] [%d/%d] %s", "#" * filled + "." * (width - filled), current, total, detail)


def safe_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8", newline="\n")


def read_source_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise SourceDecodeError(path, str(exc)) from exc


def relative_to_output(path: Path, out_dir: Path) -> str:
    try:
        return path.resolve().relative_to(out_dir.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


class Pandoc:
    """Thin wrapper around the pandoc executable."""

    def __init__(self, path: str = "pandoc") -> None:
        self.path = path

    def is_available(self) -> bool:
        try:
            result = subprocess.run([self.path, "--version"], capture_output=True, text=True)
        except OSError as exc:
            LOG.debug("Unable to run %s: %s", self.path, exc)
            return False
        return result.returncode == 0

    def ensure_available(self) -> None:
        if not self.is_available():
            raise PandocNotFoundError(self.path)

    def convert(self, source: Path, target: Path, standalone: bool = False) -> subprocess.CompletedProcess:
        cmd = [self.path, "-o", str(target)]
        if standalone:
            cmd.append("--standalone")
        cmd.append(str(source))
        LOG.debug("Running %s", " ".join(cmd))
        return subprocess.run(cmd, capture_output=True, text=True)


def find_summary(directory: Path, filename: str) -> Path:
    wanted = filename.lower()
    if directory.is_dir():
        for candidate in sorted(directory.iterdir()):
            if candidate.is_file() and candidate.name.lower() == wanted:
                return candidate
    raise MissingSummaryError(directory, filename)


def _strip_fragment(target: str) -> str:
    return target.split("#", 1)[0]


def parse_summary(summary_text: str, chapter_marker: str = "readme") -> Dict[str, Depth]:
    entries: Dict[str, Depth] = {}
    marker = chapter_marker.lower()
    for match in _SUMMARY_LINK_RE.finditer(summary_text):
        target = _strip_fragment(match.group(1)).strip()
        if not target or target in entries:
            continue
        entries[target] = Depth.CHAPTER if marker in match.group(0).lower() else Depth.SUBCHAPTER
    return entries


def build_index(summary_text: str, out_dir: Path, chapter_marker: str = "readme") -> Dict[Path, Depth]:
    index: Dict[Path, Depth] = {}
    root = out_dir.resolve()
    for target, depth in parse_summary(summary_text, chapter_marker).items():
        # Rooted targets stay inside the copied tree.
        path = (root / target.lstrip("/")).resolve()
        if not path.is_relative_to(root):
            LOG.warning("Skipping %s, it points outside %s", target, root)
            continue
        if path not in index:
            index[path] = depth
    return index


def extract_preamble(standalone_text: str) -> str:
    lines: List[str] = []
    for line in standalone_text.splitlines():
        if "documentclass" in line:
            continue
        if "\\begin{document}" in line:
            break
        lines.append(line)
    return "".join(f"{line}\n" for line in lines)


class GitbookConverter:
    """Copy a GitBook tree, convert every indexed chapter and write the master file."""

    def __init__(
        self,
        source_dir: Path,
        dest_dir: Path,
        prefix: str = "",
        config: Optional[ConversionConfig] = None,
        pandoc: Optional[Pandoc] = None,
    ) -> None:
        self.config = config or ConversionConfig()
        self.source_dir = Path(source_dir)
        self.dest_dir = Path(dest_dir)
        self.prefix = prefix.strip("/")
        self.out_dir = (self.dest_dir / self.prefix).resolve() if self.prefix else self.dest_dir.resolve()
        self.pandoc = pandoc or Pandoc(self.config.pandoc_path)
        self.index: Dict[Path, Depth] = {}
        self.converted: List[Path] = []
        self.text_hacks: List[hacks.TextHack] = hacks.default_text_hacks(self.dest_dir)
        self.markdown_hacks: List[hacks.MarkdownHack] = hacks.default_markdown_hacks()

    def add_text_hack(self, hack: hacks.TextHack) -> None:
        self.text_hacks.append(hack)

    def add_markdown_hack(self, hack: hacks.MarkdownHack) -> None:
        self.markdown_hacks.append(hack)

    def run(self) -> Path:
        self.index = {}
        self.converted = []
        self.copy_source()
        summary = find_summary(self.out_dir, self.config.summary_filename)
        try:
            self.index = build_index(read_source_text(summary), self.out_dir, self.config.chapter_marker)
            LOG.info("Indexed %d document(s) from %s", len(self.index), summary)
            self.convert_documents()
            return self.write_master()
        except OSError as exc:
            raise GitbookError(f"I/O failure during conversion: {exc}") from exc

    def copy_source(self) -> None:
        try:
            shutil.copytree(self.source_dir, self.out_dir, dirs_exist_ok=True)
        except OSError as exc:
            raise CopyError(self.source_dir, self.out_dir, str(exc)) from exc
        LOG.info("Copied sources: %s -> %s", self.source_dir, self.out_dir)

    def target_for(self, document: Path) -> Path:
        return document.with_suffix(self.config.target_suffix)

    def _conversion_failed(self, document: Path, result: subprocess.CompletedProcess) -> None:
        if self.config.strict:
            raise ConversionError(document, result.returncode, result.stderr)
        LOG.warning("Conversion failed for %s (rc=%s): %s", document, result.returncode, (result.stderr or "").strip())

    def convert_documents(self) -> None:
        big_file: List[str] = []
        total = len(self.index)
        for current, document in enumerate(self.index, start=1):
            _log_progress(current, total, relative_to_output(document, self.out_dir))
            if not document.is_file():
                LOG.warning("File %s not found", document)
                continue
            identifier = document.as_posix()
            md_text = read_source_text(document)
            for md_hack in self.markdown_hacks:
                md_text = md_hack(identifier, md_text)
            safe_write_text(document, md_text)
            big_file.append(md_text + "\n")

            target = self.target_for(document)
            result = self.pandoc.convert(document, target)
            if result.returncode != 0:
                self._conversion_failed(document, result)
                continue

            contents = read_source_text(target)
            for hack in self.text_hacks:
                contents = hack(identifier, contents)
            safe_write_text(target, contents)
            self.converted.append(document)
        self.write_headers("".join(big_file))

    def write_headers(self, big_file_contents: str) -> Path:
        big_md = self.out_dir / self.config.big_markdown_filename
        big_tex = self.out_dir / self.config.big_latex_filename
        safe_write_text(big_md, big_file_contents)
        result = self.pandoc.convert(big_md, big_tex, standalone=True)
        if result.returncode != 0:
            self._conversion_failed(big_md, result)
        try:
            standalone = read_source_text(big_tex)
        except OSError as exc:
            raise PreambleError(big_tex, str(exc)) from exc
        include_path = self.out_dir / self.config.pandoc_include_filename
        safe_write_text(include_path, extract_preamble(standalone))
        LOG.info("Wrote headers to %s", include_path)
        return include_path

    def write_master(self) -> Path:
        done = set(self.converted)
        graphics: List[str] = []
        includes: List[str] = []
        import_dir = f"{self.prefix}/" if self.prefix else "./"
        for document, depth in self.index.items():
            if document not in done:
                continue
            target = self.target_for(document)
            if depth == Depth.SUBCHAPTER:
                safe_write_text(target, hacks.shift_headings(read_source_text(target)))
            else:
                folder = relative_to_output(document.parent, self.out_dir)
                folder = "./" if folder == "." else f"{folder}/"
                if folder not in graphics:
                    graphics.append(folder)
            relative = Path(relative_to_output(target, self.out_dir)).with_suffix("").as_posix()
            includes.append(f"\\subimport{{{import_dir}}}{{{relative}}}\n")

        master = self.out_dir / self.config.header_filename
        graphicspath = "\\graphicspath{" + "".join(f"{{{folder}}}" for folder in graphics) + "}\n"
        safe_write_text(master, graphicspath + "".join(includes))
        LOG.info("Wrote %d include(s) to %s", len(includes), master)
        return master
