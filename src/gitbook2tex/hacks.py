"""Text rewriting passes applied around the pandoc conversion."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from .errors import ReplacementFileError

LOG = logging.getLogger("gitbook2tex")

# (document path, text) -> text
TextHack = Callable[[str, str], str]
MarkdownHack = Callable[[str, str], str]

INDEX_SENTINEL = "GPGP"

_PROMOTIONS = {
    "subsubsection": "subsection",
    "subsection": "section",
    "section": "chapter",
}
_TITLE_RE = re.compile(r"\\(subsubsection|subsection|section)(\*?)\{")
_SHIFT_RE = re.compile(r"section(\*?)\{")
_GRAPHICS_OPEN = r"\\includegraphics(?:\[[^\]\n]*\])?\{"
_FLATTEN_RE = re.compile(r"(" + _GRAPHICS_OPEN + r")\.\./")
_GRAPHICS_RE = re.compile(r"(" + _GRAPHICS_OPEN + r")")
_SUB_RE = re.compile(r"<sub>(.*?)</sub>")
_SUP_RE = re.compile(r"<sup>(.*?)</sup>")
_INDEX_SPAN_RE = re.compile(r"<!--(\\index.*?)-->.*?<!--/i-->")
_INLINE_DIRECTIVE_RE = re.compile(r"replace (.*?) (?:with|by) (.*)")


@dataclass(frozen=True)
class ReplacementRule:
    path_pattern: str
    find: str
    replace: str
    literal: bool = False

    def applies_to(self, path: str) -> bool:
        return re.fullmatch(self.path_pattern, path) is not None

    def apply(self, text: str) -> str:
        if self.literal:
            return text.replace(self.find, self.replace)
        return re.sub(self.find, self.replace, text)


def promote_titles(path: str, text: str) -> str:
    # Single pass: every heading command moves up exactly one level.
    def repl(match: re.Match) -> str:
        return "\\" + _PROMOTIONS[match.group(1)] + match.group(2) + "{"

    return _TITLE_RE.sub(repl, text)


def shift_headings(text: str) -> str:
    """Push every sectioning command of a subchapter one level down."""
    return _SHIFT_RE.sub(r"subsection\1{", text)


def flatten_image_links(path: str, text: str) -> str:
    return _FLATTEN_RE.sub(r"\1", text)


def reposition_image_urls(out_root: Path) -> TextHack:
    """Build a hack prefixing image paths with the document folder under ``out_root``."""
    root = Path(out_root).resolve()

    def hack(path: str, text: str) -> str:
        try:
            folder = Path(path).resolve().parent.relative_to(root)
        except ValueError:
            LOG.debug("Image repositioning skipped, %s is outside %s", path, root)
            return text
        prefix = folder.as_posix()
        if prefix in ("", "."):
            return text
        return _GRAPHICS_RE.sub(lambda m: m.group(1) + prefix + "/", text)

    return hack


def _read_directive_comments(md_text: str) -> List[str]:
    try:
        from bs4 import BeautifulSoup, Comment  # type: ignore
    except Exception as exc:
        raise RuntimeError(f"beautifulsoup4 not available: {exc}") from exc

    soup = BeautifulSoup(md_text, "html.parser")
    return [str(node).strip() for node in soup.find_all(string=lambda s: isinstance(s, Comment))]


def parse_inline_directives(md_text: str) -> List[Tuple[str, str]]:
    directives: List[Tuple[str, str]] = []
    for comment in _read_directive_comments(md_text):
        match = _INLINE_DIRECTIVE_RE.fullmatch(comment)
        if match:
            directives.append((match.group(1), match.group(2)))
    return directives


def inline_regex_replace(path: str, text: str) -> str:
    source = Path(path)
    if not source.is_file():
        return text
    for find, replace in parse_inline_directives(source.read_text(encoding="utf-8")):
        try:
            text = re.sub(find, replace, text)
        except re.error as exc:
            LOG.warning("Ignoring replace directive %r in %s: %s", find, path, exc)
    return text


def superscript_subscript(path: str, text: str) -> str:
    text = _SUB_RE.sub(r"~\1~", text)
    return _SUP_RE.sub(r"^\1^", text)


def index_replace(path: str, text: str) -> str:
    # The sentinel keeps the raw \index command intact through pandoc.
    return _INDEX_SPAN_RE.sub(lambda m: INDEX_SENTINEL + m.group(1), text)


class BatchReplace:
    """Apply replacement rules whose path pattern fully matches the document path."""

    def __init__(self, rules: Iterable[ReplacementRule]) -> None:
        self.rules = list(rules)

    def __call__(self, path: str, text: str) -> str:
        for rule in self.rules:
            if rule.applies_to(path):
                text = rule.apply(text)
        return text


def index_cleanup() -> BatchReplace:
    return BatchReplace([ReplacementRule(".*", INDEX_SENTINEL + "\\index", "\\index", literal=True)])


def parse_replacements(spec_text: str, literal: bool = False, source: Optional[Path] = None) -> List[ReplacementRule]:
    lines = spec_text.splitlines()
    rules: List[ReplacementRule] = []
    # Three lines per rule: filename pattern, find, replace. A dangling partial rule is dropped.
    for start in range(0, len(lines) - 2, 3):
        path_pattern, find, replace = lines[start : start + 3]
        try:
            re.compile(path_pattern)
            if not literal:
                re.compile(find).sub(replace, "")
        except re.error as exc:
            raise ReplacementFileError(source or Path("<inline>"), f"rule {start // 3 + 1}: {exc}") from exc
        rules.append(ReplacementRule(path_pattern, find, replace, literal=literal))
    return rules


def load_replacements(path: Path, literal: bool = False) -> List[ReplacementRule]:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ReplacementFileError(path, str(exc)) from exc
    return parse_replacements(raw, literal=literal, source=path)


def default_text_hacks(out_root: Path) -> List[TextHack]:
    return [
        promote_titles,
        flatten_image_links,
        reposition_image_urls(out_root),
        inline_regex_replace,
        inline_regex_replace,
        index_cleanup(),
    ]


def default_markdown_hacks() -> List[MarkdownHack]:
    return [superscript_subscript, index_replace]
