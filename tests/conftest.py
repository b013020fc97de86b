import subprocess
from pathlib import Path

import pytest

from gitbook2tex.errors import PandocNotFoundError


class CopyingPandoc:
    """Stands in for pandoc: copies the input to the output verbatim."""

    def __init__(self, path: str = "pandoc", *, available: bool = True, fail=(), silent=()):
        self.path = path
        self.available = available
        self.fail = set(fail)
        self.silent = set(silent)
        self.calls = []

    def is_available(self) -> bool:
        return self.available

    def ensure_available(self) -> None:
        if not self.available:
            raise PandocNotFoundError(self.path)

    def convert(self, source, target, standalone=False):
        source, target = Path(source), Path(target)
        self.calls.append((source.name, standalone))
        args = [self.path, "-o", str(target), str(source)]
        if source.name in self.fail:
            return subprocess.CompletedProcess(args, 1, "", "pandoc: boom")
        if source.name in self.silent:
            return subprocess.CompletedProcess(args, 0, "", "")
        text = source.read_text(encoding="utf-8")
        if standalone:
            text = (
                "\\documentclass[]{article}\n"
                "\\usepackage{amsmath}\n"
                "\\usepackage{graphicx}\n"
                "\\begin{document}\n"
                f"{text}"
                "\\end{document}\n"
            )
        target.write_text(text, encoding="utf-8")
        return subprocess.CompletedProcess(args, 0, "", "")


@pytest.fixture
def copying_pandoc():
    return CopyingPandoc()


def _write_book(root: Path, summary: str, documents: dict) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "SUMMARY.md").write_text(summary, encoding="utf-8")
    for rel, text in documents.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


@pytest.fixture
def make_book():
    return _write_book


@pytest.fixture
def pandoc_class():
    return CopyingPandoc
