from pathlib import Path

import pytest

import gitbook2tex.core as core
from gitbook2tex.errors import MissingSummaryError


def test_parse_summary_orders_entries_and_strips_fragments():
    text = "- [Intro](readme.md)\n- [Ch1](chapters/ch1.md#sec1)"

    entries = core.parse_summary(text)

    assert list(entries.items()) == [
        ("readme.md", core.Depth.CHAPTER),
        ("chapters/ch1.md", core.Depth.SUBCHAPTER),
    ]


def test_parse_summary_keeps_first_occurrence_only():
    text = (
        "* [Part](part1/README.md)\n"
        "    * [A](part1/a.md#one)\n"
        "    * [A again](part1/a.md#two)\n"
        "* [Part again](part1/README.md)\n"
    )

    entries = core.parse_summary(text)

    assert list(entries) == ["part1/README.md", "part1/a.md"]
    assert entries["part1/README.md"] is core.Depth.CHAPTER


def test_parse_summary_marker_is_case_insensitive_and_configurable():
    text = "[x](ch/ReadMe.md) [y](ch/INDEX.md) [z](#only-fragment)"

    assert core.parse_summary(text) == {
        "ch/ReadMe.md": core.Depth.CHAPTER,
        "ch/INDEX.md": core.Depth.SUBCHAPTER,
    }
    assert core.parse_summary(text, chapter_marker="index")["ch/INDEX.md"] is core.Depth.CHAPTER


def test_build_index_resolves_against_output_root(tmp_path):
    text = "[Intro](README.md)\n[Sub](ch1/./sub.md)\n[Sub dup](ch1/sub.md)\n"

    index = core.build_index(text, tmp_path)

    assert list(index.items()) == [
        ((tmp_path / "README.md").resolve(), core.Depth.CHAPTER),
        ((tmp_path / "ch1" / "sub.md").resolve(), core.Depth.SUBCHAPTER),
    ]


def test_find_summary_ignores_case(tmp_path):
    (tmp_path / "SUMMARY.md").write_text("x", encoding="utf-8")

    assert core.find_summary(tmp_path, "summary.md") == tmp_path / "SUMMARY.md"


def test_find_summary_missing_names_expected_file(tmp_path):
    with pytest.raises(MissingSummaryError) as excinfo:
        core.find_summary(tmp_path, "summary.md")
    assert "summary.md" in str(excinfo.value)


def test_extract_preamble_stops_at_body_and_drops_documentclass():
    standalone = (
        "\\documentclass[]{article}\n"
        "\\usepackage{amsmath}\n"
        "\\title{Book}\n"
        "\\begin{document}\n"
        "\\usepackage{ignored}\n"
    )

    assert core.extract_preamble(standalone) == "\\usepackage{amsmath}\n\\title{Book}\n"


def test_build_index_keeps_targets_inside_output_root(tmp_path):
    root = tmp_path / "out"
    text = f"[Abs]({tmp_path}/outside.md)\n[Up](../outside.md)\n[Deep](ch1/../../outside.md)\n[Ok](ch1/a.md)\n"

    index = core.build_index(text, root)

    assert list(index) == [
        (root / str(tmp_path).lstrip("/") / "outside.md").resolve(),
        (root / "ch1" / "a.md").resolve(),
    ]
