"""Tests for unified diff parser."""

import pytest

from pkgcompare.config import ParseOptions
from pkgcompare.models import FileDiffKind, Hunk, LineKind, Segment, SegmentKind
from pkgcompare.parser import (
    LineEvent,
    ParserState,
    UnifiedDiffParser,
    classify_line,
    parse_unified_diff,
)

SAMPLE_DIFF = "\n".join(
    [
        "diff --git a/src/index.js b/src/index.js",
        "index 83db48f..bf269f4 100644",
        "--- a/src/index.js",
        "+++ b/src/index.js",
        "@@ -1,4 +1,4 @@",
        " const a = 1;",
        "-const b = 2;",
        "+const b = 3;",
        " const c = 4;",
        " module.exports = { a, b, c };",
        "@@ -20,3 +20,4 @@ function helper() {",
        " return a;",
        "+// trailing comment",
        " }",
        " ",
    ]
) + "\n"

TWO_FILES_DIFF = "\n".join(
    [
        "--- a/README.md",
        "+++ b/README.md",
        "@@ -1 +1,2 @@",
        " # demo",
        "+Some docs.",
        "--- a/lib/old.js",
        "+++ /dev/null",
        "@@ -1,2 +0,0 @@",
        "-module.exports = 1;",
        "-// end",
    ]
)


def hunks_of(file_diff) -> list[Hunk]:
    return [h for h in file_diff.hunks if isinstance(h, Hunk)]


class TestClassifyLine:
    @pytest.mark.parametrize(
        ("line", "event"),
        [
            ("--- a/file.js", LineEvent.OLD_HEADER),
            ("---", LineEvent.OLD_HEADER),
            ("+++ b/file.js", LineEvent.NEW_HEADER),
            ("@@ -1,2 +1,3 @@", LineEvent.HUNK_HEADER),
            ("@@ -7 +7 @@ function x() {", LineEvent.HUNK_HEADER),
            ("diff --git a/x b/x", LineEvent.METADATA),
            ("index abc..def 100644", LineEvent.METADATA),
            ("\\ No newline at end of file", LineEvent.METADATA),
            ("+added", LineEvent.INSERT),
            ("-removed", LineEvent.DELETE),
            (" kept", LineEvent.CONTEXT),
            ("", LineEvent.CONTEXT),
            ("@@ not a header", LineEvent.UNRECOGNIZED),
            ("garbage", LineEvent.UNRECOGNIZED),
        ],
    )
    def test_events(self, line: str, event: LineEvent) -> None:
        assert classify_line(line)[0] == event

    def test_header_forms_win_over_body_forms(self) -> None:
        # "---" inside a hunk is an old-file header, not a deleted "--" line
        assert classify_line("--- removed dashes")[0] == LineEvent.OLD_HEADER
        assert classify_line("+++ added plusses")[0] == LineEvent.NEW_HEADER


class TestParserStates:
    def test_state_transitions(self) -> None:
        parser = UnifiedDiffParser()
        assert parser.state is ParserState.AWAITING_OLD_HEADER

        parser.feed("--- a/file.txt")
        assert parser.state is ParserState.AWAITING_NEW_HEADER

        parser.feed("+++ b/file.txt")
        assert parser.state is ParserState.AWAITING_OLD_HEADER

        parser.feed("@@ -1 +1 @@")
        assert parser.state is ParserState.IN_HUNK

        parser.feed("-old")
        parser.feed("+new")
        files = parser.finish()

        assert parser.state is ParserState.AWAITING_OLD_HEADER
        assert len(files) == 1
        assert len(hunks_of(files[0])) == 1

    def test_body_lines_outside_hunk_ignored(self) -> None:
        parser = UnifiedDiffParser()
        parser.feed("--- a/file.txt")
        parser.feed("+++ b/file.txt")
        parser.feed(" stray context")

        files = parser.finish()

        assert files[0].hunks == []

    def test_hunk_header_without_match_ignored(self) -> None:
        parser = UnifiedDiffParser()
        parser.feed("--- a/file.txt")
        parser.feed("+++ b/file.txt")

        parser._on_hunk_header("@@ bogus", None)

        assert parser.state is ParserState.AWAITING_OLD_HEADER
        assert parser._hunk is None


class TestParseUnifiedDiff:
    def test_empty_input(self) -> None:
        assert parse_unified_diff("") == []

    def test_garbage_input(self) -> None:
        assert parse_unified_diff("hello\nthis is not a diff\n") == []

    def test_hunk_without_file_header_dropped(self) -> None:
        assert parse_unified_diff("@@ -1 +1 @@\n-a\n+b\n") == []

    def test_file_header_without_hunks(self) -> None:
        files = parse_unified_diff("--- a/x.txt\n+++ b/x.txt\n")

        assert len(files) == 1
        assert files[0].new_path == "x.txt"
        assert files[0].hunks == []
        assert files[0].kind == FileDiffKind.MODIFY

    def test_paths_strip_prefix(self) -> None:
        files = parse_unified_diff(SAMPLE_DIFF)

        assert files[0].old_path == "src/index.js"
        assert files[0].new_path == "src/index.js"

    def test_path_without_prefix(self) -> None:
        files = parse_unified_diff("--- lib/x.js\n+++ lib/x.js\n")

        assert files[0].new_path == "lib/x.js"

    def test_hunk_headers(self) -> None:
        first, second = hunks_of(parse_unified_diff(SAMPLE_DIFF)[0])

        assert (first.old_start, first.old_line_count) == (1, 4)
        assert (first.new_start, first.new_line_count) == (1, 4)
        assert (second.old_start, second.old_line_count) == (20, 3)
        assert (second.new_start, second.new_line_count) == (20, 4)
        assert second.header == "@@ -20,3 +20,4 @@ function helper() {"

    def test_hunk_header_without_counts(self) -> None:
        files = parse_unified_diff("--- a/f\n+++ b/f\n@@ -5 +6 @@\n-x\n+completely different\n")
        hunk = hunks_of(files[0])[0]

        assert hunk.old_line_count == 1
        assert hunk.new_line_count == 1
        assert hunk.old_start == 5
        assert hunk.new_start == 6

    def test_similar_lines_merged(self) -> None:
        first = hunks_of(parse_unified_diff(SAMPLE_DIFF)[0])[0]

        assert len(first.lines) == 4
        merged = first.lines[1]
        assert merged.kind == LineKind.NORMAL
        assert merged.old_line_no == 2
        assert merged.new_line_no == 2
        assert merged.line_no is None
        assert merged.segments == [
            Segment("const b = ", SegmentKind.NORMAL),
            Segment("2;", SegmentKind.DELETE),
            Segment("3;", SegmentKind.INSERT),
        ]

    def test_line_numbers_advance(self) -> None:
        second = hunks_of(parse_unified_diff(SAMPLE_DIFF)[0])[1]

        numbers = [(line.kind, line.old_line_no, line.new_line_no) for line in second.lines]
        assert numbers == [
            (LineKind.NORMAL, 20, 20),
            (LineKind.INSERT, None, 21),
            (LineKind.NORMAL, 21, 22),
            (LineKind.NORMAL, 22, 23),
            (LineKind.NORMAL, 23, 24),
        ]
        assert second.lines[1].line_no == 21
        assert second.lines[1].new_text == "// trailing comment"

    def test_trailing_newline_adds_empty_context_line(self) -> None:
        text = "--- a/f\n+++ b/f\n@@ -1,2 +1,2 @@\n a\n-b\n+c\n"

        hunk = hunks_of(parse_unified_diff(text)[0])[0]

        assert len(hunk.lines) == 4
        last = hunk.lines[-1]
        assert last.kind == LineKind.NORMAL
        assert last.segments == [Segment("")]
        assert (last.old_line_no, last.new_line_no) == (3, 3)

    def test_no_trailing_newline_no_extra_line(self) -> None:
        text = "--- a/f\n+++ b/f\n@@ -1,2 +1,2 @@\n a\n-b\n+c"

        hunk = hunks_of(parse_unified_diff(text)[0])[0]

        assert [line.kind for line in hunk.lines] == [
            LineKind.NORMAL,
            LineKind.DELETE,
            LineKind.INSERT,
        ]

    def test_kind_after_merging(self) -> None:
        # The only delete was merged into a normal line, leaving a lone insert
        files = parse_unified_diff(SAMPLE_DIFF)

        assert files[0].kind == FileDiffKind.ADD

    def test_kind_without_merging(self) -> None:
        files = parse_unified_diff(SAMPLE_DIFF, {"merge_modified_lines": False})

        assert files[0].kind == FileDiffKind.MODIFY
        first = hunks_of(files[0])[0]
        assert [line.kind for line in first.lines] == [
            LineKind.NORMAL,
            LineKind.DELETE,
            LineKind.INSERT,
            LineKind.NORMAL,
            LineKind.NORMAL,
        ]
        assert first.lines[1].line_no == 2
        assert first.lines[1].segments == [Segment("const b = 2;")]

    def test_multiple_files_in_order(self) -> None:
        files = parse_unified_diff(TWO_FILES_DIFF)

        assert [f.new_path for f in files] == ["README.md", "/dev/null"]
        assert files[0].kind == FileDiffKind.ADD
        assert files[1].kind == FileDiffKind.DELETE

    def test_metadata_lines_skipped(self) -> None:
        text = "--- a/f\n+++ b/f\n@@ -1 +1 @@\n-a\n\\ No newline at end of file\n+b\n"
        hunk = hunks_of(parse_unified_diff(text, ParseOptions(merge_modified_lines=False))[0])[0]

        assert [line.kind for line in hunk.lines] == [
            LineKind.DELETE,
            LineKind.INSERT,
            LineKind.NORMAL,
        ]

    def test_hunks_ordered_by_old_start(self) -> None:
        hunks = hunks_of(parse_unified_diff(SAMPLE_DIFF)[0])

        starts = [h.old_start for h in hunks]
        assert starts == sorted(starts)

    def test_camel_case_overrides(self) -> None:
        files = parse_unified_diff(SAMPLE_DIFF, {"maxChangeRatio": 0})

        first = hunks_of(files[0])[0]
        assert first.lines[1].kind == LineKind.DELETE

    def test_unknown_override_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_unified_diff(SAMPLE_DIFF, {"bogus": True})

    def test_word_change_scenario(self) -> None:
        text = "\n".join(
            [
                "--- a/notes.txt",
                "+++ b/notes.txt",
                "@@ -1,2 +1,2 @@",
                " title",
                "-the quick brown fox",
                "+the quick red fox",
            ]
        )

        files = parse_unified_diff(text)
        hunk = hunks_of(files[0])[0]

        assert len(hunk.lines) == 2
        assert hunk.lines[1].segments == [
            Segment("the quick ", SegmentKind.NORMAL),
            Segment("brown", SegmentKind.DELETE),
            Segment("red", SegmentKind.INSERT),
            Segment(" fox", SegmentKind.NORMAL),
        ]
