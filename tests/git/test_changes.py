"""Tests for ChangeListBuilder."""

from worktrack.core.config import DEFAULT_IGNORED_DIR_PREFIXES
from worktrack.git.changes import ChangeListBuilder
from worktrack.git.models import FileChange, FileChangesResult

SHA = "1111111 2222222"


def entry(xy: str, path: str) -> str:
    return f"1 {xy} N... 100644 100644 100644 {SHA} {path}"


def build(
    *records: str,
    max_entries: int = 5000,
    ignored: list[str] | None = None,
) -> FileChangesResult:
    builder = ChangeListBuilder(
        max_entries, DEFAULT_IGNORED_DIR_PREFIXES if ignored is None else ignored
    )
    for record in records:
        builder.accept(record)
    builder.finish()
    return builder.result()


class TestChangeList:
    def test_staged_and_unstaged_sides_emitted(self):
        result = build(entry("MM", "app.py"))
        assert result.changes == [
            FileChange(path="app.py", status="modified", staged=True),
            FileChange(path="app.py", status="modified", staged=False),
        ]

    def test_untracked(self):
        result = build("? notes.txt")
        assert result.changes == [
            FileChange(path="notes.txt", status="untracked", staged=False)
        ]

    def test_unstaged_delete(self):
        result = build(entry(".D", "gone.py"))
        assert result.changes == [
            FileChange(path="gone.py", status="deleted", staged=False)
        ]

    def test_rename_carries_original_path(self):
        result = build(
            f"2 R. N... 100644 100644 100644 {SHA} R100 src/new.py", "src/old.py"
        )
        assert result.changes == [
            FileChange(
                path="src/new.py",
                status="renamed",
                staged=True,
                original_path="src/old.py",
            )
        ]

    def test_rename_appears_once(self):
        result = build(f"2 R. N... 100644 100644 100644 {SHA} R100 b.py", "a.py")
        assert [c.path for c in result.changes] == ["b.py"]

    def test_unmerged_both_sides_conflicted(self):
        result = build("u UU N... 100644 100644 100644 100644 a b c merge.txt")
        assert result.changes == [
            FileChange(path="merge.txt", status="conflicted", staged=True),
            FileChange(path="merge.txt", status="conflicted", staged=False),
        ]

    def test_unmerged_both_added(self):
        result = build("u AA N... 100644 100644 100644 100644 a b c merge.txt")
        assert [(c.status, c.staged) for c in result.changes] == [
            ("added", True),
            ("conflicted", False),
        ]

    def test_ignored_records_dropped(self):
        assert build("! dist/bundle.js").changes == []

    def test_empty_result_has_no_skipped_dirs(self):
        result = build()
        assert result.changes == []
        assert result.skipped_dirs is None
        assert result.truncated is False


class TestIgnoredDirectories:
    def test_vendor_paths_skipped_and_reported(self):
        result = build(
            "? node_modules/",
            entry(".M", "dist/app.js"),
            entry(".M", "src/app.ts"),
            "? node_modules/left-pad/index.js",
        )
        assert [c.path for c in result.changes] == ["src/app.ts"]
        assert result.skipped_dirs == ["node_modules", "dist"]

    def test_only_first_segment_matches(self):
        result = build("? src/build/output.txt", "? build")
        assert [c.path for c in result.changes] == ["src/build/output.txt", "build"]
        assert result.skipped_dirs is None

    def test_custom_prefixes(self):
        result = build("? vendor/lib.go", "? build/x", ignored=["vendor/"])
        assert [c.path for c in result.changes] == ["build/x"]
        assert result.skipped_dirs == ["vendor"]

    def test_skipped_paths_do_not_count_toward_cap(self):
        result = build("? dist/a", "? dist/b", "? keep.txt", max_entries=1)
        assert result.truncated is False
        assert [c.path for c in result.changes] == ["keep.txt"]


class TestChangeListTruncation:
    def test_cap_enforced(self):
        result = build(*[f"? f{i}" for i in range(8)], max_entries=5)
        assert result.truncated is True
        assert result.truncated_limit == 5
        assert len(result.changes) == 5

    def test_cap_can_split_staged_and_unstaged_sides(self):
        result = build(entry("MM", "a.py"), max_entries=1)
        assert result.truncated is True
        assert result.changes == [
            FileChange(path="a.py", status="modified", staged=True)
        ]
