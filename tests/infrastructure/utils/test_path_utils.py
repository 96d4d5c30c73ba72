from pathlib import Path

import logging

import pytest

from coursesite.infrastructure.utils.path_utils import (
    collect_watch_paths,
    ensure_dir,
    is_excluded_name,
    is_ignored_path,
    iter_included_files,
    iter_included_paths,
    raise_walk_error,
    sorted_entries,
)


@pytest.mark.parametrize(
    "name, excluded",
    [
        ("target", True),
        (".git", True),
        (".gitignore", True),
        (".", True),
        ("targets", False),
        ("my_target", False),
        ("Target", False),
        ("src", False),
        ("Cargo.toml", False),
    ],
)
def test_is_excluded_name(name, excluded):
    assert is_excluded_name(name) == excluded


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    root = tmp_path / "lab"
    (root / "src" / "nested").mkdir(parents=True)
    (root / "src" / "b.rs").write_text("b")
    (root / "src" / "a.rs").write_text("a")
    (root / "src" / "nested" / "c.rs").write_text("c")
    (root / "target" / "release").mkdir(parents=True)
    (root / "target" / "release" / "bin").write_text("bin")
    (root / ".vscode").mkdir()
    (root / ".vscode" / "settings.json").write_text("{}")
    (root / "Cargo.toml").write_text("[package]")
    return root


class TestWalking:
    def test_sorted_entries(self, tree: Path):
        assert [entry.name for entry in sorted_entries(tree)] == ["Cargo.toml", "src"]

    def test_iter_included_files(self, tree: Path):
        files = [path.relative_to(tree).as_posix() for path in iter_included_files(tree)]

        assert files == ["Cargo.toml", "src/a.rs", "src/b.rs", "src/nested/c.rs"]

    def test_iter_included_paths_includes_directories(self, tree: Path):
        paths = {path.relative_to(tree).as_posix() for path in iter_included_paths(tree)}

        assert paths == {"Cargo.toml", "src", "src/a.rs", "src/b.rs", "src/nested", "src/nested/c.rs"}

    def test_unreadable_directories_are_logged_and_skipped(self, tree: Path, unreadable_dirs, caplog):
        unreadable_dirs.add(str(tree / "src" / "nested"))

        with caplog.at_level(logging.WARNING):
            files = [path.relative_to(tree).as_posix() for path in iter_included_files(tree)]

        assert files == ["Cargo.toml", "src/a.rs", "src/b.rs"]
        assert "Skipping unreadable directory" in caplog.text
        assert "nested" in caplog.text

    def test_walk_errors_can_be_raised(self, tree: Path, unreadable_dirs):
        unreadable_dirs.add(str(tree / "src"))

        with pytest.raises(PermissionError):
            list(iter_included_paths(tree, onerror=raise_walk_error))


class TestWatchPaths:
    def test_collects_files_of_directories_and_file_roots(self, tree: Path, tmp_path: Path):
        syllabus = tmp_path / "syllabus.typ"
        syllabus.write_text("= Syllabus")

        paths = collect_watch_paths([tree, syllabus, tmp_path / "missing"])

        assert syllabus in paths
        assert tree / "src" / "nested" / "c.rs" in paths
        assert tree / "target" / "release" / "bin" not in paths
        assert len(paths) == 5

    def test_is_ignored_path_below_root(self, tree: Path):
        assert is_ignored_path(tree / "target" / "release" / "bin", [tree])
        assert is_ignored_path(tree / ".vscode" / "settings.json", [tree])
        assert not is_ignored_path(tree / "src" / "a.rs", [tree])

    def test_components_above_the_root_do_not_count(self, tmp_path: Path):
        root = tmp_path / ".cache" / "course"

        assert not is_ignored_path(root / "src" / "a.rs", [root])

    def test_paths_outside_every_root_are_judged_by_name(self, tmp_path: Path):
        project = tmp_path / ".cache" / "course"
        roots = [project / "lectures", project / "src" / "syllabus.typ"]

        assert not is_ignored_path(project / "src" / "syllabus.typ", roots)
        assert not is_ignored_path(project / "src" / "common.typ", roots)
        assert is_ignored_path(project / "src" / ".syllabus.typ.swp", roots)


def test_ensure_dir_creates_parents(tmp_path: Path):
    path = tmp_path / "a" / "b" / "c"

    assert ensure_dir(path) == path
    assert ensure_dir(path).is_dir()
