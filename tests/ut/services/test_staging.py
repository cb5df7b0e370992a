"""影子目录事务测试"""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from modinstaller.core.exceptions import InstallCancelledError
from modinstaller.services.staging import Staging


def _fill(path: Path, content: str) -> None:
    path.mkdir(parents=True, exist_ok=True)
    (path / "mod.yml").write_text(content, encoding="utf-8")


class TestStaging:
    def test_paths(self, tmp_path: Path) -> None:
        staging = Staging(tmp_path / "data" / "mods", ".mods.", "abc123")
        assert staging.shadow_path == tmp_path / "data" / ".mods.abc123"

    def test_begin_sweeps_leftovers(self, tmp_path: Path) -> None:
        mods = tmp_path / "mods"
        mods.mkdir()
        (tmp_path / ".mods.old1").mkdir()
        (tmp_path / "keep").mkdir()
        Staging(mods, ".mods.", "new").begin()
        assert not (tmp_path / ".mods.old1").exists()
        assert (tmp_path / "keep").is_dir()
        assert mods.is_dir()

    def test_commit_replaces_whole_dependency(self, tmp_path: Path) -> None:
        mods = tmp_path / "mods"
        _fill(mods / "h/a#main", "old")
        (mods / "h/a#main" / "stale.txt").write_text("x", encoding="utf-8")
        _fill(mods / "h/b@v1.0.0", "untouched")

        staging = Staging(mods, ".mods.", "e1")
        staging.begin()
        _fill(staging.add("h/a#main"), "new")
        committed = staging.commit()
        staging.rollback()

        assert committed == ["h/a#main"]
        assert (mods / "h/a#main" / "mod.yml").read_text(encoding="utf-8") == "new"
        assert not (mods / "h/a#main" / "stale.txt").exists()
        assert (mods / "h/b@v1.0.0" / "mod.yml").read_text(encoding="utf-8") == "untouched"
        assert not staging.shadow_path.exists()

    def test_load_path_prefers_shadow(self, tmp_path: Path) -> None:
        mods = tmp_path / "mods"
        _fill(mods / "h/a@v1.0.0", "installed")
        staging = Staging(mods, ".mods.", "e1")
        assert staging.load_path("h/a@v1.0.0") == mods / "h/a@v1.0.0"
        _fill(staging.add("h/a@v1.0.0"), "staged")
        assert staging.load_path("h/a@v1.0.0") == staging.shadow_path / "h/a@v1.0.0"
        assert staging.load_path("h/missing@v1.0.0") is None

    def test_add_clears_stale_content(self, tmp_path: Path) -> None:
        staging = Staging(tmp_path / "mods", ".mods.", "e1")
        dest = staging.add("h/a#main")
        _fill(dest, "partial")
        assert not staging.add("h/a#main").exists()
        assert staging.added == ["h/a#main"]

    def test_cancelled_commit_leaves_mods_untouched(self, tmp_path: Path) -> None:
        mods = tmp_path / "mods"
        _fill(mods / "h/a#main", "old")
        staging = Staging(mods, ".mods.", "e1")
        _fill(staging.add("h/a#main"), "new")
        cancel = threading.Event()
        cancel.set()
        try:
            with pytest.raises(InstallCancelledError):
                staging.commit(cancel)
        finally:
            staging.rollback()
        assert (mods / "h/a#main" / "mod.yml").read_text(encoding="utf-8") == "old"
        assert not staging.shadow_path.exists()

    def test_commit_without_shadow(self, tmp_path: Path) -> None:
        assert Staging(tmp_path / "mods", ".mods.", "e1").commit() == []
