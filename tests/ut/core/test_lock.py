"""工作空间锁测试"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from modinstaller.core.config import Config
from modinstaller.core.constraint import ModVersionConstraint
from modinstaller.core.exceptions import LockFileError
from modinstaller.core.lock import WorkspaceLock, scan_installed_mods
from modinstaller.core.models import DependencyVersion, InstalledModVersion
from modinstaller.core.versioning import parse_version


def _install_dir(mods: Path, dep_path: str, name: str) -> None:
    target = mods / dep_path
    target.mkdir(parents=True)
    (target / "mod.yml").write_text(f"name: {name}\n", encoding="utf-8")


def _write_lock(ws: Path, data: dict) -> None:
    (ws / ".mod.cache.json").write_text(json.dumps(data), encoding="utf-8")


LOCK_DATA = {
    "app": {
        "github.com/acme/a": {"version": "1.2.0", "commit": "c1", "constraint": "^1.0"},
        "github.com/acme/b": {"branch": "main", "commit": "c2"},
    },
    "github.com/acme/a@v1.2.0": {
        "github.com/acme/c": {"tag": "nightly", "commit": "c3"},
    },
}


class TestScanInstalledMods:
    def test_scan(self, tmp_path: Path) -> None:
        mods = tmp_path / "mods"
        _install_dir(mods, "github.com/acme/a@v1.2.0", "github.com/acme/a")
        _install_dir(mods, "github.com/acme/a@v1.3.0", "github.com/acme/a")
        _install_dir(mods, "github.com/acme/b#main", "github.com/acme/b")
        # mod 内部的子 mod 不是独立安装
        _install_dir(mods, "github.com/acme/b#main/examples/x@v1.0.0", "x")
        (mods / "github.com" / "stray").mkdir()

        installed = scan_installed_mods(mods, ["mod.yml"])
        assert sorted(installed) == ["github.com/acme/a", "github.com/acme/b"]
        assert len(installed["github.com/acme/a"]) == 2
        assert installed["github.com/acme/b"] == [DependencyVersion(branch="main")]

    def test_ref_with_slash_is_nested_directory(self, tmp_path: Path) -> None:
        mods = tmp_path / "mods"
        _install_dir(mods, "github.com/acme/c#feature/x", "github.com/acme/c")
        _install_dir(mods, "github.com/acme/d@release/1.0", "github.com/acme/d")

        installed = scan_installed_mods(mods, ["mod.yml"])
        assert installed == {
            "github.com/acme/c": [DependencyVersion(branch="feature/x")],
            "github.com/acme/d": [DependencyVersion(tag="release/1.0")],
        }

    def test_missing_dir(self, tmp_path: Path) -> None:
        assert scan_installed_mods(tmp_path / "nope", ["mod.yml"]) == {}


class TestWorkspaceLock:
    def test_load_all_present(self, tmp_path: Path) -> None:
        cfg = Config()
        mods = cfg.mods_path(tmp_path)
        _install_dir(mods, "github.com/acme/a@v1.2.0", "github.com/acme/a")
        _install_dir(mods, "github.com/acme/b#main", "github.com/acme/b")
        _install_dir(mods, "github.com/acme/c@nightly", "github.com/acme/c")
        _write_lock(tmp_path, LOCK_DATA)

        lock = WorkspaceLock.load(tmp_path, cfg)
        assert not lock.incomplete()
        a = lock.get_mod("github.com/acme/a", "app")
        assert a is not None
        assert a.version == parse_version("1.2.0")
        assert a.resolved.constraint == "^1.0"
        assert lock.get_mod("github.com/acme/c", "github.com/acme/a@v1.2.0").tag == "nightly"

    def test_load_marks_missing(self, tmp_path: Path) -> None:
        cfg = Config()
        _install_dir(cfg.mods_path(tmp_path), "github.com/acme/a@v1.2.0", "github.com/acme/a")
        _write_lock(tmp_path, LOCK_DATA)

        lock = WorkspaceLock.load(tmp_path, cfg)
        assert lock.incomplete()
        assert lock.get_mod("github.com/acme/b", "app") is None
        assert "github.com/acme/b" in lock.missing_versions["app"]

    def test_load_no_file(self, tmp_path: Path) -> None:
        lock = WorkspaceLock.load(tmp_path, Config())
        assert lock.empty()

    @pytest.mark.parametrize("content", ["{not json", "[]", '{"app": {"h/a": {"commit": "c"}}}'])
    def test_load_invalid(self, tmp_path: Path, content: str) -> None:
        (tmp_path / ".mod.cache.json").write_text(content, encoding="utf-8")
        with pytest.raises(LockFileError):
            WorkspaceLock.load(tmp_path, Config())

    def test_local_path_dependency_counts_as_installed(self, tmp_path: Path) -> None:
        local = tmp_path / "local"
        local.mkdir()
        _write_lock(tmp_path, {"app": {"local/mod": {"file_path": str(local)}}})
        lock = WorkspaceLock.load(tmp_path, Config())
        assert lock.get_mod("local/mod", "app") is not None

    def test_save_and_delete(self, tmp_path: Path) -> None:
        lock = WorkspaceLock(tmp_path, tmp_path / "mods", tmp_path / ".mod.cache.json")
        lock.add_dependency("app", InstalledModVersion.from_dict({"name": "h/a", "version": "1.0.0"}))
        lock.save()
        saved = json.loads((tmp_path / ".mod.cache.json").read_text(encoding="utf-8"))
        assert saved["app"]["h/a"]["version"] == "1.0.0"

        lock.install_cache["app"].clear()
        lock.save()
        assert not (tmp_path / ".mod.cache.json").exists()

    def test_queries(self, tmp_path: Path) -> None:
        lock = WorkspaceLock(tmp_path, tmp_path / "mods", tmp_path / ".mod.cache.json")
        a1 = InstalledModVersion.from_dict({"name": "h/a", "version": "1.0.0"})
        a2 = InstalledModVersion.from_dict({"name": "h/a", "version": "2.1.0"})
        lock.add_dependency("app", a1)
        lock.add_dependency("h/b#main", a2)

        assert len(lock.find_mod("h/a")) == 2
        found = lock.find_locked_mod_version(ModVersionConstraint(name="h/a", version_string="^2.0"))
        assert found == a2
        assert lock.find_locked_mod_version(ModVersionConstraint(name="h/a", version_string="^3.0")) is None
        assert lock.contains_mod_version("h/a", a1.dependency_version)

        installed = {"h/a": [a1.dependency_version, DependencyVersion(version=parse_version("0.9.0"))]}
        unused = lock.get_unreferenced_mods(installed)
        assert unused == {"h/a": [DependencyVersion(version=parse_version("0.9.0"))]}

    def test_walk_and_get_dependency(self, tmp_path: Path) -> None:
        lock = WorkspaceLock(tmp_path, tmp_path / "mods", tmp_path / ".mod.cache.json")
        lock.add_dependency("app", InstalledModVersion.from_dict({"name": "h/a", "version": "1.0.0"}))
        lock.add_dependency("h/a@v1.0.0", InstalledModVersion.from_dict({"name": "h/b", "branch": "main"}))
        # 环: b 依赖 a
        lock.add_dependency("h/b#main", InstalledModVersion.from_dict({"name": "h/a", "version": "1.0.0"}))

        paths = [name_path for name_path, _ in lock.walk("app")]
        assert paths == [["app", "h/a"], ["app", "h/a", "h/b"], ["app", "h/a", "h/b", "h/a"]]

        dep, full_path = lock.get_dependency(["app", "h/a", "h/b"])
        assert dep.branch == "main"
        assert full_path == ["app", "h/a@v1.0.0", "h/b#main"]
        assert lock.get_dependency(["app", "h/x"]) == (None, [])

    def test_round_trip(self, tmp_path: Path) -> None:
        cfg = Config()
        mods = cfg.mods_path(tmp_path)
        _install_dir(mods, "github.com/acme/a@v1.2.0", "github.com/acme/a")
        _install_dir(mods, "github.com/acme/b#main", "github.com/acme/b")
        _install_dir(mods, "github.com/acme/c@nightly", "github.com/acme/c")
        _write_lock(tmp_path, LOCK_DATA)

        lock = WorkspaceLock.load(tmp_path, cfg)
        lock.save()
        reloaded = WorkspaceLock.load(tmp_path, cfg)
        assert reloaded.to_dict() == lock.to_dict()
        assert list(reloaded.walk("app")) == list(lock.walk("app"))
