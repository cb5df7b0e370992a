"""命令行 mod 参数解析测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from modinstaller.core.args import get_required_mod_versions_from_args, parse_mod_arg
from modinstaller.core.constraint import ModVersionConstraint
from modinstaller.core.exceptions import InvalidArgumentError
from modinstaller.core.lock import WorkspaceLock
from modinstaller.core.models import (
    DependencyVersion,
    InstalledModVersion,
    ReferenceKind,
    ResolvedVersionConstraint,
)
from modinstaller.core.modfile import ModDefinition, Require
from modinstaller.core.versioning import parse_version


def _workspace(tmp_path: Path) -> ModDefinition:
    return ModDefinition(
        name="app",
        mod_path=str(tmp_path),
        require=Require([
            ModVersionConstraint(name="github.com/acme/a", version_string="^1.0"),
            ModVersionConstraint(name="github.com/acme/b", branch_name="main"),
        ]),
    )


def _lock(tmp_path: Path) -> WorkspaceLock:
    dep = InstalledModVersion(ResolvedVersionConstraint(
        name="github.com/acme/a",
        dependency_version=DependencyVersion(version=parse_version("1.2.0")),
    ))
    return WorkspaceLock(
        tmp_path, tmp_path / "mods", tmp_path / ".mod.cache.json",
        install_cache={"app": {"github.com/acme/a": dep}},
    )


class TestParseModArg:
    def test_remote(self, tmp_path: Path) -> None:
        c = parse_mod_arg("github.com/acme/a@~1.2", str(tmp_path))
        assert c.name == "github.com/acme/a"
        assert c.version_string == "~1.2"

    def test_file_prefix(self, tmp_path: Path) -> None:
        local = tmp_path / "libs" / "local"
        local.mkdir(parents=True)
        (local / "mod.yml").write_text("name: local/mod\n", encoding="utf-8")

        c = parse_mod_arg("file:libs/local", str(tmp_path))
        assert c.kind is ReferenceKind.PATH
        assert c.name == "local/mod"
        assert c.file_path == str(local)

    def test_plain_directory_with_modfile(self, tmp_path: Path) -> None:
        local = tmp_path / "local"
        local.mkdir()
        (local / "mod.yml").write_text("name: local/mod\n", encoding="utf-8")
        c = parse_mod_arg(str(local), "/unused")
        assert c.kind is ReferenceKind.PATH

    def test_file_prefix_requires_modfile(self, tmp_path: Path) -> None:
        (tmp_path / "empty").mkdir()
        with pytest.raises(ValueError, match="没有 mod 定义文件"):
            parse_mod_arg("file:empty", str(tmp_path))
        with pytest.raises(ValueError, match="目录不存在"):
            parse_mod_arg("file:missing", str(tmp_path))


class TestGetRequiredModVersions:
    def test_install(self, tmp_path: Path) -> None:
        mods = get_required_mod_versions_from_args(
            ["github.com/acme/c@1.x", "github.com/acme/d#dev"],
            command="install", workspace_mod=_workspace(tmp_path), lock=_lock(tmp_path),
        )
        assert set(mods) == {"github.com/acme/c", "github.com/acme/d"}

    def test_errors_collected(self, tmp_path: Path) -> None:
        with pytest.raises(InvalidArgumentError) as exc_info:
            get_required_mod_versions_from_args(
                ["bad", "github.com/acme/ok", "also bad"],
                command="install", workspace_mod=_workspace(tmp_path), lock=_lock(tmp_path),
            )
        assert len(exc_info.value.details) == 2

    def test_uninstall_rejects_version(self, tmp_path: Path) -> None:
        with pytest.raises(InvalidArgumentError, match="卸载时不能指定版本"):
            get_required_mod_versions_from_args(
                ["github.com/acme/a@1.0"],
                command="uninstall", workspace_mod=_workspace(tmp_path), lock=_lock(tmp_path),
            )

    def test_update_uses_existing_constraint(self, tmp_path: Path) -> None:
        mods = get_required_mod_versions_from_args(
            ["github.com/acme/a"],
            command="update", workspace_mod=_workspace(tmp_path), lock=_lock(tmp_path),
        )
        assert mods["github.com/acme/a"].version_string == "^1.0"

    def test_update_rejects_indirect_dependency(self, tmp_path: Path) -> None:
        # b 在 mod 文件中声明但锁中没有记录
        with pytest.raises(InvalidArgumentError, match="不是当前工作空间的直接依赖"):
            get_required_mod_versions_from_args(
                ["github.com/acme/b"],
                command="update", workspace_mod=_workspace(tmp_path), lock=_lock(tmp_path),
            )

    @pytest.mark.parametrize("arg", ["github.com/acme/a@2.0", "github.com/acme/a#dev"])
    def test_update_rejects_explicit_reference(self, tmp_path: Path, arg: str) -> None:
        with pytest.raises(InvalidArgumentError):
            get_required_mod_versions_from_args(
                [arg], command="update", workspace_mod=_workspace(tmp_path), lock=_lock(tmp_path),
            )

    def test_unknown_command(self, tmp_path: Path) -> None:
        with pytest.raises(InvalidArgumentError, match="未知命令"):
            get_required_mod_versions_from_args(
                [], command="remove", workspace_mod=_workspace(tmp_path), lock=_lock(tmp_path),
            )
