"""工作空间依赖锁

锁文件 (<workspace>/.mod.cache.json) 记录完整的已解析依赖树:

    {
      "<父 mod 的 install cache key>": {
        "<依赖名称>": {"name": ..., "version": "1.2.0", "commit": ..., ...}
      }
    }

根节点为工作空间 mod 的 key，其它父节点 key 为对应依赖的依赖路径。
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Any

from modinstaller.core.exceptions import LockFileError
from modinstaller.core.models import (
    DependencyVersion,
    InstalledModVersion,
    build_dependency_path,
    parse_dependency_path,
)
from modinstaller.utils.yaml_io import load_json, save_json

if TYPE_CHECKING:
    from modinstaller.core.config import Config
    from modinstaller.core.constraint import ModVersionConstraint

logger = logging.getLogger(__name__)

InstallCache = dict[str, dict[str, InstalledModVersion]]
VersionListMap = dict[str, list[DependencyVersion]]


def add_version(versions: VersionListMap, name: str, version: DependencyVersion) -> None:
    existing = versions.setdefault(name, [])
    if version not in existing:
        existing.append(version)


def scan_installed_mods(mods_path: Path, mod_file_names: list[str] | tuple[str, ...]) -> VersionListMap:
    """扫描 mods 目录，返回 {名称: [已安装版本]}

    含 mod 定义文件且相对路径可解析为依赖路径的目录视为一个已安装 mod，
    不再向下扫描（mod 内部的子目录不是独立安装）。
    """
    installed: VersionListMap = {}
    if not mods_path.is_dir():
        return installed
    names = set(mod_file_names)
    for dirpath, dirnames, filenames in os.walk(mods_path):
        dirnames[:] = sorted(d for d in dirnames if d != ".git")
        if not names.intersection(filenames):
            continue
        rel = Path(dirpath).relative_to(mods_path).as_posix()
        try:
            name, version = parse_dependency_path(rel)
        except ValueError:
            # 不是合法的安装目录（可能是 mod 的子目录），继续向下
            continue
        add_version(installed, name, version)
        dirnames[:] = []
    return installed


class WorkspaceLock:
    """依赖锁（内存表示）"""

    def __init__(
        self,
        workspace_path: str | Path,
        mods_path: str | Path,
        lock_path: str | Path,
        install_cache: InstallCache | None = None,
        installed_mods: VersionListMap | None = None,
    ) -> None:
        self.workspace_path = Path(workspace_path)
        self.mods_path = Path(mods_path)
        self.lock_path = Path(lock_path)
        self.install_cache: InstallCache = install_cache if install_cache is not None else {}
        # 锁文件中有记录但磁盘上不存在的依赖
        self.missing_versions: InstallCache = {}
        self.installed_mods: VersionListMap = installed_mods if installed_mods is not None else {}

    # ---- 加载 / 持久化 ----

    @classmethod
    def load(cls, workspace_path: str | Path, config: Config) -> WorkspaceLock:
        """加载锁文件并扫描 mods 目录

        异常:
            LockFileError: 锁文件无法读取或内容无效
        """
        lock_path = config.lock_path(workspace_path)
        try:
            raw = load_json(lock_path)
        except (OSError, json.JSONDecodeError) as e:
            raise LockFileError(f"读取锁文件失败: {lock_path}: {e}") from e

        lock = cls(workspace_path, config.mods_path(workspace_path), lock_path)
        lock.install_cache = cls._parse_cache({} if raw is None else raw, lock_path)
        lock.installed_mods = scan_installed_mods(lock.mods_path, config.mod_file_names)
        lock._add_local_path_mods()
        lock._set_missing()
        logger.debug(
            "锁文件已加载: %s (%d 个父节点, %d 个缺失)",
            lock_path, len(lock.install_cache), len(lock.missing_versions),
        )
        return lock

    @staticmethod
    def _parse_cache(raw: Any, lock_path: Path) -> InstallCache:
        if not isinstance(raw, dict):
            raise LockFileError(f"锁文件格式无效: {lock_path}")
        cache: InstallCache = {}
        try:
            for parent, deps in raw.items():
                if not isinstance(deps, dict):
                    raise ValueError(f"父节点 {parent} 的依赖不是字典")
                cache[parent] = {
                    name: InstalledModVersion.from_dict({"name": name, **entry})
                    for name, entry in deps.items()
                }
        except (KeyError, TypeError, ValueError) as e:
            raise LockFileError(f"锁文件内容无效: {lock_path}: {e}") from e
        return cache

    def _add_local_path_mods(self) -> None:
        for deps in self.install_cache.values():
            for dep in deps.values():
                if dep.file_path and os.path.isdir(dep.file_path):
                    add_version(self.installed_mods, dep.name, dep.dependency_version)

    def _set_missing(self) -> None:
        """把磁盘上不存在的依赖从 install_cache 移入 missing_versions"""
        installed = {
            build_dependency_path(name, version)
            for name, versions in self.installed_mods.items()
            for version in versions
        }
        for parent, deps in self.install_cache.items():
            for name, dep in list(deps.items()):
                if dep.dependency_path() not in installed:
                    self.missing_versions.setdefault(parent, {})[name] = dep
                    del deps[name]

    def empty_copy(self) -> WorkspaceLock:
        """同一工作空间的空锁（共享已安装 mod 扫描结果）"""
        return WorkspaceLock(
            self.workspace_path, self.mods_path, self.lock_path,
            installed_mods=self.installed_mods,
        )

    def to_dict(self) -> dict[str, dict[str, dict[str, Any]]]:
        return {
            parent: {name: dep.to_dict() for name, dep in deps.items()}
            for parent, deps in self.install_cache.items()
            if deps
        }

    def save(self) -> None:
        """写入锁文件；没有任何依赖时删除锁文件

        异常:
            LockFileError: 写入或删除失败
        """
        data = self.to_dict()
        if not data:
            self.delete()
            return
        try:
            save_json(self.lock_path, data)
        except OSError as e:
            raise LockFileError(f"写入锁文件失败: {self.lock_path}: {e}") from e
        logger.debug("锁文件已保存: %s", self.lock_path)

    def delete(self) -> None:
        """异常: LockFileError 删除失败"""
        if not self.lock_path.exists():
            return
        try:
            self.lock_path.unlink()
        except OSError as e:
            raise LockFileError(f"删除锁文件失败: {self.lock_path}: {e}") from e
        logger.debug("锁文件已删除: %s", self.lock_path)

    # ---- 查询 ----

    def add_dependency(self, parent_key: str, dependency: InstalledModVersion) -> None:
        self.install_cache.setdefault(parent_key, {})[dependency.name] = dependency

    def get_mod(self, name: str, parent_key: str) -> InstalledModVersion | None:
        return self.install_cache.get(parent_key, {}).get(name)

    def find_mod(self, name: str) -> list[InstalledModVersion]:
        """所有父节点下名为 name 的依赖"""
        return [deps[name] for deps in self.install_cache.values() if name in deps]

    def find_locked_mod_version(self, required: ModVersionConstraint) -> InstalledModVersion | None:
        """任一父节点下满足约束的已安装版本（取第一个）"""
        for dep in self.find_mod(required.name):
            if dep.satisfies_constraint(required):
                return dep
        return None

    def contains_mod_version(self, name: str, version: DependencyVersion) -> bool:
        return any(
            dep.name == name and dep.dependency_version == version
            for deps in self.install_cache.values()
            for dep in deps.values()
        )

    def get_unreferenced_mods(self, installed_mods: VersionListMap | None = None) -> VersionListMap:
        """已安装但未被锁引用的 mod 版本"""
        source = self.installed_mods if installed_mods is None else installed_mods
        result: VersionListMap = {}
        for name, versions in source.items():
            for version in versions:
                if not self.contains_mod_version(name, version):
                    add_version(result, name, version)
        return result

    def get_dependency(self, path: list[str]) -> tuple[InstalledModVersion | None, list[str]]:
        """按名称路径 [root, name1, name2, ...] 查找依赖

        返回:
            (依赖, 完整依赖路径链 [root, dep_path1, dep_path2, ...])；不存在时为 (None, [])
        """
        if len(path) < 2:
            return None, []
        key = path[0]
        full_path = [key]
        dep: InstalledModVersion | None = None
        for name in path[1:]:
            dep = self.install_cache.get(key, {}).get(name)
            if dep is None:
                return None, []
            key = dep.dependency_path()
            full_path.append(key)
        return dep, full_path

    def walk(self, root: str) -> Iterator[tuple[list[str], InstalledModVersion]]:
        """从根节点深度优先遍历，产出 (名称路径, 依赖)

        名称路径包含根节点与该依赖本身；同一条链上重复出现的依赖不再展开。
        """
        yield from self._walk(root, [root], {root})

    def _walk(
        self, parent: str, name_path: list[str], seen: set[str],
    ) -> Iterator[tuple[list[str], InstalledModVersion]]:
        deps = self.install_cache.get(parent, {})
        for name in sorted(deps):
            dep = deps[name]
            child_path = [*name_path, name]
            yield child_path, dep
            key = dep.dependency_path()
            if key in seen:
                continue
            yield from self._walk(key, child_path, seen | {key})

    def incomplete(self) -> bool:
        return bool(self.missing_versions)

    def empty(self) -> bool:
        return not any(self.install_cache.values())
