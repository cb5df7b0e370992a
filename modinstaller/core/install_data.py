"""单次安装会话的可变状态"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from modinstaller.core.lock import WorkspaceLock
from modinstaller.core.lock_diff import diff_locks
from modinstaller.core.models import (
    DependencyMod,
    InstalledModVersion,
    ResolvedVersionConstraint,
)
from modinstaller.core.modfile import ModDefinition
from modinstaller.services.git.tags import GitTagResolver

logger = logging.getLogger(__name__)


@dataclass
class InstallData:
    """一次安装运行独占的状态

    lock 为运行前的锁，new_lock 在递归过程中逐边构建；
    on_install_complete() 计算四类结果并用 new_lock 替换 lock。
    可用版本缓存由 resolver 持有，同一 mod 在一次运行中只列出一次远端引用。
    """

    lock: WorkspaceLock
    workspace_mod: ModDefinition
    resolver: GitTagResolver
    new_lock: WorkspaceLock = field(init=False)

    installed: list[list[str]] = field(default_factory=list)
    uninstalled: list[list[str]] = field(default_factory=list)
    upgraded: list[list[str]] = field(default_factory=list)
    downgraded: list[list[str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.new_lock = self.lock.empty_copy()

    def on_mod_installed(self, installed_mod: DependencyMod, parent: ModDefinition) -> None:
        """新安装的依赖"""
        self.new_lock.add_dependency(parent.install_cache_key(), installed_mod.installed_version)

    def add_existing(self, existing: DependencyMod, parent: ModDefinition) -> None:
        """已安装（可能作为其它 mod 的依赖）且无需更新的依赖"""
        self.new_lock.add_dependency(parent.install_cache_key(), existing.installed_version)

    def keep_locked(self, name: str, parent: ModDefinition) -> InstalledModVersion | None:
        """沿用旧锁中 parent -> name 的边及其整个子树

        force 模式下依赖检查或安装失败时调用，原有安装保留在新锁中，不会被清理。
        新锁中已有这条边时不做处理。
        """
        parent_key = parent.install_cache_key()
        if self.new_lock.get_mod(name, parent_key) is not None:
            return None
        previous = self.lock.get_mod(name, parent_key)
        if previous is None:
            return None
        self.new_lock.add_dependency(parent_key, previous)
        self._keep_locked_subtree(previous.dependency_path(), set())
        logger.info("%s 检查失败，沿用已安装的 %s", name, previous.dependency_path())
        return previous

    def _keep_locked_subtree(self, parent_key: str, seen: set[str]) -> None:
        if parent_key in seen:
            return
        seen.add(parent_key)
        for dep in self.lock.install_cache.get(parent_key, {}).values():
            if self.new_lock.get_mod(dep.name, parent_key) is None:
                self.new_lock.add_dependency(parent_key, dep)
            self._keep_locked_subtree(dep.dependency_path(), seen)

    def get_available_mod_versions(
        self, mod_name: str, include_prerelease: bool,
    ) -> list[ResolvedVersionConstraint]:
        return self.resolver.get_available_mod_versions(mod_name, include_prerelease)

    def on_install_complete(self) -> None:
        diff = diff_locks(self.lock, self.new_lock, self.workspace_mod.install_cache_key())
        self.installed = diff.installed
        self.uninstalled = diff.uninstalled
        self.upgraded = diff.upgraded
        self.downgraded = diff.downgraded
        logger.debug(
            "安装完成: 新增 %d, 卸载 %d, 升级 %d, 降级 %d",
            len(diff.installed), len(diff.uninstalled), len(diff.upgraded), len(diff.downgraded),
        )
        self.lock = self.new_lock
