"""清理未被锁引用的已安装 mod"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from modinstaller.core.exceptions import PruneError
from modinstaller.core.lock import VersionListMap, WorkspaceLock, scan_installed_mods
from modinstaller.core.models import build_dependency_path

logger = logging.getLogger(__name__)


class Pruner:
    """删除 mods 目录中未被锁引用的依赖目录"""

    def __init__(
        self,
        mods_path: str | Path,
        lock: WorkspaceLock,
        mod_file_names: list[str] | tuple[str, ...],
    ) -> None:
        self.mods_path = Path(mods_path)
        self.lock = lock
        self.mod_file_names = mod_file_names

    def prune(self, dry_run: bool = False) -> VersionListMap:
        """删除未引用的依赖并清理空的上级目录

        参数:
            dry_run: 只返回将被删除的依赖，不删除

        返回:
            被删除的 {名称: [版本]}

        异常:
            PruneError: 删除目录失败
        """
        # 提交后磁盘内容已变化，重新扫描
        installed = scan_installed_mods(self.mods_path, self.mod_file_names)
        unused = self.lock.get_unreferenced_mods(installed)
        if dry_run:
            return unused
        for name, versions in unused.items():
            for version in versions:
                dep_path = self.mods_path / build_dependency_path(name, version)
                try:
                    shutil.rmtree(dep_path)
                except OSError as e:
                    raise PruneError(f"删除 {dep_path} 失败: {e}") from e
                logger.info("已清理未引用的依赖: %s", build_dependency_path(name, version))
                self._remove_empty_parents(dep_path.parent)
        return unused

    def _remove_empty_parents(self, folder: Path) -> None:
        """向上删除空目录，直到 mods 根目录（不含）"""
        root = self.mods_path.resolve()
        current = folder.resolve()
        while current != root and root in current.parents:
            try:
                current.rmdir()
            except OSError:
                # 非空
                return
            current = current.parent
