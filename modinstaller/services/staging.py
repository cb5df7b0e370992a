"""影子目录事务

安装过程中的克隆全部写入 mods 目录的同级影子目录 (<prefix><execution_id>)，
整批安装结束后才复制进 mods 目录；无论成功与否，影子目录都会被删除。

    staging = Staging(mods_path, ".mods.", execution_id)
    staging.begin()
    try:
        dest = staging.add("github.com/acme/mod-a@v1.0.0")
        ...  # 克隆到 dest
        staging.commit(cancel_event)
    finally:
        staging.rollback()
"""

from __future__ import annotations

import logging
import shutil
import threading
from pathlib import Path

from modinstaller.core.exceptions import CommitError, InstallCancelledError

logger = logging.getLogger(__name__)


class Staging:
    """mods 目录的影子目录"""

    def __init__(self, mods_path: Path, prefix: str, execution_id: str) -> None:
        self.mods_path = Path(mods_path)
        self.prefix = prefix
        self.shadow_path = self.mods_path.parent / f"{prefix}{execution_id}"
        self._added: list[str] = []

    def begin(self) -> None:
        """清理之前中断运行遗留的影子目录"""
        parent = self.mods_path.parent
        if not parent.is_dir():
            return
        for entry in parent.iterdir():
            if entry.is_dir() and entry.name.startswith(self.prefix):
                logger.info("清理遗留影子目录: %s", entry)
                shutil.rmtree(entry, ignore_errors=True)

    def add(self, dependency_path: str) -> Path:
        """登记一个依赖并返回其影子目录中的目标路径"""
        dest = self.shadow_path / dependency_path
        if dest.exists():
            # 成功安装的依赖会出现在锁文件中，不应重复安装；残留目录直接删除重装
            logger.info("影子目录中已存在 %s，删除后重新安装", dependency_path)
            shutil.rmtree(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        if dependency_path not in self._added:
            self._added.append(dependency_path)
        return dest

    def load_path(self, dependency_path: str) -> Path | None:
        """依赖的可加载位置: 优先影子目录，其次 mods 目录"""
        for root in (self.shadow_path, self.mods_path):
            candidate = root / dependency_path
            if candidate.is_dir():
                return candidate
        return None

    @property
    def added(self) -> list[str]:
        return list(self._added)

    def commit(self, cancel_event: threading.Event | None = None) -> list[str]:
        """把影子目录内容复制进 mods 目录，返回提交的依赖路径

        异常:
            InstallCancelledError: 提交前已取消
            CommitError: 复制失败
        """
        if cancel_event is not None and cancel_event.is_set():
            raise InstallCancelledError("安装已取消，未提交影子目录")
        if not self.shadow_path.is_dir():
            # 本次运行没有新安装任何 mod
            return []

        try:
            # 同一依赖路径的旧内容整体替换，避免残留已删除的文件
            for dependency_path in self._added:
                if (self.shadow_path / dependency_path).is_dir():
                    shutil.rmtree(self.mods_path / dependency_path, ignore_errors=True)
            self.mods_path.mkdir(parents=True, exist_ok=True)
            for entry in sorted(self.shadow_path.iterdir()):
                if not entry.is_dir():
                    continue
                logger.debug("提交 %s -> %s", entry, self.mods_path / entry.name)
                shutil.copytree(entry, self.mods_path / entry.name, dirs_exist_ok=True, symlinks=True)
        except OSError as e:
            raise CommitError(f"提交影子目录失败: {e}") from e
        logger.info("已提交 %d 个依赖到 %s", len(self._added), self.mods_path)
        return self.added

    def rollback(self) -> None:
        """删除影子目录（提交后同样调用）"""
        if self.shadow_path.exists():
            shutil.rmtree(self.shadow_path, ignore_errors=True)
