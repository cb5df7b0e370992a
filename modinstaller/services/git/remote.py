"""mod 远端仓库访问（HTTPS 优先，失败后回退 SSH）

两种协议都失败时保留两次的错误，避免令牌配置错误被笼统的失败信息掩盖。
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from modinstaller.core.exceptions import (
    DependencyResolutionError,
    GitCommandError,
    StagingError,
)
from modinstaller.core.models import RemoteRef, short_ref_name
from modinstaller.services.git.client import GitClient
from modinstaller.services.git.urls import UrlMode, git_url

logger = logging.getLogger(__name__)

_MODES = (UrlMode.HTTPS, UrlMode.SSH)


class ModRemote:
    """按 mod 名称访问远端仓库"""

    def __init__(self, client: GitClient) -> None:
        self.client = client

    def list_refs(self, mod_name: str) -> list[RemoteRef]:
        """列出远端全部引用

        异常:
            DependencyResolutionError: HTTPS 与 SSH 均失败
        """
        errors: list[Exception] = []
        for mode in _MODES:
            url = git_url(mod_name, mode)
            try:
                refs = self.client.ls_remote(url)
            except GitCommandError as e:
                logger.debug("列出远端引用失败 (%s): %s", mode.value, e)
                errors.append(e)
                continue
            logger.debug("%s: 远端引用 %d 条 (%s)", mod_name, len(refs), mode.value)
            return refs
        raise DependencyResolutionError(
            f"无法从 git 获取 {mod_name} 的版本信息", causes=errors,
        )

    def latest_commit(self, mod_name: str, git_ref: str) -> str:
        """读取远端分支或 tag 当前指向的 commit

        异常:
            DependencyResolutionError: 远端不可达或引用不存在
        """
        patterns = [git_ref]
        if git_ref.startswith("refs/tags/"):
            # 按名称过滤时附注 tag 的解引用行需要单独匹配
            patterns.append(f"{git_ref}^{{}}")
        errors: list[Exception] = []
        for mode in _MODES:
            url = git_url(mod_name, mode)
            try:
                refs = self.client.ls_remote(url, *patterns)
            except GitCommandError as e:
                errors.append(e)
                continue
            for ref in refs:
                if ref.name == git_ref:
                    return ref.commit
            raise DependencyResolutionError(f"远端 {mod_name} 不存在引用 {git_ref}")
        raise DependencyResolutionError(
            f"无法获取 {mod_name} 的 {git_ref} 最新 commit", causes=errors,
        )

    def clone(self, mod_name: str, git_ref: str, dest: Path) -> str:
        """浅克隆到 dest，返回检出的 commit

        异常:
            StagingError: HTTPS 与 SSH 克隆均失败
        """
        ref = short_ref_name(git_ref)
        errors: list[GitCommandError] = []
        for mode in _MODES:
            url = git_url(mod_name, mode)
            if dest.exists():
                # 上一次失败的克隆可能留下残缺目录
                shutil.rmtree(dest, ignore_errors=True)
            try:
                self.client.clone(url, ref, dest)
                return self.client.rev_parse_head(dest)
            except GitCommandError as e:
                logger.debug("克隆失败 (%s): %s", mode.value, e)
                errors.append(e)
        shutil.rmtree(dest, ignore_errors=True)
        detail = "\n".join(f"  - {e}" for e in errors)
        raise StagingError(f"克隆 {mod_name}@{ref} 失败\n{detail}")
