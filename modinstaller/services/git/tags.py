"""远端 tag 解析

GitTagResolver 生命周期等于一次安装会话: 每个 mod 的远端引用最多列出一次，
之后按 include_prerelease 在缓存上过滤。
"""

from __future__ import annotations

import logging

from modinstaller.core.models import (
    DependencyVersion,
    RemoteRef,
    ResolvedVersionConstraint,
)
from modinstaller.core.versioning import is_prerelease, parse_version
from modinstaller.services.git.remote import ModRemote

logger = logging.getLogger(__name__)


class GitTagResolver:
    """按 mod 名称解析远端可用版本（带会话级缓存）"""

    def __init__(self, remote: ModRemote) -> None:
        self.remote = remote
        self._refs: dict[str, list[RemoteRef]] = {}

    def _remote_refs(self, mod_name: str) -> list[RemoteRef]:
        refs = self._refs.get(mod_name)
        if refs is None:
            refs = self.remote.list_refs(mod_name)
            self._refs[mod_name] = refs
        return refs

    def get_available_mod_versions(
        self, mod_name: str, include_prerelease: bool = False,
    ) -> list[ResolvedVersionConstraint]:
        """返回所有语义化版本 tag，严格降序

        无法解析的 tag 被丢弃；除非 include_prerelease，预发布与带 build 元数据的 tag 也被丢弃。
        同一版本存在多个 tag（如 v1.0.0 与 1.0.0）时只保留一个。

        异常:
            DependencyResolutionError: HTTPS 与 SSH 均无法列出远端引用
        """
        by_version: dict[str, ResolvedVersionConstraint] = {}
        for ref in self._remote_refs(mod_name):
            if not ref.is_tag:
                continue
            try:
                version = parse_version(ref.short_name)
            except ValueError:
                continue
            if not include_prerelease and is_prerelease(version):
                continue
            key = str(version)
            # 优先保留带 v 前缀的 tag，与依赖路径格式一致
            if key in by_version and not ref.short_name.startswith("v"):
                continue
            by_version[key] = ResolvedVersionConstraint(
                name=mod_name,
                dependency_version=DependencyVersion(version=version),
                git_ref=ref.name,
                commit=ref.commit,
            )
        result = sorted(by_version.values(), key=lambda r: r.version, reverse=True)
        logger.debug("%s 可用版本: %s", mod_name, ", ".join(str(r.version) for r in result))
        return result

    def get_tag(self, mod_name: str, tag: str) -> ResolvedVersionConstraint | None:
        """解析显式 tag，不存在返回 None

        异常:
            DependencyResolutionError: 远端不可达
        """
        git_ref = f"refs/tags/{tag}"
        for ref in self._remote_refs(mod_name):
            if ref.name == git_ref:
                return ResolvedVersionConstraint(
                    name=mod_name,
                    dependency_version=DependencyVersion(tag=tag),
                    constraint=tag,
                    git_ref=git_ref,
                    commit=ref.commit,
                )
        return None

    def latest_commit(self, mod_name: str, git_ref: str) -> str:
        """远端引用当前指向的 commit（不使用缓存，供更新检查使用）"""
        return self.remote.latest_commit(mod_name, git_ref)
