"""mod 版本约束

一条依赖引用的解析结果:
  name               最新版本 (等价于 name@*)
  name@^1.2          语义化版本约束
  name@my-tag        显式 tag（不能解析为约束时）
  name#branch        分支
  file:<path> / 路径  本地路径依赖
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Any

from modinstaller.core.models import (
    DependencyVersion,
    ReferenceKind,
    build_dependency_path,
)
from modinstaller.core.versioning import VersionConstraint

logger = logging.getLogger(__name__)

# 合法的 git ref 名称（tag / branch），禁止空白与 shell 元字符
SAFE_REF_RE = re.compile(r"^[a-zA-Z0-9_./@\-]+$")
# 远端名称: host/path，不允许协议与空白
_MOD_NAME_RE = re.compile(r"^[a-zA-Z0-9_.\-]+(/[a-zA-Z0-9_.\-]+)+$")

FILE_PREFIX = "file:"


def is_safe_ref(ref: str) -> bool:
    return bool(SAFE_REF_RE.match(ref)) and ".." not in ref and not ref.startswith("-")


def trim_mod_name(name: str) -> str:
    """去掉 https:// 前缀与 .git 后缀"""
    name = name.strip()
    for prefix in ("https://", "http://"):
        if name.startswith(prefix):
            name = name[len(prefix):]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name.rstrip("/")


def is_valid_mod_name(name: str) -> bool:
    return bool(_MOD_NAME_RE.match(name))


@dataclass
class ModVersionConstraint:
    """依赖约束，version_string / tag / branch_name / file_path 至多设置一个"""

    name: str
    version_string: str = ""
    tag: str = ""
    branch_name: str = ""
    file_path: str = ""

    def __post_init__(self) -> None:
        set_fields = [f for f in (self.version_string, self.tag, self.branch_name, self.file_path) if f]
        if len(set_fields) > 1:
            raise ValueError(f"约束 {self.name} 只能指定版本、tag、分支、路径中的一个")
        self._constraint: VersionConstraint | None = None
        if self.kind is ReferenceKind.VERSION:
            # 空版本 / latest 等价于 *
            self._constraint = VersionConstraint(self.version_string or "*")

    @property
    def kind(self) -> ReferenceKind:
        if self.file_path:
            return ReferenceKind.PATH
        if self.tag:
            return ReferenceKind.TAG
        if self.branch_name:
            return ReferenceKind.BRANCH
        return ReferenceKind.VERSION

    @property
    def constraint(self) -> VersionConstraint | None:
        return self._constraint

    def has_version(self) -> bool:
        """是否显式指定了版本、tag、分支或路径"""
        return bool(self.version_string or self.tag or self.branch_name or self.file_path)

    def is_prerelease(self) -> bool:
        return self._constraint is not None and self._constraint.is_prerelease()

    def is_satisfied_by(self, version: DependencyVersion) -> bool:
        kind = self.kind
        if kind is ReferenceKind.VERSION:
            if self._constraint is None or version.version is None:
                return False
            return self._constraint.check(version.version)
        if kind is ReferenceKind.TAG:
            return version.tag == self.tag
        if kind is ReferenceKind.BRANCH:
            return version.branch == self.branch_name
        return bool(version.file_path) and (
            os.path.abspath(version.file_path) == os.path.abspath(self.file_path)
        )

    def version_label(self) -> str:
        """约束的可读形式，写入锁文件的 constraint 字段"""
        kind = self.kind
        if kind is ReferenceKind.VERSION:
            return self.version_string or "*"
        if kind is ReferenceKind.TAG:
            return self.tag
        if kind is ReferenceKind.BRANCH:
            return f"#{self.branch_name}"
        return self.file_path

    def dependency_path(self) -> str:
        """只有本地路径依赖可以在解析前确定依赖路径"""
        if self.file_path:
            return build_dependency_path(
                self.name, DependencyVersion(file_path=os.path.abspath(self.file_path)),
            )
        return self.name

    def equals(self, other: ModVersionConstraint | None) -> bool:
        if other is None:
            return False
        return (
            self.name == other.name
            and self.kind is other.kind
            and self.tag == other.tag
            and self.branch_name == other.branch_name
            and self.file_path == other.file_path
            and self._constraint == other._constraint
        )

    def __str__(self) -> str:
        kind = self.kind
        if kind is ReferenceKind.VERSION:
            return f"{self.name}@{self.version_string}" if self.version_string else self.name
        if kind is ReferenceKind.TAG:
            return f"{self.name}@{self.tag}"
        if kind is ReferenceKind.BRANCH:
            return f"{self.name}#{self.branch_name}"
        return self.file_path

    # ---- mod 文件 require 条目 ----

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.version_string:
            data["version"] = self.version_string
        if self.tag:
            data["tag"] = self.tag
        if self.branch_name:
            data["branch"] = self.branch_name
        if self.file_path:
            data["file_path"] = self.file_path
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ModVersionConstraint:
        """从 require 条目构造

        异常:
            ValueError: 缺少 name、字段冲突或版本约束无效
        """
        name = str(data.get("name", "")).strip()
        if not name:
            raise ValueError(f"require 条目缺少 name: {data}")
        version = data.get("version", "")
        return cls(
            name=name,
            version_string="" if version is None else str(version),
            tag=str(data.get("tag", "") or ""),
            branch_name=str(data.get("branch", "") or ""),
            file_path=str(data.get("file_path", "") or ""),
        )


def new_mod_version_constraint(arg: str) -> ModVersionConstraint:
    """解析远端依赖参数（name / name@x / name#branch）

    @ 之后的部分能解析为语义化版本约束时视为版本，否则视为 tag。

    异常:
        ValueError: 格式不合法
    """
    arg = arg.strip()
    if not arg:
        raise ValueError("依赖参数为空")

    if "#" in arg:
        name, _, branch = arg.partition("#")
        name = trim_mod_name(name)
        if "#" in branch or "@" in branch or not branch:
            raise ValueError(f"无效的分支引用: {arg}")
        if not is_safe_ref(branch):
            raise ValueError(f"分支名包含非法字符: {branch}")
        _check_name(name, arg)
        return ModVersionConstraint(name=name, branch_name=branch)

    if "@" in arg:
        name, _, ref = arg.rpartition("@")
        name = trim_mod_name(name)
        _check_name(name, arg)
        if not ref:
            raise ValueError(f"缺少版本: {arg}")
        try:
            return ModVersionConstraint(name=name, version_string=ref)
        except ValueError:
            logger.debug("%s 不是版本约束，按 tag 处理", ref)
        if not is_safe_ref(ref):
            raise ValueError(f"tag 名包含非法字符: {ref}")
        return ModVersionConstraint(name=name, tag=ref)

    name = trim_mod_name(arg)
    _check_name(name, arg)
    return ModVersionConstraint(name=name)


def _check_name(name: str, arg: str) -> None:
    if not is_valid_mod_name(name):
        raise ValueError(f"无效的 mod 名称 '{name}' (参数: {arg})")
