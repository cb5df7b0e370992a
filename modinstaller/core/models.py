"""核心数据模型

  - DependencyVersion: 依赖的具体版本（semver / tag / branch / 本地路径 四选一）
  - ResolvedVersionConstraint: 约束求解结果（不可变），记录 git 引用与 commit
  - InstalledModVersion: 锁文件中的一条边 "父 mod X 安装了子 mod Y 的版本 V"
  - DependencyMod: 内存中已加载的 mod 定义 + 其安装版本

依赖路径 (dependency path) 是已安装 mod 的规范标识，也是其在 mods 目录下的相对路径:
  name@v1.2.3 / name@<tag> / name#<branch> / <绝对文件路径>
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

import semantic_version

from modinstaller.core.versioning import parse_version

if TYPE_CHECKING:
    from modinstaller.core.constraint import ModVersionConstraint
    from modinstaller.core.modfile import ModDefinition

# 锁文件结构版本，写入每条记录，便于后续迁移
LOCK_STRUCT_VERSION = 20240429


class ReferenceKind(Enum):
    """依赖引用类型"""

    VERSION = "version"
    TAG = "tag"
    BRANCH = "branch"
    PATH = "path"


@dataclass(frozen=True, eq=False)
class DependencyVersion:
    """依赖版本，四个字段中恰好设置一个"""

    version: semantic_version.Version | None = None
    branch: str = ""
    tag: str = ""
    file_path: str = ""

    @property
    def kind(self) -> ReferenceKind | None:
        if self.version is not None:
            return ReferenceKind.VERSION
        if self.tag:
            return ReferenceKind.TAG
        if self.branch:
            return ReferenceKind.BRANCH
        if self.file_path:
            return ReferenceKind.PATH
        return None

    def _key(self) -> tuple[str, str, str, str]:
        return (
            str(self.version) if self.version is not None else "",
            self.branch, self.tag, self.file_path,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DependencyVersion):
            return NotImplemented
        # build metadata 也参与比较（字符串形式包含它）
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def less_than(self, other: DependencyVersion) -> bool:
        if self.version is not None and other.version is not None:
            return self.version < other.version
        return False

    def greater_than(self, other: DependencyVersion) -> bool:
        if self.version is not None and other.version is not None:
            return self.version > other.version
        return False

    def __str__(self) -> str:
        if self.version is not None:
            return str(self.version)
        return self.tag or self.branch or self.file_path


def build_dependency_path(name: str, version: DependencyVersion | None) -> str:
    """构造依赖路径"""
    if version is None:
        return name
    if version.tag:
        return f"{name}@{version.tag}"
    if version.version is not None:
        return f"{name}@v{version.version}"
    if version.branch:
        return f"{name}#{version.branch}"
    if version.file_path:
        # 本地路径依赖不放入 mods 目录，直接使用其路径
        return version.file_path
    return name


def parse_dependency_path(full_name: str) -> tuple[str, DependencyVersion]:
    """解析依赖路径为 (名称, 版本)，build_dependency_path 的逆操作

    mod 名称中不含 @ 与 #，第一个 @ 或 # 之后都是引用名；
    分支与 tag 名可以包含 /（如 feature/x），对应 mods 下的多级目录。

    异常:
        ValueError: 既没有 @ 也没有 #，或格式不合法
    """
    positions = [i for i in (full_name.find("@"), full_name.find("#")) if i >= 0]
    if not positions:
        raise ValueError(f"无效的依赖路径: {full_name}")
    split_at = min(positions)
    name, separator, ref = full_name[:split_at], full_name[split_at], full_name[split_at + 1:]
    if not name or name.endswith("/") or not _is_ref_path(ref):
        raise ValueError(f"无效的依赖路径: {full_name}")
    if separator == "#":
        return name, DependencyVersion(branch=ref)
    if ref.startswith("v"):
        try:
            return name, DependencyVersion(version=parse_version(ref))
        except ValueError:
            pass
    return name, DependencyVersion(tag=ref)


def _is_ref_path(ref: str) -> bool:
    if not ref or "@" in ref or "#" in ref:
        return False
    return all(part not in ("", ".", "..") for part in ref.split("/"))


@dataclass(frozen=True)
class ResolvedVersionConstraint:
    """约束求解结果

    constraint 保存原始约束字符串，写入锁文件用于溯源。
    """

    name: str
    dependency_version: DependencyVersion
    constraint: str = ""
    git_ref: str = ""
    commit: str = ""
    struct_version: int = LOCK_STRUCT_VERSION

    @property
    def version(self) -> semantic_version.Version | None:
        return self.dependency_version.version

    @property
    def branch(self) -> str:
        return self.dependency_version.branch

    @property
    def tag(self) -> str:
        return self.dependency_version.tag

    @property
    def file_path(self) -> str:
        return self.dependency_version.file_path

    def dependency_path(self) -> str:
        return build_dependency_path(self.name, self.dependency_version)

    def is_prerelease(self) -> bool:
        v = self.dependency_version.version
        return v is not None and (bool(v.prerelease) or bool(v.build))


@dataclass(frozen=True)
class InstalledModVersion:
    """锁文件中的一条依赖记录"""

    resolved: ResolvedVersionConstraint
    alias: str = ""

    @property
    def name(self) -> str:
        return self.resolved.name

    @property
    def dependency_version(self) -> DependencyVersion:
        return self.resolved.dependency_version

    @property
    def version(self) -> semantic_version.Version | None:
        return self.resolved.version

    @property
    def branch(self) -> str:
        return self.resolved.branch

    @property
    def tag(self) -> str:
        return self.resolved.tag

    @property
    def file_path(self) -> str:
        return self.resolved.file_path

    @property
    def commit(self) -> str:
        return self.resolved.commit

    @property
    def git_ref(self) -> str:
        return self.resolved.git_ref

    def dependency_path(self) -> str:
        return self.resolved.dependency_path()

    def satisfies_constraint(self, required: ModVersionConstraint) -> bool:
        return required.is_satisfied_by(self.dependency_version)

    # ---- 序列化（锁文件） ----

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "alias": self.alias,
            "constraint": self.resolved.constraint,
            "version": str(self.version) if self.version is not None else "",
            "branch": self.branch,
            "tag": self.tag,
            "file_path": self.file_path,
            "commit": self.commit,
            "git_ref": self.git_ref,
            "struct_version": self.resolved.struct_version,
        }
        return {k: v for k, v in data.items() if v not in ("", None)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstalledModVersion:
        """从锁文件记录构造

        异常:
            KeyError / ValueError: 记录缺少 name 或版本无法解析
        """
        raw_version = data.get("version") or ""
        dep_version = DependencyVersion(
            version=parse_version(raw_version) if raw_version else None,
            branch=data.get("branch", ""),
            tag=data.get("tag", ""),
            file_path=data.get("file_path", ""),
        )
        if dep_version.kind is None:
            raise ValueError(f"锁文件记录 {data.get('name')} 缺少版本信息")
        resolved = ResolvedVersionConstraint(
            name=data["name"],
            dependency_version=dep_version,
            constraint=data.get("constraint", ""),
            git_ref=data.get("git_ref", ""),
            commit=data.get("commit", ""),
            struct_version=int(data.get("struct_version", LOCK_STRUCT_VERSION)),
        )
        return cls(resolved=resolved, alias=data.get("alias", ""))


@dataclass
class DependencyMod:
    """已加载的依赖 mod（安装会话结束即丢弃）"""

    mod: ModDefinition
    installed_version: InstalledModVersion


@dataclass
class RemoteRef:
    """git ls-remote 返回的一条引用"""

    name: str    # refs/tags/v1.0.0
    commit: str

    @property
    def is_tag(self) -> bool:
        return self.name.startswith("refs/tags/")

    @property
    def short_name(self) -> str:
        return short_ref_name(self.name)


def short_ref_name(git_ref: str) -> str:
    """refs/tags/v1.0.0 -> v1.0.0, refs/heads/main -> main"""
    for prefix in ("refs/tags/", "refs/heads/"):
        if git_ref.startswith(prefix):
            return git_ref[len(prefix):]
    return git_ref
