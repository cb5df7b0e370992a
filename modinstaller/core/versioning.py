"""语义化版本解析与约束匹配

基于 semantic_version:
  - parse_version(): 宽松解析 git tag（允许 v 前缀、省略 minor/patch）
  - VersionConstraint: npm 风格约束（^1.2 / ~1.2 / >=1.0,<2.0 / 1.x / 1.1 / * / ||）
"""

from __future__ import annotations

import re

import semantic_version

_LOOSE_VERSION_RE = re.compile(
    r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?"
    r"(?:-([0-9A-Za-z\-.]+))?"
    r"(?:\+([0-9A-Za-z\-.]+))?$"
)

# 逗号分隔的 AND 约束转换为 npm 的空格分隔
_COMMA_RE = re.compile(r"\s*,\s*")
# 版本号前的 v 前缀（不匹配单词内部的 v）
_V_PREFIX_RE = re.compile(r"(?<![0-9A-Za-z])v(?=\d)")
# 运算符与版本号之间的空白，如 ">= 1.2"
_OP_SPACE_RE = re.compile(r"(>=|<=|>|<|=|\^|~)\s+")
_PRERELEASE_RE = re.compile(r"\d+(?:\.\d+){0,2}-[0-9A-Za-z]")


def parse_version(raw: str) -> semantic_version.Version:
    """宽松解析版本号

    "v1.2" -> 1.2.0, "1.0.0-rc.1+build5" -> 1.0.0-rc.1+build5

    异常:
        ValueError: 不是合法的语义化版本
    """
    m = _LOOSE_VERSION_RE.match(raw.strip())
    if not m:
        raise ValueError(f"无效的语义化版本: {raw}")
    major, minor, patch, pre, build = m.groups()
    return semantic_version.Version(
        major=int(major),
        minor=int(minor or 0),
        patch=int(patch or 0),
        prerelease=tuple(pre.split(".")) if pre else (),
        build=tuple(build.split(".")) if build else (),
    )


def is_prerelease(version: semantic_version.Version) -> bool:
    """含 prerelease 或 build metadata 的版本都视为预发布"""
    return bool(version.prerelease) or bool(version.build)


def normalize_constraint(raw: str) -> str:
    s = raw.strip()
    if s in ("", "latest"):
        return "*"
    s = _COMMA_RE.sub(" ", s)
    s = _OP_SPACE_RE.sub(r"\1", s)
    return _V_PREFIX_RE.sub("", s)


class VersionConstraint:
    """语义化版本约束

    未显式提到预发布版本的约束不匹配预发布版本（npm 语义）。
    """

    def __init__(self, raw: str) -> None:
        self.raw = raw
        self.normalized = normalize_constraint(raw)
        try:
            self._spec = semantic_version.NpmSpec(self.normalized)
        except ValueError as e:
            raise ValueError(f"无效的版本约束 '{raw}': {e}") from e

    def check(self, version: semantic_version.Version) -> bool:
        return self._spec.match(version)

    def is_prerelease(self) -> bool:
        return bool(_PRERELEASE_RE.search(self.normalized))

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"VersionConstraint({self.raw!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionConstraint):
            return NotImplemented
        return self.normalized == other.normalized

    def __hash__(self) -> int:
        return hash(self.normalized)


def is_version_constraint(raw: str) -> bool:
    try:
        VersionConstraint(raw)
    except ValueError:
        return False
    return True
