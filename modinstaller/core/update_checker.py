"""更新策略判断

已安装版本仍满足约束时，是否重新获取取决于更新策略与约束类型:

    策略          版本约束:新版本  版本约束:新commit  tag:新commit  branch:新commit
    full          是               是                 是            是
    latest        是               否                 否            是
    development   否               否                 否            是
    minimal       否               否                 否            否

约束不满足或本地路径依赖总是更新；未被当前命令指向的 mod 从不更新。
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from modinstaller.core.exceptions import InvalidArgumentError
from modinstaller.core.models import ReferenceKind

if TYPE_CHECKING:
    import semantic_version

    from modinstaller.core.constraint import ModVersionConstraint
    from modinstaller.core.models import InstalledModVersion

logger = logging.getLogger(__name__)


class UpdateStrategy(Enum):
    FULL = "full"
    LATEST = "latest"
    DEVELOPMENT = "development"
    MINIMAL = "minimal"

    @classmethod
    def parse(cls, value: str | UpdateStrategy) -> UpdateStrategy:
        """异常: InvalidArgumentError 未知策略名"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise InvalidArgumentError(f"无效的更新策略: {value}，可选: {choices}") from None


class UpdateChecker(Protocol):
    """更新检查所需的远端查询（安装器实现，测试时可替换）"""

    update_strategy: UpdateStrategy

    def newer_version_available(
        self, required: ModVersionConstraint, current: semantic_version.Version,
    ) -> bool:
        ...

    def new_commit_available(self, installed: InstalledModVersion) -> bool:
        ...


def get_update_operations(
    required: ModVersionConstraint, strategy: UpdateStrategy,
) -> tuple[bool, bool]:
    """返回 (是否检查新 commit, 是否检查新版本)"""
    is_branch = required.kind is ReferenceKind.BRANCH
    if strategy is UpdateStrategy.FULL:
        return True, True
    if strategy is UpdateStrategy.LATEST:
        return is_branch, True
    if strategy is UpdateStrategy.DEVELOPMENT:
        return is_branch, False
    return False, False


def should_update_mod(
    installed: InstalledModVersion,
    required: ModVersionConstraint,
    command_targeting: bool,
    checker: UpdateChecker,
) -> bool:
    """判断已安装版本是否需要替换

    异常:
        DependencyResolutionError: 查询远端版本或 commit 失败
    """
    if not command_targeting:
        return False

    # 本地路径依赖的子依赖可能已在磁盘上变化
    if required.kind is ReferenceKind.PATH:
        return True

    if not installed.satisfies_constraint(required):
        logger.debug("%s: 已安装 %s 不满足约束 %s", required.name, installed.dependency_version, required)
        return True

    commit_check, version_check = get_update_operations(required, checker.update_strategy)
    if not commit_check and not version_check:
        return False

    if version_check and required.kind is ReferenceKind.VERSION and installed.version is not None:
        if checker.newer_version_available(required, installed.version):
            logger.debug("%s: 存在满足约束的更高版本", required.name)
            return True

    if commit_check:
        return checker.new_commit_available(installed)

    return False


def resolve_update_strategy(
    command: str,
    mod_args: list[str],
    explicit: str | UpdateStrategy | None = None,
) -> UpdateStrategy:
    """确定本次命令使用的更新策略

    显式指定优先；否则 uninstall -> minimal，update -> latest，
    带参数的 install -> latest，不带参数的 install -> minimal。
    """
    if explicit:
        return UpdateStrategy.parse(explicit)
    if command == "uninstall":
        return UpdateStrategy.MINIMAL
    if command == "update":
        return UpdateStrategy.LATEST
    if mod_args:
        return UpdateStrategy.LATEST
    return UpdateStrategy.MINIMAL
