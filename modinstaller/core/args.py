"""命令行 mod 参数解析

在任何网络或文件写操作之前完成全部校验，错误一次性汇总报告。
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

from modinstaller.core.constraint import (
    FILE_PREFIX,
    ModVersionConstraint,
    new_mod_version_constraint,
)
from modinstaller.core.exceptions import InvalidArgumentError, ModfileError
from modinstaller.core.modfile import ModDefinition, ModfileLoader, load_modfile

if TYPE_CHECKING:
    from modinstaller.core.lock import WorkspaceLock

logger = logging.getLogger(__name__)

COMMANDS = ("install", "update", "uninstall")


def to_absolute_filepath(arg: str, base_path: str) -> str:
    """参数是已存在的目录时返回其绝对路径，否则返回空串"""
    path = arg if os.path.isabs(arg) else os.path.join(base_path, arg)
    if os.path.isdir(path):
        return os.path.abspath(path)
    return ""


def new_filepath_constraint(path: str, loader: ModfileLoader = load_modfile) -> ModVersionConstraint:
    """从本地目录构造路径依赖约束

    异常:
        ValueError: 目录中没有 mod 定义文件
        ModfileError: 定义文件无效
    """
    mod_def = loader(path)
    if mod_def is None:
        raise ValueError(f"'{path}' 中没有 mod 定义文件")
    return ModVersionConstraint(name=mod_def.name, file_path=os.path.abspath(path))


def parse_mod_arg(
    arg: str,
    workspace_path: str,
    loader: ModfileLoader = load_modfile,
) -> ModVersionConstraint:
    """解析单个 mod 参数

    异常:
        ValueError / ModfileError: 参数格式不合法
    """
    if arg.startswith(FILE_PREFIX):
        raw = arg[len(FILE_PREFIX):]
        path = to_absolute_filepath(raw, workspace_path)
        if not path:
            raise ValueError(f"目录不存在: {raw}")
        return new_filepath_constraint(path, loader)

    path = to_absolute_filepath(arg, workspace_path)
    if path and loader(path) is not None:
        return new_filepath_constraint(path, loader)
    # 没有 mod 定义的目录按远端名称处理
    return new_mod_version_constraint(arg)


def get_required_mod_versions_from_args(
    mod_args: list[str],
    *,
    command: str,
    workspace_mod: ModDefinition,
    lock: WorkspaceLock,
    loader: ModfileLoader = load_modfile,
) -> dict[str, ModVersionConstraint]:
    """解析命令行 mod 参数为 {名称: 约束}

    参数:
        mod_args: 命令行参数列表
        command: install / update / uninstall
        workspace_mod: 工作空间 mod（update 时取其现有约束）
        lock: 运行前的锁（update 时校验是否为直接依赖）

    异常:
        InvalidArgumentError: 任一参数无效，details 中包含全部错误
    """
    if command not in COMMANDS:
        raise InvalidArgumentError(f"未知命令: {command}，可选: {', '.join(COMMANDS)}")

    errors: list[str] = []
    mods: dict[str, ModVersionConstraint] = {}
    for arg in mod_args:
        try:
            constraint = parse_mod_arg(arg, workspace_mod.mod_path, loader)
        except (ValueError, ModfileError) as e:
            errors.append(f"无效的参数 '{arg}': {e}")
            continue

        if command == "update":
            try:
                constraint = _get_update_version(arg, constraint, workspace_mod, lock)
            except ValueError as e:
                errors.append(str(e))
                continue
        elif command == "uninstall" and constraint.has_version():
            errors.append(f"无效的参数 '{arg}': 卸载时不能指定版本")
            continue

        mods[constraint.name] = constraint

    if errors:
        raise InvalidArgumentError(
            f"{len(errors)} 个参数无效:\n  " + "\n  ".join(errors),
            details=errors,
        )
    logger.debug("命令 %s 目标 mod: %s", command, ", ".join(mods) or "<全部>")
    return mods


def _get_update_version(
    arg: str,
    constraint: ModVersionConstraint,
    workspace_mod: ModDefinition,
    lock: WorkspaceLock,
) -> ModVersionConstraint:
    """update 只能作用于直接依赖，且沿用 mod 文件中的现有约束"""
    not_direct = f"无法更新 '{arg}': 不是当前工作空间的直接依赖"
    if lock.get_mod(constraint.name, workspace_mod.install_cache_key()) is None:
        raise ValueError(not_direct)
    current = workspace_mod.get_mod_dependency(constraint.name)
    if current is None:
        raise ValueError(not_direct)
    if constraint.file_path:
        raise ValueError(f"无效的参数 '{arg}': 不能更新通过路径引用的 mod")
    if constraint.branch_name:
        raise ValueError(f"无效的参数 '{arg}': 更新时不能指定分支")
    if constraint.has_version():
        raise ValueError(f"无效的参数 '{arg}': 更新时不能指定版本")
    return current
