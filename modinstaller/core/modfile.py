"""mod 定义文件加载与 require 块回写

mod 定义文件 (mod.yml / mod.yaml) 格式:

    name: github.com/acme/mod-a
    title: Acme A
    version: 1.0.0
    require:
      - name: github.com/acme/mod-b
        version: "^1.2"
      - name: github.com/acme/mod-c
        branch: main
      - name: local/mod-d
        file_path: ../mod-d
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import yaml

from modinstaller.core.constraint import ModVersionConstraint
from modinstaller.core.exceptions import ModfileError
from modinstaller.utils.yaml_io import load_yaml, save_yaml

logger = logging.getLogger(__name__)

DEFAULT_MOD_FILE_NAMES = ("mod.yml", "mod.yaml")


@dataclass
class Require:
    """mod 的依赖声明（保持声明顺序，按名称唯一）"""

    mods: list[ModVersionConstraint] = field(default_factory=list)

    def get(self, name: str) -> ModVersionConstraint | None:
        for m in self.mods:
            if m.name == name:
                return m
        return None

    def add(self, constraint: ModVersionConstraint) -> None:
        """添加依赖，同名依赖原位替换"""
        for idx, m in enumerate(self.mods):
            if m.name == constraint.name:
                self.mods[idx] = constraint
                return
        self.mods.append(constraint)

    def remove(self, name: str) -> bool:
        before = len(self.mods)
        self.mods = [m for m in self.mods if m.name != name]
        return len(self.mods) != before

    def remove_all(self) -> None:
        self.mods = []

    def empty(self) -> bool:
        return not self.mods

    def clone(self) -> Require:
        return Require(mods=list(self.mods))

    def to_list(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self.mods]


@dataclass
class ModDefinition:
    """已加载的 mod 定义

    dependency_path 仅对作为依赖安装的 mod 设置，工作空间 mod 为空。
    """

    name: str
    mod_path: str
    file_path: str = ""
    title: str = ""
    version: str = ""
    require: Require = field(default_factory=Require)
    dependency_path: str = ""

    @property
    def short_name(self) -> str:
        """名称最后一段，作为安装别名"""
        return self.name.rstrip("/").rsplit("/", 1)[-1]

    def install_cache_key(self) -> str:
        """锁文件中以该 mod 为父节点时的键"""
        return self.dependency_path or self.short_name

    def set_dependency_config(self, dependency_path: str) -> None:
        """记录该 mod 作为依赖被安装时的依赖路径"""
        if not dependency_path:
            raise ModfileError(f"mod {self.name} 的依赖路径不能为空")
        self.dependency_path = dependency_path

    def has_dependent_mods(self) -> bool:
        return not self.require.empty()

    def get_mod_dependency(self, name: str) -> ModVersionConstraint | None:
        return self.require.get(name)

    def add_mod_dependencies(self, mods: dict[str, ModVersionConstraint]) -> None:
        for constraint in mods.values():
            self.require.add(constraint)

    def remove_mod_dependencies(self, mods: dict[str, ModVersionConstraint]) -> None:
        for name in mods:
            self.require.remove(name)

    def remove_all_mod_dependencies(self) -> None:
        self.require.remove_all()


class ModfileLoader(Protocol):
    """mod 定义加载器协议，目录中不存在定义文件时返回 None"""

    def __call__(self, mod_path: str | Path) -> ModDefinition | None:
        ...


def find_modfile(mod_path: str | Path, file_names: tuple[str, ...] | list[str] = DEFAULT_MOD_FILE_NAMES) -> Path | None:
    base = Path(mod_path)
    for file_name in file_names:
        candidate = base / file_name
        if candidate.is_file():
            return candidate
    return None


def load_modfile(
    mod_path: str | Path,
    file_names: tuple[str, ...] | list[str] = DEFAULT_MOD_FILE_NAMES,
) -> ModDefinition | None:
    """加载目录中的 mod 定义文件

    返回:
        ModDefinition，目录中没有定义文件时返回 None

    异常:
        ModfileError: 文件格式错误或 require 条目无效
    """
    modfile = find_modfile(mod_path, file_names)
    if modfile is None:
        return None

    try:
        data = load_yaml(modfile)
    except (yaml.YAMLError, ValueError) as e:
        raise ModfileError(f"解析 mod 定义文件失败: {modfile}: {e}") from e

    name = str(data.get("name", "") or "").strip()
    if not name:
        # 未声明 name 时使用目录名
        name = Path(mod_path).resolve().name

    raw_require = data.get("require") or []
    if not isinstance(raw_require, list):
        raise ModfileError(f"{modfile}: require 必须是列表")
    require = Require()
    errors: list[str] = []
    for entry in raw_require:
        if not isinstance(entry, dict):
            errors.append(f"require 条目必须是字典: {entry!r}")
            continue
        try:
            require.add(ModVersionConstraint.from_dict(entry))
        except ValueError as e:
            errors.append(str(e))
    if errors:
        raise ModfileError(f"{modfile} 中的 require 无效:\n  " + "\n  ".join(errors))

    return ModDefinition(
        name=name,
        mod_path=os.path.abspath(str(mod_path)),
        file_path=str(modfile),
        title=str(data.get("title", "") or ""),
        version=str(data.get("version", "") or ""),
        require=require,
    )


@dataclass
class RequireChanges:
    """require 块的变更集合"""

    added: list[ModVersionConstraint] = field(default_factory=list)
    removed: list[ModVersionConstraint] = field(default_factory=list)
    changed: list[ModVersionConstraint] = field(default_factory=list)

    def empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


def compute_require_changes(old: Require | None, new: Require | None) -> RequireChanges:
    old = old or Require()
    new = new or Require()
    changes = RequireChanges()
    for constraint in new.mods:
        previous = old.get(constraint.name)
        if previous is None:
            changes.added.append(constraint)
        elif not previous.equals(constraint):
            changes.changed.append(constraint)
    for constraint in old.mods:
        if new.get(constraint.name) is None:
            changes.removed.append(constraint)
    return changes


def write_require(mod: ModDefinition, changes: RequireChanges) -> bool:
    """将 require 变更回写到 mod 定义文件（保留其它字段）

    返回:
        是否写入了文件

    异常:
        ModfileError: 现有 mod 定义文件无法解析
    """
    if changes.empty():
        return False
    if mod.file_path:
        path = Path(mod.file_path)
    else:
        path = Path(mod.mod_path) / DEFAULT_MOD_FILE_NAMES[0]

    try:
        data = load_yaml(path)
    except (yaml.YAMLError, ValueError) as e:
        raise ModfileError(f"读取 mod 定义文件失败: {path}: {e}") from e
    if not data:
        data = {"name": mod.name}

    if mod.require.empty():
        data.pop("require", None)
    else:
        data["require"] = mod.require.to_list()
    save_yaml(path, data)
    mod.file_path = str(path)
    logger.info(
        "已更新 %s: 新增 %d, 移除 %d, 变更 %d",
        path, len(changes.added), len(changes.removed), len(changes.changed),
    )
    return True
