"""集中配置管理

目录布局、文件名、令牌环境变量等统一从这里读取。
支持从 YAML 文件加载 + 编程式覆盖（构造时显式传入 Config）。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from modinstaller.core.exceptions import ConfigError
from modinstaller.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

UPDATE_STRATEGIES = ("full", "latest", "development", "minimal")


@dataclass
class Config:
    """安装器全局配置"""

    # 工作空间布局: <workspace>/<workspace_data_dir>/<mods_dir_name>
    workspace_data_dir: str = ".modinstaller"
    mods_dir_name: str = "mods"
    # 影子目录与 mods 目录同级，名称为 <prefix><execution_id>
    shadow_dir_prefix: str = ".mods."
    lock_file_name: str = ".mod.cache.json"
    mod_file_names: list[str] = field(default_factory=lambda: ["mod.yml", "mod.yaml"])

    # git
    git_binary: str = "git"
    git_token_envs: list[str] = field(
        default_factory=lambda: ["MODINSTALLER_GIT_TOKEN", "GITHUB_TOKEN"],
    )

    # 安装行为
    default_update_strategy: str = ""
    prune: bool = True

    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.default_update_strategy and self.default_update_strategy not in UPDATE_STRATEGIES:
            raise ConfigError(
                f"无效的 default_update_strategy: {self.default_update_strategy}，"
                f"可选: {', '.join(UPDATE_STRATEGIES)}"
            )
        if not self.mod_file_names:
            raise ConfigError("mod_file_names 不能为空")

    @classmethod
    def from_file(cls, path: str = "modinstaller.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件 {path} 内容无效: {e}") from e
        cfg.extra = extra
        return cfg

    # ---- 路径 ----

    def mods_path(self, workspace_path: str | Path) -> Path:
        return Path(workspace_path) / self.workspace_data_dir / self.mods_dir_name

    def lock_path(self, workspace_path: str | Path) -> Path:
        return Path(workspace_path) / self.lock_file_name

    def git_token(self) -> str:
        """按顺序读取第一个非空的令牌环境变量"""
        for name in self.git_token_envs:
            token = os.environ.get(name, "").strip()
            if token:
                return token
        return ""


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "modinstaller.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
