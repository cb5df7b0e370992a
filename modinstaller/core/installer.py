"""mod 依赖安装器

递归遍历工作空间 mod 的依赖及其传递依赖:
  1. 已安装且满足约束 -> 记录为已有依赖（新锁中添加一条边）
  2. 否则从 git 解析版本 -> 克隆到影子目录 -> 加载 mod 定义 -> 递归其依赖
  3. 全部完成后比较新旧锁、提交影子目录、保存锁文件、回写 mod 文件、清理未引用 mod

用法:
    opts = InstallOpts(workspace_mod=load_workspace_mod("."), mod_args=["github.com/acme/a@^1.0"])
    data = install_workspace_dependencies(opts)
    print(build_install_summary(data))
"""

from __future__ import annotations

import dataclasses
import functools
import logging
import os
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import semantic_version

from modinstaller.core.args import get_required_mod_versions_from_args
from modinstaller.core.config import Config, get_config
from modinstaller.core.constraint import ModVersionConstraint
from modinstaller.core.exceptions import (
    DependencyInstallError,
    DependencyResolutionError,
    InstallCancelledError,
    InvalidArgumentError,
    ModfileNotFoundError,
    ModInstallerError,
)
from modinstaller.core.install_data import InstallData
from modinstaller.core.lock import VersionListMap, WorkspaceLock
from modinstaller.core.models import (
    DependencyMod,
    DependencyVersion,
    InstalledModVersion,
    ReferenceKind,
    ResolvedVersionConstraint,
)
from modinstaller.core.modfile import (
    ModDefinition,
    ModfileLoader,
    RequireChanges,
    compute_require_changes,
    load_modfile,
    write_require,
)
from modinstaller.core.pruner import Pruner
from modinstaller.core.summary import build_dependency_tree
from modinstaller.core.update_checker import (
    UpdateStrategy,
    resolve_update_strategy,
    should_update_mod,
)
from modinstaller.services.git.auth import git_auth_env
from modinstaller.services.git.client import GitClient
from modinstaller.services.git.remote import ModRemote
from modinstaller.services.git.tags import GitTagResolver
from modinstaller.services.staging import Staging
from modinstaller.utils.logger import execution_context
from modinstaller.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

RequireWriter = Callable[[ModDefinition, RequireChanges], bool]


@dataclass
class InstallOpts:
    """安装选项

    update_strategy 为空时按命令推断；prune 为 None 时取配置值。
    executor / loader / require_writer 可注入以替换 git、mod 文件解析与回写。
    """

    workspace_mod: ModDefinition
    command: str = "install"
    mod_args: list[str] = field(default_factory=list)
    dry_run: bool = False
    force: bool = False
    update_strategy: str | UpdateStrategy | None = None
    prune: bool | None = None
    config: Config | None = None
    executor: CommandExecutor | None = None
    loader: ModfileLoader | None = None
    require_writer: RequireWriter = write_require
    execution_id: str = ""


def load_workspace_mod(workspace_path: str | Path, config: Config | None = None) -> ModDefinition:
    """加载工作空间 mod；没有定义文件时以目录名构造一个空的 mod

    异常:
        ModfileError: 定义文件无效
    """
    cfg = config or get_config()
    path = os.path.abspath(str(workspace_path))
    mod = load_modfile(path, cfg.mod_file_names)
    if mod is None:
        mod = ModDefinition(name=os.path.basename(path) or "workspace", mod_path=path)
    return mod


def get_version_satisfying_constraint(
    required: ModVersionConstraint,
    available: list[ResolvedVersionConstraint],
) -> ResolvedVersionConstraint | None:
    """available 已按降序排列，第一个满足约束的即为最高版本"""
    constraint = required.constraint
    if constraint is None:
        return None
    for candidate in available:
        if candidate.version is not None and constraint.check(candidate.version):
            return candidate
    return None


class ModInstaller:
    """单个工作空间的一次安装运行"""

    def __init__(self, opts: InstallOpts) -> None:
        if opts.workspace_mod is None:
            raise InvalidArgumentError("未指定工作空间 mod")
        self.config = opts.config or get_config()
        self.workspace_mod = opts.workspace_mod
        self.workspace_path = os.path.abspath(self.workspace_mod.mod_path)
        self.command = opts.command
        self.dry_run = opts.dry_run
        self.force = opts.force
        self.prune_enabled = self.config.prune if opts.prune is None else opts.prune
        self.loader: ModfileLoader = opts.loader or functools.partial(
            load_modfile, file_names=self.config.mod_file_names,
        )
        self.require_writer = opts.require_writer
        # mod 文件回写需要比较的原始 require
        self.old_require = self.workspace_mod.require.clone()

        self.mods_path = self.config.mods_path(self.workspace_path)
        self.execution_id = opts.execution_id or uuid.uuid4().hex[:8]
        self.staging = Staging(self.mods_path, self.config.shadow_dir_prefix, self.execution_id)

        client = GitClient(
            opts.executor,
            git_binary=self.config.git_binary,
            env=git_auth_env(self.config.git_token()),
        )
        self.remote = ModRemote(client)
        self.resolver = GitTagResolver(self.remote)

        lock = WorkspaceLock.load(self.workspace_path, self.config)
        if lock.incomplete():
            missing = sum(len(deps) for deps in lock.missing_versions.values())
            logger.warning("锁文件中有 %d 个依赖在 mods 目录中缺失，将重新安装", missing)
        self.install_data = InstallData(lock=lock, workspace_mod=self.workspace_mod, resolver=self.resolver)

        self.target_mods = get_required_mod_versions_from_args(
            opts.mod_args,
            command=self.command,
            workspace_mod=self.workspace_mod,
            lock=lock,
            loader=self.loader,
        )
        explicit = opts.update_strategy or self.config.default_update_strategy or None
        self.update_strategy = resolve_update_strategy(self.command, opts.mod_args, explicit)
        # 每个失败依赖的错误（force 时错误被忽略，但仍保留在这里）
        self.install_errors: list[Exception] = []
        logger.debug(
            "安装器就绪: workspace=%s command=%s strategy=%s execution_id=%s",
            self.workspace_path, self.command, self.update_strategy.value, self.execution_id,
        )

    # ---- 对外操作 ----

    def install_workspace_dependencies(self, cancel_event: threading.Event | None = None) -> InstallData:
        """安装工作空间依赖

        异常:
            DependencyInstallError: 部分依赖安装失败（force 时不抛出）
            InstallCancelledError: 运行被取消
            CommitError / LockFileError / ModfileError: 持久化失败
        """
        with execution_context(self.execution_id):
            return self._run_install(cancel_event)

    def uninstall_workspace_dependencies(self, cancel_event: threading.Event | None = None) -> InstallData:
        """卸载依赖（不带参数时卸载全部）"""
        with execution_context(self.execution_id):
            return self._run_uninstall(cancel_event)

    def prune(self, dry_run: bool = False) -> VersionListMap:
        pruner = Pruner(self.mods_path, self.install_data.lock, self.config.mod_file_names)
        return pruner.prune(dry_run=dry_run)

    def get_mod_list(self) -> str:
        return build_dependency_tree(self.install_data.lock, self.workspace_mod.install_cache_key())

    def _run_install(self, cancel_event: threading.Event | None) -> InstallData:
        cancelled = False
        failed = False
        try:
            if self.target_mods:
                # 同名依赖被替换为命令行指定的约束
                self.workspace_mod.add_mod_dependencies(self.target_mods)
            self._install_mods(cancel_event)
            if self.dry_run:
                logger.debug("dry-run: 不保存锁文件与 mod 文件")
                return self.install_data
            self.install_data.lock.save()
            self._update_mod_file()
            if not self.workspace_mod.has_dependent_mods():
                self.install_data.lock.delete()
        except InstallCancelledError:
            cancelled = True
            raise
        except Exception:
            failed = True
            raise
        finally:
            # 安装失败也执行清理
            if self.prune_enabled and not self.dry_run and not cancelled:
                self._prune_quietly(failed)
        return self.install_data

    def _run_uninstall(self, cancel_event: threading.Event | None) -> InstallData:
        if self.target_mods:
            self.workspace_mod.remove_mod_dependencies(self.target_mods)
        else:
            self.workspace_mod.remove_all_mod_dependencies()

        self._install_mods(cancel_event)
        if self.dry_run:
            logger.debug("dry-run: 不保存锁文件与 mod 文件")
            return self.install_data
        self.install_data.lock.save()
        self._update_mod_file()
        if self.prune_enabled:
            self.prune()
        return self.install_data

    # ---- 更新检查（UpdateChecker 协议） ----

    def newer_version_available(
        self, required: ModVersionConstraint, current: semantic_version.Version,
    ) -> bool:
        available = self.install_data.get_available_mod_versions(required.name, required.is_prerelease())
        latest = get_version_satisfying_constraint(required, available)
        return latest is not None and latest.version is not None and latest.version > current

    def new_commit_available(self, installed: InstalledModVersion) -> bool:
        kind = installed.dependency_version.kind
        if kind is ReferenceKind.BRANCH:
            git_ref = installed.git_ref or f"refs/heads/{installed.branch}"
        elif kind is ReferenceKind.TAG:
            git_ref = installed.git_ref or f"refs/tags/{installed.tag}"
        elif kind is ReferenceKind.VERSION:
            git_ref = installed.git_ref or f"refs/tags/v{installed.version}"
        else:
            return False
        latest = self.resolver.latest_commit(installed.name, git_ref)
        return latest != installed.commit

    # ---- 内部实现 ----

    def _install_mods(self, cancel_event: threading.Event | None) -> None:
        """遍历工作空间依赖，结束后提交影子目录（影子目录总会被删除）"""
        self.staging.begin()
        errors: list[Exception] = []
        try:
            for required in list(self.workspace_mod.require.mods):
                required = self._absolute_path_requirement(required, self.workspace_mod)
                targeting = self._is_command_targeting_mod(required)
                try:
                    current = self._get_mod_for_requirement(required, targeting)
                    self._install_mod_dependencies_recursively(
                        required, current, self.workspace_mod, targeting, cancel_event,
                    )
                except InstallCancelledError:
                    raise
                except (ModInstallerError, OSError) as e:
                    logger.debug("依赖 %s 安装失败: %s", required, e)
                    self._on_dependency_failed(required, self.workspace_mod)
                    errors.append(e)

            if not errors or self.force:
                self.install_data.on_install_complete()
            if self._should_commit_shadow(errors):
                self.staging.commit(cancel_event)
        finally:
            self.staging.rollback()

        self.install_errors = errors
        if not errors:
            return
        install_error = self._build_install_error(errors)
        if self.force:
            logger.warning("已设置 force，忽略安装错误:\n%s", install_error)
            return
        raise install_error

    def _should_commit_shadow(self, errors: list[Exception]) -> bool:
        if self.dry_run:
            return False
        return not errors or self.force

    def _build_install_error(self, errors: list[Exception]) -> DependencyInstallError:
        verb = "更新" if self.command == "update" else "安装"
        return DependencyInstallError(f"{len(errors)} 个依赖{verb}失败", errors)

    def _on_dependency_failed(self, required: ModVersionConstraint, parent: ModDefinition) -> None:
        """force 时失败的依赖保留原有安装，提交与清理后仍然可用"""
        if self.force:
            self.install_data.keep_locked(required.name, parent)

    def _is_command_targeting_mod(self, required: ModVersionConstraint) -> bool:
        """不带参数的命令指向全部依赖"""
        if not self.target_mods:
            return True
        target = self.target_mods.get(required.name)
        return target is not None and target.equals(required)

    def _check_cancelled(self, cancel_event: threading.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise InstallCancelledError("安装已取消")

    def _install_mod_dependencies_recursively(
        self,
        required: ModVersionConstraint,
        dependency_mod: DependencyMod | None,
        parent: ModDefinition,
        targeting: bool,
        cancel_event: threading.Event | None,
    ) -> None:
        self._check_cancelled(cancel_event)

        if dependency_mod is None:
            if not targeting:
                return
            dependency_mod = self._install(required, parent)
            walked = self._edge_walked(parent, dependency_mod)
            self.install_data.on_mod_installed(dependency_mod, parent)
        else:
            walked = self._edge_walked(parent, dependency_mod)
            self.install_data.add_existing(dependency_mod, parent)
            logger.debug(
                "%s 已安装 %s，满足约束 %s",
                required.name, dependency_mod.installed_version.dependency_version, required.version_label(),
            )
        if walked:
            # 依赖环或重复声明，这条边的子树已经遍历过
            return

        # 父依赖被指向时，其整个子树都重新检查
        errors: list[Exception] = []
        for child in dependency_mod.mod.require.mods:
            child = self._absolute_path_requirement(child, dependency_mod.mod)
            try:
                child_mod = self._get_mod_for_requirement(child, targeting)
                self._install_mod_dependencies_recursively(
                    child, child_mod, dependency_mod.mod, targeting, cancel_event,
                )
            except InstallCancelledError:
                raise
            except (ModInstallerError, OSError) as e:
                self._on_dependency_failed(child, dependency_mod.mod)
                errors.append(e)
        if errors:
            raise DependencyInstallError(
                f"{dependency_mod.installed_version.dependency_path()}: {len(errors)} 个子依赖安装失败",
                errors,
            )

    @staticmethod
    def _absolute_path_requirement(
        required: ModVersionConstraint, parent: ModDefinition,
    ) -> ModVersionConstraint:
        """相对路径依赖按声明它的 mod 目录解析"""
        if not required.file_path or os.path.isabs(required.file_path):
            return required
        return dataclasses.replace(
            required, file_path=os.path.abspath(os.path.join(parent.mod_path, required.file_path)),
        )

    def _edge_walked(self, parent: ModDefinition, dependency_mod: DependencyMod) -> bool:
        existing = self.install_data.new_lock.get_mod(dependency_mod.installed_version.name, parent.install_cache_key())
        return existing is not None and existing == dependency_mod.installed_version

    def _get_mod_for_requirement(
        self, required: ModVersionConstraint, targeting: bool,
    ) -> DependencyMod | None:
        """返回可复用的已安装依赖；需要（重新）安装时返回 None"""
        # 本次运行中已解析过的版本直接复用
        installed = self.install_data.new_lock.find_locked_mod_version(required)
        if installed is not None:
            return self._load_dependency_mod(installed)

        installed = self.install_data.lock.find_locked_mod_version(required)
        if installed is None:
            return None
        if should_update_mod(installed, required, targeting, self):
            logger.debug("%s 需要更新 (策略: %s)", required.name, self.update_strategy.value)
            return None
        return self._load_dependency_mod(installed)

    def _load_dependency_mod(self, installed: InstalledModVersion) -> DependencyMod:
        """从影子目录或 mods 目录加载已安装依赖的定义

        异常:
            ModfileNotFoundError: 找不到依赖目录或定义文件
        """
        dependency_path = installed.dependency_path()
        mod_def: ModDefinition | None = None
        if installed.file_path:
            mod_def = self.loader(installed.file_path)
        else:
            location = self.staging.load_path(dependency_path)
            if location is not None:
                mod_def = self.loader(location)
        if mod_def is None:
            raise ModfileNotFoundError(f"找不到依赖 mod '{dependency_path}'")
        mod_def.set_dependency_config(dependency_path)
        return DependencyMod(mod=mod_def, installed_version=installed)

    def _install(self, required: ModVersionConstraint, parent: ModDefinition) -> DependencyMod:
        kind = required.kind
        if kind is ReferenceKind.VERSION:
            available = self.install_data.get_available_mod_versions(required.name, required.is_prerelease())
            resolved = get_version_satisfying_constraint(required, available)
            if resolved is None:
                raise DependencyResolutionError(
                    f"{required.name} 没有满足版本约束 '{required.version_label()}' 的版本"
                )
            resolved, mod_def = self._install_from_git(resolved)
        elif kind is ReferenceKind.TAG:
            tag_ref = self.resolver.get_tag(required.name, required.tag)
            if tag_ref is None:
                raise DependencyResolutionError(f"{required.name} 不存在 tag {required.tag}")
            resolved, mod_def = self._install_from_git(tag_ref)
        elif kind is ReferenceKind.BRANCH:
            branch_ref = ResolvedVersionConstraint(
                name=required.name,
                dependency_version=DependencyVersion(branch=required.branch_name),
                git_ref=f"refs/heads/{required.branch_name}",
            )
            resolved, mod_def = self._install_from_git(branch_ref)
        else:
            resolved, mod_def = self._install_from_filepath(required, parent)

        resolved = dataclasses.replace(resolved, constraint=required.version_label())
        mod_def.set_dependency_config(resolved.dependency_path())
        installed = InstalledModVersion(resolved=resolved, alias=mod_def.short_name)
        logger.info("已解析 %s -> %s", required, resolved.dependency_path())
        return DependencyMod(mod=mod_def, installed_version=installed)

    def _install_from_git(
        self, resolved: ResolvedVersionConstraint,
    ) -> tuple[ResolvedVersionConstraint, ModDefinition]:
        """克隆到影子目录并加载 mod 定义

        异常:
            StagingError: 克隆失败
            ModfileNotFoundError: 仓库中没有 mod 定义文件
        """
        dependency_path = resolved.dependency_path()
        dest = self.staging.add(dependency_path)
        logger.debug("安装 %s 到 %s", dependency_path, dest)
        commit = self.remote.clone(resolved.name, resolved.git_ref, dest)
        mod_def = self.loader(dest)
        if mod_def is None:
            raise ModfileNotFoundError(f"'{resolved.name}' 中没有 mod 定义文件")
        return dataclasses.replace(resolved, commit=commit or resolved.commit), mod_def

    def _install_from_filepath(
        self, required: ModVersionConstraint, parent: ModDefinition,
    ) -> tuple[ResolvedVersionConstraint, ModDefinition]:
        file_path = required.file_path
        if not os.path.isabs(file_path):
            file_path = os.path.join(parent.mod_path, file_path)
        file_path = os.path.abspath(file_path)
        logger.debug("安装本地 mod: %s", file_path)
        mod_def = self.loader(file_path)
        if mod_def is None:
            raise ModfileNotFoundError(f"'{required.name}' 中没有 mod 定义文件 ({file_path})")
        resolved = ResolvedVersionConstraint(
            name=required.name,
            dependency_version=DependencyVersion(file_path=file_path),
        )
        return resolved, mod_def

    def _update_mod_file(self) -> None:
        changes = compute_require_changes(self.old_require, self.workspace_mod.require)
        if self.require_writer(self.workspace_mod, changes):
            self.old_require = self.workspace_mod.require.clone()

    def _prune_quietly(self, install_failed: bool) -> None:
        """安装失败时清理错误只记录日志，不覆盖原始错误"""
        try:
            self.prune()
        except ModInstallerError as e:
            if not install_failed:
                raise
            logger.error("清理未引用的 mod 失败: %s", e)


def install_workspace_dependencies(
    opts: InstallOpts, cancel_event: threading.Event | None = None,
) -> InstallData:
    installer = ModInstaller(opts)
    return installer.install_workspace_dependencies(cancel_event)


def uninstall_workspace_dependencies(
    opts: InstallOpts, cancel_event: threading.Event | None = None,
) -> InstallData:
    installer = ModInstaller(opts)
    return installer.uninstall_workspace_dependencies(cancel_event)
