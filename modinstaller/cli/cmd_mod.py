"""CLI: mod 依赖管理命令"""

from __future__ import annotations

import functools
import os
import signal
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import click

from modinstaller.core.config import Config, init_config
from modinstaller.core.exceptions import InstallCancelledError, ModInstallerError
from modinstaller.core.installer import InstallOpts, ModInstaller, load_workspace_mod
from modinstaller.core.summary import (
    build_install_summary,
    build_prune_summary,
    build_uninstall_summary,
)
from modinstaller.core.update_checker import UpdateStrategy

_STRATEGIES = [s.value for s in UpdateStrategy]


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(update)
    group.add_command(uninstall)
    group.add_command(prune)
    group.add_command(list_mods)


def _workspace_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """所有子命令共用的选项"""
    options = [
        click.option("--workspace", "-w", default=".", show_default=True,
                     type=click.Path(file_okay=False), help="工作空间目录"),
        click.option("--config", "config_path", default=None,
                     help="配置文件路径（默认 <workspace>/modinstaller.yml）"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _install_options(func: Callable[..., Any]) -> Callable[..., Any]:
    options = [
        click.option("--dry-run", is_flag=True, help="只显示将要发生的变化，不修改任何文件"),
        click.option("--force", is_flag=True, help="部分依赖失败时仍提交成功的部分"),
        click.option("--pull", type=click.Choice(_STRATEGIES), default=None,
                     help="更新策略（默认按命令推断）"),
        click.option("--prune/--no-prune", default=None, help="完成后清理未引用的 mod（默认取配置）"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _load_config(workspace: str, config_path: str | None) -> Config:
    path = config_path or os.path.join(workspace, "modinstaller.yml")
    try:
        return init_config(path)
    except ModInstallerError as e:
        raise click.ClickException(str(e)) from e


@contextmanager
def _cancel_on_interrupt() -> Iterator[threading.Event]:
    """Ctrl-C 时设置取消标志，由安装器在下一个检查点中止"""
    event = threading.Event()

    def _handler(signum: int, frame: Any) -> None:
        click.echo("\n正在取消...", err=True)
        event.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield event
    finally:
        signal.signal(signal.SIGINT, previous)


def _handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """业务异常转换为友好的 CLI 错误"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except InstallCancelledError as e:
            raise click.ClickException("已取消，未修改任何已安装的 mod") from e
        except ModInstallerError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e

    return wrapper


def _build_installer(
    command: str,
    mods: tuple[str, ...],
    workspace: str,
    config_path: str | None,
    dry_run: bool = False,
    force: bool = False,
    pull: str | None = None,
    prune_flag: bool | None = None,
) -> ModInstaller:
    cfg = _load_config(workspace, config_path)
    opts = InstallOpts(
        workspace_mod=load_workspace_mod(workspace, cfg),
        command=command,
        mod_args=list(mods),
        dry_run=dry_run,
        force=force,
        update_strategy=pull,
        prune=prune_flag,
        config=cfg,
    )
    return ModInstaller(opts)


@click.command()
@click.argument("mods", nargs=-1)
@_workspace_options
@_install_options
@_handle_errors
def install(
    mods: tuple[str, ...], workspace: str, config_path: str | None,
    dry_run: bool, force: bool, pull: str | None, prune: bool | None,
) -> None:
    """安装依赖（不带参数时安装 mod 文件中声明的全部依赖）

    MODS 形如 github.com/acme/mod-a、github.com/acme/mod-a@^1.2、
    github.com/acme/mod-a#main、file:../local-mod
    """
    installer = _build_installer("install", mods, workspace, config_path, dry_run, force, pull, prune)
    with _cancel_on_interrupt() as cancel_event:
        data = installer.install_workspace_dependencies(cancel_event)
    click.echo(build_install_summary(data, dry_run=dry_run))


@click.command()
@click.argument("mods", nargs=-1)
@_workspace_options
@_install_options
@_handle_errors
def update(
    mods: tuple[str, ...], workspace: str, config_path: str | None,
    dry_run: bool, force: bool, pull: str | None, prune: bool | None,
) -> None:
    """更新依赖（只能指定直接依赖的名称）"""
    installer = _build_installer("update", mods, workspace, config_path, dry_run, force, pull, prune)
    with _cancel_on_interrupt() as cancel_event:
        data = installer.install_workspace_dependencies(cancel_event)
    click.echo(build_install_summary(data, dry_run=dry_run))


@click.command()
@click.argument("mods", nargs=-1)
@_workspace_options
@click.option("--dry-run", is_flag=True, help="只显示将要卸载的 mod")
@click.option("--prune/--no-prune", default=None, help="完成后清理未引用的 mod（默认取配置）")
@_handle_errors
def uninstall(
    mods: tuple[str, ...], workspace: str, config_path: str | None,
    dry_run: bool, prune: bool | None,
) -> None:
    """卸载依赖（不带参数时卸载全部）"""
    installer = _build_installer("uninstall", mods, workspace, config_path, dry_run, prune_flag=prune)
    with _cancel_on_interrupt() as cancel_event:
        data = installer.uninstall_workspace_dependencies(cancel_event)
    click.echo(build_uninstall_summary(data, dry_run=dry_run))


@click.command()
@_workspace_options
@click.option("--dry-run", is_flag=True, help="只显示将要清理的 mod")
@_handle_errors
def prune(workspace: str, config_path: str | None, dry_run: bool) -> None:
    """清理 mods 目录中未被锁文件引用的 mod"""
    installer = _build_installer("install", (), workspace, config_path)
    pruned = installer.prune(dry_run=dry_run)
    click.echo(build_prune_summary(pruned, dry_run=dry_run))


@click.command(name="list")
@_workspace_options
@_handle_errors
def list_mods(workspace: str, config_path: str | None) -> None:
    """显示已安装的依赖树"""
    installer = _build_installer("install", (), workspace, config_path)
    click.echo(installer.get_mod_list())
