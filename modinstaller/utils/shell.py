"""子进程执行工具: git 等外部命令统一入口

通过 CommandExecutor 协议抽象子进程执行，测试时可注入假执行器，
无需 patch subprocess。
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class CommandExecutor(Protocol):
    """命令执行器协议

    实现此协议即可替换底层执行方式。env 为需要追加到当前进程环境的变量，
    不是完整环境。
    """

    def execute(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        ...


class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def execute(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        full_env = {**os.environ, **env} if env else None
        logger.debug("exec: %s (cwd=%s)", " ".join(args), cwd or ".")
        try:
            r = subprocess.run(
                args, capture_output=True, text=True,
                cwd=cwd, env=full_env, check=False,
            )
        except FileNotFoundError as e:
            # 可执行文件不存在时按失败结果返回，由调用方统一处理
            return CommandResult(returncode=127, stdout="", stderr=str(e))
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )
