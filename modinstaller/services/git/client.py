"""git 命令封装

所有 git 调用经由 CommandExecutor，测试时注入假执行器即可。
"""

from __future__ import annotations

import logging
from pathlib import Path

from modinstaller.core.exceptions import GitCommandError
from modinstaller.core.models import RemoteRef
from modinstaller.utils.shell import CommandExecutor, LocalExecutor

logger = logging.getLogger(__name__)

# 错误信息中保留的 stderr 长度
_STDERR_LIMIT = 300


class GitClient:
    """基于 git 命令行的客户端"""

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        git_binary: str = "git",
        env: dict[str, str] | None = None,
    ) -> None:
        self.executor = executor or LocalExecutor()
        self.git_binary = git_binary
        self.env = env or {}

    def _run(self, args: list[str], *, cwd: str | None = None, action: str) -> str:
        result = self.executor.execute([self.git_binary, *args], cwd=cwd, env=self.env)
        if not result.success:
            stderr = result.stderr.strip()
            raise GitCommandError(
                f"git {action} 失败 (rc={result.returncode}): {stderr[:_STDERR_LIMIT]}",
                returncode=result.returncode,
                stderr=stderr,
            )
        return result.stdout

    def ls_remote(self, url: str, *patterns: str) -> list[RemoteRef]:
        """列出远端引用

        附注 tag 会同时返回 refs/tags/x 与 refs/tags/x^{}，后者指向实际 commit，
        这里合并为一条，commit 取解引用后的值。
        """
        out = self._run(["ls-remote", url, *patterns], action=f"ls-remote {url}")
        refs: dict[str, RemoteRef] = {}
        for line in out.splitlines():
            parts = line.strip().split("\t")
            if len(parts) != 2:
                continue
            commit, name = parts
            if name.endswith("^{}"):
                name = name[: -len("^{}")]
                refs[name] = RemoteRef(name=name, commit=commit)
            elif name not in refs:
                refs[name] = RemoteRef(name=name, commit=commit)
        return list(refs.values())

    def clone(self, url: str, ref: str, dest: Path) -> None:
        """浅克隆指定分支或 tag 到 dest"""
        dest.parent.mkdir(parents=True, exist_ok=True)
        self._run(
            ["clone", "--depth", "1", "--single-branch", "--branch", ref, url, str(dest)],
            action=f"clone {url}@{ref}",
        )

    def rev_parse_head(self, repo_path: Path) -> str:
        return self._run(["rev-parse", "HEAD"], cwd=str(repo_path), action="rev-parse").strip()
