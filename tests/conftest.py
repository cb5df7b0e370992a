"""公共测试夹具: 模拟 git 远端的假执行器"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest
import yaml

from modinstaller.utils.shell import CommandResult


@dataclass
class FakeRepo:
    """一个假远端仓库

    refs: 完整引用名 -> commit，如 {"refs/tags/v1.0.0": "c1"}
    modfiles: 短引用名 -> mod.yml 内容；未登记的引用使用 {"name": 仓库名}
    """

    name: str
    refs: dict[str, str] = field(default_factory=dict)
    modfiles: dict[str, dict[str, Any]] = field(default_factory=dict)
    # 附注 tag 的完整引用名
    annotated: set[str] = field(default_factory=set)

    def tag(
        self,
        tag: str,
        commit: str,
        require: list[dict[str, Any]] | None = None,
        annotated: bool = False,
    ) -> FakeRepo:
        self.refs[f"refs/tags/{tag}"] = commit
        if annotated:
            self.annotated.add(f"refs/tags/{tag}")
        if require:
            self.modfiles[tag] = {"name": self.name, "require": require}
        return self

    def branch(self, branch: str, commit: str, require: list[dict[str, Any]] | None = None) -> FakeRepo:
        self.refs[f"refs/heads/{branch}"] = commit
        if require:
            self.modfiles[branch] = {"name": self.name, "require": require}
        return self


class FakeGitExecutor:
    """按命令行参数模拟 git ls-remote / clone / rev-parse"""

    def __init__(self) -> None:
        self.repos: dict[str, FakeRepo] = {}
        # 这些仓库 HTTPS 访问失败（SSH 可用）
        self.https_broken: set[str] = set()
        # 这些仓库任何访问都失败
        self.unreachable: set[str] = set()
        # 这些仓库克隆失败（ls-remote 正常）
        self.clone_broken: set[str] = set()
        self.calls: list[list[str]] = []
        self.envs: list[dict[str, str] | None] = []

    def repo(self, name: str) -> FakeRepo:
        if name not in self.repos:
            self.repos[name] = FakeRepo(name=name)
        return self.repos[name]

    @staticmethod
    def _name_from_url(url: str) -> tuple[str, bool]:
        if url.startswith("https://"):
            return url[len("https://"):], True
        # git@host:path.git
        host, _, path = url[len("git@"):].partition(":")
        if path.endswith(".git"):
            path = path[: -len(".git")]
        return f"{host}/{path}", False

    def _reachable(self, name: str, https: bool) -> bool:
        if name in self.unreachable or name not in self.repos:
            return False
        return not (https and name in self.https_broken)

    def commands(self, verb: str) -> list[list[str]]:
        return [c for c in self.calls if len(c) > 1 and c[1] == verb]

    def execute(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        self.calls.append(list(args))
        self.envs.append(env)
        verb = args[1]
        if verb == "ls-remote":
            return self._ls_remote(args[2], args[3:])
        if verb == "clone":
            return self._clone(ref=args[6], url=args[7], dest=Path(args[8]))
        if verb == "rev-parse":
            head = Path(cwd or ".") / ".git" / "HEAD_COMMIT"
            return CommandResult(0, head.read_text(encoding="utf-8") + "\n", "")
        return CommandResult(1, "", f"unsupported: {verb}")

    def _ls_remote(self, url: str, patterns: list[str]) -> CommandResult:
        name, https = self._name_from_url(url)
        if not self._reachable(name, https):
            return CommandResult(128, "", f"fatal: repository '{url}' not found")
        repo = self.repos[name]
        lines: list[str] = []
        for ref, commit in sorted(repo.refs.items()):
            if ref in repo.annotated:
                # 与 git 一致: tag 对象一行，解引用后的 commit 一行
                entries = [(f"tagobj-{commit}", ref), (commit, f"{ref}^{{}}")]
            else:
                entries = [(commit, ref)]
            lines.extend(
                f"{sha}\t{ref_name}" for sha, ref_name in entries
                if not patterns or ref_name in patterns
            )
        return CommandResult(0, "\n".join(lines) + "\n", "")

    def _clone(self, ref: str, url: str, dest: Path) -> CommandResult:
        name, https = self._name_from_url(url)
        if not self._reachable(name, https) or name in self.clone_broken:
            return CommandResult(128, "", f"fatal: could not clone '{url}'")
        repo = self.repos[name]
        commit = repo.refs.get(f"refs/tags/{ref}") or repo.refs.get(f"refs/heads/{ref}")
        if commit is None:
            return CommandResult(128, "", f"fatal: Remote branch {ref} not found")
        (dest / ".git").mkdir(parents=True)
        (dest / ".git" / "HEAD_COMMIT").write_text(commit, encoding="utf-8")
        modfile = repo.modfiles.get(ref, {"name": name})
        (dest / "mod.yml").write_text(yaml.safe_dump(modfile, sort_keys=False), encoding="utf-8")
        return CommandResult(0, "", "")


@pytest.fixture
def fake_git() -> FakeGitExecutor:
    return FakeGitExecutor()
