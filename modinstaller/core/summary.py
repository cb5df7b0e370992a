"""安装结果摘要渲染

每类结果渲染为一棵树，根为工作空间:

    Installed 2 mods:

    workspace
    └── github.com/acme/a@v1.0.0
        └── github.com/acme/b@v2.1.0
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from modinstaller.core.models import DependencyVersion, build_dependency_path

if TYPE_CHECKING:
    from modinstaller.core.install_data import InstallData
    from modinstaller.core.lock import WorkspaceLock

VERB_INSTALLED = "Installed"
VERB_UNINSTALLED = "Uninstalled"
VERB_UPGRADED = "Upgraded"
VERB_DOWNGRADED = "Downgraded"
VERB_PRUNED = "Pruned"

DRY_RUN_VERBS = {
    VERB_INSTALLED: "Would install",
    VERB_UNINSTALLED: "Would uninstall",
    VERB_UPGRADED: "Would upgrade",
    VERB_DOWNGRADED: "Would downgrade",
    VERB_PRUNED: "Would prune",
}


def pluralize(word: str, count: int) -> str:
    return word if count == 1 else f"{word}s"


class _Node:
    def __init__(self, label: str) -> None:
        self.label = label
        self.children: dict[str, _Node] = {}

    def child(self, label: str) -> _Node:
        node = self.children.get(label)
        if node is None:
            node = self.children[label] = _Node(label)
        return node


def _render(node: _Node, prefix: str, lines: list[str]) -> None:
    children = list(node.children.values())
    for idx, child in enumerate(children):
        last = idx == len(children) - 1
        lines.append(f"{prefix}{'└── ' if last else '├── '}{child.label}")
        _render(child, prefix + ("    " if last else "│   "), lines)


def render_tree(paths: list[list[str]]) -> str:
    """把若干条依赖路径链合并渲染为树（共享前缀合并为同一节点）"""
    if not paths:
        return ""
    roots: dict[str, _Node] = {}
    for path in paths:
        if not path:
            continue
        node = roots.get(path[0])
        if node is None:
            node = roots[path[0]] = _Node(path[0])
        for segment in path[1:]:
            node = node.child(segment)
    lines: list[str] = []
    for root in roots.values():
        lines.append(root.label)
        _render(root, "", lines)
    return "\n".join(lines)


def _section(verb: str, paths: list[list[str]], dry_run: bool) -> str:
    if not paths:
        return ""
    count = len(paths)
    if dry_run:
        verb = DRY_RUN_VERBS[verb]
    return f"\n{verb} {count} {pluralize('mod', count)}:\n\n{render_tree(paths)}\n"


def build_install_summary(data: InstallData, dry_run: bool = False) -> str:
    sections = [
        _section(VERB_INSTALLED, data.installed, dry_run),
        _section(VERB_UPGRADED, data.upgraded, dry_run),
        _section(VERB_DOWNGRADED, data.downgraded, dry_run),
        _section(VERB_UNINSTALLED, data.uninstalled, dry_run),
    ]
    text = "".join(sections)
    if text:
        return text
    if data.lock.empty():
        return "No mods are installed"
    return "All targeted mods are up to date"


def build_uninstall_summary(data: InstallData, dry_run: bool = False) -> str:
    text = _section(VERB_UNINSTALLED, data.uninstalled, dry_run)
    return text or "Nothing uninstalled"


def build_prune_summary(pruned: dict[str, list[DependencyVersion]], dry_run: bool = False) -> str:
    names = sorted(
        build_dependency_path(name, version)
        for name, versions in pruned.items()
        for version in versions
    )
    if not names:
        return "Nothing to prune"
    verb = DRY_RUN_VERBS[VERB_PRUNED] if dry_run else VERB_PRUNED
    body = "\n".join(f"  {n}" for n in names)
    return f"{verb} {len(names)} {pluralize('mod', len(names))}:\n{body}"


def build_dependency_tree(lock: WorkspaceLock, root: str) -> str:
    """完整依赖树（mod list）"""
    if lock.empty():
        return "No mods are installed"
    paths = []
    for name_path, _dep in lock.walk(root):
        _, full_path = lock.get_dependency(name_path)
        if full_path:
            paths.append(full_path)
    return render_tree(paths)
