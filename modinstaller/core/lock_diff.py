"""新旧锁比较

按 (父节点, 依赖) 边比较运行前后的两把锁，结果中的每一项是从根节点开始的
完整依赖路径链，如 ["workspace", "github.com/acme/a@v1.0.0", "github.com/acme/b@v2.1.0"]。
"""

from __future__ import annotations

from dataclasses import dataclass, field

from modinstaller.core.lock import WorkspaceLock
from modinstaller.core.models import InstalledModVersion, ReferenceKind


@dataclass
class LockDiff:
    installed: list[list[str]] = field(default_factory=list)
    uninstalled: list[list[str]] = field(default_factory=list)
    upgraded: list[list[str]] = field(default_factory=list)
    downgraded: list[list[str]] = field(default_factory=list)

    def empty(self) -> bool:
        return not (self.installed or self.uninstalled or self.upgraded or self.downgraded)


def _classify(old: InstalledModVersion, new: InstalledModVersion) -> str | None:
    """返回 upgraded / downgraded / replaced / None（无变化）"""
    old_kind = old.dependency_version.kind
    new_kind = new.dependency_version.kind
    if old_kind is not new_kind:
        return "replaced"

    if old_kind is ReferenceKind.VERSION:
        if new.dependency_version.greater_than(old.dependency_version):
            return "upgraded"
        if new.dependency_version.less_than(old.dependency_version):
            return "downgraded"
        return "upgraded" if old.commit != new.commit else None

    if old_kind is ReferenceKind.BRANCH and old.branch == new.branch:
        return "upgraded" if old.commit != new.commit else None
    if old_kind is ReferenceKind.TAG and old.tag == new.tag:
        return "upgraded" if old.commit != new.commit else None
    if old_kind is ReferenceKind.PATH and old.file_path == new.file_path:
        return None
    # 不同分支 / tag / 路径，视为卸载后重新安装
    return "replaced"


def diff_locks(old: WorkspaceLock, new: WorkspaceLock, root: str) -> LockDiff:
    diff = LockDiff()

    for name_path, old_dep in old.walk(root):
        new_dep, full_path = new.get_dependency(name_path)
        _, old_full_path = old.get_dependency(name_path)
        if new_dep is None:
            diff.uninstalled.append(old_full_path)
            continue
        change = _classify(old_dep, new_dep)
        if change == "upgraded":
            diff.upgraded.append(full_path)
        elif change == "downgraded":
            diff.downgraded.append(full_path)
        elif change == "replaced":
            diff.installed.append(full_path)
            diff.uninstalled.append(old_full_path)

    for name_path, _new_dep in new.walk(root):
        old_dep, _ = old.get_dependency(name_path)
        if old_dep is None:
            _, full_path = new.get_dependency(name_path)
            diff.installed.append(full_path)

    return diff
