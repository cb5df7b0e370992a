"""更新策略判断测试"""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest
import semantic_version

from modinstaller.core.constraint import ModVersionConstraint
from modinstaller.core.exceptions import InvalidArgumentError
from modinstaller.core.models import (
    DependencyVersion,
    InstalledModVersion,
    ResolvedVersionConstraint,
)
from modinstaller.core.update_checker import (
    UpdateStrategy,
    get_update_operations,
    resolve_update_strategy,
    should_update_mod,
)
from modinstaller.core.versioning import parse_version


@dataclass
class StubChecker:
    update_strategy: UpdateStrategy
    newer_version: bool = False
    new_commit: bool = False
    calls: list[str] = field(default_factory=list)

    def newer_version_available(self, required: ModVersionConstraint, current: semantic_version.Version) -> bool:
        self.calls.append("version")
        return self.newer_version

    def new_commit_available(self, installed: InstalledModVersion) -> bool:
        self.calls.append("commit")
        return self.new_commit


def _installed(**kwargs: object) -> InstalledModVersion:
    return InstalledModVersion(ResolvedVersionConstraint(
        name="h/a", dependency_version=DependencyVersion(**kwargs), commit="c1",
    ))


VERSIONED = _installed(version=parse_version("1.0.0"))
BRANCHED = _installed(branch="main")
TAGGED = _installed(tag="nightly")

VERSION_REQ = ModVersionConstraint(name="h/a", version_string="^1.0")
BRANCH_REQ = ModVersionConstraint(name="h/a", branch_name="main")
TAG_REQ = ModVersionConstraint(name="h/a", tag="nightly")


class TestUpdateOperations:
    @pytest.mark.parametrize("strategy, required, expected", [
        (UpdateStrategy.FULL, VERSION_REQ, (True, True)),
        (UpdateStrategy.FULL, BRANCH_REQ, (True, True)),
        (UpdateStrategy.LATEST, VERSION_REQ, (False, True)),
        (UpdateStrategy.LATEST, BRANCH_REQ, (True, True)),
        (UpdateStrategy.LATEST, TAG_REQ, (False, True)),
        (UpdateStrategy.DEVELOPMENT, VERSION_REQ, (False, False)),
        (UpdateStrategy.DEVELOPMENT, BRANCH_REQ, (True, False)),
        (UpdateStrategy.MINIMAL, BRANCH_REQ, (False, False)),
    ])
    def test_matrix(self, strategy: UpdateStrategy, required: ModVersionConstraint, expected: tuple) -> None:
        assert get_update_operations(required, strategy) == expected


class TestShouldUpdateMod:
    def test_not_targeted_never_updates(self) -> None:
        checker = StubChecker(UpdateStrategy.FULL, newer_version=True, new_commit=True)
        assert not should_update_mod(VERSIONED, VERSION_REQ, False, checker)
        assert checker.calls == []

    def test_unsatisfied_always_updates(self) -> None:
        checker = StubChecker(UpdateStrategy.MINIMAL)
        required = ModVersionConstraint(name="h/a", version_string="^2.0")
        assert should_update_mod(VERSIONED, required, True, checker)

    def test_path_always_updates(self) -> None:
        checker = StubChecker(UpdateStrategy.MINIMAL)
        required = ModVersionConstraint(name="h/a", file_path="/src/a")
        assert should_update_mod(_installed(file_path="/src/a"), required, True, checker)

    def test_minimal_keeps_satisfied(self) -> None:
        checker = StubChecker(UpdateStrategy.MINIMAL, newer_version=True, new_commit=True)
        assert not should_update_mod(VERSIONED, VERSION_REQ, True, checker)
        assert not should_update_mod(BRANCHED, BRANCH_REQ, True, checker)
        assert checker.calls == []

    def test_latest_newer_version(self) -> None:
        checker = StubChecker(UpdateStrategy.LATEST, newer_version=True)
        assert should_update_mod(VERSIONED, VERSION_REQ, True, checker)
        assert checker.calls == ["version"]

    def test_latest_ignores_commit_for_versions(self) -> None:
        checker = StubChecker(UpdateStrategy.LATEST, new_commit=True)
        assert not should_update_mod(VERSIONED, VERSION_REQ, True, checker)
        assert checker.calls == ["version"]

    def test_development_branch_commit(self) -> None:
        checker = StubChecker(UpdateStrategy.DEVELOPMENT, new_commit=True)
        assert should_update_mod(BRANCHED, BRANCH_REQ, True, checker)
        assert checker.calls == ["commit"]

    def test_full_tag_commit(self) -> None:
        checker = StubChecker(UpdateStrategy.FULL, new_commit=True)
        assert should_update_mod(TAGGED, TAG_REQ, True, checker)
        # tag 没有版本比较
        assert checker.calls == ["commit"]


class TestResolveUpdateStrategy:
    def test_defaults(self) -> None:
        assert resolve_update_strategy("install", []) is UpdateStrategy.MINIMAL
        assert resolve_update_strategy("install", ["h/a"]) is UpdateStrategy.LATEST
        assert resolve_update_strategy("update", []) is UpdateStrategy.LATEST
        assert resolve_update_strategy("uninstall", ["h/a"]) is UpdateStrategy.MINIMAL

    def test_explicit_wins(self) -> None:
        assert resolve_update_strategy("install", [], "FULL") is UpdateStrategy.FULL
        assert resolve_update_strategy("update", [], UpdateStrategy.DEVELOPMENT) is UpdateStrategy.DEVELOPMENT

    def test_invalid(self) -> None:
        with pytest.raises(InvalidArgumentError, match="无效的更新策略"):
            UpdateStrategy.parse("newest")
