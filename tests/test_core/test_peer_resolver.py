from __future__ import annotations

import pytest
from typing import Dict, Iterable, Mapping, Optional

from depbump.core.peer_resolver import PeerConstraintResolver
from depbump.core.selector import VersionSelector, select_target
from depbump.exceptions import PeerConflictError, PeerCycleError
from depbump.models import UpgradePolicy, VersionRecord, VersionSet


def make_set(
    name: str,
    versions: Iterable[str],
    peers: Optional[Mapping[str, Dict[str, str]]] = None,
) -> VersionSet:
    """Build a VersionSet; *peers* maps version to its peerDependencies."""
    peers = peers or {}
    return VersionSet(
        name,
        [
            VersionRecord(name, version, peer_dependencies=peers.get(version, {}))
            for version in versions
        ],
    )


@pytest.fixture
def capped_sets() -> Dict[str, VersionSet]:
    """b@1.1.0 wants a@^1.1.0 while a@2.0.0 exists."""
    return {
        "a": make_set("a", ["1.0.0", "1.1.0", "2.0.0"]),
        "b": make_set("b", ["1.0.0", "1.1.0"], peers={"1.1.0": {"a": "^1.1.0"}}),
    }


@pytest.mark.unit
class TestPeerConstraintResolverInit:
    """Tests for resolver construction."""

    def test_defaults(self) -> None:
        resolver = PeerConstraintResolver()
        assert isinstance(resolver.selector, VersionSelector)
        assert resolver.max_iterations == 100
        assert resolver.allow_partial is False

    def test_invalid_budget(self) -> None:
        with pytest.raises(ValueError, match="at least 1"):
            PeerConstraintResolver(max_iterations=0)


@pytest.mark.unit
class TestPeerResolution:
    """Tests for the peer fixpoint."""

    def test_peer_range_caps_upgrade(self, capped_sets: Dict[str, VersionSet]) -> None:
        """a stays within ^1.1.0 even though 2.0.0 is the newest release."""
        outcome = PeerConstraintResolver().resolve(
            {"a": "^1.0.0", "b": "^1.0.0"}, capped_sets, UpgradePolicy("latest")
        )

        assert outcome.selections["a"].specifier == "^1.1.0"
        assert outcome.selections["b"].specifier == "^1.1.0"
        assert outcome.iterations == 2
        assert [c.to_display_string() for c in outcome.constrained_by["a"]] == [
            "b@1.1.0 requires a@^1.1.0"
        ]
        assert "b" not in outcome.constrained_by

    def test_effective_versions(self, capped_sets: Dict[str, VersionSet]) -> None:
        outcome = PeerConstraintResolver().resolve(
            {"a": "^1.0.0", "b": "^1.0.0"}, capped_sets, UpgradePolicy("latest")
        )

        assert outcome.effective["a"].version == "1.1.0"  # type: ignore[union-attr]
        assert outcome.effective["b"].version == "1.1.0"  # type: ignore[union-attr]

    def test_without_peers_matches_independent_selection(self) -> None:
        """No peer ranges: same answer as selecting each package alone."""
        sets = {
            "left-pad": make_set("left-pad", ["1.0.0", "1.3.0"]),
            "lodash": make_set("lodash", ["4.0.0", "4.17.21"]),
        }
        specs = {"left-pad": "~1.0.0", "lodash": "^4.0.0"}
        policy = UpgradePolicy("minor")

        outcome = PeerConstraintResolver().resolve(specs, sets, policy)

        for name, spec in specs.items():
            expected = select_target(spec, sets[name], policy)
            assert outcome.selections[name] == expected
        assert outcome.iterations == 1
        assert outcome.constrained_by == {}

    def test_constraint_prevents_upgrade_entirely(self) -> None:
        """Capped at the declared version: no selection, still resolved."""
        sets = {
            "a": make_set("a", ["1.0.0", "2.0.0"]),
            "b": make_set("b", ["1.0.0"], peers={"1.0.0": {"a": "1.0.0"}}),
        }
        outcome = PeerConstraintResolver().resolve(
            {"a": "^1.0.0", "b": "^1.0.0"}, sets, UpgradePolicy("latest")
        )

        assert "a" not in outcome.selections
        assert outcome.effective["a"].version == "1.0.0"  # type: ignore[union-attr]
        assert "a" in outcome.constrained_by

    def test_packages_without_version_set_are_skipped(
        self, capped_sets: Dict[str, VersionSet]
    ) -> None:
        outcome = PeerConstraintResolver().resolve(
            {"a": "^1.0.0", "b": "^1.0.0", "missing": "^1.0.0"},
            capped_sets,
            UpgradePolicy(),
        )
        assert "missing" not in outcome.effective

    def test_self_and_external_peers_ignored(self) -> None:
        sets = {
            "a": make_set(
                "a",
                ["1.0.0", "2.0.0"],
                peers={"2.0.0": {"a": "^1.0.0", "react": "^16.0.0"}},
            ),
        }
        outcome = PeerConstraintResolver().resolve({"a": "^1.0.0"}, sets, UpgradePolicy())

        assert outcome.selections["a"].specifier == "^2.0.0"
        assert outcome.constraints == []

    def test_unparseable_peer_range_ignored(self) -> None:
        sets = {
            "a": make_set("a", ["1.0.0", "2.0.0"]),
            "b": make_set("b", ["1.0.0"], peers={"1.0.0": {"a": "not a range!"}}),
        }
        outcome = PeerConstraintResolver().resolve(
            {"a": "^1.0.0", "b": "^1.0.0"}, sets, UpgradePolicy()
        )

        assert outcome.selections["a"].specifier == "^2.0.0"
        assert "a" not in outcome.constrained_by

    def test_ranges_from_abandoned_versions_drop_out(self) -> None:
        """a@2.0.0 wants b@^2 but c pins a to ^1, so b must follow a back down."""
        sets = {
            "a": make_set(
                "a",
                ["1.0.0", "2.0.0"],
                peers={"1.0.0": {"b": "^1.0.0"}, "2.0.0": {"b": "^2.0.0"}},
            ),
            "b": make_set("b", ["1.0.0", "2.0.0"]),
            "c": make_set("c", ["1.0.0"], peers={"1.0.0": {"a": "^1.0.0"}}),
        }
        outcome = PeerConstraintResolver().resolve(
            {"a": "^1.0.0", "b": "^1.0.0", "c": "^1.0.0"}, sets, UpgradePolicy("latest")
        )

        assert outcome.selections == {}
        assert {name: r.version for name, r in outcome.effective.items()} == {  # type: ignore[union-attr]
            "a": "1.0.0",
            "b": "1.0.0",
            "c": "1.0.0",
        }
        assert outcome.iterations == 3
        assert [c.to_display_string() for c in outcome.constrained_by["b"]] == [
            "a@1.0.0 requires b@^1.0.0"
        ]
        assert {c.source for c in outcome.constraints} == {"a", "c"}

    def test_installed_version_supplies_peer_ranges(self) -> None:
        """An un-upgraded package contributes the peers of its installed version."""
        sets = {
            "a": make_set("a", ["1.0.0", "1.0.5", "2.0.0"]),
            "b": make_set("b", ["1.0.0", "1.1.0"], peers={"1.0.0": {"a": "~1.0.0"}}),
        }
        specs = {"a": "^1.0.0", "b": "1.x"}
        resolver = PeerConstraintResolver()

        registry_only = resolver.resolve(specs, sets, UpgradePolicy("latest"))
        with_installed = resolver.resolve(
            specs, sets, UpgradePolicy("latest"), installed={"b": "1.0.0"}
        )

        assert registry_only.selections["a"].specifier == "^2.0.0"
        assert with_installed.selections["a"].specifier == "^1.0.5"
        assert with_installed.effective["b"].version == "1.0.0"  # type: ignore[union-attr]

    def test_unknown_installed_version_falls_back_to_range(self) -> None:
        sets = {"a": make_set("a", ["1.0.0", "1.1.0"])}
        outcome = PeerConstraintResolver().resolve(
            {"a": "1.x"}, sets, UpgradePolicy(), installed={"a": "0.9.0"}
        )

        assert outcome.effective["a"].version == "1.1.0"  # type: ignore[union-attr]



@pytest.mark.unit
class TestPeerResolutionFailures:
    """Tests for conflicts and non-convergence."""

    @pytest.fixture
    def conflicting_sets(self) -> Dict[str, VersionSet]:
        return {
            "a": make_set("a", ["1.0.0", "2.0.0"]),
            "b": make_set("b", ["1.0.0"], peers={"1.0.0": {"a": "^3.0.0"}}),
        }

    def test_conflict_raises(self, conflicting_sets: Dict[str, VersionSet]) -> None:
        with pytest.raises(PeerConflictError) as exc_info:
            PeerConstraintResolver().resolve(
                {"a": "^1.0.0", "b": "^1.0.0"}, conflicting_sets, UpgradePolicy()
            )

        assert exc_info.value.package_name == "a"
        assert "b@1.0.0 requires ^3.0.0" in str(exc_info.value)

    def test_partial_mode_keeps_independent_selection(
        self, conflicting_sets: Dict[str, VersionSet]
    ) -> None:
        outcome = PeerConstraintResolver(allow_partial=True).resolve(
            {"a": "^1.0.0", "b": "^1.0.0"}, conflicting_sets, UpgradePolicy()
        )

        assert outcome.incomplete == {"a": "peer dependency conflict"}
        assert len(outcome.warnings) == 1
        assert outcome.selections["a"].specifier == "^2.0.0"
        assert "a" not in outcome.constrained_by

    @pytest.fixture
    def below_declared_sets(self) -> Dict[str, VersionSet]:
        """b's peer range only admits a version older than a's declared ^1.5.0."""
        return {
            "a": make_set("a", ["1.2.0", "1.5.0", "1.6.0"]),
            "b": make_set("b", ["1.0.0"], peers={"1.0.0": {"a": "~1.2.0"}}),
        }

    def test_peer_range_below_declared_version_conflicts(
        self, below_declared_sets: Dict[str, VersionSet]
    ) -> None:
        with pytest.raises(PeerConflictError) as exc_info:
            PeerConstraintResolver().resolve(
                {"a": "^1.5.0", "b": "^1.0.0"}, below_declared_sets, UpgradePolicy()
            )

        assert exc_info.value.package_name == "a"
        assert "b@1.0.0 requires ~1.2.0" in str(exc_info.value)

    def test_peer_range_below_declared_version_partial(
        self, below_declared_sets: Dict[str, VersionSet]
    ) -> None:
        outcome = PeerConstraintResolver(allow_partial=True).resolve(
            {"a": "^1.5.0", "b": "^1.0.0"}, below_declared_sets, UpgradePolicy()
        )

        assert outcome.incomplete == {"a": "peer dependency conflict"}
        assert "b@1.0.0 requires ~1.2.0" in outcome.warnings[0]
        assert outcome.effective["a"].version == "1.6.0"  # type: ignore[union-attr]


    def test_iteration_budget_exhausted(self, capped_sets: Dict[str, VersionSet]) -> None:
        """Convergence needs two iterations; a budget of one is not enough."""
        with pytest.raises(PeerCycleError) as exc_info:
            PeerConstraintResolver(max_iterations=1).resolve(
                {"a": "^1.0.0", "b": "^1.0.0"}, capped_sets, UpgradePolicy()
            )

        assert exc_info.value.packages == ["a"]
        assert exc_info.value.iterations == 1
