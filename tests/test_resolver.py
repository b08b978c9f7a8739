"""Tests for dependency resolution over a package index."""

import logging

import pytest

from sysroot_builder.core.index import build_index
from sysroot_builder.core.resolver import DependencyResolver, resolve_packages
from sysroot_builder.errors import PackageNotFoundError, UnresolvableDependencyError
from sysroot_builder.models.package import Package


def pkg(name, depends=(), provides=(), arch="amd64"):
    return Package(
        name=name,
        architecture=arch,
        md5sum=f"md5-{name}-{arch}",
        depends=depends,
        provides=provides,
    )


def index_of(*packages):
    return build_index([packages])


def names(packages):
    return [p.name for p in packages]


# ═══════════════════════════════════════════
# Lookup
# ═══════════════════════════════════════════


class TestLookup:
    def test_target_arch_preferred(self):
        index = index_of(pkg("a", arch="all"), pkg("a", arch="amd64"))
        assert DependencyResolver(index, "amd64").lookup("a").architecture == "amd64"

    def test_falls_back_to_all(self):
        index = index_of(pkg("a", arch="all"))
        assert DependencyResolver(index, "amd64").lookup("a").id == "a:all"

    def test_other_arch_ignored(self):
        index = index_of(pkg("a", arch="arm64"))
        assert DependencyResolver(index, "amd64").lookup("a") is None

    def test_banned_prefix(self):
        resolver = DependencyResolver({}, "amd64", banned=["linux-image-"])
        assert resolver.is_banned("linux-image-6.1.0-18-amd64")
        assert not resolver.is_banned("linux-libc-dev")


# ═══════════════════════════════════════════
# Resolution
# ═══════════════════════════════════════════


class TestResolve:
    def test_simple_chain(self):
        index = index_of(pkg("a", ["b", "c"]), pkg("b"), pkg("c"))
        assert names(resolve_packages(index, ["a"], "amd64")) == ["a", "b", "c"]

    def test_depth_first_order(self):
        index = index_of(pkg("a", ["b", "d"]), pkg("b", ["c"]), pkg("c"), pkg("d"))
        assert names(resolve_packages(index, ["a"], "amd64")) == ["a", "b", "c", "d"]

    def test_requested_order_preserved(self):
        index = index_of(pkg("a", ["c"]), pkg("b"), pkg("c"))
        assert names(resolve_packages(index, ["b", "a"], "amd64")) == ["b", "a", "c"]

    def test_arch_all_dependency(self):
        index = index_of(pkg("a", ["tzdata"]), pkg("tzdata", arch="all"))
        result = resolve_packages(index, ["a"], "amd64")
        assert [p.id for p in result] == ["a:amd64", "tzdata:all"]

    def test_cycle_terminates(self):
        index = index_of(pkg("a", ["b"]), pkg("b", ["a"]))
        assert names(resolve_packages(index, ["a"], "amd64")) == ["a", "b"]

    def test_duplicate_request(self):
        index = index_of(pkg("a", ["b"]), pkg("b"))
        assert names(resolve_packages(index, ["a", "b", "a"], "amd64")) == ["a", "b"]

    def test_deep_chain(self):
        depth = 5000
        packages = [pkg(f"p{i}", [f"p{i + 1}"]) for i in range(depth)] + [pkg(f"p{depth}")]
        index = build_index([packages])
        assert len(resolve_packages(index, ["p0"], "amd64")) == depth + 1

    def test_deterministic(self):
        index = index_of(
            pkg("a", ["b", "x", "c"]),
            pkg("b", ["c", "d"]),
            pkg("c", ["a"]),
            pkg("d"),
            pkg("e", provides=["x"]),
        )
        first = resolve_packages(index, ["a"], "amd64")
        second = resolve_packages(index, ["a"], "amd64")
        assert first == second
        assert names(first) == ["a", "b", "c", "d", "e"]

    def test_missing_request_raises(self):
        index = index_of(pkg("a"))
        with pytest.raises(PackageNotFoundError) as excinfo:
            resolve_packages(index, ["nope"], "amd64")
        assert excinfo.value.name == "nope"
        assert "nope:amd64" in str(excinfo.value)
        assert "nope:all" in str(excinfo.value)

    def test_requested_provider_name_is_not_enough(self):
        index = index_of(pkg("a", provides=["virtual"]))
        with pytest.raises(PackageNotFoundError):
            resolve_packages(index, ["virtual"], "amd64")

    def test_index_not_modified(self):
        index = index_of(pkg("a", ["b"]), pkg("b"))
        before = dict(index)
        resolve_packages(index, ["a"], "amd64")
        assert index == before


class TestWithoutDependencies:
    def test_only_requested(self):
        index = index_of(pkg("a", ["b"]), pkg("b"))
        assert names(resolve_packages(index, ["a"], "amd64", resolve_dependencies=False)) == ["a"]

    def test_missing_still_raises(self):
        with pytest.raises(PackageNotFoundError):
            resolve_packages(index_of(pkg("a")), ["b"], "amd64", resolve_dependencies=False)


# ═══════════════════════════════════════════
# Banned Packages
# ═══════════════════════════════════════════


class TestBanned:
    def test_banned_dependency_excluded(self):
        index = index_of(pkg("a", ["linux-image-6.1", "b"]), pkg("linux-image-6.1"), pkg("b"))
        result = resolve_packages(index, ["a"], "amd64", banned=["linux-image-"])
        assert names(result) == ["a", "b"]

    def test_banned_missing_name_not_reconciled(self, caplog):
        index = index_of(pkg("a", ["linux-image-6.1"]), pkg("k", provides=["linux-image-6.1"]))
        with caplog.at_level(logging.INFO):
            result = resolve_packages(index, ["a"], "amd64", banned=["linux-image-"])
        assert names(result) == ["a"]
        assert "provides" not in caplog.text

    def test_banned_transitively_prunes(self):
        index = index_of(pkg("a", ["linux-base"]), pkg("linux-base", ["c"]), pkg("c"))
        result = resolve_packages(index, ["a"], "amd64", banned=["linux-base"])
        assert names(result) == ["a"]

    def test_explicit_request_not_banned(self):
        index = index_of(pkg("linux-base"))
        result = resolve_packages(index, ["linux-base"], "amd64", banned=["linux-base"])
        assert names(result) == ["linux-base"]


# ═══════════════════════════════════════════
# Virtual Packages
# ═══════════════════════════════════════════


class TestVirtualPackages:
    def test_provider_added(self):
        index = index_of(pkg("a", provides=["x"]), pkg("b", ["x"]))
        result = resolve_packages(index, ["b"], "amd64")
        assert names(result) == ["b", "a"]

    def test_first_provider_in_index_order(self):
        index = index_of(pkg("p1", provides=["x"]), pkg("p2", provides=["x"]), pkg("b", ["x"]))
        assert names(resolve_packages(index, ["b"], "amd64")) == ["b", "p1"]

    def test_installed_provider_satisfies(self, caplog):
        index = index_of(pkg("a", provides=["x"]), pkg("b", ["x"]), pkg("c", provides=["x"]))
        with caplog.at_level(logging.INFO):
            result = resolve_packages(index, ["a", "b"], "amd64")
        assert names(result) == ["a", "b"]
        assert "provided by 'a'" in caplog.text

    def test_provider_dependencies_walked(self):
        index = index_of(pkg("b", ["x"]), pkg("c", ["d"], provides=["x"]), pkg("d"))
        assert names(resolve_packages(index, ["b"], "amd64")) == ["b", "c", "d"]

    def test_chained_virtual_names(self):
        index = index_of(
            pkg("b", ["x"]),
            pkg("c", ["y"], provides=["x"]),
            pkg("d", provides=["y"]),
        )
        assert names(resolve_packages(index, ["b"], "amd64")) == ["b", "c", "d"]

    def test_unprovided_name_dropped(self, caplog):
        index = index_of(pkg("b", ["x"]))
        with caplog.at_level(logging.INFO):
            result = resolve_packages(index, ["b"], "amd64")
        assert names(result) == ["b"]
        assert "No package provides 'x'" in caplog.text

    def test_provider_needing_unavailable_name(self):
        index = index_of(pkg("b", ["x"]), pkg("c", ["y"], provides=["x"]))
        with pytest.raises(UnresolvableDependencyError) as excinfo:
            resolve_packages(index, ["b"], "amd64")
        assert excinfo.value.name == "y"
        assert "Could not find: y" in str(excinfo.value)

    def test_provider_depending_on_its_own_virtual_name(self):
        index = index_of(pkg("b", ["x"]), pkg("c", ["x"], provides=["x"]))
        with pytest.raises(UnresolvableDependencyError, match="Could not find: x"):
            resolve_packages(index, ["b"], "amd64")


# ═══════════════════════════════════════════
# Logging
# ═══════════════════════════════════════════


class TestLogging:
    def test_injected_logger_receives_decisions(self, caplog):
        log = logging.getLogger("sysroot.test.resolver")
        index = index_of(pkg("a", provides=["x"]), pkg("b", ["x"]))
        with caplog.at_level(logging.INFO, logger="sysroot.test.resolver"):
            resolve_packages(index, ["b"], "amd64", log=log)
        records = [r for r in caplog.records if r.name == "sysroot.test.resolver"]
        assert any("Additional package 'a:amd64'" in r.getMessage() for r in records)
