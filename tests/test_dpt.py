"""Tests for the distributed process table."""

import threading

import pytest

from conftest import FakeGateway
from kubedsh.lib.dproc import DistributedProcess, DProcKind, Source
from kubedsh.lib.dpt import (
    DiscoveryError,
    DistributedProcessTable,
    NotFoundError,
    format_dump,
)
from kubedsh.lib.gateway import GatewayError


def make_dproc(dproc_id, context="ctxA", path=None):
    return DistributedProcess(
        id=dproc_id,
        kind=DProcKind.LONG_RUNNING,
        context=context,
        source=Source.binary(path or dproc_id),
    )


class TestTableOperations:
    """Test add/remove/get/dump."""

    def test_remove_absent_is_noop(self, dpt):
        """Removing an unknown dproc does not error and changes nothing."""
        dpt.add(make_dproc("a"))
        dpt.remove(make_dproc("b"))
        dpt.remove(make_dproc("a", context="ctxB"))
        assert dpt.dump("") == [make_dproc("a")]

    def test_add_overwrites_same_key(self, dpt):
        """A second add with the same (id, context) replaces the first."""
        first = make_dproc("a", path="old")
        second = make_dproc("a", path="new")
        dpt.add(first)
        dpt.add(second)
        assert len(dpt) == 1
        assert dpt.get("a", "ctxA") == second

    def test_remove_if_unchanged(self, dpt):
        """Compare-and-remove only deletes the exact entry given."""
        old = make_dproc("a", path="old")
        new = make_dproc("a", path="new")
        dpt.add(new)
        assert not dpt.remove_if_unchanged(old)
        assert dpt.get("a", "ctxA") == new
        assert dpt.remove_if_unchanged(new)
        assert len(dpt) == 0
        assert not dpt.remove_if_unchanged(new)

    def test_get_after_add(self, dpt):
        """An added dproc can be looked up by id and context."""
        dproc = make_dproc("a")
        dpt.add(dproc)
        assert dpt.get("a", "ctxA") is dproc

    def test_get_missing(self, dpt):
        """Lookup of an unknown dproc raises NotFoundError."""
        dpt.add(make_dproc("a"))
        with pytest.raises(NotFoundError) as exc_info:
            dpt.get("a", "ctxB")
        assert exc_info.value.dproc_id == "a"
        assert exc_info.value.context == "ctxB"

    def test_same_id_in_different_contexts(self, dpt):
        """Same id in two contexts is two entries."""
        dpt.add(make_dproc("a", "ctxA"))
        dpt.add(make_dproc("a", "ctxB"))
        assert len(dpt) == 2

    def test_dump_sorted_by_id(self, dpt):
        """dump(ctx) returns only that context, sorted by id."""
        for dproc_id in ("c", "a", "b"):
            dpt.add(make_dproc(dproc_id))
        dpt.add(make_dproc("0", "ctxB"))
        assert [d.id for d in dpt.dump("ctxA")] == ["a", "b", "c"]

    def test_dump_all_contexts(self, dpt):
        """dump("") returns entries from every context."""
        dpt.add(make_dproc("b", "ctxA"))
        dpt.add(make_dproc("a", "ctxB"))
        dpt.add(make_dproc("a", "ctxA"))
        entries = dpt.dump("")
        assert [(d.id, d.context) for d in entries] == [
            ("a", "ctxA"), ("a", "ctxB"), ("b", "ctxA")
        ]

    def test_concurrent_adds(self, dpt):
        """Concurrent writers never lose entries."""
        def writer(prefix):
            for i in range(200):
                dpt.add(make_dproc(f"{prefix}-{i}"))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(dpt) == 800


class TestBuild:
    """Test seeding the table from the cluster."""

    def test_build_from_all_contexts(self, dpt):
        """Workloads from every context are loaded with their source."""
        gateway = FakeGateway({
            "ctxA": {"web": "script:python:web.py"},
            "ctxB": {"db": "bin:/opt/db"},
        })
        assert dpt.build(gateway) == 2
        web = dpt.get("web", "ctxA")
        assert web.kind == DProcKind.LONG_RUNNING
        assert web.source == Source.script("web.py", "python")
        assert dpt.get("db", "ctxB").source == Source.binary("/opt/db")

    def test_build_unreachable_gateway(self, dpt):
        """A gateway that can't list contexts raises DiscoveryError and leaves the table empty."""
        gateway = FakeGateway({"ctxA": {"web": "bin:web"}})
        gateway.failures["list-contexts"] = "connection refused"
        dpt.add(make_dproc("stale"))
        with pytest.raises(DiscoveryError):
            dpt.build(gateway)
        assert len(dpt) == 0

    def test_build_skips_unreachable_context(self, dpt):
        """Reachable contexts are loaded even when another one fails."""
        gateway = FakeGateway({"ctxA": {"web": "bin:web"}, "ctxB": {"db": "bin:db"}})
        gateway.unreachable.add("ctxB")
        assert dpt.build(gateway) == 1
        assert [d.id for d in dpt.dump("")] == ["web"]

    def test_build_no_reachable_context(self, dpt):
        """If every context fails the build fails and the table stays empty."""
        gateway = FakeGateway({"ctxA": {"web": "bin:web"}})
        gateway.unreachable.add("ctxA")
        with pytest.raises(DiscoveryError):
            dpt.build(gateway)
        assert len(dpt) == 0

    def test_build_malformed_annotation(self, dpt):
        """Workloads without a readable source are seeded as binaries named after the id."""
        gateway = FakeGateway({"ctxA": {"web": "garbage", "api": ""}})
        dpt.build(gateway)
        assert dpt.get("web", "ctxA").source == Source.binary("web")
        assert dpt.get("api", "ctxA").source == Source.binary("api")


class TestFormatDump:
    """Test text rendering of dump results."""

    def test_format_current_context(self):
        output = format_dump([make_dproc("web"), make_dproc("db")])
        lines = output.splitlines()
        assert lines[0].split() == ["DPID", "TYPE", "SOURCE"]
        assert lines[1].split() == ["web", "long-running", "bin:web"]
        assert "ctxA" not in output

    def test_format_with_context(self):
        output = format_dump([make_dproc("web", "ctxB")], show_context=True)
        assert output.splitlines()[1].split() == ["web", "ctxB", "long-running", "bin:web"]

    def test_format_empty(self):
        assert format_dump([]).split() == ["DPID", "TYPE", "SOURCE"]
