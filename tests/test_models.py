"""
Tests for domain models — status aggregation, object paths, action
options and results.
"""

import pytest

from svcctl.core.errors import SvcctlError
from svcctl.core.models import ActionOptions, ActionResult, ObjectPath, Status

# ── Status Tests ─────────────────────────────────────────────────────


class TestStatus:
    @pytest.mark.parametrize(
        "a, b, expected",
        [
            (Status.UP, Status.UP, Status.UP),
            (Status.DOWN, Status.DOWN, Status.DOWN),
            (Status.UP, Status.DOWN, Status.WARN),
            (Status.UP, Status.NOT_APPLICABLE, Status.UP),
            (Status.UNDEF, Status.DOWN, Status.DOWN),
            (Status.WARN, Status.UP, Status.WARN),
            (Status.STANDBY_UP, Status.UP, Status.UP),
            (Status.STANDBY_DOWN, Status.STANDBY_DOWN, Status.STANDBY_DOWN),
            (Status.STANDBY_UP, Status.DOWN, Status.WARN),
        ],
    )
    def test_add(self, a: Status, b: Status, expected: Status):
        assert a.add(b) == expected
        assert b.add(a) == expected

    def test_aggregate_empty(self):
        assert Status.aggregate([]) == Status.NOT_APPLICABLE

    def test_aggregate(self):
        assert Status.aggregate([Status.UP, Status.NOT_APPLICABLE, Status.UP]) == Status.UP

    def test_string_values(self):
        assert Status.STANDBY_UP == "stdby up"
        assert Status("n/a") is Status.NOT_APPLICABLE


# ── Path Tests ───────────────────────────────────────────────────────


class TestObjectPath:
    @pytest.mark.parametrize(
        "text, fqn, short",
        [
            ("svc1", "root/svc/svc1", "svc1"),
            ("vol/data", "root/vol/data", "vol/data"),
            ("root/svc/svc1", "root/svc/svc1", "svc1"),
            ("ns1/svc/api", "ns1/svc/api", "ns1/svc/api"),
            ("ns1/sec/tls", "ns1/sec/tls", "ns1/sec/tls"),
        ],
    )
    def test_forms(self, text: str, fqn: str, short: str):
        path = ObjectPath.parse(text)
        assert path.fqn == fqn
        assert str(path) == short

    @pytest.mark.parametrize("text", ["", "a/b/c/d", "foo/bar", "ns1/svc/-bad", "svc/"])
    def test_invalid(self, text: str):
        with pytest.raises(ValueError):
            ObjectPath.parse(text)

    def test_equality_across_forms(self):
        assert ObjectPath.parse("svc1") == ObjectPath.parse("root/svc/svc1")
        assert len({ObjectPath.parse("svc1"), ObjectPath.parse("root/svc/svc1")}) == 1

    def test_ordering(self):
        paths = [ObjectPath.parse(p) for p in ("svc2", "ns1/svc/a", "svc1")]
        assert [str(p) for p in sorted(paths)] == ["ns1/svc/a", "svc1", "svc2"]


# ── Action Tests ─────────────────────────────────────────────────────


class TestActionOptions:
    def test_defaults(self):
        options = ActionOptions()
        assert not options.dry_run
        assert not options.no_lock
        assert options.lock_timeout == 30
        assert options.rid == ""

    def test_negative_timeout(self):
        with pytest.raises(ValueError):
            ActionOptions(lock_timeout=-1)


class TestActionResult:
    def test_success(self):
        r = ActionResult.success(ObjectPath.parse("svc1"), {"avail": "up"})
        assert r.ok
        assert r.kind == "ok"
        assert r.to_dict() == {"path": "svc1", "status": "ok", "value": {"avail": "up"}}

    def test_failure(self):
        r = ActionResult.failure(ObjectPath.parse("svc1"), SvcctlError("refused"))
        assert not r.ok
        assert r.kind == "error"
        assert r.to_dict()["error"] == "refused"

    def test_crash_keeps_traceback(self):
        try:
            raise ZeroDivisionError("bug")
        except ZeroDivisionError as e:
            r = ActionResult.crash(ObjectPath.parse("svc1"), e)
        assert r.kind == "defect"
        assert "ZeroDivisionError" in r.traceback
        assert "test_crash_keeps_traceback" in r.to_dict()["traceback"]
