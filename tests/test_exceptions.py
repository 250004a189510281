"""Tests for exception matching, expiry, and tie-breaking."""

from dataclasses import replace
from datetime import timedelta

from secgate.policy.exceptions import expired_matches, partition, select_exception
from secgate.policy.models import PolicyException


def _exception(now, exc_id="EXC-1", days=30, **kw):
    return PolicyException(
        id=exc_id,
        expires_at=now + timedelta(days=days),
        justification="accepted",
        **kw,
    )


class TestMatching:
    def test_finding_id(self, make_finding, now):
        f = make_finding()
        assert _exception(now, finding_id=f.id).matches(f)
        assert not _exception(now, finding_id="FND-ffffffffffffffff").matches(f)

    def test_merged_ids_match(self, make_finding, now):
        f = make_finding()
        merged = replace(f, merged_from=("FND-aaaaaaaaaaaaaaaa",))
        assert _exception(now, finding_id="FND-aaaaaaaaaaaaaaaa").matches(merged)

    def test_rule_and_location_globs(self, make_finding, now):
        f = make_finding(rule_id="B101", location="tests/test_app.py:12")
        assert _exception(now, rule_id="B101").matches(f)
        assert _exception(now, rule_id="B1*", location="tests/*").matches(f)
        assert not _exception(now, rule_id="B101", location="src/*").matches(f)
        assert not _exception(now, rule_id="b101").matches(f)


class TestExpiry:
    def test_expires_at_now_is_inert(self, make_finding, now):
        f = make_finding()
        exc = PolicyException(id="E", expires_at=now, justification="x", finding_id=f.id)
        assert not exc.is_active(now)
        assert select_exception(f, [exc], now) is None
        assert len(expired_matches(f, [exc], now)) == 1

    def test_one_second_later_is_active(self, make_finding, now):
        f = make_finding()
        exc = PolicyException(
            id="E", expires_at=now + timedelta(seconds=1), justification="x", finding_id=f.id
        )
        assert exc.is_active(now)
        assert select_exception(f, [exc], now) is exc


class TestSelection:
    def test_latest_expiry_wins(self, make_finding, now):
        f = make_finding(rule_id="B101")
        short = _exception(now, "EXC-A", days=1, rule_id="B101")
        long_ = _exception(now, "EXC-B", days=90, rule_id="B*")
        assert select_exception(f, [short, long_], now) is long_
        assert select_exception(f, [long_, short], now) is long_

    def test_lowest_id_breaks_ties(self, make_finding, now):
        f = make_finding(rule_id="B101")
        a = _exception(now, "EXC-A", rule_id="B101")
        b = _exception(now, "EXC-B", rule_id="B101")
        assert select_exception(f, [b, a], now) is a


class TestPartition:
    def test_split(self, make_finding, now):
        keep = make_finding(rule_id="B602")
        drop = make_finding(rule_id="B101")
        lapsed = make_finding(rule_id="B105")
        exceptions = [
            _exception(now, "EXC-1", rule_id="B101"),
            _exception(now, "EXC-2", days=-1, rule_id="B105"),
        ]
        active, suppressed, notes = partition([keep, drop, lapsed], exceptions, now)
        assert active == [keep, lapsed]
        assert [(s.finding, s.exception.id) for s in suppressed] == [(drop, "EXC-1")]
        assert [(n.exception.id, n.finding) for n in notes] == [("EXC-2", lapsed)]
        assert "EXC-2" in notes[0].message

    def test_rule_name_recorded(self, make_finding, now):
        f = make_finding()
        _, suppressed, _ = partition([f], [_exception(now, finding_id=f.id)], now, rule_name="r1")
        assert suppressed[0].rule_name == "r1"
