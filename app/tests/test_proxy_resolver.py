from datetime import datetime, timedelta, UTC

import pytest

from app.services.decision_evaluator import Participant
from app.services.proxy_resolver import (
    Proxy,
    ProxyValidationError,
    active_proxies,
    resolve_effective_weights,
    validate_new_proxy,
)

NOW = datetime(2026, 5, 4, 18, 0, tzinfo=UTC)


def _proxy(grantor, grantee, minutes_ago=60, **fields):
    return Proxy(
        grantor_id=grantor,
        grantee_id=grantee,
        valid_from=NOW - timedelta(minutes=minutes_ago),
        proxy_id=f"{grantor}->{grantee}",
        **fields,
    )


def test_absent_grantor_moves_weight_to_present_holder():
    roster = [
        Participant("holder", weight=10, is_present=True),
        Participant("owner", weight=25, is_present=False),
    ]

    resolved = resolve_effective_weights(roster, [_proxy("owner", "holder")], at=NOW)

    assert resolved.effective_weights == {"holder": 35, "owner": 0}
    assert resolved.proxy_weight == 25
    assert resolved.represented == frozenset({"owner"})
    assert resolved.holder_of("owner") == "holder"


def test_proxy_ignored_when_grantor_is_present():
    roster = [
        Participant("holder", is_present=True),
        Participant("owner", is_present=True),
    ]

    resolved = resolve_effective_weights(roster, [_proxy("owner", "holder")], at=NOW)

    assert resolved.effective_weights == {"holder": 1, "owner": 1}
    assert resolved.represented == frozenset()
    assert len(resolved.skipped) == 1


def test_proxy_ignored_when_holder_is_absent():
    roster = [
        Participant("holder", is_present=False),
        Participant("owner", is_present=False),
    ]

    resolved = resolve_effective_weights(roster, [_proxy("owner", "holder")], at=NOW)

    assert resolved.proxy_weight == 0
    assert resolved.holder_of("owner") is None


def test_holder_cap_keeps_oldest_delegations():
    roster = [Participant("holder", is_present=True)] + [
        Participant(name, is_present=False) for name in ("a", "b", "c")
    ]
    proxies = [
        _proxy("c", "holder", minutes_ago=10),
        _proxy("a", "holder", minutes_ago=30),
        _proxy("b", "holder", minutes_ago=20),
    ]

    resolved = resolve_effective_weights(roster, proxies, at=NOW)

    assert resolved.effective_weights["holder"] == 3
    assert resolved.represented == frozenset({"a", "b"})
    assert [proxy.grantor_id for proxy in resolved.skipped] == ["c"]


def test_custom_cap():
    roster = [Participant("holder", is_present=True)] + [
        Participant(name, is_present=False) for name in ("a", "b", "c")
    ]
    proxies = [_proxy(name, "holder") for name in ("a", "b", "c")]

    resolved = resolve_effective_weights(
        roster, proxies, at=NOW, max_proxies_per_holder=3
    )

    assert resolved.effective_weights["holder"] == 4


def test_self_delegation_and_duplicate_grantor_dropped():
    roster = [
        Participant("x", is_present=True),
        Participant("y", is_present=True),
        Participant("z", is_present=False),
    ]
    proxies = [
        _proxy("z", "z"),
        _proxy("z", "x", minutes_ago=50),
        _proxy("z", "y", minutes_ago=40),
    ]

    resolved = resolve_effective_weights(roster, proxies, at=NOW)

    assert resolved.effective_weights == {"x": 2, "y": 1, "z": 0}


def test_circular_delegation_is_broken():
    roster = [
        Participant("a", is_present=True),
        Participant("b", is_present=False),
    ]
    # b -> a applies first; a -> b would close the loop (and b is absent anyway)
    proxies = [_proxy("b", "a", minutes_ago=30), _proxy("a", "b", minutes_ago=10)]

    resolved = resolve_effective_weights(roster, proxies, at=NOW)

    assert resolved.effective_weights == {"a": 2, "b": 0}
    assert len(resolved.applied) == 1


def test_validity_window_and_meeting_scope():
    roster = [
        Participant("holder", is_present=True),
        Participant("early", is_present=False),
        Participant("late", is_present=False),
        Participant("other", is_present=False),
    ]
    proxies = [
        _proxy("early", "holder", valid_until=NOW - timedelta(minutes=5)),
        Proxy("late", "holder", valid_from=NOW + timedelta(hours=1)),
        _proxy("other", "holder", meeting_id="m-2"),
    ]

    assert active_proxies(proxies, at=NOW, meeting_id="m-1") == []
    resolved = resolve_effective_weights(roster, proxies, at=NOW, meeting_id="m-1")
    assert resolved.effective_weights["holder"] == 1
    resolved_m2 = resolve_effective_weights(roster, proxies, at=NOW, meeting_id="m-2")
    assert resolved_m2.effective_weights["holder"] == 2


def test_naive_timestamps_are_read_as_utc():
    proxy = Proxy("a", "b", valid_from=datetime(2026, 5, 4, 17, 0))

    assert proxy.is_valid_at(NOW) is True


def test_unknown_participants_are_skipped():
    roster = [Participant("holder", is_present=True)]

    resolved = resolve_effective_weights(roster, [_proxy("ghost", "holder")], at=NOW)

    assert resolved.effective_weights == {"holder": 1}


def test_validate_rejects_self_delegation():
    with pytest.raises(ProxyValidationError):
        validate_new_proxy(_proxy("a", "a"), [], at=NOW)


def test_validate_rejects_second_delegation_by_grantor():
    with pytest.raises(ProxyValidationError, match="already delegated"):
        validate_new_proxy(_proxy("a", "c"), [_proxy("a", "b")], at=NOW)


def test_validate_rejects_holder_at_cap():
    existing = [_proxy("a", "h"), _proxy("b", "h")]

    with pytest.raises(ProxyValidationError, match="at most 2"):
        validate_new_proxy(_proxy("c", "h"), existing, at=NOW)


def test_validate_rejects_circular_chain():
    existing = [_proxy("b", "c"), _proxy("c", "a")]

    with pytest.raises(ProxyValidationError, match="Circular"):
        validate_new_proxy(_proxy("a", "b"), existing, at=NOW)


def test_validate_rejects_inverted_window():
    candidate = _proxy("a", "b", valid_until=NOW - timedelta(hours=3))

    with pytest.raises(ProxyValidationError):
        validate_new_proxy(candidate, [], at=NOW)


def test_validate_ignores_expired_delegations():
    expired = _proxy("a", "b", valid_until=NOW - timedelta(minutes=1))

    validate_new_proxy(_proxy("a", "c"), [expired], at=NOW)
