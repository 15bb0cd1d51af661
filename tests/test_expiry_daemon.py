from __future__ import annotations

import time
from datetime import timedelta

import pytest

from AccessWhitelist.ledger import WhitelistLedger
from AccessWhitelist.policy import RemotePolicyAdapter
from AccessWhitelist.service import ExpiryDaemon, WhitelistService

from conftest import FakeAccessApi, FrozenClock


def test_sweep_removes_expired_from_policy_and_ledger(
    ledger: WhitelistLedger, adapter: RemotePolicyAdapter, fake_api: FakeAccessApi, clock: FrozenClock
) -> None:
    service = WhitelistService(ledger, adapter, clock=clock)
    service.admit("198.51.100.7", "60")
    service.admit("203.0.113.9", "120")
    daemon = ExpiryDaemon(ledger, adapter, clock=clock)

    assert daemon.sweep() == []
    clock.advance(minutes=61)

    assert daemon.sweep() == ["198.51.100.7"]
    assert fake_api.ip_rules() == ["203.0.113.9"]
    assert "198.51.100.7" not in ledger
    assert "203.0.113.9" in ledger


def test_sweep_attempts_remote_removal_once_per_entry(
    ledger: WhitelistLedger, adapter: RemotePolicyAdapter, fake_api: FakeAccessApi, clock: FrozenClock
) -> None:
    ledger.add("198.51.100.7", clock.now - timedelta(seconds=1))
    ExpiryDaemon(ledger, adapter, clock=clock).sweep()
    assert fake_api.count("GET") == 1
    assert fake_api.count("PUT") == 0


def test_remote_failure_still_drops_entry_by_default(
    ledger: WhitelistLedger, adapter: RemotePolicyAdapter, fake_api: FakeAccessApi, clock: FrozenClock
) -> None:
    ledger.add("198.51.100.7", clock.now - timedelta(minutes=1))
    fake_api.transport_failures.add("GET")

    assert ExpiryDaemon(ledger, adapter, clock=clock).sweep() == ["198.51.100.7"]
    assert len(ledger) == 0


def test_bounded_retry_keeps_entry_until_attempts_exhausted(
    ledger: WhitelistLedger, adapter: RemotePolicyAdapter, fake_api: FakeAccessApi, clock: FrozenClock
) -> None:
    ledger.add("198.51.100.7", clock.now - timedelta(minutes=1))
    fake_api.transport_failures.add("GET")
    daemon = ExpiryDaemon(ledger, adapter, clock=clock, max_remote_attempts=3)

    assert daemon.sweep() == []
    assert daemon.sweep() == []
    assert "198.51.100.7" in ledger
    assert daemon.sweep() == ["198.51.100.7"]
    assert fake_api.count("GET") == 3


def test_bounded_retry_removes_once_remote_recovers(
    ledger: WhitelistLedger, adapter: RemotePolicyAdapter, fake_api: FakeAccessApi, clock: FrozenClock
) -> None:
    fake_api.policy["include"].append({"ip": {"ip": "198.51.100.7"}})
    ledger.add("198.51.100.7", clock.now - timedelta(minutes=1))
    fake_api.fail_methods.add("PUT")
    daemon = ExpiryDaemon(ledger, adapter, clock=clock, max_remote_attempts=2)

    assert daemon.sweep() == []
    fake_api.fail_methods.clear()
    assert daemon.sweep() == ["198.51.100.7"]
    assert fake_api.ip_rules() == []


@pytest.mark.parametrize("kwargs", [{"interval": 0}, {"interval": -1}, {"max_remote_attempts": 0}])
def test_rejects_invalid_configuration(ledger: WhitelistLedger, kwargs) -> None:
    with pytest.raises(ValueError):
        ExpiryDaemon(ledger, RemotePolicyAdapter(), **kwargs)


def test_background_thread_sweeps_and_stops(ledger: WhitelistLedger, clock: FrozenClock) -> None:
    ledger.add("198.51.100.7", clock.now - timedelta(minutes=1))
    daemon = ExpiryDaemon(ledger, RemotePolicyAdapter(), interval=0.02, clock=clock)

    daemon.start()
    try:
        assert daemon.running
        deadline = time.monotonic() + 2.0
        while "198.51.100.7" in ledger and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        daemon.stop()

    assert "198.51.100.7" not in ledger
    assert daemon.running is False


def test_renewal_during_sweep_is_kept(
    ledger: WhitelistLedger,
    adapter: RemotePolicyAdapter,
    fake_api: FakeAccessApi,
    clock: FrozenClock,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service = WhitelistService(ledger, adapter, clock=clock)
    service.admit("198.51.100.7", "1")
    clock.advance(minutes=2)
    exclude = adapter.ensure_excluded

    def exclude_then_renew(address, **kwargs):
        exclude(address, **kwargs)
        service.admit(address, "60")

    monkeypatch.setattr(adapter, "ensure_excluded", exclude_then_renew)
    daemon = ExpiryDaemon(ledger, adapter, clock=clock)

    assert daemon.sweep() == []
    assert ledger.get("198.51.100.7") == clock.now + timedelta(minutes=60)
    assert fake_api.ip_rules() == ["198.51.100.7"]


def test_failure_count_resets_after_renewal(
    ledger: WhitelistLedger, adapter: RemotePolicyAdapter, fake_api: FakeAccessApi, clock: FrozenClock
) -> None:
    ledger.add("198.51.100.7", clock.now - timedelta(minutes=1))
    fake_api.transport_failures.add("GET")
    daemon = ExpiryDaemon(ledger, adapter, clock=clock, max_remote_attempts=3)
    assert daemon.sweep() == []
    assert daemon.sweep() == []

    ledger.add("198.51.100.7", clock.now + timedelta(minutes=10))
    assert daemon.sweep() == []
    clock.advance(minutes=11)

    assert daemon.sweep() == []
    assert "198.51.100.7" in ledger
