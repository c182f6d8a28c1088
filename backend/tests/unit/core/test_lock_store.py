"""
Unit tests for lock_store.py.

Coverage:
1) Key generation
2) Job lock acquisition/release and the scoped context manager
3) Customer cooldown flags
4) Release failures never propagate
"""

from unittest.mock import MagicMock

import pytest

from app.core.lock_store import CooldownLockStore, _cooldown_key, _lock_key, slot_lock_name


class TestKeyGeneration:
    def test_lock_key_format(self):
        assert _lock_key("slotback", "expire-offers") == "slotback:lock:job:expire-offers"

    def test_cooldown_key_format(self):
        assert _cooldown_key("01KDGCP1R4N6AQKXNWV4PFY2HB") == "offer_cooldown:01KDGCP1R4N6AQKXNWV4PFY2HB"

    def test_slot_lock_name(self):
        assert (
            slot_lock_name("SHOP1", "2026-03-04T14:00:00+00:00")
            == "slot:SHOP1:2026-03-04T14:00:00+00:00"
        )


class TestJobLocks:
    def test_second_acquire_is_blocked(self, lock_store):
        assert lock_store.try_acquire_lock("expire-offers") is True
        assert lock_store.try_acquire_lock("expire-offers") is False

    def test_release_frees_the_lock(self, lock_store):
        lock_store.try_acquire_lock("expire-offers")
        lock_store.release_lock("expire-offers")
        assert lock_store.try_acquire_lock("expire-offers") is True

    def test_locks_are_independent_by_name(self, lock_store):
        assert lock_store.try_acquire_lock("expire-offers") is True
        assert lock_store.try_acquire_lock("recompute-scores") is True

    def test_set_uses_nx_and_ttl(self):
        client = MagicMock()
        client.set.return_value = True
        store = CooldownLockStore(client, namespace="ns", default_lock_ttl_s=60)

        assert store.try_acquire_lock("resolve-outcomes") is True
        client.set.assert_called_once()
        args, kwargs = client.set.call_args
        assert args[0] == "ns:lock:job:resolve-outcomes"
        assert kwargs == {"nx": True, "ex": 60}

    def test_explicit_ttl_overrides_default(self):
        client = MagicMock()
        client.set.return_value = None
        store = CooldownLockStore(client, namespace="ns", default_lock_ttl_s=60)

        assert store.try_acquire_lock("slot:x", ttl_s=30) is False
        assert client.set.call_args.kwargs["ex"] == 30

    def test_job_lock_releases_on_exit(self, lock_store):
        with lock_store.job_lock("expire-offers") as acquired:
            assert acquired is True
            assert lock_store.try_acquire_lock("expire-offers") is False
        assert lock_store.try_acquire_lock("expire-offers") is True

    def test_job_lock_releases_on_exception(self, lock_store):
        with pytest.raises(RuntimeError):
            with lock_store.job_lock("expire-offers"):
                raise RuntimeError("boom")
        assert lock_store.try_acquire_lock("expire-offers") is True

    def test_job_lock_not_acquired_leaves_holder_alone(self, lock_store):
        lock_store.try_acquire_lock("expire-offers")
        with lock_store.job_lock("expire-offers") as acquired:
            assert acquired is False
        assert lock_store.try_acquire_lock("expire-offers") is False

    def test_release_error_is_swallowed(self):
        client = MagicMock()
        client.delete.side_effect = ConnectionError("redis down")
        store = CooldownLockStore(client, namespace="ns", default_lock_ttl_s=60)

        store.release_lock("expire-offers")

        client.delete.assert_called_once_with("ns:lock:job:expire-offers")


class TestCooldown:
    def test_unknown_customer_is_not_in_cooldown(self, lock_store):
        assert lock_store.is_in_cooldown("C1") is False
        assert lock_store.get_cooldown_ttl("C1") == 0

    def test_set_cooldown(self, lock_store):
        lock_store.set_cooldown("C1", ttl_s=3600)
        assert lock_store.is_in_cooldown("C1") is True
        assert 0 < lock_store.get_cooldown_ttl("C1") <= 3600
        assert lock_store.is_in_cooldown("C2") is False

    def test_default_ttl_comes_from_settings(self, monkeypatch):
        from app.core.config import settings

        monkeypatch.setattr(settings, "offer_cooldown_seconds", 120)
        client = MagicMock()
        store = CooldownLockStore(client, namespace="ns", default_lock_ttl_s=60)

        store.set_cooldown("C1")

        client.setex.assert_called_once_with("offer_cooldown:C1", 120, "1")
