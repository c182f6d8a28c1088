"""Cooldown & lock store backed by Redis.

Two primitives share one store:

* named job locks (``SET NX EX``) so overlapping runs of the same scheduled job
  skip instead of double-processing a batch;
* per-customer cooldown flags whose mere existence means "do not contact".
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import time
from typing import Iterator

from redis import Redis

from app.core.config import settings
from app.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


def _lock_key(namespace: str, name: str) -> str:
    return f"{namespace}:lock:job:{name}"


def _cooldown_key(customer_id: str) -> str:
    return f"offer_cooldown:{customer_id}"


def slot_lock_name(shop_id: str, starts_at_iso: str) -> str:
    return f"slot:{shop_id}:{starts_at_iso}"


class CooldownLockStore:
    """Named mutual-exclusion locks and customer contact cooldowns."""

    def __init__(
        self,
        client: Redis,
        *,
        namespace: str | None = None,
        default_lock_ttl_s: int | None = None,
    ) -> None:
        self.client = client
        self.namespace = namespace or settings.redis_namespace
        self.default_lock_ttl_s = default_lock_ttl_s or settings.job_lock_ttl_seconds

    def try_acquire_lock(self, name: str, ttl_s: int | None = None) -> bool:
        """Non-blocking acquire; False means another execution holds the lock."""
        ttl = ttl_s or self.default_lock_ttl_s
        acquired = bool(
            self.client.set(_lock_key(self.namespace, name), str(time.time()), nx=True, ex=ttl)
        )
        prometheus_metrics.record_job_lock(name, "acquired" if acquired else "blocked")
        return acquired

    def release_lock(self, name: str) -> None:
        try:
            deleted = self.client.delete(_lock_key(self.namespace, name))
        except Exception as exc:
            prometheus_metrics.record_job_lock(name, "release_error")
            logger.warning(
                "job_lock_release_failed",
                extra={"lock": name, "error": str(exc), "error_type": type(exc).__name__},
            )
            return
        prometheus_metrics.record_job_lock(name, "released" if deleted else "not_found")

    @contextmanager
    def job_lock(self, name: str, ttl_s: int | None = None) -> Iterator[bool]:
        """Scoped lock: yields whether it was acquired and releases it on every exit path."""
        acquired = self.try_acquire_lock(name, ttl_s=ttl_s)
        try:
            yield acquired
        finally:
            if acquired:
                self.release_lock(name)

    def is_in_cooldown(self, customer_id: str) -> bool:
        return bool(self.client.exists(_cooldown_key(customer_id)))

    def set_cooldown(self, customer_id: str, ttl_s: int | None = None) -> None:
        self.client.setex(
            _cooldown_key(customer_id), ttl_s or settings.offer_cooldown_seconds, "1"
        )

    def get_cooldown_ttl(self, customer_id: str) -> int:
        ttl = self.client.ttl(_cooldown_key(customer_id))
        return int(ttl) if ttl and int(ttl) > 0 else 0
