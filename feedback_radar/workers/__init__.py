"""
Dramatiq worker infrastructure for async task processing.

This module sets up the broker for Dramatiq workers and provides
shared configuration for all worker modules. Tests and local runs
without Redis select the in-memory StubBroker via DRAMATIQ_BROKER=stub.
"""
import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker

from feedback_radar.config import settings

if settings.dramatiq_broker == "stub":
    broker = StubBroker()
else:
    broker = RedisBroker(url=settings.redis_url)
dramatiq.set_broker(broker)
