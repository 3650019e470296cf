"""
Failure policy for store lookups made during aggregation.

Two kinds of lookup exist:
  • aggregates  (counts, is-liked, tag lists) — a StoreError degrades to a
    zero/empty default so the primary entity is still served;
  • primaries   (the entity or page being viewed) — a StoreError is fatal and
    becomes AggregationUnavailableError.
"""
import logging
from typing import Awaitable, TypeVar

from content_api.errors import AggregationUnavailableError, StoreError
from content_api.telemetry import AGGREGATE_DEGRADED_TOTAL

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def or_default(aggregate: str, lookup: Awaitable[T], default: T) -> T:
    try:
        return await lookup
    except StoreError as exc:
        logger.warning("Aggregate %s unavailable (%s) — serving %r", aggregate, exc, default)
        AGGREGATE_DEGRADED_TOTAL.labels(aggregate=aggregate).inc()
        return default


async def required(what: str, lookup: Awaitable[T]) -> T:
    try:
        return await lookup
    except StoreError as exc:
        logger.error("Could not load %s: %s", what, exc)
        raise AggregationUnavailableError(f"Could not load {what}") from exc
