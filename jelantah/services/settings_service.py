"""
Pricing Settings Service.

Owns the single ``settings`` row and the in-process cache in front of it.

Cache rules:
- A cached snapshot younger than the TTL is served without touching the DB.
- Otherwise the row is fetched (or created with defaults) and re-cached.
- Every successful update invalidates the cache before returning, so the
  next pricing calculation sees the new rates.

Each server process has its own cache; processes can disagree for at most
one TTL after an update made through another process.
"""
import logging
import time
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from jelantah.config import settings
from jelantah.core.exceptions import NotFoundError, ValidationError
from jelantah.models.settings import SETTINGS_ROW_ID, PricingSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettingsSnapshot:
    """Immutable copy of the settings row used for one pricing computation."""
    price_tier1_min: Decimal
    price_tier1_max: Decimal
    price_tier1_rate: Decimal
    price_tier2_min: Decimal
    price_tier2_max: Decimal
    price_tier2_rate: Decimal
    price_tier3_min: Decimal
    price_tier3_rate: Decimal
    courier_commission_per_liter: Decimal
    courier_daily_salary: Decimal
    affiliate_commission_per_liter: Decimal

    @classmethod
    def from_model(cls, row: PricingSettings) -> "SettingsSnapshot":
        return cls(**{f.name: Decimal(str(getattr(row, f.name))) for f in fields(cls)})


SETTINGS_FIELDS = tuple(f.name for f in fields(SettingsSnapshot))


class SettingsCache:
    """
    Single (value, timestamp) slot with a TTL.

    ``generation`` increases on every invalidation. A reader records it before
    going to the database and passes it back to ``set``; a snapshot read
    before an invalidation is then refused instead of re-caching old rates.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Optional[SettingsSnapshot] = None
        self._cached_at: float = 0.0
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def get(self) -> Optional[SettingsSnapshot]:
        if self._value is None:
            return None
        if self._clock() - self._cached_at >= self.ttl_seconds:
            return None
        return self._value

    def set(self, value: SettingsSnapshot, generation: Optional[int] = None) -> bool:
        """Cache ``value`` unless it was read before the last invalidation."""
        if generation is not None and generation != self._generation:
            return False
        self._value = value
        self._cached_at = self._clock()
        return True

    def invalidate(self) -> None:
        self._generation += 1
        self._value = None
        self._cached_at = 0.0


settings_cache = SettingsCache(ttl_seconds=settings.SETTINGS_CACHE_TTL_SECONDS)


def validate_tiers(values: Mapping[str, Any]) -> None:
    """
    Reject tier layouts that are overlapping or not in ascending order.

    Gaps between tiers are allowed; volumes falling into a gap are priced at
    the tier 1 rate.
    """
    t1_min = values["price_tier1_min"]
    t1_max = values["price_tier1_max"]
    t2_min = values["price_tier2_min"]
    t2_max = values["price_tier2_max"]
    t3_min = values["price_tier3_min"]

    if t1_min > t1_max:
        raise ValidationError("Tier 1 minimum must not exceed tier 1 maximum")
    if t2_min > t2_max:
        raise ValidationError("Tier 2 minimum must not exceed tier 2 maximum")
    if t2_min <= t1_max:
        raise ValidationError("Tier 2 must start above tier 1 maximum")
    if t3_min <= t2_max:
        raise ValidationError("Tier 3 must start above tier 2 maximum")

    for name in SETTINGS_FIELDS:
        if values[name] < 0:
            raise ValidationError(f"{name} must not be negative")


def _insert_default_row(dialect_name: str):
    """INSERT ... ON CONFLICT (id) DO NOTHING for the default settings row."""
    dialects = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}
    if dialect_name not in dialects:
        raise ValueError(f"Unsupported database dialect: {dialect_name}")
    return (
        dialects[dialect_name](PricingSettings)
        .values(id=SETTINGS_ROW_ID)
        .on_conflict_do_nothing(index_elements=[PricingSettings.id])
    )


class SettingsService:
    """Service for reading and updating pricing settings."""

    def __init__(self, db: AsyncSession, cache: Optional[SettingsCache] = None):
        self.db = db
        self.cache = cache or settings_cache

    async def get_or_create(self) -> PricingSettings:
        """
        Fetch the settings row, creating it with defaults when absent.

        The row always has id ``SETTINGS_ROW_ID``. Creation is an
        insert-or-ignore, so concurrent first reads end up sharing one row.
        Only flushes; the caller's transaction decides when it is committed.
        """
        row = await self._load_row()
        if row is not None:
            return row

        logger.info("No settings row found, creating defaults")
        await self.db.execute(_insert_default_row(self.db.get_bind().dialect.name))

        row = await self._load_row()
        if row is None:
            raise NotFoundError("Settings row could not be created")
        return row

    async def _load_row(self) -> Optional[PricingSettings]:
        result = await self.db.execute(
            select(PricingSettings)
            .where(PricingSettings.id == SETTINGS_ROW_ID)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_snapshot(self) -> SettingsSnapshot:
        """Settings for pricing, served from cache while fresh."""
        snapshot = self.cache.get()
        if snapshot is not None:
            return snapshot

        logger.debug("Settings cache miss, loading from database")
        generation = self.cache.generation
        row = await self.get_or_create()
        snapshot = SettingsSnapshot.from_model(row)
        if not self.cache.set(snapshot, generation):
            logger.info("Settings changed while loading; snapshot not cached")
        return snapshot

    async def update(self, data: Dict[str, Any]) -> PricingSettings:
        """Apply a partial update, validate the merged result, then invalidate the cache."""
        row = await self.get_or_create()

        merged = {name: Decimal(str(getattr(row, name))) for name in SETTINGS_FIELDS}
        merged.update({k: Decimal(str(v)) for k, v in data.items() if k in SETTINGS_FIELDS and v is not None})
        validate_tiers(merged)

        for name, value in merged.items():
            setattr(row, name, value)

        await self.db.commit()
        await self.db.refresh(row)
        self.cache.invalidate()

        logger.info(f"Pricing settings updated: {sorted(data.keys())}")
        return row
