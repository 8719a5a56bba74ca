"""
In-memory stand-ins for the store protocols, plus builders for ORM rows.

The ORM objects are plain transient instances: column defaults only apply
on flush, so the builders fill every column the schemas read.
"""

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass
from typing import Any

from romapi.auth.hashing import display_prefix, generate_api_key
from romapi.core.errors import StoreUnavailable
from romapi.models.api_key import APIKey
from romapi.models.business import Business
from romapi.models.category import Category
from romapi.models.enums import ApiPlan, BusinessPlan, BusinessStatus, UserRole
from romapi.models.ingestion_log import IngestionLog
from romapi.models.user import User
from romapi.schemas.business import BusinessQuerySpec
from romapi.services.admission import AdmissionController
from romapi.services.api_keys import PLAN_LIMITS, ApiKeyService
from romapi.services.businesses import BusinessService
from romapi.services.container import Services
from romapi.services.daily_stats import DailyStats
from romapi.services.geo import bounding_box
from romapi.services.invalidation import CacheInvalidator
from romapi.services.query_cache import BusinessQueryCache
from romapi.services.rate_limiter import FixedWindowRateLimiter

EPOCH = datetime.datetime(2026, 3, 2, 10, 15, tzinfo=datetime.timezone.utc)


class FakeClock:
    def __init__(self, start: datetime.datetime = EPOCH) -> None:
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += datetime.timedelta(seconds=seconds)


# ── Counter / cache store ───────────────────────────────────
class InMemoryStore:
    """CounterStore + CacheStore with expiry driven by a FakeClock."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock or FakeClock()
        self.failing = False
        self._values: dict[str, Any] = {}
        self._expires: dict[str, datetime.datetime] = {}

    def _check(self) -> None:
        if self.failing:
            raise StoreUnavailable("in-memory store marked as failing")

    def _live(self, key: str) -> Any:
        deadline = self._expires.get(key)
        if deadline is not None and self.clock() >= deadline:
            self._values.pop(key, None)
            self._expires.pop(key, None)
        return self._values.get(key)

    def keys(self) -> list[str]:
        return [key for key in list(self._values) if self._live(key) is not None]

    def ttl(self, key: str) -> float | None:
        deadline = self._expires.get(key)
        if deadline is None:
            return None
        return (deadline - self.clock()).total_seconds()

    # counters
    async def get(self, key: str) -> int | None:
        self._check()
        value = self._live(key)
        return None if value is None else int(value)

    async def increment(self, key: str) -> int:
        self._check()
        value = int(self._live(key) or 0) + 1
        self._values[key] = value
        return value

    async def expire(self, key: str, seconds: int) -> None:
        self._check()
        if self._live(key) is not None:
            self._expires[key] = self.clock() + datetime.timedelta(seconds=seconds)

    # cache values
    async def get_value(self, key: str) -> str | None:
        self._check()
        return self._live(key)

    async def set_value(self, key: str, value: str, ttl_seconds: int) -> None:
        self._check()
        self._values[key] = value
        self._expires[key] = self.clock() + datetime.timedelta(seconds=ttl_seconds)

    # shared
    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self._live(key) is not None:
                removed += 1
            self._values.pop(key, None)
            self._expires.pop(key, None)
        return removed

    async def keys_matching(self, prefix: str) -> list[str]:
        self._check()
        return [key for key in self.keys() if key.startswith(prefix)]


# ── Builders ────────────────────────────────────────────────
def make_user(role: UserRole = UserRole.USER, **overrides: Any) -> User:
    fields: dict[str, Any] = {
        "id": uuid.uuid4(),
        "email": f"{uuid.uuid4().hex[:8]}@example.cm",
        "name": "Test User",
        "role": role.value,
        "created_at": EPOCH,
    }
    fields.update(overrides)
    return User(**fields)


def make_category(name: str = "Restaurants", slug: str = "restaurants") -> Category:
    return Category(id=uuid.uuid4(), name=name, slug=slug, created_at=EPOCH)


def make_business(category: Category, owner: User, **overrides: Any) -> Business:
    fields: dict[str, Any] = {
        "id": uuid.uuid4(),
        "name": "Chez Wou",
        "slug": f"chez-wou-{uuid.uuid4().hex[:6]}",
        "category_id": category.id,
        "owner_id": owner.id,
        "status": BusinessStatus.ACTIVE.value,
        "plan": BusinessPlan.FREE.value,
        "featured": False,
        "view_count": 0,
        "click_count": 0,
        "created_at": EPOCH,
        "updated_at": EPOCH,
    }
    fields.update(overrides)
    business = Business(**fields)
    business.category = category
    return business


# ── Key registry ────────────────────────────────────────────
class InMemoryKeyRegistry:
    def __init__(self) -> None:
        self.keys: dict[uuid.UUID, APIKey] = {}
        self.users: dict[uuid.UUID, User] = {}
        self.lookups = 0

    def issue(
        self,
        user: User,
        *,
        rate_limit: int | None = None,
        plan: ApiPlan = ApiPlan.FREE,
        **overrides: Any,
    ) -> tuple[APIKey, str]:
        """Seed a key directly; returns (row, raw_key)."""
        raw_key, key_hash = generate_api_key()
        limits = PLAN_LIMITS[plan]
        self.users[user.id] = user
        fields: dict[str, Any] = {
            "id": uuid.uuid4(),
            "user_id": user.id,
            "name": "test key",
            "key_hash": key_hash,
            "prefix": display_prefix(raw_key),
            "plan": plan.value,
            "is_active": True,
            "expires_at": None,
            "rate_limit": rate_limit or limits.rate_limit,
            "quota_limit": limits.quota_limit,
            "usage_count": 0,
            "last_used_at": None,
            "created_at": EPOCH,
        }
        fields.update(overrides)
        api_key = APIKey(**fields)
        api_key.user = user
        self.keys[api_key.id] = api_key
        return api_key, raw_key

    async def find_by_hash(self, key_hash: str) -> APIKey | None:
        self.lookups += 1
        matches = [key for key in self.keys.values() if key.key_hash == key_hash]
        return matches[0] if len(matches) == 1 else None

    async def find_by_id(self, key_id: uuid.UUID) -> APIKey | None:
        return self.keys.get(key_id)

    async def list_for_user(self, user_id: uuid.UUID) -> list[APIKey]:
        return [key for key in self.keys.values() if key.user_id == user_id]

    async def create(self, **data: Any) -> APIKey:
        api_key = APIKey(
            id=uuid.uuid4(),
            is_active=True,
            usage_count=0,
            last_used_at=None,
            created_at=EPOCH,
            **data,
        )
        if data["user_id"] in self.users:
            api_key.user = self.users[data["user_id"]]
        self.keys[api_key.id] = api_key
        return api_key

    async def update_usage(
        self,
        key_id: uuid.UUID,
        *,
        last_used_at: datetime.datetime,
        usage_increment: int = 1,
    ) -> None:
        api_key = self.keys[key_id]
        api_key.usage_count += usage_increment
        api_key.last_used_at = last_used_at

    async def set_active(self, key_id: uuid.UUID, active: bool) -> bool:
        api_key = self.keys.get(key_id)
        if api_key is None:
            return False
        api_key.is_active = active
        return True


# ── Business + ingestion store ──────────────────────────────
def _matches(business: Business, spec: BusinessQuerySpec) -> bool:
    if spec.search:
        needle = spec.search.lower()
        haystack = f"{business.name} {business.description or ''}".lower()
        if needle not in haystack:
            return False
    if spec.category and spec.category not in (str(business.category_id), business.category.slug):
        return False
    if spec.city and spec.city.lower() not in (business.city or "").lower():
        return False
    if spec.region and spec.region.lower() not in (business.region or "").lower():
        return False
    if spec.status is not None and business.status != spec.status.value:
        return False
    if spec.plan is not None and business.plan != spec.plan.value:
        return False
    if spec.featured is not None and business.featured is not spec.featured:
        return False
    origin = spec.geo_origin
    box = bounding_box(origin) if origin is not None else None
    if box is not None:
        if business.latitude is None or business.longitude is None:
            return False
        if not box.contains(business.latitude, business.longitude):
            return False
    return True


class InMemoryBusinessStore:
    """BusinessStore + IngestionStore."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock or FakeClock()
        self.businesses: dict[uuid.UUID, Business] = {}
        self.categories: dict[uuid.UUID, Category] = {}
        self.users: dict[uuid.UUID, User] = {}
        self.logs: dict[uuid.UUID, IngestionLog] = {}
        self.find_many_calls = 0
        self.find_by_id_calls = 0

    def add(self, *rows: Business | Category | User) -> None:
        for row in rows:
            if isinstance(row, Business):
                self.businesses[row.id] = row
            elif isinstance(row, Category):
                self.categories[row.id] = row
            else:
                self.users[row.id] = row

    async def find_by_id(self, business_id: uuid.UUID) -> Business | None:
        self.find_by_id_calls += 1
        return self.businesses.get(business_id)

    async def find_many(
        self, spec: BusinessQuerySpec, *, paginate: bool = True
    ) -> tuple[list[Business], int]:
        self.find_many_calls += 1
        matched = [b for b in self.businesses.values() if _matches(b, spec)]
        column = spec.sort_by if spec.sort_by != "distance" else "created_at"
        order = spec.sort_order if spec.sort_by != "distance" else "desc"
        matched.sort(key=lambda b: str(b.id))
        matched.sort(key=lambda b: getattr(b, column), reverse=order == "desc")
        total = len(matched)
        if paginate:
            matched = matched[spec.offset:spec.offset + spec.limit]
        return matched, total

    async def create(self, data: dict[str, Any]) -> Business:
        category = self.categories[data["category_id"]]
        owner = self.users.get(data["owner_id"]) or make_user(id=data["owner_id"])
        fields = {"created_at": self.clock(), "updated_at": self.clock(), **data}
        business = make_business(category, owner, **fields)
        self.businesses[business.id] = business
        return business

    async def update(self, business_id: uuid.UUID, data: dict[str, Any]) -> Business | None:
        business = self.businesses.get(business_id)
        if business is None:
            return None
        for field, value in data.items():
            setattr(business, field, value)
        if "category_id" in data:
            business.category = self.categories[data["category_id"]]
        business.updated_at = self.clock()
        return business

    async def delete(self, business_id: uuid.UUID) -> bool:
        return self.businesses.pop(business_id, None) is not None

    async def increment_view_count(self, business_id: uuid.UUID) -> None:
        business = self.businesses.get(business_id)
        if business is not None:
            business.view_count += 1

    async def slug_taken(self, slug: str, *, exclude_id: uuid.UUID | None = None) -> bool:
        return any(
            b.slug == slug and b.id != exclude_id for b in self.businesses.values()
        )

    async def find_duplicate(
        self, *, name: str | None, email: str | None, phone: str | None
    ) -> Business | None:
        for business in self.businesses.values():
            if (
                (name and business.name == name)
                or (email and business.email == email)
                or (phone and business.phone == phone)
            ):
                return business
        return None

    async def get_category(self, category_id: uuid.UUID) -> Category | None:
        return self.categories.get(category_id)

    async def find_category(self, *, name: str, slug: str) -> Category | None:
        for category in self.categories.values():
            if name.lower() in category.name.lower() or category.slug == slug:
                return category
        return None

    async def create_category(self, *, name: str, slug: str) -> Category:
        category = make_category(name=name, slug=slug)
        self.categories[category.id] = category
        return category

    # ingestion
    async def start_log(self, *, source: str, raw_data: dict[str, Any]) -> IngestionLog:
        log = IngestionLog(
            id=uuid.uuid4(), source=source, raw_data=raw_data,
            status="PROCESSING", created_at=self.clock(),
        )
        self.logs[log.id] = log
        return log

    async def finish_log(
        self,
        log_id: uuid.UUID,
        *,
        status: str,
        business_id: uuid.UUID | None = None,
        processed: dict[str, Any] | None = None,
        errors: list[str] | None = None,
    ) -> None:
        log = self.logs[log_id]
        log.status = status
        log.business_id = business_id
        log.processed = processed
        log.errors = errors

    async def get_or_create_user(self, *, email: str, name: str, role: str) -> User:
        for user in self.users.values():
            if user.email == email:
                return user
        user = make_user(UserRole(role), email=email, name=name)
        self.users[user.id] = user
        return user


# ── Wiring ──────────────────────────────────────────────────
@dataclass
class Harness:
    clock: FakeClock
    store: InMemoryStore
    registry: InMemoryKeyRegistry
    records: InMemoryBusinessStore
    limiter: FixedWindowRateLimiter
    daily_stats: DailyStats
    query_cache: BusinessQueryCache
    invalidator: CacheInvalidator
    services: Services


def build_harness(*, fail_mode: str = "open") -> Harness:
    clock = FakeClock()
    store = InMemoryStore(clock)
    registry = InMemoryKeyRegistry()
    records = InMemoryBusinessStore(clock)

    limiter = FixedWindowRateLimiter(store, fail_mode=fail_mode, clock=clock)  # type: ignore[arg-type]
    daily_stats = DailyStats(store, clock=clock)
    query_cache = BusinessQueryCache(records, store, daily_stats)
    invalidator = CacheInvalidator(store)

    async def _ready() -> bool:
        return True

    services = Services(
        admission=AdmissionController(registry, limiter, clock=clock),
        api_keys=ApiKeyService(registry),
        businesses=BusinessService(records, records, query_cache, invalidator, daily_stats),
        readiness={"database": _ready, "redis": _ready},
    )
    return Harness(
        clock=clock,
        store=store,
        registry=registry,
        records=records,
        limiter=limiter,
        daily_stats=daily_stats,
        query_cache=query_cache,
        invalidator=invalidator,
        services=services,
    )
