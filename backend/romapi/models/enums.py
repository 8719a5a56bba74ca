"""
String enums shared by models, schemas, and services.

Stored as plain VARCHAR columns guarded by CHECK constraints (see the
models) so adding a value is a migration, not a Postgres ENUM ALTER.
"""

import enum


class ApiPlan(str, enum.Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class UserRole(str, enum.Enum):
    USER = "USER"
    BUSINESS = "BUSINESS"
    ADMIN = "ADMIN"


class BusinessStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    SUSPENDED = "SUSPENDED"


class BusinessPlan(str, enum.Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    PREMIUM = "PREMIUM"
    ENTERPRISE = "ENTERPRISE"


class IngestionStatus(str, enum.Enum):
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


def check_in(column: str, enum_cls: type[enum.Enum]) -> str:
    """Render `column IN ('A', 'B', ...)` for a CheckConstraint."""
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"
