"""Days-left arithmetic and threshold checks."""
import enum
from dataclasses import dataclass
from datetime import datetime, timezone


SECRET_EXPIRY_THRESHOLD_DAYS = 10


class Severity(enum.Enum):
    EXPIRING = "expiring"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Evaluation:
    resource: object
    days_left: int
    threshold: int
    breach: bool
    severity: Severity


def parse_timestamp(value):
    """Return an aware UTC datetime from an ISO 8601 string or a datetime."""
    if isinstance(value, datetime):
        expiry = value
    else:
        expiry = datetime.fromisoformat(value.replace("Z", "+00:00") if value.endswith("Z") else value)

    if expiry.tzinfo is None:
        return expiry.replace(tzinfo=timezone.utc)
    return expiry.astimezone(timezone.utc)


def days_left(expiration, now=None):
    """Whole days until expiration, rounded down. Negative once expired."""
    if now is None:
        now = datetime.now(timezone.utc)
    return (parse_timestamp(expiration) - parse_timestamp(now)).days


def is_breach(days, threshold):
    return days <= threshold


def severity(days):
    if days < 0:
        return Severity.EXPIRED
    return Severity.EXPIRING


def evaluate(resource, threshold, now=None):
    days = days_left(resource.expires_at, now)
    return Evaluation(
        resource=resource,
        days_left=days,
        threshold=threshold,
        breach=is_breach(days, threshold),
        severity=severity(days),
    )
