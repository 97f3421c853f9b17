"""Gravity ranking for catalog services."""
from datetime import datetime, timezone

GRAVITY = 1.8


def calculate_gravity_score(points: float, created_at: datetime, gravity: float = GRAVITY) -> float:
    """Hacker-News style score: (points - 1) / (age_hours + 2) ** gravity."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    hours_age = (datetime.now(timezone.utc) - created_at).total_seconds() / 3600
    denominator = (max(hours_age, 0.0) + 2) ** gravity
    return (points - 1) / denominator
