"""Configuration for the instance lifecycle."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class InstanceSettings(BaseSettings):
    """Instance lifecycle settings."""

    # Bounds on the authoritative read/write and on each side-effect hook
    persistence_timeout_seconds: float = 5.0
    side_effect_timeout_seconds: float = 10.0

    # Schedule side effects as tasks instead of awaiting them
    dispatch_side_effects_in_background: bool = False

    # Auto-archive sweep for completed instances
    auto_archive_enabled: bool = True
    auto_archive_after_days: int = 7
    auto_archive_batch_size: int = 100
    auto_archive_interval_seconds: int = 3600

    notification_type: str = "general"
    notification_priority: str = "normal"

    class Config:
        env_file = ".env"
        env_prefix = "INSTANCE_"


# Presentation data for admin tables and status badges
STATUS_DISPLAY: dict[str, dict[str, str]] = {
    "draft": {"label": "Waiting for Signups", "color": "bg-muted text-muted-foreground"},
    "recruiting": {"label": "Recruiting", "color": "bg-blue-500/20 text-blue-700"},
    "locked": {"label": "Cliques Formed", "color": "bg-amber-500/20 text-amber-700"},
    "live": {"label": "In Progress", "color": "bg-green-500/20 text-green-700"},
    "paused": {"label": "Paused", "color": "bg-orange-500/20 text-orange-700"},
    "completed": {"label": "Completed", "color": "bg-purple-500/20 text-purple-700"},
    "cancelled": {"label": "Cancelled", "color": "bg-destructive/20 text-destructive"},
    "archived": {"label": "Archived", "color": "bg-muted text-muted-foreground"},
}


# Participant notification copy per target status.
# ``fallback`` replaces the reason when none was given.
NOTIFICATION_TEMPLATES: dict[str, dict[str, str]] = {
    "paused": {
        "title": "Quest Paused: {title}",
        "body": "The quest has been temporarily paused. {reason}",
        "fallback": "We'll update you when it resumes.",
    },
    "cancelled": {
        "title": "Quest Cancelled: {title}",
        "body": "Unfortunately, this quest has been cancelled. {reason}",
        "fallback": "We apologize for any inconvenience.",
    },
}


@lru_cache
def get_instance_settings() -> InstanceSettings:
    """Get cached instance settings."""
    return InstanceSettings()
