from .models import UsageStats, UsageSummary
from .recorder import UsageAccumulator, get_accumulator, get_usage_stats, record_usage, reset_usage

__all__ = [
    "UsageStats",
    "UsageSummary",
    "UsageAccumulator",
    "get_accumulator",
    "record_usage",
    "get_usage_stats",
    "reset_usage",
]
