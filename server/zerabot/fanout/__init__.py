"""
zerabot.fanout — per-subscriber notification delivery.

Public API:
    NotificationFanout — resolve subscribers and deliver to each
    FanoutResult       — recipients / delivered / failed counts
"""
from .notifier import FanoutResult, FanoutStats, NotificationFanout

__all__ = ["FanoutResult", "FanoutStats", "NotificationFanout"]
