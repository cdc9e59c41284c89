"""
Notifications Package

Sinks that deliver results and lifecycle changes to the presentation layer.
"""

from .sinks import BroadcastNotificationSink, CompositeNotificationSink, LoggingNotificationSink

__all__ = [
    "BroadcastNotificationSink",
    "CompositeNotificationSink",
    "LoggingNotificationSink",
]
