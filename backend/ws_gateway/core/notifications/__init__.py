"""
Notification fan-out: resolve subscribers, record deliveries, push to
live sessions.
"""

from ws_gateway.core.notifications.resolver import (
    Publisher,
    PublisherDirectory,
    SubscriberResolver,
    SqlPublisherDirectory,
    SqlSubscriberResolver,
)
from ws_gateway.core.notifications.recorder import (
    DeliveryRecorder,
    NotificationStore,
    RecordOutcome,
    RecordStatus,
    SqlNotificationStore,
)
from ws_gateway.core.notifications.dispatcher import DispatchResult, PushDispatcher
from ws_gateway.core.notifications.pipeline import NotificationPipeline, PipelineResult

__all__ = [
    "Publisher",
    "PublisherDirectory",
    "SubscriberResolver",
    "SqlPublisherDirectory",
    "SqlSubscriberResolver",
    "DeliveryRecorder",
    "NotificationStore",
    "RecordOutcome",
    "RecordStatus",
    "SqlNotificationStore",
    "DispatchResult",
    "PushDispatcher",
    "NotificationPipeline",
    "PipelineResult",
]
