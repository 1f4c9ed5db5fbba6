"""
Notification Sink
Boundary to the platform's local-notification subsystem.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


logger = logging.getLogger(__name__)


class NotificationPriority(str, Enum):
    """Notification priority levels"""
    HIGH = "high"
    NORMAL = "normal"


class NotificationState(str, Enum):
    """Lifecycle of one platform notification"""
    SCHEDULED = "scheduled"
    FIRED = "fired"
    CANCELLED = "cancelled"


class NotificationSink(ABC):
    """
    Local notification scheduler

    cancel() on an unknown, cancelled or already-fired handle is a no-op.
    """

    @abstractmethod
    def schedule(self, target_time: datetime, payload: Dict[str, Any]) -> str:
        """Schedule a notification and return its handle"""

    @abstractmethod
    def cancel(self, handle: str) -> None:
        """Cancel a pending notification"""

    @abstractmethod
    def cancel_all(self) -> None:
        """Cancel every pending notification"""


@dataclass
class ScheduledNotification:
    """A notification held by the in-process sink"""
    handle: str
    target_time: datetime
    payload: Dict[str, Any] = field(default_factory=dict)
    state: NotificationState = NotificationState.SCHEDULED
    fired_at: Optional[datetime] = None


class LocalNotificationSink(NotificationSink):
    """
    In-process notification scheduler

    Stands in for the device scheduler on servers and in tests. Delivery is
    driven externally through ``fire_due(now)``.
    """

    def __init__(self):
        self._notifications: Dict[str, ScheduledNotification] = {}

    def schedule(self, target_time: datetime, payload: Dict[str, Any]) -> str:
        handle = f"ntf_{uuid.uuid4().hex[:12]}"
        self._notifications[handle] = ScheduledNotification(
            handle=handle,
            target_time=target_time,
            payload=dict(payload)
        )
        logger.debug(f"Scheduled notification {handle} for {target_time.isoformat()}")
        return handle

    def cancel(self, handle: str) -> None:
        notification = self._notifications.get(handle)
        if notification is None or notification.state != NotificationState.SCHEDULED:
            return
        notification.state = NotificationState.CANCELLED
        logger.debug(f"Cancelled notification {handle}")

    def cancel_all(self) -> None:
        for notification in self._notifications.values():
            if notification.state == NotificationState.SCHEDULED:
                notification.state = NotificationState.CANCELLED

    def fire_due(self, now: datetime) -> List[ScheduledNotification]:
        """Deliver every scheduled notification whose target time has passed"""
        fired = []
        for notification in sorted(self._notifications.values(), key=lambda n: n.target_time):
            if notification.state == NotificationState.SCHEDULED and notification.target_time <= now:
                notification.state = NotificationState.FIRED
                notification.fired_at = now
                fired.append(notification)
                logger.info(f"Delivered notification {notification.handle}: {notification.payload.get('title')}")
        return fired

    def pending(self) -> List[ScheduledNotification]:
        """Scheduled notifications that have neither fired nor been cancelled"""
        return sorted(
            (n for n in self._notifications.values() if n.state == NotificationState.SCHEDULED),
            key=lambda n: n.target_time
        )

    def fired(self) -> List[ScheduledNotification]:
        return [n for n in self._notifications.values() if n.state == NotificationState.FIRED]

    def get(self, handle: str) -> Optional[ScheduledNotification]:
        return self._notifications.get(handle)
