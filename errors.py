"""
Domain exceptions for MedDrop
"""

from typing import Optional


class MedDropError(Exception):
    """Base class for all engine errors"""


class MalformedScheduleError(MedDropError):
    """A schedule entry's clock time cannot be parsed"""

    def __init__(self, raw_time, medicine_id: Optional[str] = None):
        self.raw_time = raw_time
        self.medicine_id = medicine_id
        where = f" for medicine {medicine_id}" if medicine_id else ""
        super().__init__(f"Malformed schedule time {raw_time!r}{where}")


class RecordNotFoundError(MedDropError):
    """A referenced record has no backing document"""

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection}/{record_id} not found")


class ConnectivityError(MedDropError):
    """The remote store could not be reached"""


class SyncApplyError(MedDropError):
    """
    Applying a queued mutation to the remote store failed.

    permanent=True means the remote rejected the payload itself; retrying
    will not help but the item is still kept.
    """

    def __init__(self, reason: str, item_id: Optional[str] = None, permanent: bool = False):
        self.reason = reason
        self.item_id = item_id
        self.permanent = permanent
        super().__init__(reason)
