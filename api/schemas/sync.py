"""
Sync Schemas
Pydantic models for the offline mutation queue endpoints
"""

from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict

from models import RecordType, SyncAction


class ConnectivityUpdate(BaseModel):
    online: bool


class SyncStatusResponse(BaseModel):
    online: bool
    syncing: bool
    last_sync_at: Optional[datetime] = None
    pending: int
    flagged: int

    model_config = ConfigDict(from_attributes=True)


class DrainResponse(BaseModel):
    applied: int
    failed: int
    held_back: int
    newly_flagged: int
    skipped: bool
    errors: List[str]

    model_config = ConfigDict(from_attributes=True)


class SyncItemResponse(BaseModel):
    id: str
    sequence: int
    record_type: RecordType
    record_id: str
    action: SyncAction
    payload: Optional[Dict[str, Any]] = None
    enqueued_at: Optional[datetime] = None
    synced: bool
    retry_count: int
    last_error: Optional[str] = None
    flagged: bool

    model_config = ConfigDict(from_attributes=True)
