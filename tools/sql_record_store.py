"""
SQL Record Store
Device-local durable store backed by the SQLAlchemy models.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Type
from datetime import datetime, date
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, JSON, asc, desc
from sqlalchemy.orm import sessionmaker

from config import Collections
from database import SessionLocal, get_db_context
import models
from tools.record_store import Filter, RecordStore
from tools.records import encode_payload


logger = logging.getLogger(__name__)


COLLECTION_MODELS: Dict[str, Type] = {
    Collections.PATIENTS: models.Patient,
    Collections.MEDICINES: models.Medicine,
    Collections.ADHERENCE_LOGS: models.AdherenceLog,
    Collections.SYNC_QUEUE: models.SyncQueueEntry,
    Collections.ALERTS: models.AlertRecord,
}


def _coerce(column, value: Any) -> Any:
    """Bring a payload value into the Python type the column expects"""
    if value is None:
        return None
    col_type = column.type
    if isinstance(col_type, DateTime):
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        return value
    if isinstance(col_type, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            return date.fromisoformat(value[:10])
        return value
    if isinstance(col_type, JSON):
        return encode_payload(value)
    if isinstance(col_type, Boolean):
        return bool(value)
    if isinstance(value, Enum):
        return value.value
    return value


class SqlRecordStore(RecordStore):
    """
    RecordStore over the local SQLite/PostgreSQL database

    Single-writer per device: every call opens its own short session and
    commits before returning.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory or SessionLocal

    def _session(self):
        return get_db_context(self._session_factory)

    def _model(self, collection: str):
        try:
            return COLLECTION_MODELS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}")

    @staticmethod
    def _to_dict(row) -> Dict[str, Any]:
        return {c.name: getattr(row, c.name) for c in row.__table__.columns}

    async def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        model = self._model(collection)
        with self._session() as session:
            row = session.get(model, record_id)
            return self._to_dict(row) if row is not None else None

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        model = self._model(collection)
        columns = model.__table__.columns

        with self._session() as session:
            query = session.query(model)
            for f in filters:
                if f.field not in columns:
                    raise ValueError(f"{collection} has no field {f.field}")
                column = getattr(model, f.field)
                value = _coerce(columns[f.field], f.value)
                query = query.filter(_apply(column, f.op, value))

            if order_by:
                column = getattr(model, order_by)
                query = query.order_by(desc(column) if descending else asc(column))
            if limit is not None:
                query = query.limit(limit)

            return [self._to_dict(row) for row in query.all()]

    async def upsert(self, collection: str, record_id: str, payload: Dict[str, Any]) -> None:
        model = self._model(collection)
        columns = model.__table__.columns

        values = {}
        for key, value in payload.items():
            if key not in columns:
                logger.debug(f"Ignoring unknown field {key} for {collection}")
                continue
            values[key] = _coerce(columns[key], value)
        values["id"] = record_id

        with self._session() as session:
            row = session.get(model, record_id)
            if row is None:
                session.add(model(**values))
            else:
                for key, value in values.items():
                    setattr(row, key, value)

    async def delete(self, collection: str, record_id: str) -> None:
        model = self._model(collection)
        with self._session() as session:
            row = session.get(model, record_id)
            if row is not None:
                session.delete(row)


def _apply(column, op: str, value: Any):
    if op == "==":
        return column == value
    if op == "!=":
        return column != value
    if op == "<":
        return column < value
    if op == "<=":
        return column <= value
    if op == ">":
        return column > value
    if op == ">=":
        return column >= value
    raise ValueError(f"Unsupported filter operator: {op}")
