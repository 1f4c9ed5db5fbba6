"""
Patient Service
Patient write paths; every change goes through the offline mutation queue
"""

import logging
import uuid
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, replace
from datetime import datetime

from config import Collections
from models import RecordType, SyncAction
from services.sync_service import SyncService
from tools.record_store import where
from tools.records import PatientRecord


logger = logging.getLogger(__name__)


PATIENT_FIELDS = ("name", "phone", "language", "guardians")


@dataclass(frozen=True)
class CascadeResult:
    """What a patient delete removed"""
    patient_id: str
    medicines: int = 0
    adherence_logs: int = 0


class PatientService:
    """
    Service for patient records
    """

    def __init__(self, sync: SyncService, reminders=None):
        self.sync = sync
        self.store = sync.local
        self.reminders = reminders

    async def get_patient(self, patient_id: str) -> PatientRecord:
        """Raises RecordNotFoundError for an unknown id"""
        return PatientRecord.from_payload(await self.store.require(Collections.PATIENTS, patient_id))

    async def list_patients(self) -> List[PatientRecord]:
        documents = await self.store.query(Collections.PATIENTS, order_by="created_at")
        return [PatientRecord.from_payload(d) for d in documents]

    async def create_patient(
        self,
        name: str,
        phone: Optional[str] = None,
        language: str = "en",
        guardians: Optional[List[str]] = None,
        patient_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> PatientRecord:
        """
        Create a new patient

        Args:
            name: Display name
            phone: Contact number
            language: Preferred language code
            guardians: Linked guardian ids
            patient_id: Explicit id; generated when omitted
            now: Creation timestamp

        Returns:
            The stored patient
        """
        if not name or not name.strip():
            raise ValueError("Patient name is required")

        now = now or datetime.now()
        patient = PatientRecord(
            id=patient_id or f"pat_{uuid.uuid4().hex[:12]}",
            name=name.strip(),
            phone=phone,
            language=language or "en",
            guardians=list(guardians or []),
            created_at=now,
            updated_at=now
        )
        await self.sync.record_mutation(
            RecordType.PATIENT, SyncAction.CREATE, patient.id, patient.to_payload(), now=now
        )
        logger.info(f"Created patient {patient.id}")
        return patient

    async def update_patient(
        self,
        patient_id: str,
        changes: Dict[str, Any],
        now: Optional[datetime] = None
    ) -> PatientRecord:
        now = now or datetime.now()
        patient = await self.get_patient(patient_id)
        allowed = {k: v for k, v in changes.items() if k in PATIENT_FIELDS and v is not None}
        if "guardians" in allowed:
            allowed["guardians"] = list(allowed["guardians"])
        updated = replace(patient, updated_at=now, **allowed)

        await self.sync.record_mutation(
            RecordType.PATIENT, SyncAction.UPDATE, patient_id, updated.to_payload(), now=now
        )
        return updated

    async def delete_patient(self, patient_id: str, now: Optional[datetime] = None) -> CascadeResult:
        """
        Delete a patient with all of their medicines and adherence logs

        Each cascaded delete is queued as its own mutation so the remote
        store sees every record go.
        """
        now = now or datetime.now()
        await self.get_patient(patient_id)

        logs = await self.store.query(
            Collections.ADHERENCE_LOGS, [where("patient_id", "==", patient_id)]
        )
        for document in logs:
            await self.sync.record_mutation(
                RecordType.ADHERENCE, SyncAction.DELETE, document["id"], now=now
            )

        medicines = await self.store.query(
            Collections.MEDICINES, [where("patient_id", "==", patient_id)]
        )
        for document in medicines:
            await self.sync.record_mutation(
                RecordType.MEDICINE, SyncAction.DELETE, document["id"], now=now
            )

        await self.sync.record_mutation(RecordType.PATIENT, SyncAction.DELETE, patient_id, now=now)
        logger.info(
            f"Deleted patient {patient_id} with {len(medicines)} medicines and {len(logs)} logs"
        )

        if self.reminders is not None:
            await self.reminders.resync(patient_id, now)

        return CascadeResult(
            patient_id=patient_id,
            medicines=len(medicines),
            adherence_logs=len(logs)
        )
