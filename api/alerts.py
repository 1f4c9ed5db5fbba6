"""
Alerts API Router
Trigger points for the periodic risk sweep and the stored alert records
"""

from typing import Any, Dict, List
from datetime import datetime
from fastapi import APIRouter, Depends

from api.deps import ServiceContainer, get_now, get_services
from config import Collections
from tools.record_store import where


router = APIRouter(tags=["alerts"])


@router.post("/alerts/sweep")
async def run_risk_sweep(
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
) -> Dict[str, Any]:
    """
    Run the risk sweep for every patient

    Safe to call repeatedly: alerts already raised today are not raised again.
    """
    report = await services.risk_sweep.run(now)
    return report.to_dict()


@router.post("/alerts/weekly-summary")
async def run_weekly_summary(
    services: ServiceContainer = Depends(get_services),
    now: datetime = Depends(get_now)
) -> Dict[str, Any]:
    report = await services.risk_sweep.run_weekly_summary(now)
    return report.to_dict()


@router.get("/patients/{patient_id}/alerts")
async def list_patient_alerts(
    patient_id: str,
    services: ServiceContainer = Depends(get_services)
) -> List[Dict[str, Any]]:
    """Alerts raised for a patient, newest first"""
    return await services.local_store.query(
        Collections.ALERTS,
        [where("patient_id", "==", patient_id)],
        order_by="created_at",
        descending=True
    )
