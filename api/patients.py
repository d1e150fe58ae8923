"""
Patients API Router
Caregiver endpoints for patient settings, dose logs, adherence and insights
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status

from actions.alert_engine import build_alerts
from actions.insights_engine import build_insights
from actions.schedule_model import PatientSchedule
from api.deps import get_adherence_service, get_patient_service
from api.schemas.patient import (
    AdherenceResponse,
    AlertList,
    AlertResponse,
    DeviceStatusUpdate,
    DoseLogCreate,
    DoseLogList,
    DoseLogResponse,
    InsightsResponse,
    PatientCreate,
    PatientList,
    PatientResponse,
    PatientUpdate,
)
from services.adherence_service import AdherenceService
from services.patient_service import PatientService


router = APIRouter(prefix="/patients", tags=["patients"])


def _to_response(schedule: PatientSchedule) -> PatientResponse:
    return PatientResponse.model_validate(schedule, from_attributes=True)


@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(
    patient_data: PatientCreate,
    response: Response,
    patients: PatientService = Depends(get_patient_service)
):
    """
    Create settings for a patient

    Dose times are left unset unless provided. If the patient already
    exists the stored settings are returned with 200.
    """
    fields = patient_data.model_dump(exclude={"patient_id"}, exclude_none=True)
    schedule, created = patients.create_patient(patient_data.patient_id, **fields)
    if not created:
        response.status_code = status.HTTP_200_OK
    return _to_response(schedule)


@router.get("", response_model=PatientList)
async def list_patients(
    caregiver_email: Optional[str] = Query(None, description="Filter by caregiver email"),
    caregiver_uid: Optional[str] = Query(None, description="Filter by caregiver account"),
    patients: PatientService = Depends(get_patient_service)
):
    """List the patients linked to a caregiver"""
    found = patients.list_for_caregiver(caregiver_email=caregiver_email, caregiver_uid=caregiver_uid)
    return PatientList(patients=[_to_response(s) for s in found], total=len(found))


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: str,
    patients: PatientService = Depends(get_patient_service)
):
    return _to_response(patients.get_patient(patient_id))


@router.patch("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: str,
    update_data: PatientUpdate,
    patients: PatientService = Depends(get_patient_service)
):
    """
    Update patient settings

    An explicit empty dose time clears it. Empty caregiver fields keep
    the stored values.
    """
    updates = update_data.model_dump(exclude_unset=True)
    return _to_response(patients.update_patient(patient_id, updates))


@router.put("/{patient_id}/device-status", response_model=PatientResponse)
async def set_device_status(
    patient_id: str,
    body: DeviceStatusUpdate,
    patients: PatientService = Depends(get_patient_service)
):
    return _to_response(patients.set_device_status(patient_id, body.status))


@router.post(
    "/{patient_id}/dose-logs",
    response_model=DoseLogResponse,
    status_code=status.HTTP_201_CREATED
)
async def log_dose(
    patient_id: str,
    log_data: DoseLogCreate,
    patients: PatientService = Depends(get_patient_service)
):
    """
    Record a dose event

    A taken dose removes one pill from that dose type's stock.
    """
    entry = patients.log_dose(
        patient_id,
        dose_type=log_data.dose_type,
        status=log_data.status,
        delay_seconds=log_data.delay_seconds,
        timestamp=log_data.timestamp,
    )
    return DoseLogResponse.model_validate(entry, from_attributes=True)


@router.get("/{patient_id}/dose-logs", response_model=DoseLogList)
async def get_dose_logs(
    patient_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    patients: PatientService = Depends(get_patient_service)
):
    logs = patients.get_dose_logs(patient_id, limit=limit)
    return DoseLogList(
        logs=[DoseLogResponse.model_validate(e, from_attributes=True) for e in logs],
        total=len(logs)
    )


@router.get("/{patient_id}/adherence", response_model=AdherenceResponse)
async def get_adherence(
    patient_id: str,
    period: str = Query("week", description="week, month or all"),
    adherence: AdherenceService = Depends(get_adherence_service),
    patients: PatientService = Depends(get_patient_service)
):
    schedule = patients.get_patient(patient_id)
    summary = adherence.get_adherence(schedule.patient_id, period)
    return AdherenceResponse(patient_id=schedule.patient_id, period=period, **summary.to_dict())


@router.get("/{patient_id}/insights", response_model=InsightsResponse)
async def get_insights(
    patient_id: str,
    adherence: AdherenceService = Depends(get_adherence_service),
    patients: PatientService = Depends(get_patient_service)
):
    """Behaviour heuristics over the full log, weighted by the last week"""
    schedule = patients.get_patient(patient_id)
    logs = patients.get_dose_logs(schedule.patient_id)
    week = adherence.get_adherence(schedule.patient_id, "week")
    return build_insights(schedule, logs, period=week)


@router.get("/{patient_id}/alerts", response_model=AlertList)
async def get_alerts(
    patient_id: str,
    patients: PatientService = Depends(get_patient_service)
):
    """Current dashboard alerts: low stock, offline device, misses in the last day"""
    schedule = patients.get_patient(patient_id)
    alerts = build_alerts(schedule, patients.get_dose_logs(schedule.patient_id))
    return AlertList(
        patient_id=schedule.patient_id,
        alerts=[AlertResponse(**alert.to_dict()) for alert in alerts],
        total=len(alerts)
    )
