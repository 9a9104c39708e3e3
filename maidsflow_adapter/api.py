from fastapi import FastAPI, HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from pydantic import BaseModel

from . import client, config
from .dates import Convention, format_instant, parse_time_of_day, resolve_calendar_date
from .errors import MaidsFlowAPIError, MaidsFlowError
from .models import AppointmentBasic, AppointmentTemplate, Occurrence, SeriesResult
from .recurrence import (
    build_rule,
    compose_occurrence,
    generate_occurrences,
    recurrence_payload,
    validate_first_occurrence,
)
from .series import build_payload, submit_series


class SingleAppointmentRequest(BaseModel):
    appointment: AppointmentTemplate
    date: str  # YYYY-MM-DD, DD/MM/YYYY or MM/DD/YYYY
    start_time: str
    end_time: str
    convention: Optional[Convention] = None


class RecurringAppointmentRequest(SingleAppointmentRequest):
    frequency: str = "weekly"
    repeat_until: Optional[str] = None  # date or "forever"
    count: Optional[int] = None
    concurrency: Optional[int] = None


# HTTPBearer scheme so Swagger-UI can attach the Authorization header globally
auth_scheme = HTTPBearer(auto_error=False)

app = FastAPI(title="MaidsFlow Adapter Service")


def verify_api_key(credentials: HTTPAuthorizationCredentials = Depends(auth_scheme)):
    """Validate Bearer token provided via Authorization header"""
    if credentials is None or credentials.scheme.lower() != "bearer" or credentials.credentials != config.ADAPTER_API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")


def _expand(req: RecurringAppointmentRequest) -> list[Occurrence]:
    try:
        rule = build_rule(req.frequency, req.date, req.start_time, req.end_time, req.repeat_until, req.count)
        occurrences = generate_occurrences(rule, req.convention)
        validate_first_occurrence(occurrences)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return occurrences


def _backend_error(exc: MaidsFlowAPIError) -> HTTPException:
    if exc.status_code == 404:
        return HTTPException(status_code=404, detail="No appointment found")
    return HTTPException(status_code=502, detail=str(exc))


# Recurring appointments -------------------------------------------------

@app.post("/appointments/recurring/preview", dependencies=[Depends(verify_api_key)], response_model=list[Occurrence])
async def preview_recurring(req: RecurringAppointmentRequest):
    """Return the occurrences a recurring request would create, without creating them."""
    return _expand(req)


@app.post("/appointments/recurring", dependencies=[Depends(verify_api_key)], response_model=SeriesResult, status_code=201)
async def create_recurring(req: RecurringAppointmentRequest):
    """Create one appointment per occurrence and report the aggregate outcome."""
    occurrences = _expand(req)
    # Short-circuit in OFFLINE_MODE – every occurrence counts as created
    if config.offline_mode():
        return SeriesResult(requested=len(occurrences), created=len(occurrences))
    return await submit_series(req.appointment, occurrences, concurrency=req.concurrency)


@app.post("/recurrences", dependencies=[Depends(verify_api_key)], status_code=201)
async def create_backend_recurrence(req: RecurringAppointmentRequest):
    """Register the series as a backend recurrence record instead of expanding it here."""
    try:
        rule = build_rule(req.frequency, req.date, req.start_time, req.end_time, req.repeat_until, req.count)
        payload = recurrence_payload(rule, req.appointment, req.convention)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    if config.offline_mode():
        return {"message": "created", "recurrence": payload.model_dump(by_alias=True)}
    try:
        created = await client.create_recurrence(payload)
    except MaidsFlowAPIError as exc:
        raise _backend_error(exc)
    return {"message": "created", "recurrence": created}


# Single appointments ----------------------------------------------------

@app.post("/appointments", dependencies=[Depends(verify_api_key)], status_code=201)
async def create_single(req: SingleAppointmentRequest):
    """Create one appointment using the same time convention as recurring series."""
    try:
        occurrence = compose_occurrence(
            resolve_calendar_date(req.date),
            parse_time_of_day(req.start_time),
            parse_time_of_day(req.end_time),
            req.convention,
        )
        validate_first_occurrence([occurrence])
    except MaidsFlowError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    if config.offline_mode():
        return {"id": "offline-demo", "start": format_instant(occurrence.start), "end": format_instant(occurrence.end)}
    try:
        created = await client.create_appointment(build_payload(req.appointment, occurrence))
    except MaidsFlowAPIError as exc:
        raise _backend_error(exc)
    return created.model_dump() if created else {"message": "created"}


@app.get("/appointment/{appt_id}", dependencies=[Depends(verify_api_key)], response_model=AppointmentBasic)
async def get_appointment(appt_id: str):
    """Return appointment details from the backend."""
    try:
        return await client.fetch_appointment(appt_id)
    except MaidsFlowAPIError as exc:
        raise _backend_error(exc)
