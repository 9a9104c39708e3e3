"""Async MaidsFlow API client focused on appointment creation.
Assumes a pre-issued bearer token.
"""
from __future__ import annotations
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from . import config
from .errors import MaidsFlowAPIError
from .models import AppointmentBasic, AppointmentCreate, RecurrencePayload

logger = logging.getLogger(__name__)


def _headers() -> dict[str, str]:
    headers = {"Content-Type": "application/json", "accept": "*/*"}
    if config.API_TOKEN:
        headers["Authorization"] = f"Bearer {config.API_TOKEN}"
    return headers


async def _request(method: str, endpoint: str, **kwargs: Any) -> Any:
    """Issue one request; returns decoded JSON or None for non-JSON bodies."""
    endpoint = endpoint if endpoint.startswith("/") else f"/{endpoint}"
    url = f"{config.BASE_URL}{endpoint}"
    logger.debug("%s %s", method, url)
    async with httpx.AsyncClient(http2=True, timeout=config.TIMEOUT) as client:
        resp = await client.request(method, url, headers=_headers(), **kwargs)

    if resp.is_error:
        logger.error("API Error: %s - %s", resp.status_code, resp.text)
        raise MaidsFlowAPIError(resp.status_code, resp.text)
    if "application/json" in resp.headers.get("content-type", ""):
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("Malformed JSON from %s: %s", url, resp.text)
            raise MaidsFlowAPIError(resp.status_code, resp.text) from exc
    return None


def _appointment(payload: dict[str, Any], fallback_id: int | str | None = None) -> AppointmentBasic:
    if not isinstance(payload, dict):
        raise MaidsFlowAPIError(502, f"Unexpected appointment body: {payload!r}")
    data = dict(payload)
    data.setdefault("id", fallback_id)
    try:
        return AppointmentBasic.model_validate(data)
    except ValidationError as exc:
        raise MaidsFlowAPIError(502, str(exc)) from exc


async def create_appointment(payload: AppointmentCreate, company_id: int | None = None) -> AppointmentBasic | None:
    """POST one appointment, company-scoped when ``company_id`` is given."""
    endpoint = f"/Company/{company_id}/Appointment" if company_id else "/Appointment"
    body = payload.model_dump(by_alias=True, mode="json")
    data = await _request("POST", endpoint, json=body)
    if not isinstance(data, dict) or data.get("id") is None:
        return None
    return _appointment(data)


async def fetch_appointment(appt_id: int | str) -> AppointmentBasic:
    """Fetch appointment details by ID."""
    data = await _request("GET", f"/Appointment/{appt_id}")
    return _appointment(data or {}, appt_id)


async def list_appointments(company_id: int, page_size: int = 100, **filters: Any) -> list[AppointmentBasic]:
    """Return a company's appointments; the backend may wrap them in ``results``."""
    params = {"CompanyId": company_id, "PageSize": page_size, **filters}
    data = await _request("GET", "/Appointment", params=params)
    if isinstance(data, dict):
        data = data.get("results", [])
    return [_appointment(item) for item in data or []]


async def create_recurrence(payload: RecurrencePayload) -> Any:
    """Register the backend-side recurrence record."""
    return await _request("POST", "/Recurrence", json=payload.model_dump(by_alias=True, mode="json"))
