"""Submission of generated occurrences to the appointment-creation endpoint.

Each occurrence becomes one create request. Failures are counted and logged;
they are not retried and do not stop the remaining occurrences. There is no
rollback of occurrences that were already created.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Sequence

import httpx

from . import client, config
from .dates import format_instant
from .errors import MaidsFlowError
from .models import (
    AppointmentBasic,
    AppointmentCreate,
    AppointmentTemplate,
    Occurrence,
    OccurrenceOutcome,
    SeriesResult,
)

logger = logging.getLogger(__name__)

CreateFn = Callable[[AppointmentCreate], Awaitable["AppointmentBasic | None"]]


def build_payload(template: AppointmentTemplate, occurrence: Occurrence) -> AppointmentCreate:
    return AppointmentCreate(
        **template.model_dump(),
        start=format_instant(occurrence.start),
        end=format_instant(occurrence.end),
    )


async def iter_submissions(
    template: AppointmentTemplate,
    occurrences: Sequence[Occurrence],
    create: CreateFn | None = None,
    concurrency: int | None = None,
) -> AsyncIterator[OccurrenceOutcome]:
    """Submit every occurrence, yielding outcomes in occurrence order.

    With ``concurrency=1`` each create is awaited before the next is issued.
    Larger values keep at most that many requests in flight.
    """
    create = create or client.create_appointment
    limit = max(1, concurrency or config.SERIES_CONCURRENCY)
    sem = asyncio.Semaphore(limit)
    total = len(occurrences)

    async def submit(index: int, occurrence: Occurrence) -> OccurrenceOutcome:
        async with sem:
            try:
                created = await create(build_payload(template, occurrence))
            except (httpx.HTTPError, MaidsFlowError) as exc:
                logger.error("Error creating recurring appointment %d/%d: %s", index + 1, total, exc)
                return OccurrenceOutcome(index=index, occurrence=occurrence, error=str(exc))
        return OccurrenceOutcome(
            index=index,
            occurrence=occurrence,
            appointment_id=created.id if created is not None else None,
        )

    if limit == 1:
        for index, occurrence in enumerate(occurrences):
            yield await submit(index, occurrence)
        return

    tasks = [asyncio.create_task(submit(i, occ)) for i, occ in enumerate(occurrences)]
    try:
        for task in tasks:
            yield await task
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def submit_series(
    template: AppointmentTemplate,
    occurrences: Sequence[Occurrence],
    create: CreateFn | None = None,
    concurrency: int | None = None,
) -> SeriesResult:
    """Create every occurrence and report how many succeeded."""
    logger.info("Creating %d recurring appointments", len(occurrences))
    created = 0
    failures: list[OccurrenceOutcome] = []
    async for outcome in iter_submissions(template, occurrences, create, concurrency):
        if outcome.ok:
            created += 1
        else:
            failures.append(outcome)

    result = SeriesResult(requested=len(occurrences), created=created, failures=failures)
    logger.info(result.summary)
    return result
