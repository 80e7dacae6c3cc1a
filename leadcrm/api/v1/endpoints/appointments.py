from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from leadcrm.api.deps import get_appointment_scheduler, get_current_actor
from leadcrm.schemas.appointment import (
    AppointmentCreate,
    AppointmentOut,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    TimeslotOut,
)
from leadcrm.schemas.common import ActionResult, PartyKind
from leadcrm.services.appointment_scheduler import AppointmentScheduler

router = APIRouter(prefix="/appointments", tags=["Appointments"])


@router.get("/timeslots", response_model=List[TimeslotOut])
async def list_timeslots(
    day: date = Query(..., alias="date", description="Business-clock date"),
    scheduler: AppointmentScheduler = Depends(get_appointment_scheduler),
) -> List[TimeslotOut]:
    """Enabled timeslots of a day, each flagged with ``available``."""
    return await scheduler.available_timeslots(day)


@router.post(
    "/{kind}",
    response_model=AppointmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_appointment(
    kind: PartyKind,
    body: AppointmentCreate,
    scheduler: AppointmentScheduler = Depends(get_appointment_scheduler),
    actor: str = Depends(get_current_actor),
) -> AppointmentOut:
    appointment = await scheduler.create(
        party_id=body.party_id,
        agent_id=body.agent_id,
        timeslot_ids=body.timeslot_ids,
        start_datetime=body.start_datetime,
        end_datetime=body.end_datetime,
        loan_status=body.loan_status,
        notes=body.notes,
        actor=actor,
    )
    return await scheduler.to_out(appointment)


@router.get("/{kind}/party/{party_id}/active", response_model=Optional[AppointmentOut])
async def get_active_appointment(
    kind: PartyKind,
    party_id: int,
    scheduler: AppointmentScheduler = Depends(get_appointment_scheduler),
) -> Optional[AppointmentOut]:
    """The person's upcoming appointment, or ``null``."""
    appointment = await scheduler.check_existing(party_id)
    if appointment is None:
        return None
    return await scheduler.to_out(appointment)


@router.get("/{kind}/{appointment_id}", response_model=AppointmentOut)
async def get_appointment(
    kind: PartyKind,
    appointment_id: int,
    scheduler: AppointmentScheduler = Depends(get_appointment_scheduler),
) -> AppointmentOut:
    return await scheduler.to_out(await scheduler.get(appointment_id))


@router.patch("/{kind}/{appointment_id}", response_model=ActionResult)
async def update_appointment(
    kind: PartyKind,
    appointment_id: int,
    body: AppointmentUpdate,
    scheduler: AppointmentScheduler = Depends(get_appointment_scheduler),
    actor: str = Depends(get_current_actor),
) -> ActionResult:
    """Partial update; the response lists each ``field: old → new`` change."""
    fields = body.model_dump(exclude_unset=True, exclude_none=True, exclude={"timeslot_ids"})
    appointment, changes = await scheduler.update(
        appointment_id,
        fields,
        timeslot_ids=body.timeslot_ids,
        actor=actor,
    )
    out = await scheduler.to_out(appointment)
    return ActionResult(
        success=True,
        message="Appointment updated" if changes else "No changes",
        data={"appointment": out.model_dump(mode="json"), "changes": changes},
    )


@router.delete("/{kind}/{appointment_id}", response_model=ActionResult)
async def delete_appointment(
    kind: PartyKind,
    appointment_id: int,
    scheduler: AppointmentScheduler = Depends(get_appointment_scheduler),
    actor: str = Depends(get_current_actor),
) -> ActionResult:
    released = await scheduler.delete(appointment_id, actor=actor)
    return ActionResult(
        success=True,
        message="Appointment deleted",
        data={"appointment_id": appointment_id, "released_timeslot_ids": released},
    )


@router.post("/{kind}/{appointment_id}/status", response_model=AppointmentOut)
async def update_appointment_status(
    kind: PartyKind,
    appointment_id: int,
    body: AppointmentStatusUpdate,
    scheduler: AppointmentScheduler = Depends(get_appointment_scheduler),
    actor: str = Depends(get_current_actor),
) -> AppointmentOut:
    appointment = await scheduler.update_status(
        appointment_id, body.status, notes=body.notes, actor=actor
    )
    return await scheduler.to_out(appointment)


@router.post("/{kind}/{appointment_id}/cancel", response_model=AppointmentOut)
async def cancel_appointment(
    kind: PartyKind,
    appointment_id: int,
    scheduler: AppointmentScheduler = Depends(get_appointment_scheduler),
    actor: str = Depends(get_current_actor),
) -> AppointmentOut:
    """Cancel, give the seats back and return the person to ``assigned``."""
    appointment = await scheduler.cancel(appointment_id, actor=actor)
    return await scheduler.to_out(appointment)
