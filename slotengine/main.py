"""FastAPI application exposing slot listing, booking and cancellation."""

from datetime import datetime
from typing import Callable, Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from slotengine.booking import ProviderLocks, SchedulingService
from slotengine.config import Settings, load_settings, setup_logging
from slotengine.errors import ERROR_STATUS, NotFound
from slotengine.lifecycle import CancellationService
from slotengine.repository import ScheduleRepository
from slotengine.schema import (
    Appointment,
    AvailabilityUpdate,
    BookingRequest,
    BookingResult,
    CancelDayRequest,
    CancelRequest,
    CancelResult,
    CandidateSlot,
    Provider,
    RescheduleRequest,
)
from slotengine.storage import JsonFileStore, KeyValueStore

router = APIRouter()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Build the app with its repository and services attached to app.state."""
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    repository = ScheduleRepository(store or JsonFileStore(settings.data_dir))

    application = FastAPI(title="Slot Engine", version="0.1.0")
    application.state.settings = settings
    application.state.repository = repository
    # Booking, rescheduling and cancelling share one lock per provider.
    locks = ProviderLocks()
    application.state.scheduling = SchedulingService(repository, settings, clock=clock, locks=locks)
    application.state.cancellation = CancellationService(
        repository, settings, clock=clock, locks=locks
    )
    application.include_router(router)
    return application


def _repository(request: Request) -> ScheduleRepository:
    return request.app.state.repository


def _scheduling(request: Request) -> SchedulingService:
    return request.app.state.scheduling


def _cancellation(request: Request) -> CancellationService:
    return request.app.state.cancellation


def _result_response(
    result: BookingResult | CancelResult,
    success_status: int = 200,
) -> JSONResponse:
    """Structured result with the HTTP status of its error (or success_status)."""
    status = success_status if result.success else ERROR_STATUS.get(result.error, 400)
    return JSONResponse(status_code=status, content=result.model_dump(mode="json"))


# --- Providers ---


@router.get("/providers", response_model=list[Provider])
def list_providers(request: Request, specialty: Optional[str] = None) -> list[Provider]:
    """All providers, optionally filtered by a specialty substring."""
    repository = _repository(request)
    if specialty:
        return repository.find_providers_by_specialty(specialty)
    return repository.list_providers()


@router.post("/providers", response_model=Provider, status_code=201)
def create_provider(request: Request, provider: Provider) -> Provider:
    repository = _repository(request)
    if repository.get_provider(provider.id) is not None:
        raise HTTPException(status_code=409, detail=f"Provider {provider.id} already exists")
    return repository.create_provider(provider)


@router.get("/providers/{provider_id}", response_model=Provider)
def get_provider(request: Request, provider_id: str) -> Provider:
    provider = _repository(request).get_provider(provider_id)
    if provider is None:
        raise HTTPException(status_code=404, detail=f"Provider {provider_id} not found")
    return provider


@router.put("/providers/{provider_id}/availability", response_model=Provider)
def set_availability(request: Request, provider_id: str, update: AvailabilityUpdate) -> Provider:
    """Replace the provider's whole availability list."""
    try:
        return _repository(request).set_availability(provider_id, update.rules)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/providers/{provider_id}/slots", response_model=list[CandidateSlot])
def list_slots(
    request: Request,
    provider_id: str,
    start: datetime,
    end: datetime,
    slot_minutes: Optional[int] = Query(default=None, gt=0),
) -> list[CandidateSlot]:
    """Bookable slots for provider in [start, end]."""
    try:
        return _scheduling(request).list_available_slots(provider_id, start, end, slot_minutes)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/providers/{provider_id}/next-slots", response_model=list[CandidateSlot])
def next_slots(
    request: Request,
    provider_id: str,
    count: Optional[int] = Query(default=None, ge=0),
    slot_minutes: Optional[int] = Query(default=None, gt=0),
) -> list[CandidateSlot]:
    try:
        return _scheduling(request).next_available_slots(provider_id, count, slot_minutes)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/providers/{provider_id}/cancel-day", response_model=list[CancelResult])
def cancel_day(request: Request, provider_id: str, body: CancelDayRequest) -> list[CancelResult]:
    """Cancel every active appointment of provider on body.date; one result per appointment."""
    if _repository(request).get_provider(provider_id) is None:
        raise HTTPException(status_code=404, detail=f"Provider {provider_id} not found")
    return _cancellation(request).cancel_all_for_provider_on_date(
        provider_id, body.date, body.reason
    )


# --- Appointments ---


@router.get("/appointments", response_model=list[Appointment])
def list_appointments(
    request: Request,
    provider_id: Optional[str] = None,
    owner: Optional[str] = None,
) -> list[Appointment]:
    repository = _repository(request)
    if owner:
        appointments = repository.appointments_for_owner(owner)
    else:
        appointments = repository.list_appointments()
    if provider_id:
        appointments = [a for a in appointments if a.provider_id == provider_id]
    return appointments


@router.get("/appointments/{appointment_id}", response_model=Appointment)
def get_appointment(request: Request, appointment_id: str) -> Appointment:
    appointment = _repository(request).get_appointment(appointment_id)
    if appointment is None:
        raise HTTPException(status_code=404, detail=f"Appointment {appointment_id} not found")
    return appointment


@router.post("/appointments", response_model=BookingResult, status_code=201)
def book(request: Request, body: BookingRequest) -> JSONResponse:
    """Book one slot; a stale or misaligned slot returns 409 with alternatives."""
    return _result_response(_scheduling(request).book(body), success_status=201)


@router.post("/appointments/batch", response_model=list[BookingResult])
def book_batch(request: Request, body: list[BookingRequest] = Body(...)) -> list[BookingResult]:
    return _scheduling(request).book_many(body)


@router.post("/appointments/{appointment_id}/reschedule", response_model=BookingResult)
def reschedule(request: Request, appointment_id: str, body: RescheduleRequest) -> JSONResponse:
    return _result_response(_scheduling(request).reschedule(appointment_id, body))


@router.post("/appointments/{appointment_id}/cancel", response_model=CancelResult)
def cancel(
    request: Request,
    appointment_id: str,
    body: Optional[CancelRequest] = None,
) -> JSONResponse:
    reason = body.reason if body else None
    return _result_response(_cancellation(request).cancel(appointment_id, reason))


@router.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


app = create_app()
