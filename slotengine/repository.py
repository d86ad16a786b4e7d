"""Typed access to providers and appointments over a KeyValueStore."""

from __future__ import annotations

import logging
import threading
from datetime import datetime

from slotengine.errors import NotFound
from slotengine.schema import Appointment, AvailabilityRule, Provider
from slotengine.storage import APPOINTMENTS_KEY, PROVIDERS_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class ScheduleRepository:
    """
    Read-modify-write of whole collections.

    Every mutation holds one re-entrant lock for its load/save pair so two
    writers in this process cannot drop each other's changes.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self._lock = threading.RLock()

    # --- Providers ---

    def list_providers(self) -> list[Provider]:
        try:
            return [Provider.model_validate(p) for p in self.store.load(PROVIDERS_KEY)]
        except Exception:
            logger.error("Failed to load providers", exc_info=True)
            raise

    def _save_providers(self, providers: list[Provider]) -> None:
        self.store.save(PROVIDERS_KEY, [p.model_dump(mode="json") for p in providers])

    def get_provider(self, provider_id: str) -> Provider | None:
        return next((p for p in self.list_providers() if p.id == provider_id), None)

    def find_providers_by_specialty(self, specialty: str) -> list[Provider]:
        needle = specialty.lower()
        return [
            p for p in self.list_providers()
            if any(needle in s.lower() for s in p.specialties)
        ]

    def create_provider(self, provider: Provider) -> Provider:
        with self._lock:
            providers = self.list_providers()
            providers.append(provider)
            self._save_providers(providers)
        return provider

    def update_provider(self, provider: Provider) -> Provider:
        with self._lock:
            providers = self.list_providers()
            for i, existing in enumerate(providers):
                if existing.id == provider.id:
                    providers[i] = provider
                    break
            else:
                raise NotFound(f"Provider {provider.id} not found")
            self._save_providers(providers)
        return provider

    def set_availability(self, provider_id: str, rules: list[AvailabilityRule]) -> Provider:
        with self._lock:
            provider = self.get_provider(provider_id)
            if provider is None:
                raise NotFound(f"Provider {provider_id} not found")
            updated = provider.model_copy(update={"availability": list(rules)})
            return self.update_provider(updated)

    # --- Appointments ---

    def list_appointments(self) -> list[Appointment]:
        try:
            return [Appointment.model_validate(a) for a in self.store.load(APPOINTMENTS_KEY)]
        except Exception:
            logger.error("Failed to load appointments", exc_info=True)
            raise

    def _save_appointments(self, appointments: list[Appointment]) -> None:
        self.store.save(APPOINTMENTS_KEY, [a.model_dump(mode="json") for a in appointments])

    def get_appointment(self, appointment_id: str) -> Appointment | None:
        return next((a for a in self.list_appointments() if a.id == appointment_id), None)

    def create_appointment(self, appointment: Appointment) -> Appointment:
        with self._lock:
            appointments = self.list_appointments()
            appointments.append(appointment)
            self._save_appointments(appointments)
        return appointment

    def update_appointment(self, appointment: Appointment) -> Appointment:
        with self._lock:
            appointments = self.list_appointments()
            for i, existing in enumerate(appointments):
                if existing.id == appointment.id:
                    appointments[i] = appointment
                    break
            else:
                raise NotFound(f"Appointment {appointment.id} not found")
            self._save_appointments(appointments)
        return appointment

    def appointments_for_provider(self, provider_id: str) -> list[Appointment]:
        return [a for a in self.list_appointments() if a.provider_id == provider_id]

    def appointments_for_owner(self, owner_name: str) -> list[Appointment]:
        needle = owner_name.lower()
        return [a for a in self.list_appointments() if needle in a.owner_name.lower()]

    def appointments_in_range(
        self,
        provider_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Appointment]:
        """Provider's appointments touching [start, end] (both ends inclusive)."""
        return [
            a for a in self.appointments_for_provider(provider_id)
            if (start <= a.start <= end)
            or (start <= a.end <= end)
            or (a.start <= start and a.end >= end)
        ]
