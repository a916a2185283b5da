"""
In-memory provider and availability records.

Providers edit their weekly template and date overrides through this store;
the schedule aggregator only reads from it.
"""

import logging
from datetime import date
from threading import Lock
from typing import Optional

from booking_core.errors import NotFoundError
from booking_core.schemas.availability_schema import (
    AvailabilityOverride,
    AvailabilityTemplate,
    Provider,
)

logger = logging.getLogger(__name__)


class AvailabilityStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._providers: dict[str, Provider] = {}
        self._templates: list[AvailabilityTemplate] = []
        self._overrides: list[AvailabilityOverride] = []

    def register_provider(self, provider: Provider) -> Provider:
        with self._lock:
            self._providers[provider.id] = provider
        logger.info("Provider registered: %s (%s)", provider.id, provider.business_name)
        return provider

    def get_provider(self, provider_id: str) -> Optional[Provider]:
        with self._lock:
            return self._providers.get(provider_id)

    def require_provider(self, provider_id: str) -> Provider:
        provider = self.get_provider(provider_id)
        if provider is None:
            raise NotFoundError(f"Provider {provider_id} not found.")
        return provider

    def add_template(self, template: AvailabilityTemplate) -> AvailabilityTemplate:
        self.require_provider(template.provider_id)
        with self._lock:
            # Same provider, day, and hours is one window, not two.
            if template not in self._templates:
                self._templates.append(template)
        return template

    def templates_for(self, provider_id: str, day_of_week: int) -> list[AvailabilityTemplate]:
        with self._lock:
            return [
                t
                for t in self._templates
                if t.provider_id == provider_id and t.day_of_week == day_of_week
            ]

    def add_override(self, override: AvailabilityOverride) -> AvailabilityOverride:
        self.require_provider(override.provider_id)
        with self._lock:
            self._overrides.append(override)
        logger.info(
            "Override added for %s on %s (%s)",
            override.provider_id, override.override_date, override.override_type.value,
        )
        return override

    def overrides_for(self, provider_id: str, override_date: date) -> list[AvailabilityOverride]:
        with self._lock:
            return [
                o
                for o in self._overrides
                if o.provider_id == provider_id and o.override_date == override_date
            ]

    def remove_overrides(self, provider_id: str, override_date: date) -> int:
        """Drop every override for a date so the weekly template applies again."""
        with self._lock:
            kept = [
                o
                for o in self._overrides
                if not (o.provider_id == provider_id and o.override_date == override_date)
            ]
            removed = len(self._overrides) - len(kept)
            self._overrides = kept
        return removed

    def reset(self) -> None:
        """Clear all records. Used by test fixtures for isolation."""
        with self._lock:
            self._providers.clear()
            self._templates.clear()
            self._overrides.clear()
