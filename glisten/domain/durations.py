"""
Job duration estimation from requested service line items.
"""

from typing import Dict, Mapping, Optional, Sequence

from .models import ServiceItem, VehicleSize, normalize_size


class DurationEstimator:
    """
    Converts service line items into total job minutes.

    Lookup is keyed by ``(service_id, size)``. A missing size uses
    ``default_size``; an unknown service or size costs ``fallback_minutes``.
    An empty request still occupies ``default_visit_minutes``. Catalog
    entries and the fallbacks are at least one minute long.
    Never raises for malformed input.
    """

    def __init__(
        self,
        catalog: Mapping[str, Mapping[str, int]],
        default_size: "VehicleSize | str" = "medium",
        fallback_minutes: int = 60,
        default_visit_minutes: int = 60,
    ):
        self._catalog: Dict[str, Dict[str, int]] = {
            service_id.lower(): {normalize_size(size): max(1, int(minutes)) for size, minutes in sizes.items()}
            for service_id, sizes in catalog.items()
        }
        self.default_size = normalize_size(default_size) or "medium"
        self.fallback_minutes = max(1, fallback_minutes)
        self.default_visit_minutes = max(1, default_visit_minutes)

    def unit_minutes(self, service_id: str, size: "VehicleSize | str | None" = None) -> int:
        """Duration of a single unit of a service."""
        sizes = self._catalog.get(str(service_id or "").strip().lower())
        if sizes is None:
            return self.fallback_minutes

        size_key = normalize_size(size) or self.default_size
        return sizes.get(size_key, self.fallback_minutes)

    def estimate(self, services: Optional[Sequence[ServiceItem]]) -> int:
        """Total minutes for the requested services."""
        if not services:
            return self.default_visit_minutes

        total = 0
        for item in services:
            quantity = item.quantity if isinstance(item.quantity, int) and item.quantity > 0 else 1
            total += self.unit_minutes(item.service_id, item.size) * quantity
        return total
