from __future__ import annotations

from dataclasses import dataclass


@dataclass
class GeocodeResult:
    city: str = ""
    state: str = ""
    country: str = ""
    formatted_address: str = ""

    def location_string(self) -> str:
        parts = [p for p in (self.city, self.state, self.country) if p]
        if parts:
            return ", ".join(parts)
        return self.formatted_address


class GeocodingProvider:
    name = "unknown"

    def reverse(self, *, latitude: float, longitude: float) -> GeocodeResult:
        raise NotImplementedError
