"""Configuration models and helpers for the timeline."""

from __future__ import annotations

from dataclasses import dataclass


MIN_ZOOM = 0.5
MAX_ZOOM = 4.0


@dataclass(slots=True)
class TimelineSettings:
    """Presentation settings for the lane-based day timeline."""

    base_hour_height: float = 24.0
    zoom: float = 1.0
    min_block_height: float = 20.0

    @property
    def pixels_per_hour(self) -> float:
        return self.base_hour_height * self.zoom

    @classmethod
    def from_zoom(
        cls,
        zoom: float = 1.0,
        base_hour_height: float | None = None,
    ) -> "TimelineSettings":
        zoom = min(max(zoom, MIN_ZOOM), MAX_ZOOM)
        base = base_hour_height if base_hour_height is not None else 24.0
        return cls(
            base_hour_height=base,
            zoom=zoom,
            min_block_height=28.0 if zoom >= 2 else 20.0,
        )
