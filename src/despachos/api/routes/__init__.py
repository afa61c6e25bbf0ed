"""Route group exports."""

from . import dispatches, drivers, gate, geofences, health

__all__ = ["dispatches", "drivers", "gate", "geofences", "health"]
