"""Infrastructure modules for polyedge"""

from .metrics import MetricsRecorder, CycleStats  # noqa: F401

__all__ = [
	"MetricsRecorder",
	"CycleStats",
]
