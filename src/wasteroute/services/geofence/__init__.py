from .monitor import FenceCheck, GeofenceMonitor

__all__ = ["FenceCheck", "GeofenceMonitor"]
