"""Route sequencing and routing-service clients."""

from .models import SequenceResult
from .osrm_client import HaversineMatrixProvider, OSRMClient
from .sequencer import RouteSequencer

__all__ = ["HaversineMatrixProvider", "OSRMClient", "RouteSequencer", "SequenceResult"]
