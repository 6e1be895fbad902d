"""Geofence evaluation for reported bin positions."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ...errors import InvalidInputError
from ...models.domain import Bin, BinStatus
from ...persistence.base import BinStore, IncidentSink
from ..geospatial import point_in_polygon

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FenceCheck:
    within_fence: bool
    bin: Bin


class GeofenceMonitor:
    """Flip bins to Out of Place when they leave their fence, and back to Empty on return."""

    def __init__(self, bins: BinStore, incidents: IncidentSink) -> None:
        self.bins = bins
        self.incidents = incidents

    def check_fence(self, bin_id: str, latitude: float, longitude: float) -> FenceCheck:
        if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            raise InvalidInputError(f"Invalid position ({latitude}, {longitude})")

        item = self.bins.get_by_id(bin_id)
        within_fence = point_in_polygon(latitude, longitude, item.geofence)

        if not within_fence:
            if item.status != BinStatus.OUT_OF_PLACE:
                item = self.bins.update_fields(bin_id, status=BinStatus.OUT_OF_PLACE)
                self._report(item, latitude, longitude)
        elif item.status == BinStatus.OUT_OF_PLACE:
            # Always back to the base state, not the status held before leaving
            item = self.bins.update_fields(bin_id, status=BinStatus.EMPTY)
            logger.info(f"Bin {bin_id} is back inside its geofence")

        return FenceCheck(within_fence=within_fence, bin=item)

    def _report(self, item: Bin, latitude: float, longitude: float) -> None:
        description = (
            f"Bin (ID: {item.bin_id}) left its geofence. "
            f"New position: Lat {latitude}, Lon {longitude}"
        )
        try:
            incident = self.incidents.raise_incident(description, item.bin_id)
            logger.info(f"Incident {incident.incident_id} created for bin {item.bin_id}")
        except Exception as exc:
            logger.error(f"Failed to raise incident for bin {item.bin_id}: {exc}")
