"""Machine domain services."""

from .reservation_service import MachineReservationService

__all__ = ["MachineReservationService"]
