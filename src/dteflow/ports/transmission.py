"""Transmission port - interface to the tax authority reception service."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import Environment, TransmissionResult


class TransmissionPort(ABC):
    """Interface for submitting signed envelopes to the authority."""

    @abstractmethod
    def transmit(self, envelope: str, environment: "Environment") -> "TransmissionResult":
        """Submit a signed envelope.

        Authority-side answers (accepted, rejected, processing) are returned
        as a TransmissionResult. Transport faults raise CommunicationError.
        """
        pass
