"""Signing port - interface to the external document signer."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import SigningRequest


class SigningPort(ABC):
    """Interface for turning a document into a signed envelope."""

    @abstractmethod
    def sign(self, request: "SigningRequest") -> str:
        """Sign a normalized document.

        Returns the opaque signed envelope. Raises SigningError with the
        signer's code and message on refusal.
        """
        pass

    def wake(self) -> None:
        """Warm up a signer that may be cold-starting. No-op by default."""
