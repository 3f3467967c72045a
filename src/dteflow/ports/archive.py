"""Archive port - interface to the document history store."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import WorkflowOutcome


class ArchivePort(ABC):
    """Interface for archiving completed runs."""

    @abstractmethod
    def store(self, outcome: "WorkflowOutcome") -> Path:
        """Store the final document, envelope and transmission result.

        Returns path to the stored document.
        """
        pass
