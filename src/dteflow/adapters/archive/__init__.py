"""Archive adapters."""

from .filesystem import FilesystemArchive

__all__ = ["FilesystemArchive"]
