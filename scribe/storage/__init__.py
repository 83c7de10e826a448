"""Working storage for Scribe."""

from .file_manager import FileManager

__all__ = ["FileManager"]
