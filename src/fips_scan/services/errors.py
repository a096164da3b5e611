"""Exception taxonomy for binary discovery and compliance checks."""

from __future__ import annotations


class ScanError(Exception):
    """Base class for every error raised by the scanner."""


class WalkError(ScanError):
    """Raised when the directory tree cannot be walked."""


class ScanRootError(WalkError):
    """Raised when the scan root is missing or is not a directory."""


class ExtractionError(ScanError):
    """Raised when build provenance cannot be read from a candidate."""


class BuildInfoError(ExtractionError):
    """Raised when the embedded build info blob is absent or malformed."""


class ElfFormatError(BuildInfoError):
    """Raised when a file is not a well-formed ELF container."""


class ProbeError(ScanError):
    """Raised when a candidate cannot be started as a child process."""


class ScanCancelledError(ScanError):
    """Raised when the caller cancels a scan; no reports survive."""
