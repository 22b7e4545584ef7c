"""granola-vault error hierarchy.

All project exceptions inherit from GranolaVaultError, enabling:
- ``except GranolaVaultError`` at top-level boundaries (CLI)
- Fine-grained catches deeper in the stack (``except WriteError``)

Hierarchy:
    GranolaVaultError
    ├── ConfigError                 # invalid settings file or values
    ├── ScanError                   # vault enumeration failed (fatal to the index)
    ├── ParseError                  # one file's preamble unreadable (logged, skipped)
    ├── ExportFormatError           # remote export unreadable or not a document list
    ├── ConversionError             # converter raised for a document
    ├── WriteError                  # vault create/modify raised
    ├── ConflictProtocolError       # conflict UI raised or answered nonsense
    ├── ConcurrentRunError          # a second run while one is active
    └── NothingToRetryError         # retry requested with an empty failure registry
"""

from __future__ import annotations


class GranolaVaultError(Exception):
    """Base class for all granola-vault errors."""


class ConfigError(GranolaVaultError):
    """Invalid configuration."""


class ScanError(GranolaVaultError):
    """The vault could not be enumerated."""


class ParseError(GranolaVaultError):
    """A vault file's structured preamble could not be parsed."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class ExportFormatError(GranolaVaultError):
    """The remote export is not a recognisable document listing."""


class ConversionError(GranolaVaultError):
    """The converter failed for a document."""


class WriteError(GranolaVaultError):
    """A vault write failed.

    ``name_taken`` marks the case where create() found the path occupied,
    which the orchestrator answers with a single retry under a unique name.
    """

    def __init__(self, message: str, *, path: str | None = None, name_taken: bool = False) -> None:
        super().__init__(message)
        self.path = path
        self.name_taken = name_taken


class ConflictProtocolError(GranolaVaultError):
    """The conflict resolver raised or returned an unusable answer."""


class ConcurrentRunError(GranolaVaultError):
    """An import run is already active on this orchestrator."""


class NothingToRetryError(GranolaVaultError):
    """The failure registry is empty."""


__all__ = [
    "GranolaVaultError",
    "ConfigError",
    "ScanError",
    "ParseError",
    "ExportFormatError",
    "ConversionError",
    "WriteError",
    "ConflictProtocolError",
    "ConcurrentRunError",
    "NothingToRetryError",
]
