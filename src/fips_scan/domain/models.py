"""Core entities without I/O for the FIPS binary scanner."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class VerdictStatus(Enum):
    """Enumerate the two possible compliance outcomes."""

    COMPLIANT = "COMPLIANT"
    NOT_COMPLIANT = "NOT_COMPLIANT"


@dataclass(frozen=True)
class CandidateBinary:
    """Executable accepted by the classifier, addressed two ways."""

    path: str
    relative_path: str


@dataclass(frozen=True)
class ModuleRef:
    """One module line from embedded build info."""

    path: str
    version: str = ""
    checksum: str = ""
    replace: ModuleRef | None = None


@dataclass(frozen=True)
class StaticMetadata:
    """Provenance facts read from the binary without running it."""

    toolchain_version: str
    main_module: str = ""
    cgo_enabled: bool = False
    uses_system_crypto: bool = False
    main_module_version: str = ""
    settings: tuple[tuple[str, str], ...] = ()
    dependencies: tuple[ModuleRef, ...] = ()

    def setting(self, key: str) -> str | None:
        """Return the last value recorded for a build setting key."""

        value = None
        for name, raw in self.settings:
            if name == key:
                value = raw
        return value


@dataclass(frozen=True)
class RuntimeProbeResult:
    """Outcome of executing a candidate in strict mode."""

    passed: bool
    diagnostic: str = ""
    timed_out: bool = False
    returncode: int | None = None
    matched_marker: str | None = None


@dataclass(frozen=True)
class HostCapability:
    """Host cryptographic library facts, computed once per scan."""

    fips_capable: bool
    library_version: str


@dataclass(frozen=True)
class ComplianceVerdict:
    """Verdict plus the reason tag that selected it."""

    status: VerdictStatus
    reason: str
    detail: str

    @property
    def compliant(self) -> bool:
        return self.status is VerdictStatus.COMPLIANT


BINARY_TYPE_GO = "gobinary"
"""Type tag for binaries produced by the Go toolchain."""


@dataclass(frozen=True)
class BinaryReport:
    """Per-candidate result; carries either a verdict or an error."""

    relative_path: str
    binary_type: str = BINARY_TYPE_GO
    metadata: StaticMetadata | None = None
    probe: RuntimeProbeResult | None = None
    verdict: ComplianceVerdict | None = None
    error: Exception | None = field(default=None, compare=False)

    @property
    def failed(self) -> bool:
        """True when the verdict is unknown because the check errored."""

        return self.error is not None
