"""Pure verdict function combining static, runtime and host signals."""

from __future__ import annotations

from ..domain import reason_codes
from ..domain.models import ComplianceVerdict, VerdictStatus

_NOT_ENGAGED = ComplianceVerdict(
    VerdictStatus.NOT_COMPLIANT,
    reason_codes.CRYPTO_BACKEND_NOT_ENGAGED,
    "crypto backend not engaged.",
)
_REFUSED = ComplianceVerdict(
    VerdictStatus.NOT_COMPLIANT,
    reason_codes.RUNTIME_REFUSED_STRICT_MODE,
    "runtime refused strict mode.",
)
_HOST_LACKS_MODULE = ComplianceVerdict(
    VerdictStatus.NOT_COMPLIANT,
    reason_codes.HOST_LACKS_VALIDATED_MODULE,
    "host lacks a validated cryptographic module.",
)
_TENTATIVE = ComplianceVerdict(
    VerdictStatus.COMPLIANT,
    reason_codes.TENTATIVELY_COMPLIANT,
    "tentatively compliant; depends on external validation of the host module.",
)


def evaluate_compliance(
    uses_system_crypto: bool,
    runtime_probe_passed: bool,
    host_fips_capable: bool,
) -> ComplianceVerdict:
    """Return the verdict; checks run in priority order and the first miss wins."""

    if not uses_system_crypto:
        return _NOT_ENGAGED
    if not runtime_probe_passed:
        return _REFUSED
    if not host_fips_capable:
        return _HOST_LACKS_MODULE
    return _TENTATIVE
