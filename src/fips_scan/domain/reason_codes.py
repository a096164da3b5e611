"""Reason tags attached to compliance verdicts."""

from __future__ import annotations

CRYPTO_BACKEND_NOT_ENGAGED = "crypto_backend_not_engaged"
"""The binary was not built to delegate cryptography to the system library."""

RUNTIME_REFUSED_STRICT_MODE = "runtime_refused_strict_mode"
"""The binary refused to start once strict validated-module mode was requested."""

HOST_LACKS_VALIDATED_MODULE = "host_lacks_validated_module"
"""The binary is ready but the host cannot provide a validated module."""

TENTATIVELY_COMPLIANT = "tentatively_compliant"
"""Every local signal passed; certification still rests on the host module."""
