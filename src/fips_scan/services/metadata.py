"""Turn embedded build info into the static half of a compliance check."""

from __future__ import annotations

from ..domain.models import StaticMetadata
from .buildinfo import BuildInfo, read_build_info

CGO_SETTING = "CGO_ENABLED"
EXPERIMENT_SETTING = "GOEXPERIMENT"
SYSTEM_CRYPTO_EXPERIMENT = "systemcrypto"


def metadata_from_build_info(info: BuildInfo) -> StaticMetadata:
    cgo_enabled = False
    uses_system_crypto = False
    for key, value in info.settings:
        if key == CGO_SETTING:
            cgo_enabled = value == "1"
        elif key == EXPERIMENT_SETTING and SYSTEM_CRYPTO_EXPERIMENT in value:
            uses_system_crypto = True

    main = info.main
    return StaticMetadata(
        toolchain_version=info.go_version,
        main_module=main.path if main is not None else "",
        cgo_enabled=cgo_enabled,
        uses_system_crypto=uses_system_crypto,
        main_module_version=main.version if main is not None else "",
        settings=info.settings,
        dependencies=info.deps,
    )


def extract_static_metadata(path: str) -> StaticMetadata:
    """Read build provenance from ``path``; raises ExtractionError subclasses."""

    return metadata_from_build_info(read_build_info(path))
