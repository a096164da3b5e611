"""Shared fixtures for the scanner test-suite."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from elf_builder import build_go_elf, write_executable
from fips_scan.services.scan_audit import (
    clear_scan_events,
    set_production_scan_audit_sink,
)


@pytest.fixture(autouse=True)
def isolated_audit() -> None:
    """Keep scan audit events in memory and out of the user's state dir."""

    set_production_scan_audit_sink(None)
    clear_scan_events()
    yield
    clear_scan_events()


@pytest.fixture
def go_binary(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing an executable synthetic Go binary below ``tmp_path``."""

    def factory(relative: str, mode: int = 0o755, **kwargs: object) -> Path:
        return write_executable(tmp_path / relative, build_go_elf(**kwargs), mode)

    return factory
