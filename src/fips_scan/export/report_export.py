"""Schema-checked mapping form of scan reports."""

from __future__ import annotations

from typing import Iterable

from ..domain.models import BinaryReport, HostCapability
from ..services.orchestrator import summarize_reports
from . import schema_registry

REPORT_SCHEMA = "binary_report_v0.1"
PAYLOAD_SCHEMA = "scan_payload_v0.1"


def _error_mapping(error: Exception | None) -> dict[str, str] | None:
    if error is None:
        return None
    return {"kind": type(error).__name__, "detail": str(error)}


def report_to_mapping(report: BinaryReport) -> dict[str, object]:
    """Return a validated plain-dict view of ``report``.

    A report that carries an error always exports ``verdict: null`` so
    consumers cannot mistake an unknown verdict for NOT_COMPLIANT.
    """

    metadata = report.metadata
    probe = report.probe
    verdict = report.verdict if report.error is None else None
    mapping: dict[str, object] = {
        "relative_path": report.relative_path,
        "type": report.binary_type,
        "metadata": None
        if metadata is None
        else {
            "toolchain_version": metadata.toolchain_version,
            "main_module": metadata.main_module,
            "main_module_version": metadata.main_module_version,
            "cgo_enabled": metadata.cgo_enabled,
            "uses_system_crypto": metadata.uses_system_crypto,
        },
        "probe": None
        if probe is None
        else {
            "passed": probe.passed,
            "timed_out": probe.timed_out,
            "returncode": probe.returncode,
            "matched_marker": probe.matched_marker,
            "diagnostic": probe.diagnostic,
        },
        "verdict": None
        if verdict is None
        else {
            "status": verdict.status.value,
            "reason": verdict.reason,
            "detail": verdict.detail,
        },
        "error": _error_mapping(report.error),
    }
    schema_registry.validate(REPORT_SCHEMA, mapping)
    return mapping


def build_scan_payload(
    reports: Iterable[BinaryReport], host: HostCapability
) -> dict[str, object]:
    """Bundle host facts, summary counts and every report, then validate."""

    ordered = tuple(reports)
    payload: dict[str, object] = {
        "operation": "fips_scan",
        "host": {
            "fips_capable": host.fips_capable,
            "library_version": host.library_version,
        },
        "summary": summarize_reports(ordered).as_counts(),
        "reports": [report_to_mapping(report) for report in ordered],
    }
    schema_registry.validate(PAYLOAD_SCHEMA, payload)
    return payload
