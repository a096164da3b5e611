"""Bounded-parallel compliance checks over every discovered candidate.

:func:`scan` is the primary entrypoint. It walks the tree, then runs one check
per candidate (metadata extraction, runtime probe, verdict) on a thread pool
gated by a counting semaphore. Each task writes its report into a slot
reserved by discovery index, so output order never depends on completion
order. The caller receives either every report or, after cancellation,
nothing at all.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, ContextManager, Iterable, Sequence

from ..domain.models import (
    BinaryReport,
    CandidateBinary,
    HostCapability,
    StaticMetadata,
)
from .classifier import is_candidate
from .compliance import evaluate_compliance
from .errors import ExtractionError, ProbeError, ScanCancelledError
from .host_capability import HostCapabilityProvider, SystemHostCapabilityProvider
from .metadata import extract_static_metadata
from .runtime_probe import Probe, RuntimeProbe
from .scan_audit import OUTCOME_CANCELLED, OUTCOME_COMPLETED, record_scan_event
from .scan_limits import ScanLimitConfig
from .walker import Classifier, iter_candidates, resolve_root

_LOG = logging.getLogger(__name__)

Extractor = Callable[[str], StaticMetadata]
AdmissionGate = ContextManager[object]


class ReportCollection:
    """Fixed-size, write-once report slots indexed by discovery order."""

    def __init__(self, size: int) -> None:
        self._slots: list[BinaryReport | None] = [None] * size
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._slots)

    def record(self, index: int, report: BinaryReport) -> None:
        with self._lock:
            if self._slots[index] is not None:
                raise RuntimeError(f"Report slot {index} was already written.")
            self._slots[index] = report

    def complete(self) -> tuple[BinaryReport, ...]:
        """Return every report; all slots must have been written."""

        with self._lock:
            missing = [i for i, slot in enumerate(self._slots) if slot is None]
            if missing:
                raise RuntimeError(f"{len(missing)} report slot(s) never written.")
            return tuple(self._slots)  # type: ignore[arg-type]


@dataclass(frozen=True)
class ScanSummary:
    """Aggregate counts over a finished scan."""

    total: int
    system_crypto: int
    runtime_failed: int
    compliant: int
    not_compliant: int
    errored: int

    def as_counts(self) -> dict[str, int]:
        return {
            "total": self.total,
            "system_crypto": self.system_crypto,
            "runtime_failed": self.runtime_failed,
            "compliant": self.compliant,
            "not_compliant": self.not_compliant,
            "errored": self.errored,
        }


def summarize_reports(reports: Iterable[BinaryReport]) -> ScanSummary:
    total = system_crypto = runtime_failed = 0
    compliant = not_compliant = errored = 0
    for report in reports:
        total += 1
        if report.metadata is not None and report.metadata.uses_system_crypto:
            system_crypto += 1
        if report.probe is not None and not report.probe.passed:
            runtime_failed += 1
        if report.error is not None:
            errored += 1
        elif report.verdict is not None and report.verdict.compliant:
            compliant += 1
        else:
            not_compliant += 1
    return ScanSummary(
        total, system_crypto, runtime_failed, compliant, not_compliant, errored
    )


def check_candidate(
    candidate: CandidateBinary,
    host: HostCapability,
    probe: Probe,
    extract: Extractor = extract_static_metadata,
) -> BinaryReport:
    """Run extractor, probe and evaluator; per-candidate errors land on the report."""

    try:
        metadata = extract(candidate.path)
    except ExtractionError as exc:
        _LOG.warning("Build info unreadable for %s: %s", candidate.relative_path, exc)
        return BinaryReport(relative_path=candidate.relative_path, error=exc)
    except Exception as exc:
        _LOG.warning(
            "Unexpected %s extracting %s", type(exc).__name__, candidate.relative_path
        )
        return BinaryReport(relative_path=candidate.relative_path, error=exc)

    try:
        probe_result = probe.run(candidate.path)
    except ProbeError as exc:
        _LOG.warning("Runtime probe failed for %s: %s", candidate.relative_path, exc)
        return BinaryReport(
            relative_path=candidate.relative_path, metadata=metadata, error=exc
        )
    except Exception as exc:
        _LOG.warning(
            "Unexpected %s probing %s", type(exc).__name__, candidate.relative_path
        )
        return BinaryReport(
            relative_path=candidate.relative_path, metadata=metadata, error=exc
        )

    verdict = evaluate_compliance(
        metadata.uses_system_crypto, probe_result.passed, host.fips_capable
    )
    return BinaryReport(
        relative_path=candidate.relative_path,
        metadata=metadata,
        probe=probe_result,
        verdict=verdict,
    )


def _cancelled(cancel_event: threading.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def run_checks(
    candidates: Sequence[CandidateBinary],
    host: HostCapability,
    probe: Probe,
    max_parallel: int,
    cancel_event: threading.Event | None = None,
    gate: AdmissionGate | None = None,
    extract: Extractor = extract_static_metadata,
) -> tuple[BinaryReport, ...]:
    """
    Check ``candidates`` with at most ``max_parallel`` running at once.

    Cancellation stops further dispatch; tasks already handed to the pool are
    waited for (probes end on their own timeout) before every result is
    discarded and :class:`ScanCancelledError` is raised.
    """

    if max_parallel < 1:
        raise ValueError("max_parallel must be at least 1.")
    collection = ReportCollection(len(candidates))
    admission = gate if gate is not None else threading.BoundedSemaphore(max_parallel)

    def task(index: int, candidate: CandidateBinary) -> None:
        with admission:
            if _cancelled(cancel_event):
                return
            report = check_candidate(candidate, host, probe, extract)
        collection.record(index, report)

    dispatch_stopped = False
    with ThreadPoolExecutor(
        max_workers=max_parallel, thread_name_prefix="fips-scan"
    ) as executor:
        futures = []
        for index, candidate in enumerate(candidates):
            if _cancelled(cancel_event):
                dispatch_stopped = True
                break
            futures.append(executor.submit(task, index, candidate))
        wait(futures)

    if dispatch_stopped or _cancelled(cancel_event):
        _LOG.info(
            "Scan cancelled after dispatching %d of %d checks",
            len(futures),
            len(candidates),
        )
        raise ScanCancelledError("Scan cancelled; results discarded.")

    for future in futures:
        future.result()
    return collection.complete()


def scan(
    root: str | os.PathLike[str],
    excluded_prefixes: Iterable[str] | None = None,
    max_parallel: int | None = None,
    probe_timeout: float | None = None,
    *,
    host_provider: HostCapabilityProvider | None = None,
    cancel_event: threading.Event | None = None,
    probe: Probe | None = None,
    gate: AdmissionGate | None = None,
    classify: Classifier = is_candidate,
    extract: Extractor = extract_static_metadata,
) -> tuple[BinaryReport, ...]:
    """
    Scan ``root`` and return one report per candidate, in discovery order.

    Arguments left as ``None`` come from :class:`ScanLimitConfig.from_env`.
    The host provider is consulted exactly once, before any check runs.

    Raises:
        ScanRootError: ``root`` is missing or not a directory.
        ScanCancelledError: ``cancel_event`` fired; no reports are returned.
        ValueError: ``max_parallel`` is below 1.
    """

    config = ScanLimitConfig.from_env()
    prefixes = (
        tuple(excluded_prefixes)
        if excluded_prefixes is not None
        else config.excluded_prefixes
    )
    parallel = max_parallel if max_parallel is not None else config.max_parallel
    timeout = (
        probe_timeout if probe_timeout is not None else config.probe_timeout_seconds
    )

    if parallel < 1:
        raise ValueError("max_parallel must be at least 1.")
    if _cancelled(cancel_event):
        raise ScanCancelledError("Scan cancelled before it started.")
    abs_root = resolve_root(root)

    provider = host_provider or SystemHostCapabilityProvider()
    host = provider.detect()
    _LOG.info(
        "Scanning %s (host fips_capable=%s, library=%s)",
        abs_root,
        host.fips_capable,
        host.library_version,
    )

    candidates: list[CandidateBinary] = []
    try:
        for candidate in iter_candidates(abs_root, prefixes, cancel_event, classify):
            candidates.append(candidate)
        reports = run_checks(
            candidates,
            host,
            probe or RuntimeProbe(timeout_seconds=timeout),
            parallel,
            cancel_event=cancel_event,
            gate=gate,
            extract=extract,
        )
    except ScanCancelledError:
        record_scan_event(OUTCOME_CANCELLED, len(candidates), {})
        raise

    summary = summarize_reports(reports)
    record_scan_event(OUTCOME_COMPLETED, len(candidates), summary.as_counts())
    _LOG.info(
        "Scan finished: %d candidates, %d compliant, %d errored",
        summary.total,
        summary.compliant,
        summary.errored,
    )
    return reports
