"""Recursive discovery of candidate binaries under a scan root."""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, Iterable, Iterator

from ..domain.models import CandidateBinary
from .classifier import is_candidate
from .errors import ScanCancelledError, ScanRootError
from .scan_limits import DEFAULT_EXCLUDED_PREFIXES

_LOG = logging.getLogger(__name__)

Classifier = Callable[[str], bool]


def is_excluded(path: str, excluded_prefixes: Iterable[str]) -> bool:
    """Return True when ``path`` starts with any excluded prefix."""

    return any(path.startswith(prefix) for prefix in excluded_prefixes)


def resolve_root(root: str | os.PathLike[str]) -> str:
    """Return the absolute scan root; raise ScanRootError when unusable."""

    absolute = os.path.abspath(os.fspath(root))
    if not os.path.isdir(absolute):
        raise ScanRootError(f"Scan root is not an existing directory: {absolute}")
    return absolute


def _log_walk_error(exc: OSError) -> None:
    _LOG.warning("Skipping unreadable entry %s: %s", exc.filename, exc.strerror)


def _check_cancelled(cancel_event: threading.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ScanCancelledError("Scan cancelled during directory walk.")


def iter_candidates(
    root: str | os.PathLike[str],
    excluded_prefixes: Iterable[str] = DEFAULT_EXCLUDED_PREFIXES,
    cancel_event: threading.Event | None = None,
    classify: Classifier = is_candidate,
) -> Iterator[CandidateBinary]:
    """
    Yield candidates below ``root`` in sorted, depth-first order.

    Unreadable directories are logged and skipped. Excluded prefixes prune
    whole subtrees, symbolic links are never followed, and the cancellation
    event is checked at every visited entry.

    Raises:
        ScanRootError: the root is missing or not a directory.
        ScanCancelledError: ``cancel_event`` was set mid-walk.
    """

    abs_root = resolve_root(root)
    prefixes = tuple(excluded_prefixes)

    for dirpath, dirnames, filenames in os.walk(
        abs_root, onerror=_log_walk_error, followlinks=False
    ):
        _check_cancelled(cancel_event)
        kept = []
        for name in sorted(dirnames):
            _check_cancelled(cancel_event)
            child = os.path.join(dirpath, name)
            if is_excluded(child + os.sep, prefixes):
                _LOG.debug("Pruning excluded directory %s", child)
                continue
            kept.append(name)
        dirnames[:] = kept

        for name in sorted(filenames):
            _check_cancelled(cancel_event)
            path = os.path.join(dirpath, name)
            if is_excluded(path, prefixes):
                continue
            if not classify(path):
                continue
            yield CandidateBinary(
                path=path, relative_path=os.path.relpath(path, abs_root)
            )
