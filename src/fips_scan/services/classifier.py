"""Decide whether a filesystem entry is a checkable Go executable."""

from __future__ import annotations

import logging
import os
import stat

from .buildinfo import read_build_info_from
from .elf_image import has_elf_magic
from .errors import BuildInfoError

_LOG = logging.getLogger(__name__)

_EXECUTABLE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


def is_executable_file(path: str) -> bool:
    """Return True for regular, non-symlink files with any execute bit set."""

    try:
        info = os.lstat(path)
    except OSError:
        return False
    if not stat.S_ISREG(info.st_mode):
        return False
    return bool(info.st_mode & _EXECUTABLE_BITS)


def is_candidate(path: str) -> bool:
    """
    Return True only when every classification stage accepts ``path``.

    The stages are: an execute permission bit, a valid ELF container and
    embedded Go build info. A failing stage is an exclusion, not an error.
    """

    if not is_executable_file(path):
        return False
    try:
        with open(path, "rb") as handle:
            if not has_elf_magic(handle):
                return False
            read_build_info_from(handle)
    except OSError as exc:
        _LOG.debug("Excluding unreadable entry %s: %s", path, exc)
        return False
    except BuildInfoError as exc:
        _LOG.debug("Excluding %s: %s", path, exc)
        return False
    except Exception as exc:
        _LOG.warning("Excluding %s after unexpected %s", path, type(exc).__name__)
        return False
    return True
