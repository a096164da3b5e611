"""Builders for synthetic ELF images that embed Go build info."""

from __future__ import annotations

import os
import stat
import struct
from pathlib import Path
from typing import Iterable, Sequence

MAGIC = b"\xff Go buildinf:"
START_SENTINEL = bytes.fromhex("3077af0c9274080241e1c107e6d618e6")
END_SENTINEL = bytes.fromhex("f932433186182072008242104116d8f2")
BASE_VADDR = 0x400000
DATA_OFFSET = 0x100

SYSTEMCRYPTO_SETTINGS = (
    ("-compiler", "gc"),
    ("CGO_ENABLED", "1"),
    ("GOEXPERIMENT", "systemcrypto"),
    ("GOOS", "linux"),
)


def mod_info(
    path: str = "example.com/app",
    main_version: str = "(devel)",
    settings: Iterable[tuple[str, str]] = SYSTEMCRYPTO_SETTINGS,
    deps: Sequence[tuple[str, str, str]] = (),
    extra_lines: Sequence[str] = (),
) -> str:
    lines = [f"path\t{path}", f"mod\t{path}\t{main_version}\t"]
    for dep_path, dep_version, dep_sum in deps:
        lines.append(f"dep\t{dep_path}\t{dep_version}\t{dep_sum}")
    lines.extend(extra_lines)
    for key, value in settings:
        lines.append(f"build\t{key}={value}")
    return "\n".join(lines) + "\n"


def _uvarint(value: int) -> bytes:
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def _wrap(text: str) -> bytes:
    return START_SENTINEL + text.encode("utf-8") + END_SENTINEL


def _inline_blob(version: str, info: bytes, ptr_size: int) -> bytes:
    header = MAGIC + bytes([ptr_size, 0x2]) + b"\x00" * 16
    encoded = version.encode("utf-8")
    return (
        header
        + _uvarint(len(encoded))
        + encoded
        + _uvarint(len(info))
        + info
    )


def _pointer_blob(
    version: str, info: bytes, ptr_size: int, big_endian: bool, vaddr: int
) -> bytes:
    order = "big" if big_endian else "little"
    encoded = version.encode("utf-8")
    headers_at = vaddr + 32
    strings_at = headers_at + 4 * ptr_size
    version_hdr = strings_at.to_bytes(ptr_size, order) + len(encoded).to_bytes(
        ptr_size, order
    )
    info_at = strings_at + len(encoded)
    info_hdr = info_at.to_bytes(ptr_size, order) + len(info).to_bytes(ptr_size, order)
    flags = 0x1 if big_endian else 0x0
    header = (
        MAGIC
        + bytes([ptr_size, flags])
        + headers_at.to_bytes(ptr_size, order)
        + (headers_at + 2 * ptr_size).to_bytes(ptr_size, order)
    )
    header = header.ljust(32, b"\x00")
    return header + version_hdr + info_hdr + encoded + info


def build_go_elf(
    version: str = "go1.24.6 X:systemcrypto",
    info_text: str | None = None,
    *,
    inline: bool = True,
    is_64: bool = True,
    big_endian: bool = False,
    with_section: bool = False,
    blob_prefix: bytes = b"",
    raw_info: bytes | None = None,
) -> bytes:
    """Return a minimal ELF executable whose data segment holds build info."""

    bo = ">" if big_endian else "<"
    ptr_size = 8 if is_64 else 4
    info = raw_info if raw_info is not None else _wrap(
        info_text if info_text is not None else mod_info()
    )
    data_vaddr = BASE_VADDR + DATA_OFFSET + len(blob_prefix)
    if inline:
        blob = _inline_blob(version, info, ptr_size)
    else:
        blob = _pointer_blob(version, info, ptr_size, big_endian, data_vaddr)
    segment = blob_prefix + blob

    sections = b""
    section_table = b""
    shoff = shnum = shstrndx = 0
    if with_section:
        names = b"\x00.go.buildinfo\x00.shstrtab\x00"
        strtab_offset = DATA_OFFSET + len(segment)
        sections = names
        shoff = (strtab_offset + len(names) + 15) & ~15
        sections = sections.ljust(shoff - strtab_offset, b"\x00")
        if is_64:
            fmt = bo + "IIQQQQIIQQ"
        else:
            fmt = bo + "IIIIIIIIII"
        section_table = (
            struct.pack(fmt, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0)
            + struct.pack(
                fmt, 1, 1, 3, data_vaddr, DATA_OFFSET + len(blob_prefix),
                len(blob), 0, 0, 16, 0,
            )
            + struct.pack(fmt, 15, 3, 0, 0, strtab_offset, len(names), 0, 0, 1, 0)
        )
        shnum = 3
        shstrndx = 2

    ident = b"\x7fELF" + bytes([2 if is_64 else 1, 2 if big_endian else 1, 1])
    ident = ident.ljust(16, b"\x00")
    if is_64:
        header = struct.pack(
            bo + "16sHHIQQQIHHHHHH",
            ident, 2, 62, 1, BASE_VADDR, 64, shoff, 0, 64, 56, 1, 64, shnum, shstrndx,
        )
        program = struct.pack(
            bo + "IIQQQQQQ",
            1, 0x6, DATA_OFFSET, BASE_VADDR + DATA_OFFSET, BASE_VADDR + DATA_OFFSET,
            len(segment), len(segment), 0x1000,
        )
    else:
        header = struct.pack(
            bo + "16sHHIIIIIHHHHHH",
            ident, 2, 3, 1, BASE_VADDR, 52, shoff, 0, 52, 32, 1, 40, shnum, shstrndx,
        )
        program = struct.pack(
            bo + "IIIIIIII",
            1, DATA_OFFSET, BASE_VADDR + DATA_OFFSET, BASE_VADDR + DATA_OFFSET,
            len(segment), len(segment), 0x6, 0x1000,
        )

    image = (header + program).ljust(DATA_OFFSET, b"\x00") + segment + sections
    return image + section_table


def build_plain_elf() -> bytes:
    """Return an ELF image with a writable segment but no build info."""

    return build_go_elf(raw_info=b"").replace(MAGIC, b"\x00" * len(MAGIC))


def write_executable(path: Path, content: bytes | str, mode: int = 0o755) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        path.write_text(content, encoding="utf-8")
    else:
        path.write_bytes(content)
    os.chmod(path, mode)
    return path


def is_executable(path: Path) -> bool:
    return bool(path.stat().st_mode & stat.S_IXUSR)
