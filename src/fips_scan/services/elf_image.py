"""Minimal ELF reader: headers, loadable segments and named sections.

Only the parts needed to locate embedded build info are decoded. Every
structural problem surfaces as :class:`ElfFormatError`; nothing here executes
or maps the file.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO

from .errors import ElfFormatError

ELF_MAGIC = b"\x7fELF"

ELFCLASS32 = 1
ELFCLASS64 = 2
ELFDATA2LSB = 1
ELFDATA2MSB = 2

PT_LOAD = 1
PF_X = 0x1
PF_W = 0x2

_MAX_HEADER_ENTRIES = 65_535
_MAX_STRTAB_BYTES = 1 << 20


@dataclass(frozen=True)
class ProgramHeader:
    """One ELF segment entry."""

    type: int
    flags: int
    offset: int
    vaddr: int
    filesz: int
    memsz: int


@dataclass(frozen=True)
class SectionHeader:
    """One ELF section entry, name already resolved."""

    name: str
    addr: int
    offset: int
    size: int


def has_elf_magic(handle: BinaryIO) -> bool:
    """Return True when the stream starts with the ELF identification bytes."""

    handle.seek(0)
    return handle.read(4) == ELF_MAGIC


class ElfImage:
    """Parsed view over an open ELF file handle."""

    def __init__(self, handle: BinaryIO) -> None:
        self._handle = handle
        ident = self._read_at(0, 16)
        if len(ident) < 16 or ident[:4] != ELF_MAGIC:
            raise ElfFormatError("Missing ELF identification.")
        elf_class, data = ident[4], ident[5]
        if elf_class not in (ELFCLASS32, ELFCLASS64):
            raise ElfFormatError("Unknown ELF class.")
        if data == ELFDATA2LSB:
            self.byte_order = "<"
        elif data == ELFDATA2MSB:
            self.byte_order = ">"
        else:
            raise ElfFormatError("Unknown ELF data encoding.")
        self.is_64 = elf_class == ELFCLASS64
        self.ptr_size = 8 if self.is_64 else 4
        self._parse_header()
        self.programs = self._parse_programs()
        self.sections = self._parse_sections()

    def _read_at(self, offset: int, size: int) -> bytes:
        try:
            self._handle.seek(offset)
            return self._handle.read(size)
        except (OSError, ValueError, OverflowError) as exc:
            raise ElfFormatError("Unable to read ELF data.") from exc

    def _unpack(self, fmt: str, offset: int) -> tuple[int, ...]:
        layout = struct.Struct(self.byte_order + fmt)
        raw = self._read_at(offset, layout.size)
        if len(raw) != layout.size:
            raise ElfFormatError("Truncated ELF structure.")
        return layout.unpack(raw)

    def _parse_header(self) -> None:
        if self.is_64:
            fields = self._unpack("HHIQQQIHHHHHH", 16)
        else:
            fields = self._unpack("HHIIIIIHHHHHH", 16)
        (
            self.e_type,
            self.e_machine,
            _version,
            _entry,
            self._phoff,
            self._shoff,
            _flags,
            _ehsize,
            self._phentsize,
            self._phnum,
            self._shentsize,
            self._shnum,
            self._shstrndx,
        ) = fields

    def _parse_programs(self) -> tuple[ProgramHeader, ...]:
        if self._phnum == 0:
            return ()
        expected = 56 if self.is_64 else 32
        if self._phentsize < expected or self._phnum > _MAX_HEADER_ENTRIES:
            raise ElfFormatError("Malformed program header table.")
        programs = []
        for index in range(self._phnum):
            offset = self._phoff + index * self._phentsize
            if self.is_64:
                fields = self._unpack("IIQQQQQQ", offset)
                p_type, p_flags, p_offset, p_vaddr, _, p_filesz, p_memsz, _ = fields
            else:
                fields = self._unpack("IIIIIIII", offset)
                p_type, p_offset, p_vaddr, _, p_filesz, p_memsz, p_flags, _ = fields
            programs.append(
                ProgramHeader(p_type, p_flags, p_offset, p_vaddr, p_filesz, p_memsz)
            )
        return tuple(programs)

    def _parse_sections(self) -> tuple[SectionHeader, ...]:
        if self._shnum == 0 or self._shoff == 0:
            return ()
        expected = 64 if self.is_64 else 40
        if self._shentsize < expected or self._shnum > _MAX_HEADER_ENTRIES:
            raise ElfFormatError("Malformed section header table.")
        if self._shstrndx >= self._shnum:
            raise ElfFormatError("Section name table index out of range.")
        raw = []
        for index in range(self._shnum):
            offset = self._shoff + index * self._shentsize
            if self.is_64:
                name, _type, _flags, addr, sh_offset, size = self._unpack(
                    "IIQQQQ", offset
                )
            else:
                name, _type, _flags, addr, sh_offset, size = self._unpack(
                    "IIIIII", offset
                )
            raw.append((name, addr, sh_offset, size))
        _, _, strtab_offset, strtab_size = raw[self._shstrndx]
        strtab = self._read_at(strtab_offset, min(strtab_size, _MAX_STRTAB_BYTES))
        return tuple(
            SectionHeader(_c_string(strtab, name), addr, sh_offset, size)
            for name, addr, sh_offset, size in raw
        )

    def section(self, name: str) -> SectionHeader | None:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def data_start(self, section_name: str) -> tuple[int, int]:
        """Return (address, size) of the region that holds build info.

        Prefers the named section and falls back to the first writable,
        non-executable loadable segment.
        """

        section = self.section(section_name)
        if section is not None:
            return section.addr, section.size
        for program in self.programs:
            if program.type == PT_LOAD and program.flags & (PF_X | PF_W) == PF_W:
                return program.vaddr, program.memsz
        return 0, 0

    def read_virtual(self, addr: int, size: int) -> bytes:
        """Read up to ``size`` file-backed bytes at a virtual address."""

        for program in self.programs:
            if program.type != PT_LOAD or program.filesz == 0:
                continue
            if program.vaddr <= addr <= program.vaddr + program.filesz - 1:
                available = program.vaddr + program.filesz - addr
                return self._read_at(
                    program.offset + addr - program.vaddr, min(size, available)
                )
        return b""


def _c_string(table: bytes, offset: int) -> str:
    if offset >= len(table):
        return ""
    end = table.find(b"\x00", offset)
    if end < 0:
        end = len(table)
    return table[offset:end].decode("utf-8", errors="replace")
