"""Reader for the build info blob the Go toolchain embeds in executables.

The blob starts with a 16-byte aligned ``\\xff Go buildinf:`` header inside the
``.go.buildinfo`` section (or the first writable data segment). Two layouts
exist:

1. Inline (Go 1.18+): the toolchain version and the module info follow the
   32-byte header as uvarint length-prefixed strings.
2. Pointer based: the header stores addresses of string headers, decoded with
   the pointer size and byte order recorded in the header.

The module info is wrapped in 16-byte sentinels and holds tab separated
``path``/``mod``/``dep``/``=>``/``build`` lines.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import BinaryIO

from ..domain.models import ModuleRef
from .elf_image import ElfImage
from .errors import BuildInfoError

BUILDINFO_SECTION = ".go.buildinfo"
BUILDINFO_MAGIC = b"\xff Go buildinf:"
_HEADER_SIZE = 32
_ALIGN = 16
_SEARCH_BYTES = 64 * 1024
_MAX_STRING_BYTES = 1 << 24

_FLAG_BIG_ENDIAN = 0x1
_FLAG_VERSION_INLINE = 0x2

_SIMPLE_ESCAPES = {
    "a": b"\a",
    "b": b"\b",
    "f": b"\f",
    "n": b"\n",
    "r": b"\r",
    "t": b"\t",
    "v": b"\v",
    "\\": b"\\",
    '"': b'"',
}
_HEX_ESCAPE_WIDTHS = {"x": 2, "u": 4, "U": 8}
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_OCTAL_DIGITS = frozenset("01234567")


@dataclass(frozen=True)
class BuildInfo:
    """Decoded build info for one executable."""

    go_version: str
    path: str = ""
    main: ModuleRef | None = None
    deps: tuple[ModuleRef, ...] = ()
    settings: tuple[tuple[str, str], ...] = field(default=())


def read_build_info(path: str) -> BuildInfo:
    """Open ``path`` and decode its embedded build info."""

    try:
        with open(path, "rb") as handle:
            return read_build_info_from(handle)
    except OSError as exc:
        raise BuildInfoError(f"Unable to open binary: {exc.strerror}") from exc


def read_build_info_from(handle: BinaryIO) -> BuildInfo:
    image = ElfImage(handle)
    addr, size = image.data_start(BUILDINFO_SECTION)
    if size == 0:
        raise BuildInfoError("Binary has no data region for build info.")
    data = image.read_virtual(addr, min(size, _SEARCH_BYTES))
    start = _find_header(data)
    header = data[start : start + _HEADER_SIZE]
    ptr_size = header[14]
    flags = header[15]

    if flags & _FLAG_VERSION_INLINE:
        version, next_pos = _inline_string(image, data, start + _HEADER_SIZE, addr)
        mod_info, _ = _inline_string(image, data, next_pos, addr)
    else:
        if ptr_size not in (4, 8):
            raise BuildInfoError("Unsupported pointer size in build info header.")
        order = "big" if flags & _FLAG_BIG_ENDIAN else "little"
        version_ptr = int.from_bytes(header[16 : 16 + ptr_size], order)
        mod_ptr = int.from_bytes(header[16 + ptr_size : 16 + 2 * ptr_size], order)
        version = _pointer_string(image, version_ptr, ptr_size, order)
        mod_info = _pointer_string(image, mod_ptr, ptr_size, order)

    if not version:
        raise BuildInfoError("Build info carries no toolchain version.")
    return _build_info(
        version.decode("utf-8", errors="replace"), _strip_sentinels(mod_info)
    )


def _find_header(data: bytes) -> int:
    index = data.find(BUILDINFO_MAGIC)
    while index >= 0:
        if len(data) - index < _HEADER_SIZE:
            break
        if index % _ALIGN == 0:
            return index
        index = data.find(BUILDINFO_MAGIC, index + 1)
    raise BuildInfoError("Build info header not found.")


def _uvarint(buf: bytes, pos: int) -> tuple[int, int]:
    value = 0
    shift = 0
    while pos < len(buf):
        byte = buf[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        if byte < 0x80:
            return value, pos
        shift += 7
        if shift > 63:
            break
    raise BuildInfoError("Malformed length prefix in build info.")


def _inline_string(
    image: ElfImage, data: bytes, pos: int, base_addr: int
) -> tuple[bytes, int]:
    """Decode a length-prefixed string; returns it and the next offset."""

    window = data[pos : pos + 10]
    if len(window) < 10:
        window = image.read_virtual(base_addr + pos, 10)
    length, consumed = _uvarint(window, 0)
    if length > _MAX_STRING_BYTES:
        raise BuildInfoError("Build info string is implausibly long.")
    body = pos + consumed
    raw = data[body : body + length]
    if len(raw) < length:
        raw = image.read_virtual(base_addr + body, length)
        if len(raw) < length:
            raise BuildInfoError("Build info string is truncated.")
    return raw, body + length


def _pointer_string(image: ElfImage, addr: int, ptr_size: int, order: str) -> bytes:
    header = image.read_virtual(addr, 2 * ptr_size)
    if len(header) < 2 * ptr_size:
        return b""
    data_addr = int.from_bytes(header[:ptr_size], order)
    length = int.from_bytes(header[ptr_size:], order)
    if length > _MAX_STRING_BYTES:
        raise BuildInfoError("Build info string is implausibly long.")
    raw = image.read_virtual(data_addr, length)
    if len(raw) < length:
        return b""
    return raw


def _strip_sentinels(mod_info: bytes) -> str:
    if len(mod_info) >= 33 and mod_info[-17:-16] == b"\n":
        return mod_info[16:-16].decode("utf-8", errors="replace")
    return ""


def _malformed_quote() -> BuildInfoError:
    return BuildInfoError("Malformed quoted build setting.")


def _unquote(value: str) -> str:
    """Undo Go ``strconv.Quote`` on a setting key or value."""

    if not value.startswith('"'):
        return value
    if len(value) < 2 or not value.endswith('"'):
        raise _malformed_quote()
    body = value[1:-1]
    out = bytearray()
    pos = 0
    while pos < len(body):
        char = body[pos]
        if char in ('"', "\n"):
            raise _malformed_quote()
        if char != "\\":
            out += char.encode("utf-8")
            pos += 1
            continue
        if pos + 1 >= len(body):
            raise _malformed_quote()
        escape = body[pos + 1]
        pos += 2
        if escape in _SIMPLE_ESCAPES:
            out += _SIMPLE_ESCAPES[escape]
        elif escape in _HEX_ESCAPE_WIDTHS:
            width = _HEX_ESCAPE_WIDTHS[escape]
            digits = body[pos : pos + width]
            if len(digits) != width or any(c not in _HEX_DIGITS for c in digits):
                raise _malformed_quote()
            code = int(digits, 16)
            pos += width
            if escape == "x":
                out.append(code)
            elif code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
                raise _malformed_quote()
            else:
                out += chr(code).encode("utf-8")
        elif escape in _OCTAL_DIGITS:
            digits = body[pos - 1 : pos + 2]
            if len(digits) != 3 or any(c not in _OCTAL_DIGITS for c in digits):
                raise _malformed_quote()
            code = int(digits, 8)
            if code > 0xFF:
                raise _malformed_quote()
            out.append(code)
            pos += 2
        else:
            raise _malformed_quote()
    return out.decode("utf-8", errors="replace")


def _module(fields: list[str]) -> ModuleRef:
    if not fields or not fields[0]:
        raise BuildInfoError("Module line without a path.")
    padded = fields + ["", ""]
    return ModuleRef(path=padded[0], version=padded[1], checksum=padded[2])


def _split_setting(line: str) -> tuple[str, str]:
    if line.startswith('"'):
        end = 1
        while end < len(line):
            if line[end] == "\\":
                end += 2
                continue
            if line[end] == '"':
                break
            end += 1
        key = _unquote(line[: end + 1])
        rest = line[end + 1 :]
        if not rest.startswith("="):
            raise BuildInfoError("Malformed build setting line.")
        return key, _unquote(rest[1:])
    key, sep, value = line.partition("=")
    if not sep or not key:
        raise BuildInfoError("Malformed build setting line.")
    return key, _unquote(value)


ParsedModInfo = tuple[
    str, "ModuleRef | None", tuple[ModuleRef, ...], tuple[tuple[str, str], ...]
]


def parse_mod_info(text: str) -> ParsedModInfo:
    """Parse module info text into (path, main, deps, settings)."""

    path = ""
    main: ModuleRef | None = None
    deps: list[ModuleRef] = []
    settings: list[tuple[str, str]] = []
    for line in text.splitlines():
        if not line:
            continue
        kind, _, rest = line.partition("\t")
        if kind == "path":
            path = rest
        elif kind == "mod":
            main = _module(rest.split("\t"))
        elif kind == "dep":
            deps.append(_module(rest.split("\t")))
        elif kind == "=>":
            if not deps:
                raise BuildInfoError("Replacement line without a dependency.")
            deps[-1] = replace(deps[-1], replace=_module(rest.split("\t")))
        elif kind == "build":
            settings.append(_split_setting(rest))
    return path, main, tuple(deps), tuple(settings)


def _build_info(version: str, mod_info: str) -> BuildInfo:
    path, main, deps, settings = parse_mod_info(mod_info)
    return BuildInfo(
        go_version=version,
        path=path,
        main=main,
        deps=deps,
        settings=settings,
    )
