"""Decoding of embedded Go build info from ELF images."""

from __future__ import annotations

import io

import pytest

from elf_builder import MAGIC, build_go_elf, build_plain_elf, mod_info
from fips_scan.services.buildinfo import (
    parse_mod_info,
    read_build_info,
    read_build_info_from,
)
from fips_scan.services.errors import BuildInfoError, ElfFormatError


def _read(image: bytes):
    return read_build_info_from(io.BytesIO(image))


def test_inline_layout_decodes_version_module_and_settings() -> None:
    info = _read(build_go_elf())

    assert info.go_version == "go1.24.6 X:systemcrypto"
    assert info.path == "example.com/app"
    assert info.main is not None
    assert info.main.path == "example.com/app"
    assert info.main.version == "(devel)"
    assert ("CGO_ENABLED", "1") in info.settings
    assert ("GOEXPERIMENT", "systemcrypto") in info.settings


@pytest.mark.parametrize(
    ("is_64", "big_endian"),
    [(True, False), (True, True), (False, False), (False, True)],
)
def test_pointer_layout_decodes_for_every_word_size_and_order(
    is_64: bool, big_endian: bool
) -> None:
    """Pre-1.18 binaries store pointers whose width and order vary."""

    image = build_go_elf(
        "go1.17.13", inline=False, is_64=is_64, big_endian=big_endian
    )
    info = _read(image)

    assert info.go_version == "go1.17.13"
    assert info.path == "example.com/app"


def test_named_section_is_preferred_over_segment_scan() -> None:
    info = _read(build_go_elf("go1.22.1", with_section=True))

    assert info.go_version == "go1.22.1"


def test_misaligned_magic_is_ignored_in_favour_of_aligned_header() -> None:
    decoy = (b"\x00" * 3 + MAGIC).ljust(32, b"\x00")
    info = _read(build_go_elf("go1.21.0", blob_prefix=decoy))

    assert info.go_version == "go1.21.0"


def test_missing_sentinels_yield_empty_module_info() -> None:
    info = _read(build_go_elf("go1.21.0", raw_info=b"path\texample.com/app\n"))

    assert info.go_version == "go1.21.0"
    assert info.path == ""
    assert info.settings == ()


def test_dependencies_and_replacements_are_kept() -> None:
    text = mod_info(
        deps=[("golang.org/x/crypto", "v0.31.0", "h1:abc=")],
        extra_lines=["=>\t../crypto\t\t"],
    )
    info = _read(build_go_elf(info_text=text))

    assert len(info.deps) == 1
    dep = info.deps[0]
    assert dep.path == "golang.org/x/crypto"
    assert dep.replace is not None
    assert dep.replace.path == "../crypto"


def test_quoted_setting_values_are_unquoted() -> None:
    _, _, _, settings = parse_mod_info('build\t-ldflags="-s -w -X main.v=1"\n')

    assert settings == (("-ldflags", "-s -w -X main.v=1"),)


def test_malformed_setting_line_raises() -> None:
    with pytest.raises(BuildInfoError):
        parse_mod_info("build\tno-equals-sign\n")


def test_elf_without_build_info_raises() -> None:
    with pytest.raises(BuildInfoError):
        _read(build_plain_elf())


def test_non_elf_bytes_raise_format_error() -> None:
    with pytest.raises(ElfFormatError):
        _read(b"#!/bin/sh\necho hi\n")


def test_truncated_header_raises_format_error() -> None:
    with pytest.raises(ElfFormatError):
        _read(build_go_elf()[:40])


def test_empty_version_is_rejected() -> None:
    with pytest.raises(BuildInfoError):
        _read(build_go_elf(""))


def test_read_build_info_wraps_missing_file(tmp_path) -> None:
    with pytest.raises(BuildInfoError):
        read_build_info(str(tmp_path / "missing"))


@pytest.mark.parametrize(
    ("quoted", "expected"),
    [
        (r'"a\tb"', "a\tb"),
        (r'"\x41é\U0001F600"', "Aé\U0001f600"),
        (r'"\101\"q\\"', 'A"q\\'),
        (r'"\303\251"', "é"),
        (r'"\a\b\f\n\r\v"', "\a\b\f\n\r\v"),
    ],
)
def test_go_escapes_in_quoted_values_are_decoded(quoted: str, expected: str) -> None:
    _, _, _, settings = parse_mod_info(f"build\tKEY={quoted}\n")

    assert settings == (("KEY", expected),)


@pytest.mark.parametrize(
    "quoted",
    [r'"\q"', r'"\x4"', r'"\400"', r'"\uD800"', '"open', '"a"b"', '"a"+1'],
)
def test_invalid_quoted_values_raise(quoted: str) -> None:
    with pytest.raises(BuildInfoError):
        parse_mod_info(f"build\tKEY={quoted}\n")


def test_expression_shaped_setting_is_rejected_not_evaluated() -> None:
    hostile = '"a"+' + "-" * 20_000 + "1"

    with pytest.raises(BuildInfoError):
        parse_mod_info(f"build\tGOFLAGS={hostile}\n")
