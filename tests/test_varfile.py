"""
Variable File Unit Tests
========================

Tests for building and reading ch8 variable files.

Test Categories
---------------
1. Models: Signatures and extensions per calculator
2. Header: Field layout, sizes, name clipping
3. Checksum: Wrapping sum and verification
4. Builder: Size limit, exact output, atomic writes
5. Naming: Variable name and output path derivation
6. Parser: Reading files back and recovering ROMs
"""

import os
import random
import struct
from pathlib import Path

import pytest

from ch8ti.errors import FieldOverflowError, RomSizeError, VarFileFormatError
from ch8ti.varfile import (
    DATASIZE_OFFSET,
    HEADER_SIZE,
    MAX_ROM_SIZE,
    TRAILER,
    CalcModel,
    VarFileBuilder,
    VarFileParser,
    VariableHeader,
    calculate_checksum,
    checksum_bytes,
    convert_rom_file,
    create_varfile,
    derive_var_name,
    resolve_output_path,
    strip_rom_suffix,
    verify_checksum,
)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def sample_rom() -> bytes:
    """
    A small CHIP-8 program with some repetition.

        00E0        CLS
        A22A        LD I, 0x22A
        600C 6108   LD V0, 0x0C ; LD V1, 0x08
        D01F        DRW V0, V1, 15
        (repeated)
        1210        JP 0x210
    """
    body = bytes.fromhex("00E0A22A600C6108D01F")
    return body + body + body + bytes.fromhex("1210")


@pytest.fixture
def builder() -> VarFileBuilder:
    return VarFileBuilder(calc=CalcModel.TI89, name="pong", folder="main")


def size_field(data: bytes) -> int:
    return struct.unpack_from("<I", data, 76)[0]


def datasize_field(data: bytes) -> int:
    return struct.unpack_from(">H", data, DATASIZE_OFFSET)[0]


# =============================================================================
# Calculator Model Tests
# =============================================================================

class TestCalcModel:
    """Tests for CalcModel signatures and extensions."""

    def test_signatures(self):
        """TI-89 has its own signature; TI-92 Plus and V200 share one."""
        assert CalcModel.TI89.signature == b"**TI89**"
        assert CalcModel.TI92P.signature == b"**TI92P*"
        assert CalcModel.V200.signature == b"**TI92P*"

    def test_extensions(self):
        assert CalcModel.TI89.extension == ".89y"
        assert CalcModel.TI92P.extension == ".9xy"
        assert CalcModel.V200.extension == ".v2y"

    def test_from_signature(self):
        assert CalcModel.from_signature(b"**TI89**") is CalcModel.TI89
        assert CalcModel.from_signature(b"**TI92P*") is CalcModel.TI92P
        with pytest.raises(ValueError):
            CalcModel.from_signature(b"**TI83F*")


# =============================================================================
# Header Tests
# =============================================================================

class TestVariableHeader:
    """Tests for VariableHeader layout and size fields."""

    def test_length(self):
        header = VariableHeader.for_payload(CalcModel.TI89, "main", "pong", 0)
        assert len(header.to_bytes()) == HEADER_SIZE

    def test_fixed_fields(self):
        """Filler and version bytes are reproduced exactly."""
        data = VariableHeader.for_payload(CalcModel.TI89, "main", "pong", 1).to_bytes()
        assert data[8:10] == bytes([0x01, 0x00])
        assert data[18:58] == bytes(40)
        assert data[58:64] == bytes([0x01, 0x00, 0x52, 0x00, 0x00, 0x00])
        assert data[72:76] == bytes([0x1C, 0x00, 0x00, 0x00])
        assert data[80:86] == bytes([0xA5, 0x5A, 0x00, 0x00, 0x00, 0x00])
        assert data[88:91] == bytes([1, 0, 0])

    def test_empty_payload_sizes(self):
        """An empty payload still counts version bytes and trailer."""
        data = VariableHeader.for_payload(CalcModel.TI89, "main", "x", 0).to_bytes()
        assert datasize_field(data) == 9
        assert size_field(data) == 99

    def test_single_byte_payload_sizes(self):
        data = VariableHeader.for_payload(CalcModel.TI89, "main", "x", 1).to_bytes()
        assert datasize_field(data) == 1 + 3 + 3 + 3
        assert size_field(data) == 91 + 1 + 5 + 3

    def test_size_field_is_little_endian(self):
        data = VariableHeader.for_payload(CalcModel.TI89, "main", "x", 0x1234).to_bytes()
        size = 91 + 0x1234 + 8
        assert data[76:80] == size.to_bytes(4, "little")

    def test_datasize_field_is_big_endian(self):
        data = VariableHeader.for_payload(CalcModel.TI89, "main", "x", 0x1234).to_bytes()
        assert data[86:88] == (0x1234 + 9).to_bytes(2, "big")

    @pytest.mark.parametrize("calc,signature", [
        (CalcModel.TI89, b"**TI89**"),
        (CalcModel.TI92P, b"**TI92P*"),
        (CalcModel.V200, b"**TI92P*"),
    ])
    def test_signature_field(self, calc: CalcModel, signature: bytes):
        data = VariableHeader.for_payload(calc, "main", "x", 0).to_bytes()
        assert data[0:8] == signature

    def test_long_name_is_clipped(self):
        """Names longer than 8 bytes keep their first 8 bytes."""
        data = VariableHeader.for_payload(CalcModel.TI89, "mainfolder", "spaceinvaders", 0).to_bytes()
        assert data[10:18] == b"mainfold"
        assert data[64:72] == b"spaceinv"

    def test_short_name_is_zero_padded(self):
        data = VariableHeader.for_payload(CalcModel.TI89, "ab", "c", 0).to_bytes()
        assert data[10:18] == b"ab" + bytes(6)
        assert data[64:72] == b"c" + bytes(7)

    def test_exact_length_name(self):
        data = VariableHeader.for_payload(CalcModel.TI89, "main", "tetris12", 0).to_bytes()
        assert data[64:72] == b"tetris12"

    def test_datasize_overflow(self):
        """A payload too large for the 16-bit datasize field is rejected."""
        with pytest.raises(FieldOverflowError) as exc_info:
            VariableHeader.for_payload(CalcModel.TI89, "main", "x", 0xFFFF)
        assert exc_info.value.field_name == "datasize"

    def test_largest_payload_fits(self):
        header = VariableHeader.for_payload(CalcModel.TI89, "main", "x", 0xFFFF - 9)
        assert header.datasize == 0xFFFF

    def test_from_bytes_roundtrip(self):
        original = VariableHeader.for_payload(CalcModel.TI92P, "games", "brix", 321)
        parsed = VariableHeader.from_bytes(original.to_bytes())
        assert parsed == original

    def test_from_bytes_too_short(self):
        with pytest.raises(ValueError):
            VariableHeader.from_bytes(bytes(90))


# =============================================================================
# Checksum Tests
# =============================================================================

class TestChecksum:
    """Tests for the 16-bit wrapping checksum."""

    def test_empty(self):
        assert calculate_checksum(b"") == 0
        assert calculate_checksum() == 0

    def test_simple_sum(self):
        assert calculate_checksum(bytes([1, 2, 3])) == 6

    def test_wraps_at_16_bits(self):
        """Sums above 65535 wrap around."""
        data = bytes([0xFF] * 300)
        assert sum(data) > 0xFFFF
        assert calculate_checksum(data) == sum(data) % 0x10000 == 10964

    def test_chunks_are_summed_in_order(self):
        rng = random.Random(11)
        chunks = [bytes(rng.randrange(256) for _ in range(n)) for n in (91, 4000, 6)]
        assert calculate_checksum(*chunks) == sum(b"".join(chunks)) % 0x10000

    def test_checksum_bytes_little_endian(self):
        assert checksum_bytes(bytes([0x01, 0x02]) * 100) == (300).to_bytes(2, "little")
        assert checksum_bytes(bytes([0x47, 0x02, 0x00])) == bytes([0x49, 0x00])

    def test_verify_too_short(self):
        assert verify_checksum(bytes(10)) is False


# =============================================================================
# Builder Tests
# =============================================================================

class TestVarFileBuilder:
    """Tests for VarFileBuilder.build()."""

    def test_exact_single_byte_file(self, builder: VarFileBuilder):
        """The complete file for a one-byte ROM, byte for byte."""
        expected = (
            b"**TI89**"
            + bytes([0x01, 0x00])
            + b"main" + bytes(4)
            + bytes(40)
            + bytes([0x01, 0x00, 0x52, 0x00, 0x00, 0x00])
            + b"pong" + bytes(4)
            + bytes([0x1C, 0x00, 0x00, 0x00])
            + bytes([100, 0, 0, 0])
            + bytes([0xA5, 0x5A, 0x00, 0x00, 0x00, 0x00])
            + bytes([0x00, 0x0A])
            + bytes([1, 0, 0])
            + bytes([0x41])
            + bytes([0x00, 0x63, 0x68, 0x38, 0x00, 0xF8])
            + bytes([0x47, 0x02])
        )
        assert builder.build(bytes([0x41])) == expected

    def test_empty_rom(self, builder: VarFileBuilder):
        """An empty ROM yields an empty payload."""
        data = builder.build(b"")
        assert len(data) == HEADER_SIZE + len(TRAILER) + 2
        assert datasize_field(data) == 9
        assert size_field(data) == 99
        assert data[HEADER_SIZE:HEADER_SIZE + len(TRAILER)] == TRAILER

    def test_layout(self, builder: VarFileBuilder, sample_rom: bytes):
        """Header, payload, trailer and checksum appear in order."""
        data = builder.build(sample_rom)
        payload_len = datasize_field(data) - 9
        assert len(data) == HEADER_SIZE + payload_len + len(TRAILER) + 2
        assert size_field(data) == len(data)
        assert data[-8:-2] == TRAILER

    def test_compresses_payload(self, builder: VarFileBuilder, sample_rom: bytes):
        data = builder.build(sample_rom)
        assert len(data) < HEADER_SIZE + len(sample_rom) + len(TRAILER) + 2

    def test_checksum_independent_sum(self, builder: VarFileBuilder):
        """The stored checksum equals a plain sum from the datasize field on."""
        rng = random.Random(5)
        rom = bytes(rng.randrange(256) for _ in range(MAX_ROM_SIZE))
        data = builder.build(rom)
        expected = sum(data[DATASIZE_OFFSET:-2]) % 0x10000
        assert int.from_bytes(data[-2:], "little") == expected
        assert verify_checksum(data)

    def test_checksum_ignores_names(self, sample_rom: bytes):
        """Bytes before the datasize field are not checksummed."""
        a = VarFileBuilder(calc=CalcModel.TI89, name="aaaa").build(sample_rom)
        b = VarFileBuilder(calc=CalcModel.V200, name="zzzzzzzz", folder="games").build(sample_rom)
        assert a[-2:] == b[-2:]

    def test_max_size_rom_accepted(self, builder: VarFileBuilder):
        data = builder.build(bytes(MAX_ROM_SIZE))
        assert verify_checksum(data)

    def test_oversized_rom_rejected(self, builder: VarFileBuilder):
        with pytest.raises(RomSizeError) as exc_info:
            builder.build(bytes(MAX_ROM_SIZE + 1))
        assert exc_info.value.size == 4097
        assert exc_info.value.limit == 4096

    def test_create_varfile(self, sample_rom: bytes):
        assert create_varfile(sample_rom, CalcModel.TI89, "pong") == \
            VarFileBuilder(calc=CalcModel.TI89, name="pong").build(sample_rom)


class TestBuildToFile:
    """Tests for VarFileBuilder.build_to_file() atomic output."""

    def test_writes_file(self, builder: VarFileBuilder, sample_rom: bytes, tmp_path: Path):
        output = tmp_path / "pong.89y"
        written = builder.build_to_file(sample_rom, output)
        assert output.read_bytes() == builder.build(sample_rom)
        assert written == output.stat().st_size

    def test_no_temporary_files_left(self, builder: VarFileBuilder, sample_rom: bytes, tmp_path: Path):
        builder.build_to_file(sample_rom, tmp_path / "pong.89y")
        assert [p.name for p in tmp_path.iterdir()] == ["pong.89y"]

    def test_oversized_rom_creates_nothing(self, builder: VarFileBuilder, tmp_path: Path):
        with pytest.raises(RomSizeError):
            builder.build_to_file(bytes(MAX_ROM_SIZE + 1), tmp_path / "big.89y")
        assert list(tmp_path.iterdir()) == []

    def test_missing_directory(self, builder: VarFileBuilder, sample_rom: bytes, tmp_path: Path):
        """I/O errors propagate unchanged."""
        with pytest.raises(FileNotFoundError):
            builder.build_to_file(sample_rom, tmp_path / "nowhere" / "pong.89y")

    def test_failed_rename_leaves_nothing(
        self, builder: VarFileBuilder, sample_rom: bytes, tmp_path: Path, monkeypatch
    ):
        def failing_replace(src, dst):
            raise OSError("disk on fire")

        monkeypatch.setattr(os, "replace", failing_replace)
        with pytest.raises(OSError, match="disk on fire"):
            builder.build_to_file(sample_rom, tmp_path / "pong.89y")
        assert list(tmp_path.iterdir()) == []

    def test_failed_write_keeps_existing_file(
        self, builder: VarFileBuilder, sample_rom: bytes, tmp_path: Path, monkeypatch
    ):
        output = tmp_path / "pong.89y"
        output.write_bytes(b"previous")

        def failing_fsync(fd):
            raise OSError("fsync failed")

        monkeypatch.setattr(os, "fsync", failing_fsync)
        with pytest.raises(OSError, match="fsync failed"):
            builder.build_to_file(sample_rom, output)
        assert output.read_bytes() == b"previous"
        assert [p.name for p in tmp_path.iterdir()] == ["pong.89y"]

    def test_overwrite_keeps_permissions(self, builder: VarFileBuilder, sample_rom: bytes, tmp_path: Path):
        output = tmp_path / "pong.89y"
        output.write_bytes(b"old")
        output.chmod(0o640)
        builder.build_to_file(sample_rom, output)
        assert output.stat().st_mode & 0o777 == 0o640


# =============================================================================
# Naming Tests
# =============================================================================

class TestNaming:
    """Tests for variable name and output path derivation."""

    def test_strip_rom_suffix(self):
        assert strip_rom_suffix("pong.ch8") == "pong"
        assert strip_rom_suffix("pong.rom") == "pong"
        assert strip_rom_suffix("pong.rom.ch8") == "pong"
        assert strip_rom_suffix("pong.ch8.rom") == "pong.ch8"
        assert strip_rom_suffix("PONG") == "PONG"

    def test_derive_var_name(self):
        assert derive_var_name("roms/games/BRIX.ch8") == "BRIX"
        assert derive_var_name(Path("roms") / "tetris.rom") == "tetris"
        assert derive_var_name("spaceinvaders.ch8") == "spaceinvaders"

    def test_default_output_path(self):
        assert resolve_output_path("roms/pong.ch8", CalcModel.TI89) == Path("roms/pong.89y")
        assert resolve_output_path("roms/pong.rom", CalcModel.TI92P) == Path("roms/pong.9xy")
        assert resolve_output_path("PONG", CalcModel.V200) == Path("PONG.v2y")

    def test_explicit_output_gets_extension(self):
        assert resolve_output_path("pong.ch8", CalcModel.TI89, "out/game") == Path("out/game.89y")

    def test_explicit_output_keeps_extension(self):
        assert resolve_output_path("pong.ch8", CalcModel.V200, "out/game.v2y") == Path("out/game.v2y")

    def test_convert_rom_file(self, sample_rom: bytes, tmp_path: Path):
        rom_path = tmp_path / "pong.ch8"
        rom_path.write_bytes(sample_rom)

        output = convert_rom_file(rom_path, CalcModel.TI89)

        assert output == tmp_path / "pong.89y"
        parser = VarFileParser.from_file(output)
        assert parser.header.name == "pong"
        assert parser.header.folder == "main"
        assert parser.extract_rom() == sample_rom

    def test_convert_rom_file_too_large(self, tmp_path: Path):
        rom_path = tmp_path / "huge.ch8"
        rom_path.write_bytes(bytes(MAX_ROM_SIZE + 1))
        with pytest.raises(RomSizeError):
            convert_rom_file(rom_path, CalcModel.TI89)
        assert not (tmp_path / "huge.89y").exists()

    def test_convert_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            convert_rom_file(tmp_path / "missing.ch8", CalcModel.TI89)


# =============================================================================
# Parser Tests
# =============================================================================

class TestVarFileParser:
    """Tests for reading variable files back."""

    def test_roundtrip(self, sample_rom: bytes):
        data = create_varfile(sample_rom, CalcModel.V200, "brix", "games")
        parser = VarFileParser.from_bytes(data)
        assert parser.calc is CalcModel.TI92P
        assert parser.header.name == "brix"
        assert parser.header.folder == "games"
        assert parser.header.version == (1, 0, 0)
        assert parser.verify_checksum()
        assert parser.extract_rom() == sample_rom

    def test_clipped_name_reads_back(self, sample_rom: bytes):
        data = create_varfile(sample_rom, CalcModel.TI89, "spaceinvaders")
        assert VarFileParser.from_bytes(data).header.name == "spaceinv"

    def test_get_info(self, sample_rom: bytes):
        data = create_varfile(sample_rom, CalcModel.TI89, "pong")
        info = VarFileParser.from_bytes(data).get_info()
        assert info["calc"] == "TI-89 / TI-89 Titanium"
        assert info["name"] == "pong"
        assert info["version"] == "1.0.0"
        assert info["file_size"] == len(data)
        assert info["checksum_valid"] is True

    def test_corrupt_payload_fails_checksum(self, sample_rom: bytes):
        data = bytearray(create_varfile(sample_rom, CalcModel.TI89, "pong"))
        data[HEADER_SIZE] ^= 0x01
        parser = VarFileParser.from_bytes(bytes(data))
        assert not parser.verify_checksum()
        assert not verify_checksum(bytes(data))

    def test_too_short(self):
        with pytest.raises(VarFileFormatError):
            VarFileParser.from_bytes(bytes(50))

    def test_unknown_signature(self, sample_rom: bytes):
        data = b"**TI83F*" + create_varfile(sample_rom, CalcModel.TI89, "pong")[8:]
        with pytest.raises(VarFileFormatError):
            VarFileParser.from_bytes(data)

    def test_missing_trailer(self, sample_rom: bytes):
        data = bytearray(create_varfile(sample_rom, CalcModel.TI89, "pong"))
        data[-5] = ord("x")
        with pytest.raises(VarFileFormatError, match="trailer"):
            VarFileParser.from_bytes(bytes(data))

    def test_size_mismatch(self, sample_rom: bytes):
        """Extra payload bytes break the size fields."""
        data = create_varfile(sample_rom, CalcModel.TI89, "pong")
        padded = data[:HEADER_SIZE] + b"\x00" + data[HEADER_SIZE:]
        with pytest.raises(VarFileFormatError, match="Size field"):
            VarFileParser.from_bytes(padded)

    def test_from_file(self, sample_rom: bytes, tmp_path: Path):
        path = tmp_path / "pong.89y"
        path.write_bytes(create_varfile(sample_rom, CalcModel.TI89, "pong"))
        assert VarFileParser.from_file(path).extract_rom() == sample_rom
