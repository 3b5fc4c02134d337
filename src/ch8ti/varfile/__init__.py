"""
TI-68k Variable Files for CHIP-8 ROMs
=====================================

This module packages CHIP-8 ROM images as variable files that the
TI-89, TI-92 Plus and Voyage 200 can receive over the link cable, and
that the on-calculator emulator decompresses and runs.

This module provides:
- **VarFileBuilder**: Compress a ROM and build the variable file
- **VarFileParser**: Read a variable file back and recover the ROM
- **VariableHeader / CalcModel**: The 91-byte header and target models
- **compress / decompress**: The ROM compression format
- **Checksum utilities**: Calculate and verify file checksums

Quick Start
-----------
    >>> from ch8ti.varfile import VarFileBuilder, CalcModel
    >>> builder = VarFileBuilder(calc=CalcModel.TI89, name="pong")
    >>> builder.build_to_file(Path("pong.ch8").read_bytes(), "pong.89y")

File Extensions
---------------
- **.89y**: TI-89 / TI-89 Titanium
- **.9xy**: TI-92 Plus
- **.v2y**: Voyage 200
"""

from ch8ti.varfile.records import (
    CalcModel,
    VariableHeader,
    HEADER_SIZE,
    DATASIZE_OFFSET,
    TRAILER,
    encode_name,
    decode_name,
)

from ch8ti.varfile.compression import (
    Literal,
    BackReference,
    Token,
    COMPRESS_FLAG,
    WINDOW_SIZE,
    MAX_MATCH_LENGTH,
    tokenize,
    encode_tokens,
    decode_tokens,
    expand_tokens,
    compress,
    decompress,
)

from ch8ti.varfile.checksum import (
    calculate_checksum,
    checksum_bytes,
    verify_checksum,
)

from ch8ti.varfile.parser import VarFileParser

from ch8ti.varfile.builder import (
    VarFileBuilder,
    MAX_ROM_SIZE,
    validate_rom_size,
    strip_rom_suffix,
    derive_var_name,
    resolve_output_path,
    create_varfile,
    convert_rom_file,
)

__all__ = [
    # Records
    "CalcModel",
    "VariableHeader",
    "HEADER_SIZE",
    "DATASIZE_OFFSET",
    "TRAILER",
    "encode_name",
    "decode_name",
    # Compression
    "Literal",
    "BackReference",
    "Token",
    "COMPRESS_FLAG",
    "WINDOW_SIZE",
    "MAX_MATCH_LENGTH",
    "tokenize",
    "encode_tokens",
    "decode_tokens",
    "expand_tokens",
    "compress",
    "decompress",
    # Checksum
    "calculate_checksum",
    "checksum_bytes",
    "verify_checksum",
    # Parser
    "VarFileParser",
    # Builder
    "VarFileBuilder",
    "MAX_ROM_SIZE",
    "validate_rom_size",
    "strip_rom_suffix",
    "derive_var_name",
    "resolve_output_path",
    "create_varfile",
    "convert_rom_file",
]
