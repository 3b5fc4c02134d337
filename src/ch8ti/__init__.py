"""
ch8ti - CHIP-8 ROM Packager for TI-68k Calculators
==================================================

This package turns CHIP-8 ROM images into variable files for the
TI-89, TI-92 Plus and Voyage 200, ready to be sent to the calculator and
run by the on-calculator CHIP-8 emulator.

Main Components
---------------
- **varfile**: Compression, header layout, checksum and packaging
- **cli**: The ch8prep command-line tool

Quick Start
-----------
Package a ROM:
    >>> from ch8ti import convert_rom_file, CalcModel
    >>> convert_rom_file("pong.ch8", CalcModel.TI89)
    PosixPath('pong.89y')

Or use the command-line tool:
    $ ch8prep pack pong.ch8 -c ti89
    $ ch8prep info pong.89y
"""

__version__ = "1.0.0"
__author__ = "Peter Lafreniere & Contributors"

# =============================================================================
# Public API Exports
# =============================================================================

from ch8ti.errors import (
    Ch8Error,
    PackagingError,
    RomSizeError,
    FieldOverflowError,
    VarFileFormatError,
    CompressionError,
)

from ch8ti.config import PrepConfig, DEFAULT_FOLDER

from ch8ti.varfile import (
    CalcModel,
    VariableHeader,
    VarFileBuilder,
    VarFileParser,
    compress,
    decompress,
    calculate_checksum,
    create_varfile,
    convert_rom_file,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Exception hierarchy
    "Ch8Error",
    "PackagingError",
    "RomSizeError",
    "FieldOverflowError",
    "VarFileFormatError",
    "CompressionError",
    # Configuration
    "PrepConfig",
    "DEFAULT_FOLDER",
    # Variable files
    "CalcModel",
    "VariableHeader",
    "VarFileBuilder",
    "VarFileParser",
    "compress",
    "decompress",
    "calculate_checksum",
    "create_varfile",
    "convert_rom_file",
]
