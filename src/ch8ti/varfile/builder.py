"""
Variable File Builder
=====================

This module provides the VarFileBuilder class for packaging a CHIP-8 ROM
into a TI-68k variable file.

Usage
-----
Building in memory:

    >>> from ch8ti.varfile import VarFileBuilder, CalcModel
    >>> builder = VarFileBuilder(calc=CalcModel.TI89, name="pong")
    >>> data = builder.build(Path("pong.ch8").read_bytes())

Writing straight to disk:

    >>> builder.build_to_file(rom, "pong.89y")

Converting a ROM file with default naming:

    >>> convert_rom_file("games/pong.ch8", CalcModel.V200)
    PosixPath('games/pong.v2y')

Output is written to a temporary file next to the destination and renamed
into place, so an interrupted build never leaves a truncated file behind.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Final, Optional, Union
import logging
import os
import tempfile

from ch8ti.config import DEFAULT_FOLDER
from ch8ti.errors import RomSizeError
from ch8ti.varfile.checksum import checksum_bytes
from ch8ti.varfile.compression import compress
from ch8ti.varfile.records import (
    DATASIZE_OFFSET,
    TRAILER,
    CalcModel,
    VariableHeader,
)

# Logger for this module
logger = logging.getLogger(__name__)


# CHIP-8 programs live in 0x200-0xFFF; the loader reserves a full 4KB
MAX_ROM_SIZE: Final[int] = 0x1000

# Permissions for newly created output files (before umask)
DEFAULT_FILE_MODE: Final[int] = 0o644

# Extensions stripped from ROM filenames, in this order
ROM_SUFFIXES: Final[tuple[str, ...]] = (".ch8", ".rom")


# =============================================================================
# Validation Helpers
# =============================================================================

def validate_rom_size(rom: bytes) -> None:
    """
    Check that a ROM fits the emulator's address space.

    Raises:
        RomSizeError: If the ROM is larger than 4096 bytes
    """
    if len(rom) > MAX_ROM_SIZE:
        raise RomSizeError(len(rom), MAX_ROM_SIZE)


# =============================================================================
# Naming Helpers
# =============================================================================

def strip_rom_suffix(path: str) -> str:
    """
    Remove a trailing .ch8 and then a trailing .rom from a path.

    Example:
        >>> strip_rom_suffix("games/pong.rom.ch8")
        'games/pong'
    """
    for suffix in ROM_SUFFIXES:
        if path.endswith(suffix):
            path = path[:-len(suffix)]
    return path


def derive_var_name(input_path: Union[str, Path]) -> str:
    """
    Derive the on-calculator variable name from a ROM path.

    The name is the base filename with ROM suffixes removed. It is not
    clipped here; the header clips it to 8 bytes.
    """
    return strip_rom_suffix(str(input_path)).rsplit("/", 1)[-1]


def resolve_output_path(
    input_path: Union[str, Path],
    calc: CalcModel,
    output: Optional[Union[str, Path]] = None,
) -> Path:
    """
    Determine where the variable file is written.

    Without an explicit output, the ROM path (suffix stripped) gets the
    model's extension. An explicit output gets the extension appended
    unless it already ends with it.
    """
    if output is None:
        return Path(strip_rom_suffix(str(input_path)) + calc.extension)

    output = str(output)
    if not output.endswith(calc.extension):
        output += calc.extension
    return Path(output)


# =============================================================================
# Variable File Builder
# =============================================================================

@dataclass
class VarFileBuilder:
    """
    Builds TI-68k variable files from CHIP-8 ROM images.

    Attributes:
        calc: Target calculator model
        name: On-calculator variable name (clipped to 8 bytes)
        folder: On-calculator folder (clipped to 8 bytes)

    Example:
        >>> builder = VarFileBuilder(calc=CalcModel.TI92P, name="tetris")
        >>> data = builder.build(rom)
    """
    calc: CalcModel
    name: str
    folder: str = DEFAULT_FOLDER

    # =========================================================================
    # Building
    # =========================================================================

    def build(self, rom: bytes) -> bytes:
        """
        Build the complete variable file.

        Args:
            rom: Raw ROM image (at most 4096 bytes)

        Returns:
            Header, compressed ROM, trailer and checksum as one byte string

        Raises:
            RomSizeError: If the ROM is too large
            FieldOverflowError: If the header cannot describe the payload
        """
        return b"".join(self._build_chunks(rom))

    def build_to_file(self, rom: bytes, filepath: Union[str, Path]) -> int:
        """
        Build the variable file and write it to disk atomically.

        The file is written to a temporary name in the destination
        directory and renamed over `filepath` once every byte is on disk.
        On failure the temporary file is removed and `filepath` is left
        as it was.

        Args:
            rom: Raw ROM image
            filepath: Output file path

        Returns:
            Number of bytes written

        Raises:
            RomSizeError: If the ROM is too large (nothing is written)
            OSError: If the file cannot be written
        """
        filepath = Path(filepath)
        chunks = self._build_chunks(rom)
        mode = _output_mode(filepath)

        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                "wb",
                dir=filepath.parent,
                prefix=f".{filepath.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.writelines(chunks)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, filepath)
        except BaseException:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise

        written = sum(len(chunk) for chunk in chunks)
        logger.info(f"Wrote {filepath} ({written} bytes)")
        return written

    def _build_chunks(self, rom: bytes) -> list[bytes]:
        """
        Build the four file sections in output order.

        Returns:
            [header, payload, trailer, checksum]
        """
        validate_rom_size(rom)

        payload = compress(rom)
        header = VariableHeader.for_payload(
            calc=self.calc,
            folder=self.folder,
            name=self.name,
            payload_length=len(payload),
        )
        header_bytes = header.to_bytes()
        checksum = checksum_bytes(header_bytes[DATASIZE_OFFSET:], payload, TRAILER)

        logger.debug(
            f"Packaged '{self.folder}\\{self.name}' for {self.calc.get_description()}: "
            f"size={header.size}, datasize={header.datasize}, "
            f"checksum=0x{int.from_bytes(checksum, 'little'):04X}"
        )
        return [header_bytes, payload, TRAILER, checksum]


def _output_mode(filepath: Path) -> int:
    """Keep an existing file's permissions, else use the umask default."""
    try:
        return filepath.stat().st_mode & 0o777
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return DEFAULT_FILE_MODE & ~umask


# =============================================================================
# Convenience Functions
# =============================================================================

def create_varfile(
    rom: bytes,
    calc: CalcModel,
    name: str,
    folder: str = DEFAULT_FOLDER,
) -> bytes:
    """
    Package a ROM image in memory.

    Example:
        >>> data = create_varfile(rom, CalcModel.TI89, "pong")
    """
    return VarFileBuilder(calc=calc, name=name, folder=folder).build(rom)


def convert_rom_file(
    input_path: Union[str, Path],
    calc: CalcModel,
    var_name: Optional[str] = None,
    folder: str = DEFAULT_FOLDER,
    output: Optional[Union[str, Path]] = None,
) -> Path:
    """
    Read a ROM file and write the packaged variable file.

    Args:
        input_path: Path to the .ch8/.rom file
        calc: Target calculator model
        var_name: Variable name (defaults to the ROM's base filename)
        folder: Folder name
        output: Output path (defaults to the ROM path with the model's extension)

    Returns:
        Path of the written variable file

    Raises:
        RomSizeError: If the ROM is too large (no output is created)
        OSError: If reading or writing fails
    """
    rom = Path(input_path).read_bytes()
    output_path = resolve_output_path(input_path, calc, output)
    name = var_name if var_name is not None else derive_var_name(input_path)

    VarFileBuilder(calc=calc, name=name, folder=folder).build_to_file(rom, output_path)
    return output_path
