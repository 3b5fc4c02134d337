"""
Variable File Parser
====================

This module provides VarFileParser for reading ch8 variable files back:
inspecting the header, checking the checksum and recovering the ROM.

Usage Examples
--------------
    >>> from ch8ti.varfile import VarFileParser
    >>> parser = VarFileParser.from_file("pong.89y")
    >>> print(parser.header.name, parser.calc.get_description())
    >>> if parser.verify_checksum():
    ...     rom = parser.extract_rom()
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union
import logging

from ch8ti.errors import VarFileFormatError
from ch8ti.varfile.checksum import (
    calculate_checksum,
    checksummed_region,
    stored_checksum,
)
from ch8ti.varfile.compression import decompress
from ch8ti.varfile.records import (
    CHECKSUM_SIZE,
    HEADER_SIZE,
    TRAILER,
    CalcModel,
    VariableHeader,
    datasize_for,
    file_size_for,
)

# Logger for this module
logger = logging.getLogger(__name__)

MIN_FILE_SIZE = HEADER_SIZE + len(TRAILER) + CHECKSUM_SIZE


@dataclass
class VarFileParser:
    """
    Parsed contents of a ch8 variable file.

    Attributes:
        header: The decoded 91-byte header
        payload: Compressed ROM bytes
        data: The complete file
    """
    header: VariableHeader
    payload: bytes
    data: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "VarFileParser":
        """
        Parse a variable file.

        Raises:
            VarFileFormatError: If the file is not a ch8 variable file
        """
        data = bytes(data)
        if len(data) < MIN_FILE_SIZE:
            raise VarFileFormatError(
                f"File too short: need at least {MIN_FILE_SIZE} bytes, got {len(data)}"
            )

        try:
            header = VariableHeader.from_bytes(data[:HEADER_SIZE])
        except ValueError as e:
            raise VarFileFormatError(str(e)) from e

        trailer_start = len(data) - CHECKSUM_SIZE - len(TRAILER)
        if data[trailer_start:trailer_start + len(TRAILER)] != TRAILER:
            raise VarFileFormatError("Missing ch8 type trailer")

        payload = data[HEADER_SIZE:trailer_start]

        if header.size != file_size_for(len(payload)):
            raise VarFileFormatError(
                f"Size field {header.size} does not match payload of {len(payload)} bytes"
            )
        if header.datasize != datasize_for(len(payload)):
            raise VarFileFormatError(
                f"Datasize field {header.datasize} does not match payload of {len(payload)} bytes"
            )

        logger.debug(f"Parsed variable '{header.name}' ({len(payload)} byte payload)")
        return cls(header=header, payload=payload, data=data)

    @classmethod
    def from_file(cls, filepath: Union[str, Path]) -> "VarFileParser":
        """Read and parse a variable file from disk."""
        return cls.from_bytes(Path(filepath).read_bytes())

    @property
    def calc(self) -> CalcModel:
        """Model family from the signature (TI92P also covers V200)."""
        return self.header.calc

    @property
    def stored_checksum(self) -> int:
        return stored_checksum(self.data)

    @property
    def calculated_checksum(self) -> int:
        return calculate_checksum(checksummed_region(self.data))

    def verify_checksum(self) -> bool:
        """Return True if the stored checksum matches the file contents."""
        return self.stored_checksum == self.calculated_checksum

    def extract_rom(self) -> bytes:
        """
        Decompress the payload into the original ROM image.

        Raises:
            CompressionError: If the payload is not a valid compressed stream
        """
        return decompress(self.payload)

    def get_info(self) -> dict[str, Any]:
        """Summarize the file for display."""
        major, minor, patch = self.header.version
        return {
            "calc": self.calc.get_description(),
            "folder": self.header.folder,
            "name": self.header.name,
            "version": f"{major}.{minor}.{patch}",
            "file_size": len(self.data),
            "payload_size": len(self.payload),
            "datasize": self.header.datasize,
            "checksum": self.stored_checksum,
            "checksum_valid": self.verify_checksum(),
        }
