"""
ch8ti Error Hierarchy
=====================

This module defines the exception hierarchy for the ch8ti packager.
All exceptions inherit from Ch8Error, allowing callers to catch every
packager-related error with a single except clause if desired.

Exception Hierarchy
-------------------
Ch8Error (base)
├── PackagingError (building variable files)
│   ├── RomSizeError - ROM image larger than the emulator can load
│   └── FieldOverflowError - header size field too small for the payload
├── VarFileFormatError - invalid variable file when reading one back
└── CompressionError - malformed compressed stream

I/O failures are not wrapped: OSError and its subclasses propagate
unchanged from the read/write call that raised them.
"""


# =============================================================================
# Base Exception Class
# =============================================================================

class Ch8Error(Exception):
    """
    Base exception for all ch8ti errors.

        try:
            convert_rom_file("pong.ch8", CalcModel.TI89)
        except Ch8Error as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Packaging Exceptions
# =============================================================================

class PackagingError(Ch8Error):
    """Base exception for errors while building a variable file."""
    pass


class RomSizeError(PackagingError):
    """
    ROM image exceeds the maximum loadable size.

    CHIP-8 programs are loaded at 0x200 in a 4KB address space, and the
    calculator-side loader reserves exactly 4096 bytes for the image.
    Raised before compression, so no output is ever produced.
    """

    def __init__(self, size: int, limit: int, message: str = ""):
        self.size = size
        self.limit = limit
        if not message:
            message = f"ROM is {size} bytes, maximum is {limit} bytes"
        super().__init__(message)


class FieldOverflowError(PackagingError):
    """
    A computed header field does not fit its on-disk width.

    The size field is 32 bits and the datasize field is 16 bits.
    """

    def __init__(self, field_name: str, value: int, bits: int):
        self.field_name = field_name
        self.value = value
        self.bits = bits
        super().__init__(
            f"{field_name} value {value} does not fit in {bits} bits"
        )


# =============================================================================
# Reading Exceptions
# =============================================================================

class VarFileFormatError(Ch8Error):
    """
    Invalid variable file format.

    Raised when reading a file that:
    - Is shorter than header + trailer + checksum
    - Has an unknown signature
    - Has size fields inconsistent with the file length
    - Lacks the ch8 type trailer
    """
    pass


class CompressionError(Ch8Error):
    """
    Malformed compressed stream.

    Raised by the decoder for a truncated back-reference token or one
    that points before the start of the output.
    """
    pass
