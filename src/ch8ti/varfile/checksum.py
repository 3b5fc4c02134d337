"""
Variable File Checksum
======================

TI-68k link files end with a 16-bit checksum:
- Algorithm: Sum of every byte, wrapping at 16 bits
- Range: From the header datasize field (offset 86) through the trailer
- Storage: 2 bytes, little-endian, after the trailer

Nothing before the datasize field (signature, folder, name, size word)
is covered, so renaming a variable in the header does not change it.
"""

from typing import Final

from ch8ti.varfile.records import (
    CHECKSUM_SIZE,
    DATASIZE_OFFSET,
    HEADER_SIZE,
)

# Mask for 16-bit values
CHECKSUM_MASK: Final[int] = 0xFFFF


def calculate_checksum(*chunks: bytes) -> int:
    """
    Calculate the wrapping 16-bit byte sum over one or more chunks.

    Args:
        *chunks: Byte sequences, summed in order

    Returns:
        16-bit checksum value (0x0000 - 0xFFFF)

    Example:
        >>> calculate_checksum(bytes([0xFF] * 300))
        10964
    """
    checksum = 0
    for chunk in chunks:
        checksum = (checksum + sum(chunk)) & CHECKSUM_MASK
    return checksum


def checksum_bytes(*chunks: bytes) -> bytes:
    """Calculate the checksum and encode it as 2 little-endian bytes."""
    return calculate_checksum(*chunks).to_bytes(CHECKSUM_SIZE, "little")


def checksummed_region(data: bytes) -> bytes:
    """
    Slice the checksummed bytes out of a complete variable file.

    Args:
        data: Complete file, including the trailing checksum

    Returns:
        Bytes from the datasize field up to (not including) the checksum
    """
    return data[DATASIZE_OFFSET:len(data) - CHECKSUM_SIZE]


def stored_checksum(data: bytes) -> int:
    """Read the checksum stored in the last 2 bytes of a variable file."""
    return int.from_bytes(data[-CHECKSUM_SIZE:], "little")


def verify_checksum(data: bytes) -> bool:
    """
    Verify the checksum of a complete variable file.

    Returns:
        True if the stored checksum matches, False otherwise
        (including when the file is too short to hold one)
    """
    if len(data) < HEADER_SIZE + CHECKSUM_SIZE:
        return False
    return calculate_checksum(checksummed_region(data)) == stored_checksum(data)
