"""
Variable File Record Definitions
================================

This module defines the data structures for TI-68k variable files holding
a compressed CHIP-8 ROM, as loaded by TI-89, TI-92 Plus and Voyage 200
calculators.

File Structure Overview
-----------------------
A ch8 variable file contains:
1. Header (91 bytes): signature, folder, name, sizes, ROM format version
2. Payload (variable): compressed ROM image
3. Trailer (6 bytes): "\\0ch8\\0" type tag followed by 0xF8 (OTH_TAG)
4. Checksum (2 bytes): little-endian sum of bytes from datasize onward

Header Layout
-------------
Big-endian fields, except the nested size word:

    Offset  Size    Description
    ------  ----    -----------
    0       8       Signature ("**TI89**" or "**TI92P*")
    8       2       Filler 0x0100
    10      8       Folder name (zero-padded)
    18      40      Description (unused, zero)
    58      6       Filler 01 00 52 00 00 00
    64      8       Variable name (zero-padded)
    72      4       Filler 0x1C000000 (type field, fixed for OTH files)
    76      4       File size (little-endian)
    80      6       Filler A5 5A 00 00 00 00
    86      2       Data size (checksum starts here)
    88      3       ROM format version (major, minor, patch)

The 3 version bytes are the first bytes of the on-calculator variable
contents; the emulator refuses ROMs with a newer major/minor version.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Final
import struct

from ch8ti.errors import FieldOverflowError


# =============================================================================
# Layout Constants
# =============================================================================

HEADER_SIZE: Final[int] = 91

# Offset of the datasize field; checksummed bytes start here
DATASIZE_OFFSET: Final[int] = 86

# Fixed type trailer: "\0ch8\0" + OTH_TAG
TRAILER: Final[bytes] = bytes([0x00, ord("c"), ord("h"), ord("8"), 0x00, 0xF8])

# Custom type name carried in the trailer
TYPE_EXTENSION: Final[str] = "ch8"

CHECKSUM_SIZE: Final[int] = 2

NAME_LENGTH: Final[int] = 8
DESCRIPTION_LENGTH: Final[int] = 40

MAJOR_VERSION: Final[int] = 1
MINOR_VERSION: Final[int] = 0
PATCH_VERSION: Final[int] = 0

FILL1: Final[int] = 0x0100
FILL2: Final[bytes] = bytes([0x01, 0x00, 0x52, 0x00, 0x00, 0x00])
FILL3: Final[int] = 0x1C000000
FILL4: Final[bytes] = bytes([0xA5, 0x5A, 0x00, 0x00, 0x00, 0x00])

# Everything up to the size word, then everything after it
_HEAD_FORMAT: Final[str] = ">8sH8s40s6s8sI"
_SIZE_FORMAT: Final[str] = "<I"
_TAIL_FORMAT: Final[str] = ">6sHBBB"


# =============================================================================
# Calculator Models
# =============================================================================

class CalcModel(Enum):
    """
    Target calculator models.

    The TI-92 Plus and Voyage 200 share a file signature; every model
    has its own file extension.
    """
    TI89 = "ti89"
    TI92P = "ti92p"
    V200 = "v200"

    @property
    def signature(self) -> bytes:
        """8-byte file signature for this model."""
        if self is CalcModel.TI89:
            return b"**TI89**"
        return b"**TI92P*"

    @property
    def extension(self) -> str:
        """File extension used by TI-Connect for this model."""
        return {
            CalcModel.TI89: ".89y",
            CalcModel.TI92P: ".9xy",
            CalcModel.V200: ".v2y",
        }[self]

    def get_description(self) -> str:
        """Get a human-readable description of this model."""
        return {
            CalcModel.TI89: "TI-89 / TI-89 Titanium",
            CalcModel.TI92P: "TI-92 Plus",
            CalcModel.V200: "Voyage 200",
        }[self]

    @classmethod
    def from_signature(cls, signature: bytes) -> "CalcModel":
        """
        Map a file signature back to a model.

        The shared TI-92 Plus / Voyage 200 signature maps to TI92P.

        Raises:
            ValueError: If the signature is unknown
        """
        for model in (cls.TI89, cls.TI92P):
            if model.signature == signature:
                return model
        raise ValueError(f"Unknown signature: {signature!r}")


# =============================================================================
# Helpers
# =============================================================================

def encode_name(name: str) -> bytes:
    """
    Encode a folder or variable name into its 8-byte header slot.

    Names are clipped to 8 bytes and zero-padded. Characters are not
    validated; the calculator is left to reject names it does not accept.
    """
    return name.encode("utf-8")[:NAME_LENGTH].ljust(NAME_LENGTH, b"\x00")


def decode_name(raw: bytes) -> str:
    """Decode a zero-padded name slot."""
    return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


def file_size_for(payload_length: int) -> int:
    """Value of the header size field for a payload of the given length."""
    return HEADER_SIZE + payload_length + 5 + len(TYPE_EXTENSION)


def datasize_for(payload_length: int) -> int:
    """
    Value of the header datasize field for a payload of the given length.

    Counts the version bytes, payload and trailer as seen by the calculator.
    """
    return payload_length + 3 + len(TYPE_EXTENSION) + 3


# =============================================================================
# Variable Header
# =============================================================================

@dataclass
class VariableHeader:
    """
    The 91-byte variable file header.

    Attributes:
        calc: Target calculator model (selects the signature)
        folder: On-calculator folder name
        name: On-calculator variable name
        size: Total file size field
        datasize: Data size field
        version: ROM format version (major, minor, patch)
    """
    calc: CalcModel
    folder: str
    name: str
    size: int
    datasize: int
    version: tuple[int, int, int] = (MAJOR_VERSION, MINOR_VERSION, PATCH_VERSION)

    @classmethod
    def for_payload(
        cls,
        calc: CalcModel,
        folder: str,
        name: str,
        payload_length: int,
    ) -> "VariableHeader":
        """
        Build the header describing a compressed payload.

        Args:
            calc: Target calculator model
            folder: Folder name (clipped to 8 bytes)
            name: Variable name (clipped to 8 bytes)
            payload_length: Length of the compressed ROM

        Raises:
            FieldOverflowError: If a size field cannot hold the value
        """
        size = file_size_for(payload_length)
        datasize = datasize_for(payload_length)

        if size > 0xFFFFFFFF:
            raise FieldOverflowError("size", size, 32)
        if datasize > 0xFFFF:
            raise FieldOverflowError("datasize", datasize, 16)

        return cls(calc=calc, folder=folder, name=name, size=size, datasize=datasize)

    def to_bytes(self) -> bytes:
        """Serialize the header to 91 bytes."""
        major, minor, patch = self.version
        return (
            struct.pack(
                _HEAD_FORMAT,
                self.calc.signature,
                FILL1,
                encode_name(self.folder),
                bytes(DESCRIPTION_LENGTH),
                FILL2,
                encode_name(self.name),
                FILL3,
            )
            + struct.pack(_SIZE_FORMAT, self.size)
            + struct.pack(_TAIL_FORMAT, FILL4, self.datasize, major, minor, patch)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "VariableHeader":
        """
        Deserialize a header from bytes.

        Filler fields are not checked.

        Raises:
            ValueError: If the data is too short or the signature is unknown
        """
        if len(data) < HEADER_SIZE:
            raise ValueError(f"Header too short: need {HEADER_SIZE} bytes, got {len(data)}")

        head_size = struct.calcsize(_HEAD_FORMAT)
        signature, _, folder, _, _, name, _ = struct.unpack_from(_HEAD_FORMAT, data, 0)
        (size,) = struct.unpack_from(_SIZE_FORMAT, data, head_size)
        _, datasize, major, minor, patch = struct.unpack_from(
            _TAIL_FORMAT, data, head_size + struct.calcsize(_SIZE_FORMAT)
        )

        return cls(
            calc=CalcModel.from_signature(signature),
            folder=decode_name(folder),
            name=decode_name(name),
            size=size,
            datasize=datasize,
            version=(major, minor, patch),
        )
