"""
ROM Compression
===============

This module implements the LZSS-style compressor used for CHIP-8 ROM
images, together with the matching decoder.

The calculator-side loader decompresses the payload with a fixed routine,
so the encoder output must follow its token format exactly.

Token Format
------------
The stream is a sequence of bytes where 0xFF is a flag:

    xx              Literal byte xx (xx != 0xFF)
    FF 00           Literal byte 0xFF
    FF LL OO        Back-reference:
                        length = LL & 0x3F (1-63)
                        offset = ((LL & 0xC0) << 2) | OO (0-1023)

A back-reference copies `length` bytes starting `offset + 1` bytes before
the current output position. Copies run byte by byte, so a reference may
overlap the bytes it is producing.

Encoder
-------
Greedy, single pass. At every position the 1024 preceding bytes are
searched for the longest match. On equal length the earliest window
position is kept, which makes the output reproducible. A match is used
only when spelling the same bytes as literals would cost more than the
3-byte token.

Usage
-----
    >>> from ch8ti.varfile.compression import compress, decompress
    >>> packed = compress(rom)
    >>> assert decompress(packed) == rom
"""

from dataclasses import dataclass
from typing import Final, Union
import logging

from ch8ti.errors import CompressionError

# Logger for this module
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Byte value that introduces a back-reference (or an escaped 0xFF literal)
COMPRESS_FLAG: Final[int] = 0xFF

# Number of preceding bytes searched for matches
WINDOW_SIZE: Final[int] = 1024

# Longest run a single back-reference can encode (6 bits)
MAX_MATCH_LENGTH: Final[int] = 63

# Size of an encoded back-reference token
BACKREF_TOKEN_SIZE: Final[int] = 3

LENGTH_MASK: Final[int] = 0x3F
OFFSET_HIGH_MASK: Final[int] = 0x300


# =============================================================================
# Tokens
# =============================================================================

@dataclass(frozen=True)
class Literal:
    """A single byte copied to the output as-is."""
    value: int

    def to_bytes(self) -> bytes:
        if self.value == COMPRESS_FLAG:
            return bytes([COMPRESS_FLAG, 0x00])
        return bytes([self.value])


@dataclass(frozen=True)
class BackReference:
    """
    Copy of earlier output.

    Attributes:
        offset: Distance back from the current position, minus one (0-1023)
        length: Number of bytes to copy (1-63)
    """
    offset: int
    length: int

    def __post_init__(self) -> None:
        if not 1 <= self.length <= MAX_MATCH_LENGTH:
            raise ValueError(f"Back-reference length out of range: {self.length}")
        if not 0 <= self.offset < WINDOW_SIZE:
            raise ValueError(f"Back-reference offset out of range: {self.offset}")

    def to_bytes(self) -> bytes:
        return bytes([
            COMPRESS_FLAG,
            ((self.offset & OFFSET_HIGH_MASK) >> 2) | self.length,
            self.offset & 0xFF,
        ])


Token = Union[Literal, BackReference]


# =============================================================================
# Match Finding
# =============================================================================

def _common_prefix_length(data: bytes, earlier: int, current: int) -> int:
    """
    Count equal bytes starting at `earlier` and `current`.

    The run is bounded only by the end of the data, so it may continue
    past `current` into the bytes being matched. Prefix equality is
    monotonic: probe doubling lengths, then binary search the bracket.
    """
    limit = len(data) - current

    low, high = 0, 1
    while high <= limit and data[earlier:earlier + high] == data[current:current + high]:
        low = high
        high *= 2
    high = min(high - 1, limit)

    while low < high:
        mid = (low + high + 1) // 2
        if data[earlier:earlier + mid] == data[current:current + mid]:
            low = mid
        else:
            high = mid - 1
    return low


def find_longest_match(data: bytes, position: int) -> tuple[int, int]:
    """
    Find the longest match for `data[position:]` in the preceding window.

    Candidates are scanned from the start of the window. A later candidate
    replaces the current best only if its run is strictly longer, so ties
    go to the earliest position.

    Args:
        data: The complete input
        position: Current position in the input

    Returns:
        Tuple of (match_start, match_length). match_length is uncapped
        and is 0 when no window byte equals data[position].
    """
    window_start = max(0, position - WINDOW_SIZE)
    target = data[position]

    best_start = window_start
    best_length = 0
    limit = len(data) - position

    candidate = data.find(target, window_start, position)
    while candidate != -1:
        length = _common_prefix_length(data, candidate, position)
        if length > best_length:
            best_start = candidate
            best_length = length
            if best_length == limit:
                break
        candidate = data.find(target, candidate + 1, position)

    return best_start, best_length


def literal_cost(data: bytes) -> int:
    """Number of bytes needed to spell `data` as literal tokens."""
    return sum(2 if byte == COMPRESS_FLAG else 1 for byte in data)


# =============================================================================
# Encoder
# =============================================================================

def tokenize(data: bytes) -> list[Token]:
    """
    Split a byte sequence into literal and back-reference tokens.

    Args:
        data: Raw input bytes

    Returns:
        List of tokens that expand back to `data`
    """
    data = bytes(data)
    tokens: list[Token] = []
    position = 0

    while position < len(data):
        match_start, match_length = find_longest_match(data, position)
        match_length = min(match_length, MAX_MATCH_LENGTH)

        run = data[position:position + match_length]
        if literal_cost(run) > BACKREF_TOKEN_SIZE:
            tokens.append(BackReference(
                offset=position - match_start - 1,
                length=match_length,
            ))
            position += match_length
        else:
            tokens.append(Literal(data[position]))
            position += 1

    return tokens


def encode_tokens(tokens: list[Token]) -> bytes:
    """Serialize tokens to the escape-byte wire format."""
    return b"".join(token.to_bytes() for token in tokens)


def compress(data: bytes) -> bytes:
    """
    Compress a ROM image.

    Args:
        data: Raw ROM bytes

    Returns:
        Compressed stream (empty for empty input)

    Example:
        >>> compress(bytes([0xFF]))
        b'\\xff\\x00'
    """
    tokens = tokenize(data)
    result = encode_tokens(tokens)

    backrefs = sum(1 for token in tokens if isinstance(token, BackReference))
    logger.debug(
        f"Compressed {len(data)} bytes to {len(result)} bytes "
        f"({len(tokens) - backrefs} literals, {backrefs} back-references)"
    )
    return result


# =============================================================================
# Decoder
# =============================================================================

def decode_tokens(data: bytes) -> list[Token]:
    """
    Parse a compressed stream back into tokens.

    Raises:
        CompressionError: If the stream ends inside a token
    """
    tokens: list[Token] = []
    i = 0

    while i < len(data):
        if data[i] != COMPRESS_FLAG:
            tokens.append(Literal(data[i]))
            i += 1
            continue

        if i + 1 >= len(data):
            raise CompressionError(f"Truncated token at offset {i}")

        control = data[i + 1]
        length = control & LENGTH_MASK
        if length == 0:
            tokens.append(Literal(COMPRESS_FLAG))
            i += 2
            continue

        if i + 2 >= len(data):
            raise CompressionError(f"Truncated back-reference at offset {i}")

        offset = ((control & 0xC0) << 2) | data[i + 2]
        tokens.append(BackReference(offset=offset, length=length))
        i += BACKREF_TOKEN_SIZE

    return tokens


def expand_tokens(tokens: list[Token]) -> bytes:
    """
    Replay tokens into the original bytes.

    Back-references copy one byte at a time, so a reference whose
    source overlaps its destination repeats the pattern.

    Raises:
        CompressionError: If a back-reference reaches before the output start
    """
    output = bytearray()

    for token in tokens:
        if isinstance(token, Literal):
            output.append(token.value)
            continue

        source = len(output) - token.offset - 1
        if source < 0:
            raise CompressionError(
                f"Back-reference at output position {len(output)} "
                f"reaches {-source} bytes before the start"
            )
        for k in range(token.length):
            output.append(output[source + k])

    return bytes(output)


def decompress(data: bytes) -> bytes:
    """
    Decompress a stream produced by compress().

    This is the same algorithm the calculator runs when loading a ROM.
    """
    return expand_tokens(decode_tokens(data))
