"""
Base64 VLQ Codec

Encodes and decodes the variable-length quantities used by the
``mappings`` field of a source map (revision 3).

FORMAT:
=======
Each value is split into 5-bit groups, least significant first.
Bit 6 of every base64 digit is the continuation flag.
The sign is stored in the lowest bit of the first group.
"""

from __future__ import annotations
from typing import List


BASE64_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"

_VLQ_BASE_SHIFT = 5
_VLQ_BASE = 1 << _VLQ_BASE_SHIFT
_VLQ_BASE_MASK = _VLQ_BASE - 1
_VLQ_CONTINUATION_BIT = _VLQ_BASE

_DIGIT_VALUES = {char: index for index, char in enumerate(BASE64_ALPHABET)}


class VLQDecodeError(ValueError):
    """Raised when a mapping segment is not valid base64 VLQ."""


def encode(value: int) -> str:
    """Encode a single signed integer."""
    vlq = ((-value) << 1) + 1 if value < 0 else value << 1

    digits = []
    while True:
        digit = vlq & _VLQ_BASE_MASK
        vlq >>= _VLQ_BASE_SHIFT
        if vlq > 0:
            digit |= _VLQ_CONTINUATION_BIT
        digits.append(BASE64_ALPHABET[digit])
        if vlq == 0:
            break

    return "".join(digits)


def encode_segment(values: List[int]) -> str:
    """Encode all fields of one mapping segment."""
    return "".join(encode(v) for v in values)


def decode_segment(segment: str) -> List[int]:
    """
    Decode one mapping segment into its signed integer fields.

    Raises:
        VLQDecodeError: on a character outside the base64 alphabet or
        a segment ending in the middle of a value.
    """
    values = []
    shift = 0
    accumulator = 0

    for char in segment:
        digit = _DIGIT_VALUES.get(char)
        if digit is None:
            raise VLQDecodeError(f"Invalid base64 VLQ character: {char!r}")

        accumulator += (digit & _VLQ_BASE_MASK) << shift

        if digit & _VLQ_CONTINUATION_BIT:
            shift += _VLQ_BASE_SHIFT
            continue

        negative = accumulator & 1
        accumulator >>= 1
        values.append(-accumulator if negative else accumulator)

        shift = 0
        accumulator = 0

    if shift:
        raise VLQDecodeError(f"Truncated base64 VLQ segment: {segment!r}")

    return values
