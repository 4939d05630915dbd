"""Constant-pool rewriting for compiled JVM class files.

Only ``CONSTANT_Utf8`` entries are touched. Every class, descriptor, signature
and string literal in a class file is stored as one of these length-prefixed
entries, so rewriting them (and recomputing their ``u2`` length) relocates all
symbolic references without disturbing the rest of the file. Everything after
the constant pool is copied verbatim because no later structure holds byte
offsets into the pool.

Namespaces are plain ASCII and the modified UTF-8 used by class files never
places ASCII bytes inside a multi-byte sequence, so the rewrite can operate on
raw bytes without decoding.
"""
from __future__ import annotations

from typing import Callable, Iterator, Tuple
import struct

CLASS_MAGIC = b"\xca\xfe\xba\xbe"

CONSTANT_UTF8 = 1

# Payload size (excluding the tag byte) of every fixed-width constant.
_FIXED_SIZES: dict[int, int] = {
    3: 4,   # Integer
    4: 4,   # Float
    5: 8,   # Long
    6: 8,   # Double
    7: 2,   # Class
    8: 2,   # String
    9: 4,   # Fieldref
    10: 4,  # Methodref
    11: 4,  # InterfaceMethodref
    12: 4,  # NameAndType
    15: 3,  # MethodHandle
    16: 2,  # MethodType
    17: 4,  # Dynamic
    18: 4,  # InvokeDynamic
    19: 2,  # Module
    20: 2,  # Package
}

# Long and Double occupy two constant-pool slots.
_WIDE_TAGS = frozenset({5, 6})

_MAX_UTF8_LENGTH = 0xFFFF


class ClassFormatError(ValueError):
    """Raised when a payload is not a well-formed class file."""


class ConstantTooLongError(ValueError):
    """Raised when a rewritten constant no longer fits its u2 length."""


def is_class_file(data: bytes) -> bool:
    return len(data) >= 10 and data[:4] == CLASS_MAGIC


def iter_utf8_constants(data: bytes) -> Iterator[Tuple[int, bytes]]:
    """Yield ``(index, value)`` for every ``CONSTANT_Utf8`` entry in *data*."""

    for index, tag, start, end in _walk_constant_pool(data):
        if tag == CONSTANT_UTF8:
            yield index, data[start + 3:end]


def rewrite_constant_pool(data: bytes, rewrite: Callable[[bytes], bytes]) -> bytes:
    """Return *data* with every ``CONSTANT_Utf8`` value passed through *rewrite*.

    The original object is returned unchanged when no constant is modified.
    """

    output = bytearray(data[:10])
    changed = False
    pool_end = 10

    for _index, tag, start, end in _walk_constant_pool(data):
        pool_end = end
        if tag != CONSTANT_UTF8:
            output += data[start:end]
            continue

        value = data[start + 3:end]
        replaced = rewrite(value)
        if replaced == value:
            output += data[start:end]
            continue

        if len(replaced) > _MAX_UTF8_LENGTH:
            raise ConstantTooLongError(
                f"Rewritten constant exceeds {_MAX_UTF8_LENGTH} bytes")
        changed = True
        output.append(CONSTANT_UTF8)
        output += struct.pack(">H", len(replaced))
        output += replaced

    if not changed:
        return data

    output += data[pool_end:]
    return bytes(output)


def _walk_constant_pool(data: bytes) -> Iterator[Tuple[int, int, int, int]]:
    """Yield ``(index, tag, start, end)`` byte spans of each constant."""

    if not is_class_file(data):
        raise ClassFormatError("Missing class file magic number")

    (count,) = struct.unpack_from(">H", data, 8)
    offset = 10
    index = 1
    size = len(data)

    while index < count:
        if offset >= size:
            raise ClassFormatError("Truncated constant pool")
        tag = data[offset]
        if tag == CONSTANT_UTF8:
            if offset + 3 > size:
                raise ClassFormatError("Truncated CONSTANT_Utf8 header")
            (length,) = struct.unpack_from(">H", data, offset + 1)
            end = offset + 3 + length
        else:
            width = _FIXED_SIZES.get(tag)
            if width is None:
                raise ClassFormatError(
                    f"Unknown constant pool tag {tag} at index {index}")
            end = offset + 1 + width
        if end > size:
            raise ClassFormatError(f"Constant {index} runs past end of file")

        yield index, tag, offset, end

        offset = end
        index += 2 if tag in _WIDE_TAGS else 1


__all__ = [
    "CLASS_MAGIC",
    "ClassFormatError",
    "ConstantTooLongError",
    "is_class_file",
    "iter_utf8_constants",
    "rewrite_constant_pool",
]
