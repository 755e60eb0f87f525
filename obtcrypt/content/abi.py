# =============================================================================
# ABI binary packing for OBT content structs
# =============================================================================
"""
The ledger packs structs field by field, in declared order:

  string    varuint32 byte length (LEB128) || UTF-8 bytes
  string?   0x00                       (absent)
            0x01 || string             (present)

No field names, no type tag, no outer length. The reader must know which
struct it is decoding, and must consume the buffer exactly.
"""

from __future__ import annotations

from typing import Any, Optional, Type, Union

from pydantic import ValidationError

from obtcrypt.crypto_utils.errors import SerializationError
from .models import CONTENT_MODELS, ContentKind, ObtContentBase

_VARUINT32_MAX = 0xFFFFFFFF
_VARUINT32_MAX_BYTES = 5


# =============================================================================
# Writers
# =============================================================================

def pack_varuint32(value: int) -> bytes:
    if not 0 <= value <= _VARUINT32_MAX:
        raise SerializationError(f"varuint32 out of range: {value}")
    out = bytearray()
    while True:
        b = value & 0x7F
        value >>= 7
        if value:
            out.append(b | 0x80)
        else:
            out.append(b)
            return bytes(out)


def pack_string(value: str) -> bytes:
    if not isinstance(value, str):
        raise SerializationError(f"expected str, got {type(value).__name__}")
    raw = value.encode("utf-8")
    return pack_varuint32(len(raw)) + raw


def pack_optional_string(value: Optional[str]) -> bytes:
    if value is None:
        return b"\x00"
    return b"\x01" + pack_string(value)


def pack_content(content: ObtContentBase) -> bytes:
    """Canonical plaintext bytes for a content model."""
    if not isinstance(content, ObtContentBase):
        raise SerializationError(f"not an OBT content model: {type(content).__name__}")
    out = bytearray()
    for name, abi_type in content.ABI_FIELDS:
        value = getattr(content, name)
        if abi_type == "string?":
            out += pack_optional_string(value)
        else:
            out += pack_string(value)
    return bytes(out)


# =============================================================================
# Reader
# =============================================================================

class _Reader:
    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def _take(self, n: int) -> bytes:
        if n > self.remaining:
            raise SerializationError(
                f"unexpected end of content: need {n} bytes at offset {self._pos}, have {self.remaining}"
            )
        chunk = self._data[self._pos:self._pos + n]
        self._pos += n
        return chunk

    def varuint32(self) -> int:
        value = 0
        for i in range(_VARUINT32_MAX_BYTES):
            b = self._take(1)[0]
            value |= (b & 0x7F) << (7 * i)
            if not b & 0x80:
                if value > _VARUINT32_MAX:
                    raise SerializationError("varuint32 overflow")
                return value
        raise SerializationError("varuint32 is longer than 5 bytes")

    def string(self) -> str:
        raw = self._take(self.varuint32())
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SerializationError(f"content string is not valid UTF-8: {exc}") from exc

    def optional_string(self) -> Optional[str]:
        flag = self._take(1)[0]
        if flag == 0:
            return None
        if flag == 1:
            return self.string()
        raise SerializationError(f"invalid optional flag byte: {flag:#04x}")


def resolve_kind(kind: Union[ContentKind, str]) -> ContentKind:
    try:
        return ContentKind(kind)
    except ValueError as exc:
        raise SerializationError(f"unknown content kind: {kind!r}") from exc


def unpack_content(kind: Union[ContentKind, str], data: bytes) -> ObtContentBase:
    """Decode plaintext bytes into the model named by kind."""
    model: Type[ObtContentBase] = CONTENT_MODELS[resolve_kind(kind)]
    reader = _Reader(data)

    values: dict[str, Any] = {}
    for name, abi_type in model.ABI_FIELDS:
        values[name] = reader.optional_string() if abi_type == "string?" else reader.string()

    if reader.remaining:
        raise SerializationError(
            f"{reader.remaining} trailing bytes after {model.KIND.value}"
        )

    try:
        return model.model_validate(values)
    except ValidationError as exc:
        raise SerializationError(str(exc)) from exc


__all__ = [
    "pack_varuint32",
    "pack_string",
    "pack_optional_string",
    "pack_content",
    "unpack_content",
    "resolve_kind",
]
