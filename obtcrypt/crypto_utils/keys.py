# =============================================================================
# Ledger account key encodings (secp256k1)
# =============================================================================
"""
Public keys travel as strings in the ledger's account format:

  legacy  "<PREFIX>" + base58(point33 || ripemd160(point33)[:4])       e.g. FIO6..., EOS6...
  modern  "PUB_K1_" + base58(point33 || ripemd160(point33 || b"K1")[:4])

Private keys are accepted as:

  WIF      base58check(0x80 || scalar32 [|| 0x01])                       e.g. 5J...
  modern   "PVT_K1_" + base58(scalar32 || ripemd160(scalar32 || b"K1")[:4])
  raw      32 bytes, or 64 hex characters
  objects  an EllipticCurvePrivateKey on secp256k1

Every decoder rejects malformed input with KeyFormatError before any curve
arithmetic is attempted. Off-curve points are rejected by the point decoder.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

import base58
from Crypto.Hash import RIPEMD160
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from obtcrypt.config import get_settings
from .errors import KeyFormatError

logger = logging.getLogger(__name__)

CURVE = ec.SECP256K1()

# secp256k1 group order
CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

SCALAR_LEN = 32
POINT_LEN = 33
CHECKSUM_LEN = 4

WIF_VERSION = 0x80
WIF_COMPRESSED_FLAG = 0x01

K1_PUBLIC_PREFIX = "PUB_K1_"
K1_PRIVATE_PREFIX = "PVT_K1_"
_K1_SUFFIX = b"K1"

PrivateKeyMaterial = Union[str, bytes, bytearray, ec.EllipticCurvePrivateKey]
PublicKeyMaterial = Union[str, ec.EllipticCurvePublicKey]


@dataclass(frozen=True)
class KeyPair:
    """
    A private key (WIF) and the public key string it advertises.

    - private_wif: secret, owned exclusively by its holder
    - public_key: legacy-prefixed public key string
    """
    private_wif: str
    public_key: str


# =============================================================================
# Checksums
# =============================================================================

def _ripemd160(data: bytes) -> bytes:
    return RIPEMD160.new(data).digest()


def _checksum(payload: bytes, suffix: bytes = b"") -> bytes:
    return _ripemd160(payload + suffix)[:CHECKSUM_LEN]


def _b58decode(text: str) -> bytes:
    try:
        return base58.b58decode(text)
    except ValueError as exc:
        raise KeyFormatError(f"invalid base58 key encoding: {exc}") from exc


def _split_checked(raw: bytes, body_len: int, suffix: bytes = b"") -> bytes:
    if len(raw) != body_len + CHECKSUM_LEN:
        raise KeyFormatError(
            f"invalid key length: expected {body_len + CHECKSUM_LEN} bytes, got {len(raw)}"
        )
    body, check = raw[:body_len], raw[body_len:]
    if _checksum(body, suffix) != check:
        raise KeyFormatError("key checksum mismatch")
    return body


# =============================================================================
# Public keys
# =============================================================================

def _point_from_bytes(point: bytes) -> ec.EllipticCurvePublicKey:
    if len(point) != POINT_LEN or point[0] not in (0x02, 0x03):
        raise KeyFormatError("public key is not a compressed secp256k1 point")
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, point)
    except ValueError as exc:
        raise KeyFormatError("public key point is not on the secp256k1 curve") from exc


def _point_to_bytes(public_key: ec.EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint,
    )


def decode_public(
    key_str: str,
    *,
    accepted_prefixes: Optional[Iterable[str]] = None,
) -> ec.EllipticCurvePublicKey:
    """
    Parse a public key string into a secp256k1 public key.

    accepted_prefixes overrides the configured legacy prefixes. The "PUB_K1_"
    form is accepted regardless.
    """
    if not isinstance(key_str, str) or not key_str:
        raise KeyFormatError("public key must be a non-empty string")
    key_str = key_str.strip()

    if key_str.startswith(K1_PUBLIC_PREFIX):
        raw = _b58decode(key_str[len(K1_PUBLIC_PREFIX):])
        point = _split_checked(raw, POINT_LEN, _K1_SUFFIX)
        return _point_from_bytes(point)

    prefixes = tuple(accepted_prefixes) if accepted_prefixes is not None \
        else get_settings().accepted_key_prefixes
    # Longest prefix wins.
    for prefix in sorted(prefixes, key=len, reverse=True):
        if key_str.startswith(prefix):
            raw = _b58decode(key_str[len(prefix):])
            point = _split_checked(raw, POINT_LEN)
            return _point_from_bytes(point)

    raise KeyFormatError(
        f"unrecognized public key prefix (accepted: {', '.join(prefixes)}, {K1_PUBLIC_PREFIX})"
    )


def encode_public(
    public_key: ec.EllipticCurvePublicKey,
    *,
    prefix: Optional[str] = None,
) -> str:
    """Legacy string encoding of a secp256k1 public key."""
    if not isinstance(public_key, ec.EllipticCurvePublicKey) or \
            not isinstance(public_key.curve, ec.SECP256K1):
        raise KeyFormatError("public key must be a secp256k1 key")
    point = _point_to_bytes(public_key)
    body = base58.b58encode(point + _checksum(point)).decode("ascii")
    return (prefix or get_settings().public_key_prefix) + body


def coerce_public(public_key: PublicKeyMaterial) -> ec.EllipticCurvePublicKey:
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        return public_key
    return decode_public(public_key)


# =============================================================================
# Private keys
# =============================================================================

def _check_scalar(scalar: bytes) -> bytes:
    if len(scalar) != SCALAR_LEN:
        raise KeyFormatError(f"private key must be {SCALAR_LEN} bytes, got {len(scalar)}")
    value = int.from_bytes(scalar, "big")
    if not 0 < value < CURVE_ORDER:
        raise KeyFormatError("private key scalar is out of range for secp256k1")
    return scalar


def _decode_wif(wif: str) -> bytes:
    try:
        raw = base58.b58decode_check(wif)
    except ValueError as exc:
        raise KeyFormatError(f"invalid WIF private key: {exc}") from exc

    if not raw or raw[0] != WIF_VERSION:
        raise KeyFormatError("invalid WIF version byte")
    body = raw[1:]
    if len(body) == SCALAR_LEN + 1 and body[-1] == WIF_COMPRESSED_FLAG:
        body = body[:-1]
    return body


def _is_hex(text: str) -> bool:
    try:
        bytes.fromhex(text)
    except ValueError:
        return False
    return True


def decode_private(key_material: PrivateKeyMaterial) -> bytes:
    """
    Return the raw 32-byte private scalar.

    Raises KeyFormatError on anything that is not a valid secp256k1 private key.
    """
    if isinstance(key_material, ec.EllipticCurvePrivateKey):
        if not isinstance(key_material.curve, ec.SECP256K1):
            raise KeyFormatError("private key must be on secp256k1")
        value = key_material.private_numbers().private_value
        return value.to_bytes(SCALAR_LEN, "big")

    if isinstance(key_material, (bytes, bytearray)):
        return _check_scalar(bytes(key_material))

    if not isinstance(key_material, str) or not key_material:
        raise KeyFormatError("private key must be a string, 32 bytes or a key object")

    text = key_material.strip()
    if text.startswith(K1_PRIVATE_PREFIX):
        raw = _b58decode(text[len(K1_PRIVATE_PREFIX):])
        return _check_scalar(_split_checked(raw, SCALAR_LEN, _K1_SUFFIX))

    if len(text) == 2 * SCALAR_LEN and _is_hex(text):
        return _check_scalar(bytes.fromhex(text))

    return _check_scalar(_decode_wif(text))


def load_private_key(key_material: PrivateKeyMaterial) -> ec.EllipticCurvePrivateKey:
    if isinstance(key_material, ec.EllipticCurvePrivateKey):
        decode_private(key_material)
        return key_material
    scalar = decode_private(key_material)
    return ec.derive_private_key(int.from_bytes(scalar, "big"), CURVE)


def encode_private_wif(key_material: PrivateKeyMaterial) -> str:
    scalar = decode_private(key_material)
    return base58.b58encode_check(bytes([WIF_VERSION]) + scalar).decode("ascii")


def public_key_string(
    key_material: PrivateKeyMaterial,
    *,
    prefix: Optional[str] = None,
) -> str:
    """Public key string advertised for a private key."""
    return encode_public(load_private_key(key_material).public_key(), prefix=prefix)


def generate_key_pair(*, prefix: Optional[str] = None) -> KeyPair:
    private_key = ec.generate_private_key(CURVE)
    pair = KeyPair(
        private_wif=encode_private_wif(private_key),
        public_key=encode_public(private_key.public_key(), prefix=prefix),
    )
    logger.debug("generated key pair for %s", pair.public_key)
    return pair


__all__ = [
    "CURVE",
    "KeyPair",
    "PrivateKeyMaterial",
    "PublicKeyMaterial",
    "decode_public",
    "encode_public",
    "coerce_public",
    "decode_private",
    "load_private_key",
    "encode_private_wif",
    "public_key_string",
    "generate_key_pair",
]
