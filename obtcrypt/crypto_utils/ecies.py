# =============================================================================
# ECIES content encryption for off-chain transaction (OBT) records
# =============================================================================
"""
Wire format

  envelope = IV(16) || AES-256-CBC(cipher_key, IV, pkcs7(plaintext)) || HMAC-SHA256(mac_key, IV || ciphertext)

Key schedule

  x        = x-coordinate of (sender_priv * recipient_pub) on secp256k1, 32 bytes big-endian
  secret   = SHA-512(x)
  cipher_key, mac_key = secret[0:32], secret[32:64]

Both parties derive the same secret: derive(A_priv, B_pub) == derive(B_priv, A_pub).

Decryption is encrypt-then-MAC in reverse: the tag is verified in constant
time first, and a message whose tag does not verify is never decrypted.

Note about unpadding
- Only the final pad-length byte is checked (0 < pad_len <= len). The other
  pad bytes are not compared. Other implementations of this format do the
  same, so tightening it would reject messages they accept. Any tampering
  already fails the HMAC check before unpadding runs.

Everything here is a pure function of its inputs. The only outside resource
is os.urandom(), read once per encryption for the IV.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from cryptography.exceptions import InternalError, InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .errors import (
    AuthenticationError,
    EnvelopeFormatError,
    KeyAgreementError,
    PaddingError,
)
from .keys import PrivateKeyMaterial, PublicKeyMaterial, coerce_public, load_private_key

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

BLOCK_SIZE = 16
IV_LEN = 16
KEY_LEN = 32
TAG_LEN = 32
MIN_ENVELOPE_LEN = IV_LEN + BLOCK_SIZE + TAG_LEN  # 64


# =============================================================================
# Shared secret derivation
# =============================================================================

@dataclass(frozen=True)
class SharedSecret:
    """
    Per-call secret material for one (private, public) key pair.

    - cipher_key: AES-256 key, bytes[0:32] of the stretched secret
    - mac_key: HMAC-SHA256 key, bytes[32:64] of the stretched secret
    """
    cipher_key: bytes
    mac_key: bytes

    @property
    def raw(self) -> bytes:
        return self.cipher_key + self.mac_key

    def __repr__(self) -> str:
        return "SharedSecret(<redacted>)"


def _sha512(data: bytes) -> bytes:
    h = hashes.Hash(hashes.SHA512())
    h.update(data)
    return h.finalize()


def derive_shared_secret(
    private_key: PrivateKeyMaterial,
    public_key: PublicKeyMaterial,
) -> SharedSecret:
    priv = load_private_key(private_key)
    pub = coerce_public(public_key)

    try:
        x = priv.exchange(ec.ECDH(), pub)
    except (ValueError, UnsupportedAlgorithm, InternalError) as exc:
        raise KeyAgreementError(f"ECDH key agreement failed: {exc}") from exc

    digest = _sha512(x)
    return SharedSecret(cipher_key=digest[:KEY_LEN], mac_key=digest[KEY_LEN:])


# =============================================================================
# AES-256-CBC with PKCS#7 padding
# =============================================================================

def new_iv() -> bytes:
    return os.urandom(IV_LEN)


def pad(data: bytes) -> bytes:
    # Block-aligned input still gets a full block of padding.
    padder = padding.PKCS7(BLOCK_SIZE * 8).padder()
    return padder.update(data) + padder.finalize()


def unpad(data: bytes) -> bytes:
    if not data:
        raise PaddingError("invalid padding: empty plaintext block")
    pad_len = data[-1]
    if pad_len == 0 or pad_len > len(data):
        raise PaddingError("invalid padding in message")
    return data[:-pad_len]


def _check_cipher_args(cipher_key: bytes, iv: bytes) -> None:
    if not isinstance(cipher_key, (bytes, bytearray)) or len(cipher_key) != KEY_LEN:
        raise ValueError("cipher key must be 32 bytes")
    if not isinstance(iv, (bytes, bytearray)) or len(iv) != IV_LEN:
        raise EnvelopeFormatError("IV must be 16 bytes")


def aes_cbc_encrypt(cipher_key: bytes, iv: bytes, plaintext: bytes) -> bytes:
    _check_cipher_args(cipher_key, iv)
    encryptor = Cipher(algorithms.AES(bytes(cipher_key)), modes.CBC(bytes(iv))).encryptor()
    return encryptor.update(pad(bytes(plaintext))) + encryptor.finalize()


def aes_cbc_decrypt(cipher_key: bytes, iv: bytes, ciphertext: bytes) -> bytes:
    _check_cipher_args(cipher_key, iv)
    if not ciphertext or len(ciphertext) % BLOCK_SIZE:
        raise EnvelopeFormatError("ciphertext length must be a positive multiple of 16")
    decryptor = Cipher(algorithms.AES(bytes(cipher_key)), modes.CBC(bytes(iv))).decryptor()
    padded = decryptor.update(bytes(ciphertext)) + decryptor.finalize()
    return unpad(padded)


# =============================================================================
# HMAC-SHA256 authentication
# =============================================================================

def sign(mac_key: bytes, data: bytes) -> bytes:
    h = hmac.HMAC(bytes(mac_key), hashes.SHA256())
    h.update(bytes(data))
    return h.finalize()


def verify(mac_key: bytes, data: bytes, tag: bytes) -> bool:
    h = hmac.HMAC(bytes(mac_key), hashes.SHA256())
    h.update(bytes(data))
    try:
        h.verify(bytes(tag))
    except InvalidSignature:
        return False
    return True


# =============================================================================
# Envelope framing
# =============================================================================

@dataclass(frozen=True)
class Envelope:
    iv: bytes
    ciphertext: bytes
    tag: bytes

    @property
    def signed_part(self) -> bytes:
        return self.iv + self.ciphertext

    def to_bytes(self) -> bytes:
        return frame(self.iv, self.ciphertext, self.tag)

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    @classmethod
    def from_bytes(cls, data: bytes) -> "Envelope":
        return cls(*parse(data))

    @classmethod
    def from_hex(cls, data: str) -> "Envelope":
        return cls.from_bytes(hex_decode(data))


def frame(iv: bytes, ciphertext: bytes, tag: bytes) -> bytes:
    return bytes(iv) + bytes(ciphertext) + bytes(tag)


def parse(data: bytes) -> Tuple[bytes, bytes, bytes]:
    """Split an envelope into (iv, ciphertext, tag)."""
    if not isinstance(data, (bytes, bytearray)):
        raise EnvelopeFormatError("envelope must be bytes")
    data = bytes(data)
    if len(data) < MIN_ENVELOPE_LEN:
        raise EnvelopeFormatError(
            f"envelope too short: {len(data)} bytes, need at least {MIN_ENVELOPE_LEN}"
        )
    iv = data[:IV_LEN]
    ciphertext = data[IV_LEN:-TAG_LEN]
    tag = data[-TAG_LEN:]
    if len(ciphertext) % BLOCK_SIZE:
        raise EnvelopeFormatError("ciphertext length is not a multiple of the block size")
    return iv, ciphertext, tag


def hex_decode(data: str) -> bytes:
    if not isinstance(data, str):
        raise EnvelopeFormatError("envelope hex must be a string")
    try:
        return bytes.fromhex(data.strip())
    except ValueError as exc:
        raise EnvelopeFormatError(f"envelope is not valid hex: {exc}") from exc


# =============================================================================
# Byte-level encrypt / decrypt
# =============================================================================

def ecies_encrypt(
    sender_private: PrivateKeyMaterial,
    recipient_public: PublicKeyMaterial,
    plaintext: bytes,
    *,
    iv: Optional[bytes] = None,
) -> bytes:
    """
    Encrypt plaintext for recipient_public and return the framed envelope.

    iv is for reproducible test vectors only. Leave it None in production so a
    fresh random IV is drawn for every message.
    """
    if not isinstance(plaintext, (bytes, bytearray)):
        raise ValueError("plaintext must be bytes")

    secret = derive_shared_secret(sender_private, recipient_public)
    iv = new_iv() if iv is None else bytes(iv)

    ciphertext = aes_cbc_encrypt(secret.cipher_key, iv, plaintext)
    tag = sign(secret.mac_key, iv + ciphertext)

    logger.debug("sealed %d plaintext bytes into %d byte envelope",
                 len(plaintext), IV_LEN + len(ciphertext) + TAG_LEN)
    return frame(iv, ciphertext, tag)


def ecies_decrypt(
    recipient_private: PrivateKeyMaterial,
    sender_public: PublicKeyMaterial,
    message: bytes,
) -> bytes:
    """
    Verify and decrypt an envelope produced by ecies_encrypt().

    Raises AuthenticationError if the tag does not verify. In that case no
    decryption is attempted.
    """
    env = Envelope.from_bytes(message)
    secret = derive_shared_secret(recipient_private, sender_public)

    if not verify(secret.mac_key, env.signed_part, env.tag):
        logger.warning("rejected envelope: HMAC tag mismatch (%d bytes)", len(message))
        raise AuthenticationError("envelope HMAC signature is invalid")

    plaintext = aes_cbc_decrypt(secret.cipher_key, env.iv, env.ciphertext)
    logger.debug("opened %d byte envelope into %d plaintext bytes", len(message), len(plaintext))
    return plaintext


__all__ = [
    "BLOCK_SIZE",
    "IV_LEN",
    "KEY_LEN",
    "TAG_LEN",
    "MIN_ENVELOPE_LEN",
    "SharedSecret",
    "derive_shared_secret",
    "new_iv",
    "pad",
    "unpad",
    "aes_cbc_encrypt",
    "aes_cbc_decrypt",
    "sign",
    "verify",
    "Envelope",
    "frame",
    "parse",
    "hex_decode",
    "ecies_encrypt",
    "ecies_decrypt",
]
