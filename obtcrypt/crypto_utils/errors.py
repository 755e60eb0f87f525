"""
Error kinds raised by the OBT content encryption stack.

Every error is terminal for the single call that raised it. None of them
describe a transient condition, so nothing here is retried internally.
All of them are ValueError subclasses, so callers that already treat
malformed input as ValueError keep working.
"""

from __future__ import annotations


class ObtCryptoError(ValueError):
    """Base class for every error raised by obtcrypt."""


class KeyFormatError(ObtCryptoError):
    """Malformed, wrong-prefix, bad-checksum or off-curve key material."""


class KeyAgreementError(ObtCryptoError):
    """ECDH could not be performed with the supplied private/public pair."""


class EnvelopeFormatError(ObtCryptoError):
    """Envelope bytes (or their hex transport form) are truncated or malformed."""


class AuthenticationError(ObtCryptoError):
    """
    HMAC tag did not verify.

    The envelope must be rejected and discarded. It is never decrypted.
    """


class PaddingError(ObtCryptoError):
    """Decrypted block data carries an impossible padding length."""


class SerializationError(ObtCryptoError):
    """Bytes do not parse as the requested content kind (or cannot be packed)."""


__all__ = [
    "ObtCryptoError",
    "KeyFormatError",
    "KeyAgreementError",
    "EnvelopeFormatError",
    "AuthenticationError",
    "PaddingError",
    "SerializationError",
]
