"""
Encrypt and decrypt OBT content for the `content` field of ledger records.

encrypt:  model -> ABI bytes -> ECIES envelope -> lowercase hex
decrypt:  hex -> envelope -> verify HMAC -> AES-CBC -> ABI bytes -> model of the requested kind
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from obtcrypt.crypto_utils.ecies import ecies_decrypt, ecies_encrypt, hex_decode
from obtcrypt.crypto_utils.errors import SerializationError
from obtcrypt.crypto_utils.keys import PrivateKeyMaterial, PublicKeyMaterial
from .abi import pack_content, resolve_kind, unpack_content
from .models import ContentKind, FundsRequestContent, ObtContentBase, RecordObtContent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecryptedContent:
    """Decrypted payload tagged with the kind the caller asked for."""
    kind: ContentKind
    content: ObtContentBase

    @property
    def request(self) -> FundsRequestContent:
        if self.kind is not ContentKind.REQUEST:
            raise SerializationError(f"content is {self.kind.value}, not a funds request")
        return self.content  # type: ignore[return-value]

    @property
    def record(self) -> RecordObtContent:
        if self.kind is not ContentKind.RECORD:
            raise SerializationError(f"content is {self.kind.value}, not an OBT record")
        return self.content  # type: ignore[return-value]

    def to_json(self) -> str:
        return self.content.to_json()


def encrypt_content(
    content: ObtContentBase,
    sender_private: PrivateKeyMaterial,
    recipient_public: PublicKeyMaterial,
    *,
    iv: Optional[bytes] = None,
) -> str:
    """Return the hex envelope to place in a record's `content` field."""
    plaintext = pack_content(content)
    envelope = ecies_encrypt(sender_private, recipient_public, plaintext, iv=iv)
    logger.debug("encrypted %s content", content.KIND.value)
    return envelope.hex()


def decrypt_content(
    envelope_hex: str,
    recipient_private: PrivateKeyMaterial,
    sender_public: PublicKeyMaterial,
    kind: Union[ContentKind, str],
) -> DecryptedContent:
    """
    Open a hex envelope and decode it as `kind`.

    The envelope carries no type tag, so the caller must say which schema to
    expect. A wrong kind surfaces as SerializationError.
    """
    expected = resolve_kind(kind)
    plaintext = ecies_decrypt(recipient_private, sender_public, hex_decode(envelope_hex))
    content = unpack_content(expected, plaintext)
    logger.debug("decrypted %s content", expected.value)
    return DecryptedContent(kind=expected, content=content)


__all__ = [
    "DecryptedContent",
    "encrypt_content",
    "decrypt_content",
]
