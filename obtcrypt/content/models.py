"""
Plaintext schemas carried inside encrypted OBT content.

Field order is part of the wire contract: the binary packing in abi.py walks
ABI_FIELDS in the order declared here, and those bytes are what gets encrypted.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Optional, Tuple

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from obtcrypt.crypto_utils.keys import PrivateKeyMaterial, PublicKeyMaterial

AbiField = Tuple[str, str]  # (name, "string" | "string?")


class ContentKind(str, Enum):
    """Which schema an envelope's plaintext is decoded into. Named by the caller."""
    REQUEST = "new_funds_content"
    RECORD = "record_obt_data_content"


class ObtContentBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    KIND: ClassVar[ContentKind]
    ABI_FIELDS: ClassVar[Tuple[AbiField, ...]]

    def to_json(self) -> str:
        return self.model_dump_json()

    def encrypt(
        self,
        sender_private: "PrivateKeyMaterial",
        recipient_public: "PublicKeyMaterial",
    ) -> str:
        """Serialize, encrypt for recipient_public and return the hex envelope."""
        from .obt import encrypt_content
        return encrypt_content(self, sender_private, recipient_public)


class FundsRequestContent(ObtContentBase):
    """Private part of a request for funds, sent from payee to payer."""

    KIND: ClassVar[ContentKind] = ContentKind.REQUEST
    ABI_FIELDS: ClassVar[Tuple[AbiField, ...]] = (
        ("payee_public_address", "string"),
        ("amount", "string"),
        ("chain_code", "string"),
        ("token_code", "string"),
        ("memo", "string?"),
        ("hash", "string?"),
        ("offline_url", "string?"),
    )

    payee_public_address: str
    amount: str
    chain_code: str
    token_code: str
    memo: Optional[str] = None
    hash: Optional[str] = None
    offline_url: Optional[str] = None


class RecordObtContent(ObtContentBase):
    """Private part of the record of an off-chain transaction (the response to a request)."""

    KIND: ClassVar[ContentKind] = ContentKind.RECORD
    ABI_FIELDS: ClassVar[Tuple[AbiField, ...]] = (
        ("payer_public_address", "string"),
        ("payee_public_address", "string"),
        ("amount", "string"),
        ("chain_code", "string"),
        ("token_code", "string"),
        ("status", "string"),
        ("obt_id", "string"),
        ("memo", "string?"),
        ("hash", "string?"),
        ("offline_url", "string?"),
    )

    payer_public_address: str
    payee_public_address: str
    amount: str
    chain_code: str
    token_code: str
    status: str
    obt_id: str
    memo: Optional[str] = None
    hash: Optional[str] = None
    offline_url: Optional[str] = None


CONTENT_MODELS = {
    ContentKind.REQUEST: FundsRequestContent,
    ContentKind.RECORD: RecordObtContent,
}


__all__ = [
    "ContentKind",
    "ObtContentBase",
    "FundsRequestContent",
    "RecordObtContent",
    "CONTENT_MODELS",
]
