from .models import (
    ContentKind,
    ObtContentBase,
    FundsRequestContent,
    RecordObtContent,
    )
from .abi import pack_content, unpack_content
from .obt import DecryptedContent, encrypt_content, decrypt_content
