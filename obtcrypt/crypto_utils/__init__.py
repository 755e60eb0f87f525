from .errors import (
    ObtCryptoError,
    KeyFormatError,
    KeyAgreementError,
    EnvelopeFormatError,
    AuthenticationError,
    PaddingError,
    SerializationError,
    )

from .keys import (
    KeyPair,
    decode_public,
    encode_public,
    decode_private,
    load_private_key,
    encode_private_wif,
    public_key_string,
    generate_key_pair,
    )

from .ecies import (
    SharedSecret,
    Envelope,
    derive_shared_secret,
    aes_cbc_encrypt,
    aes_cbc_decrypt,
    pad,
    unpad,
    sign,
    verify,
    frame,
    parse,
    ecies_encrypt,
    ecies_decrypt,
    )
