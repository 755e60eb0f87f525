import os

import pytest

from cryptography.hazmat.primitives.asymmetric import ec

import sys
target_path = os.path.abspath(os.path.join(os.path.dirname(os.path.abspath(__file__)), "../.."))
if target_path not in sys.path:
    sys.path.insert(0, target_path)

from obtcrypt.crypto_utils import ecies
from obtcrypt.crypto_utils import (
    AuthenticationError,
    EnvelopeFormatError,
    KeyAgreementError,
    KeyFormatError,
    PaddingError,
    Envelope,
    aes_cbc_decrypt,
    aes_cbc_encrypt,
    decode_public,
    derive_shared_secret,
    ecies_decrypt,
    ecies_encrypt,
    frame,
    generate_key_pair,
    pad,
    parse,
    public_key_string,
    sign,
    unpad,
    verify,
)

ALICE_WIF = "5J9bWm2ThenDm3tjvmUgHtWCVMUdjRR1pxnRtnJjvKA4b2ut5WK"
BOB_WIF = "5JoQtsKQuH8hC9MyvfJAqo6qmKLm8ePYNucs7tPu2YxG12trzBt"

# Published value for the pair above (first 50 bytes), and the full 64 bytes.
KNOWN_SECRET_PREFIX = (
    "a71b4ec5a9577926a1d2aa1d9d99327fd3b68f6a1ea597200a0d890bd3331df3"
    "00a2d49fec0b2b3e6969ce9263c5d6cf47c1"
)
KNOWN_SECRET = (
    "a71b4ec5a9577926a1d2aa1d9d99327fd3b68f6a1ea597200a0d890bd3331df3"
    "00a2d49fec0b2b3e6969ce9263c5d6cf47c191c1ef149373ecc9f0d98116b598"
)


@pytest.fixture
def alice():
    return {"priv": ALICE_WIF, "pub": public_key_string(ALICE_WIF)}


@pytest.fixture
def bob():
    return {"priv": BOB_WIF, "pub": public_key_string(BOB_WIF)}


# -----------------------------------------------------------------------------
# Shared secret
# -----------------------------------------------------------------------------

def test_known_vector_shared_secret(alice, bob):
    secret = derive_shared_secret(alice["priv"], bob["pub"])
    assert len(bytes.fromhex(KNOWN_SECRET_PREFIX)) == 50
    assert secret.raw[:50].hex() == KNOWN_SECRET_PREFIX
    assert secret.raw.hex() == KNOWN_SECRET
    assert secret.cipher_key == bytes.fromhex(KNOWN_SECRET)[:32]
    assert secret.mac_key == bytes.fromhex(KNOWN_SECRET)[32:]


def test_known_vector_is_symmetric(alice, bob):
    a = derive_shared_secret(alice["priv"], bob["pub"])
    b = derive_shared_secret(bob["priv"], alice["pub"])
    assert a == b


@pytest.mark.parametrize("_", range(8))
def test_random_pairs_are_symmetric(_):
    a = generate_key_pair()
    b = generate_key_pair()
    assert derive_shared_secret(a.private_wif, b.public_key) == \
        derive_shared_secret(b.private_wif, a.public_key)


def test_secret_accepts_key_objects(alice, bob):
    by_str = derive_shared_secret(alice["priv"], bob["pub"])
    by_obj = derive_shared_secret(alice["priv"], decode_public(bob["pub"]))
    assert by_str == by_obj


def test_different_pairs_give_different_secrets(alice, bob):
    carol = generate_key_pair()
    assert derive_shared_secret(alice["priv"], bob["pub"]) != \
        derive_shared_secret(alice["priv"], carol.public_key)


def test_secret_repr_does_not_leak(alice, bob):
    secret = derive_shared_secret(alice["priv"], bob["pub"])
    assert KNOWN_SECRET[:16] not in repr(secret)


def test_public_key_on_other_curve_fails_key_agreement(alice):
    other = ec.generate_private_key(ec.SECP256R1()).public_key()
    with pytest.raises(KeyAgreementError):
        derive_shared_secret(alice["priv"], other)


def test_malformed_public_string_is_key_format_error(alice):
    with pytest.raises(KeyFormatError):
        derive_shared_secret(alice["priv"], "FIOnot-a-key")


# -----------------------------------------------------------------------------
# Padding and AES-CBC
# -----------------------------------------------------------------------------

@pytest.mark.parametrize("size", [0, 1, 15, 16, 17, 128])
def test_padding_lengths(size):
    data = os.urandom(size)
    padded = pad(data)
    assert len(padded) % 16 == 0
    assert len(padded) > size
    assert set(padded[size:]) == {len(padded) - size}
    assert unpad(padded) == data


def test_block_aligned_input_gets_full_pad_block():
    assert pad(b"a" * 16) == b"a" * 16 + bytes([16]) * 16


@pytest.mark.parametrize("size", [0, 1, 15, 16, 17, 128])
def test_aes_cbc_roundtrip(size):
    key = os.urandom(32)
    iv = os.urandom(16)
    data = os.urandom(size)
    ct = aes_cbc_encrypt(key, iv, data)
    assert len(ct) == (size // 16 + 1) * 16
    assert aes_cbc_decrypt(key, iv, ct) == data


def test_unpad_rejects_zero_and_oversized_length():
    with pytest.raises(PaddingError):
        unpad(b"\x00" * 16)
    with pytest.raises(PaddingError):
        unpad(b"\x11" * 16)
    with pytest.raises(PaddingError):
        unpad(b"")


def test_unpad_only_reads_final_byte():
    # Interoperable behaviour: the other pad bytes are not compared.
    assert unpad(b"abc\x09\x02") == b"abc"


def test_aes_cbc_rejects_bad_iv_and_key():
    with pytest.raises(EnvelopeFormatError):
        aes_cbc_encrypt(os.urandom(32), os.urandom(12), b"x")
    with pytest.raises(ValueError):
        aes_cbc_encrypt(os.urandom(16), os.urandom(16), b"x")


def test_aes_cbc_decrypt_rejects_partial_block():
    with pytest.raises(EnvelopeFormatError):
        aes_cbc_decrypt(os.urandom(32), os.urandom(16), os.urandom(17))
    with pytest.raises(EnvelopeFormatError):
        aes_cbc_decrypt(os.urandom(32), os.urandom(16), b"")


# -----------------------------------------------------------------------------
# HMAC
# -----------------------------------------------------------------------------

def test_sign_and_verify():
    key = os.urandom(32)
    data = os.urandom(48)
    tag = sign(key, data)
    assert len(tag) == 32
    assert verify(key, data, tag)
    assert not verify(key, data + b"\x00", tag)
    assert not verify(os.urandom(32), data, tag)
    assert not verify(key, data, tag[:-1] + bytes([tag[-1] ^ 1]))


# -----------------------------------------------------------------------------
# Envelope framing
# -----------------------------------------------------------------------------

@pytest.mark.parametrize("size", [0, 1, 16, 32, 63])
def test_parse_rejects_short_input(size):
    with pytest.raises(EnvelopeFormatError):
        parse(os.urandom(size))


def test_parse_rejects_partial_ciphertext_block():
    with pytest.raises(EnvelopeFormatError):
        parse(os.urandom(65))


def test_frame_and_parse():
    iv, ct, tag = os.urandom(16), os.urandom(32), os.urandom(32)
    data = frame(iv, ct, tag)
    assert len(data) == 80
    assert parse(data) == (iv, ct, tag)

    env = Envelope.from_hex(data.hex())
    assert env == Envelope(iv, ct, tag)
    assert env.to_hex() == data.hex()
    assert env.signed_part == iv + ct


def test_envelope_from_hex_rejects_non_hex():
    with pytest.raises(EnvelopeFormatError):
        Envelope.from_hex("zz" * 64)


# -----------------------------------------------------------------------------
# Byte-level encrypt / decrypt
# -----------------------------------------------------------------------------

@pytest.mark.parametrize("size", [0, 1, 15, 16, 17, 128, 255])
def test_ecies_roundtrip(alice, bob, size):
    data = os.urandom(size)
    msg = ecies_encrypt(alice["priv"], bob["pub"], data)
    assert len(msg) >= 64
    assert (len(msg) - 48) % 16 == 0
    assert ecies_decrypt(bob["priv"], alice["pub"], msg) == data


def test_sender_can_open_own_message(alice, bob):
    msg = ecies_encrypt(alice["priv"], bob["pub"], b"hello")
    assert ecies_decrypt(alice["priv"], bob["pub"], msg) == b"hello"


def test_fixed_iv_is_reproducible(alice, bob):
    iv = bytes.fromhex("f300888ca4f512cebdc0020ff0f7224c")
    a = ecies_encrypt(bob["priv"], alice["pub"], b"payload", iv=iv)
    b = ecies_encrypt(bob["priv"], alice["pub"], b"payload", iv=iv)
    assert a == b
    assert a[:16] == iv


def test_random_iv_per_message(alice, bob):
    a = ecies_encrypt(alice["priv"], bob["pub"], b"same")
    b = ecies_encrypt(alice["priv"], bob["pub"], b"same")
    assert a[:16] != b[:16]
    assert a != b


def test_wrong_recipient_fails_authentication(alice, bob):
    carol = generate_key_pair()
    msg = ecies_encrypt(alice["priv"], bob["pub"], b"for bob only")
    with pytest.raises(AuthenticationError):
        ecies_decrypt(carol.private_wif, alice["pub"], msg)


def test_every_bit_flip_fails_authentication(alice, bob, monkeypatch):
    msg = ecies_encrypt(alice["priv"], bob["pub"], b"tamper me")

    def must_not_decrypt(*args, **kwargs):
        raise AssertionError("decryption attempted on unauthenticated envelope")

    monkeypatch.setattr(ecies, "aes_cbc_decrypt", must_not_decrypt)

    for i in range(len(msg)):
        for bit in range(8):
            tampered = bytearray(msg)
            tampered[i] ^= 1 << bit
            with pytest.raises(AuthenticationError):
                ecies_decrypt(bob["priv"], alice["pub"], bytes(tampered))


def test_truncated_message_is_envelope_error(alice, bob):
    msg = ecies_encrypt(alice["priv"], bob["pub"], b"x")
    with pytest.raises(EnvelopeFormatError):
        ecies_decrypt(bob["priv"], alice["pub"], msg[:63])
