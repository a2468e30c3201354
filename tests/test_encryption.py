import pytest

from utilities.encryption import (
    EncryptionError, decrypt_token, encrypt_token, generate_encryption_key, validate_encryption_key
)

KEY = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"


def test_envelope_layout():
    envelope = bytes.fromhex(encrypt_token("token", KEY))

    assert envelope[0] == 1
    # version + nonce + ciphertext + 16 byte tag
    assert len(envelope) == 1 + 12 + len("token") + 16


def test_decrypt():
    assert decrypt_token(encrypt_token("my-boat-token", KEY), KEY) == "my-boat-token"


def test_nonce_is_random():
    assert encrypt_token("token", KEY) != encrypt_token("token", KEY)


def test_wrong_key():
    envelope = encrypt_token("token", KEY)

    with pytest.raises(EncryptionError):
        decrypt_token(envelope, generate_encryption_key())


def test_tampered_envelope():
    envelope = bytearray(bytes.fromhex(encrypt_token("token", KEY)))
    envelope[-1] ^= 0x01

    with pytest.raises(EncryptionError):
        decrypt_token(envelope.hex(), KEY)


@pytest.mark.parametrize("envelope", ["zz", "01", "02" + "00" * 40])
def test_malformed_envelope(envelope):
    with pytest.raises(EncryptionError):
        decrypt_token(envelope, KEY)


@pytest.mark.parametrize("key", [None, "", "abc", "g" * 64, KEY[:-2]])
def test_invalid_keys(key):
    assert not validate_encryption_key(key)
    with pytest.raises(EncryptionError):
        encrypt_token("token", key)


def test_generated_key_is_valid():
    assert validate_encryption_key(generate_encryption_key())
