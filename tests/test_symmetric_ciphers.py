"""
AES-256-GCM unit tests:
- Round-trip and ciphertext shape
- Tamper, wrong key and wrong nonce all fail with AuthenticationFailed
- Nonce uniqueness per key
- Key wiping
- Entropy failures surface as EntropyUnavailable
"""
import pytest

from envelope_crypto import AuthenticationFailed, EntropyUnavailable, SymmetricKey, aes_gcm_decrypt, aes_gcm_encrypt, generate_key
from envelope_crypto import symmetric_ciphers
from envelope_crypto.symmetric_ciphers import AES_KEY_BYTES, GCM_NONCE_BYTES, GCM_TAG_BYTES


def test_round_trip():
    key = generate_key()
    ciphertext, nonce = aes_gcm_encrypt(key, b"hello")

    assert len(nonce) == GCM_NONCE_BYTES
    assert len(ciphertext) == len(b"hello") + GCM_TAG_BYTES
    assert aes_gcm_decrypt(key, ciphertext, nonce) == b"hello"


def test_empty_plaintext_round_trip():
    key = generate_key()
    ciphertext, nonce = aes_gcm_encrypt(key, b"")

    assert len(ciphertext) == GCM_TAG_BYTES
    assert aes_gcm_decrypt(key, ciphertext, nonce) == b""


def test_generated_keys_differ():
    assert generate_key().raw() != generate_key().raw()
    assert len(generate_key().raw()) == AES_KEY_BYTES


@pytest.mark.parametrize("position", [0, 4, -1, -GCM_TAG_BYTES])
def test_flipped_bit_rejected(position):
    """Any modified byte, in the ciphertext body or in the tag, fails authentication"""
    key = generate_key()
    ciphertext, nonce = aes_gcm_encrypt(key, b"attack at dawn")

    tampered = bytearray(ciphertext)
    tampered[position] ^= 0x01

    with pytest.raises(AuthenticationFailed):
        aes_gcm_decrypt(key, bytes(tampered), nonce)


def test_wrong_key_rejected():
    ciphertext, nonce = aes_gcm_encrypt(generate_key(), b"secret")

    with pytest.raises(AuthenticationFailed):
        aes_gcm_decrypt(generate_key(), ciphertext, nonce)


def test_wrong_nonce_rejected():
    key = generate_key()
    ciphertext, nonce = aes_gcm_encrypt(key, b"secret")
    other_nonce = bytes(b ^ 0xFF for b in nonce)

    with pytest.raises(AuthenticationFailed):
        aes_gcm_decrypt(key, ciphertext, other_nonce)


@pytest.mark.parametrize("ciphertext,nonce", [
    (b"short", b"\x00" * GCM_NONCE_BYTES),
    (b"\x00" * 32, b"\x00" * 8),
])
def test_malformed_input_is_generic_failure(ciphertext, nonce):
    with pytest.raises(AuthenticationFailed) as excinfo:
        aes_gcm_decrypt(generate_key(), ciphertext, nonce)

    assert excinfo.value.code == "unrecoverable"


def test_nonces_never_repeat_for_same_key():
    key = generate_key()
    nonces = {aes_gcm_encrypt(key, b"x")[1] for _ in range(500)}

    assert len(nonces) == 500


def test_repeated_encryption_gives_distinct_ciphertexts():
    key = generate_key()

    assert aes_gcm_encrypt(key, b"same")[0] != aes_gcm_encrypt(key, b"same")[0]


def test_wipe_zeroes_and_blocks_use():
    key = generate_key()
    buffer = key._material
    key.wipe()

    assert key.wiped
    assert buffer == bytearray(AES_KEY_BYTES)
    with pytest.raises(ValueError):
        key.raw()


def test_context_manager_wipes():
    with generate_key() as key:
        aes_gcm_encrypt(key, b"data")
    assert key.wiped
    assert "wiped=True" in repr(key)


def test_key_length_enforced():
    with pytest.raises(ValueError):
        SymmetricKey(b"\x00" * 16)


def test_entropy_failure_surfaces(monkeypatch):
    def broken_source(length):
        raise OSError("no entropy")

    monkeypatch.setattr(symmetric_ciphers, "get_random_bytes", broken_source)

    with pytest.raises(EntropyUnavailable) as excinfo:
        generate_key()
    assert excinfo.value.code == "entropy_unavailable"
