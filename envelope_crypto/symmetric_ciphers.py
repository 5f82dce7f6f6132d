# envelope_crypto/symmetric_ciphers.py
import logging
from typing import Optional, Set, Tuple

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes

from .errors import AuthenticationFailed, EntropyUnavailable

logger = logging.getLogger(__name__)

AES_KEY_BYTES = 32   # AES-256
GCM_NONCE_BYTES = 12 # 96-bit nonce
GCM_TAG_BYTES = 16


def random_bytes(length: int) -> bytes:
    """Draws bytes from the secure random source, mapping OS failures to EntropyUnavailable."""
    try:
        return get_random_bytes(length)
    except (OSError, NotImplementedError) as e:
        logger.critical(f"ENVELOPE_CRYPTO.symmetric_ciphers: Secure random source failed: {e}")
        raise EntropyUnavailable(str(e)) from e


class SymmetricKey:
    """
    One-time AES-256 key held in a mutable buffer so it can be zeroed.

    The key remembers every nonce issued under it and will not issue the same
    nonce twice. Use as a context manager, or call wipe() once the key has
    been wrapped.
    """

    def __init__(self, material: bytes):
        if len(material) != AES_KEY_BYTES:
            raise ValueError(f"AES-256 key must be {AES_KEY_BYTES} bytes, got {len(material)}")
        self._material: Optional[bytearray] = bytearray(material)
        self._issued_nonces: Set[bytes] = set()

    @property
    def wiped(self) -> bool:
        return self._material is None

    def raw(self) -> bytes:
        if self._material is None:
            raise ValueError("Symmetric key has been wiped")
        return bytes(self._material)

    def next_nonce(self) -> bytes:
        nonce = random_bytes(GCM_NONCE_BYTES)
        while nonce in self._issued_nonces:
            nonce = random_bytes(GCM_NONCE_BYTES)
        self._issued_nonces.add(nonce)
        return nonce

    def wipe(self) -> None:
        if self._material is not None:
            for i in range(len(self._material)):
                self._material[i] = 0
            self._material = None

    def __enter__(self) -> "SymmetricKey":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return f"SymmetricKey(wiped={self.wiped})"


def generate_key() -> SymmetricKey:
    """Generates a fresh uniformly random 256-bit key."""
    return SymmetricKey(random_bytes(AES_KEY_BYTES))


def aes_gcm_encrypt(key: SymmetricKey, plaintext_bytes: bytes) -> Tuple[bytes, bytes]:
    """
    Encrypts with AES-256-GCM under a fresh nonce.
    Returns (ciphertext with the 16-byte tag appended, nonce).
    """
    nonce_bytes = key.next_nonce()
    cipher = AES.new(key.raw(), AES.MODE_GCM, nonce=nonce_bytes, mac_len=GCM_TAG_BYTES)
    ciphertext_bytes, tag_bytes = cipher.encrypt_and_digest(plaintext_bytes)
    return ciphertext_bytes + tag_bytes, nonce_bytes


def aes_gcm_decrypt(key: SymmetricKey, ciphertext_with_tag: bytes, nonce_bytes: bytes) -> bytes:
    # One generic failure for every cause; no oracle on which check failed.
    if len(nonce_bytes) != GCM_NONCE_BYTES or len(ciphertext_with_tag) < GCM_TAG_BYTES:
        logger.debug("ENVELOPE_CRYPTO.symmetric_ciphers: AES-GCM input has invalid shape.")
        raise AuthenticationFailed()

    ciphertext_bytes = ciphertext_with_tag[:-GCM_TAG_BYTES]
    tag_bytes = ciphertext_with_tag[-GCM_TAG_BYTES:]
    key_bytes = key.raw()
    try:
        cipher = AES.new(key_bytes, AES.MODE_GCM, nonce=nonce_bytes, mac_len=GCM_TAG_BYTES)
        return cipher.decrypt_and_verify(ciphertext_bytes, tag_bytes)
    except (TypeError, ValueError) as crypto_error:
        logger.debug(f"ENVELOPE_CRYPTO.symmetric_ciphers: AES-GCM decryption failed: {type(crypto_error).__name__}")
        raise AuthenticationFailed() from None
