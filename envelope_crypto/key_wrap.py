# envelope_crypto/key_wrap.py
import logging

from Crypto.Cipher import PKCS1_OAEP
from Crypto.Hash import SHA256
from Crypto.PublicKey import RSA

from .errors import KeyTooLarge, UnwrapFailed

logger = logging.getLogger(__name__)


def _oaep_cipher(rsa_key: RSA.RsaKey):
    # SHA-256 for both the OAEP label hash and MGF1.
    return PKCS1_OAEP.new(rsa_key, hashAlgo=SHA256)


def max_wrappable_bytes(rsa_key: RSA.RsaKey) -> int:
    """Largest payload RSA-OAEP-SHA256 accepts for this modulus: k - 2*hLen - 2."""
    return rsa_key.size_in_bytes() - 2 * SHA256.digest_size - 2


def wrap_symmetric_key(symmetric_key_bytes: bytes, recipient_public_key: RSA.RsaKey) -> bytes:
    """
    Encrypts a raw symmetric key under the recipient's RSA public key (RSA-OAEP-SHA256).
    """
    limit = max_wrappable_bytes(recipient_public_key)
    if len(symmetric_key_bytes) > limit:
        logger.error(f"ENVELOPE_CRYPTO.key_wrap: Refusing to wrap {len(symmetric_key_bytes)} bytes under a "
                     f"{recipient_public_key.size_in_bits()}-bit modulus (limit {limit}).")
        raise KeyTooLarge(len(symmetric_key_bytes), limit)

    return _oaep_cipher(recipient_public_key.publickey()).encrypt(symmetric_key_bytes)


def unwrap_symmetric_key(wrapped_key_bytes: bytes, recipient_private_key: RSA.RsaKey) -> bytes:
    """
    Decrypts a wrapped symmetric key. Every padding, length or key mismatch
    surfaces as the same UnwrapFailed.
    """
    try:
        return _oaep_cipher(recipient_private_key).decrypt(wrapped_key_bytes)
    except (ValueError, TypeError) as unwrap_error:
        logger.debug(f"ENVELOPE_CRYPTO.key_wrap: RSA-OAEP unwrap failed: {type(unwrap_error).__name__}")
        raise UnwrapFailed() from None
