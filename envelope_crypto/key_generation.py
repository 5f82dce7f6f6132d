# envelope_crypto/key_generation.py

import base64
import logging
from typing import Tuple, Union

from Crypto.PublicKey import RSA
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_keys.exceptions import ValidationError as EthKeysValidationError

from .errors import MalformedKey

logger = logging.getLogger(__name__)

DEFAULT_RSA_BITS = 2048
RSA_PUBLIC_EXPONENT = 65537


def generate_rsa_keypair(bits: int = DEFAULT_RSA_BITS) -> Tuple[str, str]:
    """
    Generates a recipient RSA key pair for OAEP key wrapping.
    Returns:
        tuple: (public_key_b64, private_key_b64) where the public key is base64
        DER SubjectPublicKeyInfo and the private key is base64 DER PKCS#8.
    """
    logger.info(f"ENVELOPE_CRYPTO.key_generation: Generating RSA-{bits} keypair...")
    private_key = RSA.generate(bits, e=RSA_PUBLIC_EXPONENT)
    return export_public_key(private_key.publickey()), export_private_key(private_key)


def export_public_key(public_key: RSA.RsaKey) -> str:
    return base64.b64encode(public_key.publickey().export_key(format="DER")).decode('utf-8')


def export_private_key(private_key: RSA.RsaKey) -> str:
    if not private_key.has_private():
        raise MalformedKey("Cannot export a public key as a private key")
    return base64.b64encode(private_key.export_key(format="DER", pkcs=8)).decode('utf-8')


def _import_rsa_key(key_b64: str, role: str) -> RSA.RsaKey:
    if not isinstance(key_b64, str) or not key_b64.strip():
        raise MalformedKey(f"Empty or non-text {role} key")
    try:
        der_bytes = base64.b64decode("".join(key_b64.split()), validate=True)
    except ValueError as b64_error:
        raise MalformedKey(f"{role.capitalize()} key is not valid base64: {b64_error}") from None

    try:
        return RSA.import_key(der_bytes)
    except (ValueError, IndexError, TypeError) as der_error:
        raise MalformedKey(f"{role.capitalize()} key is not an RSA key in a supported encoding: {der_error}") from None


def import_public_key(public_key_b64: str) -> RSA.RsaKey:
    """Imports a base64 SPKI RSA public key; rejects private keys and other families."""
    key = _import_rsa_key(public_key_b64, "public")
    if key.has_private():
        raise MalformedKey("Expected a public key but received private key material")
    return key


def import_private_key(private_key_b64: str) -> RSA.RsaKey:
    """Imports a base64 PKCS#8 RSA private key."""
    key = _import_rsa_key(private_key_b64, "private")
    if not key.has_private():
        raise MalformedKey("Expected a private key but received a public key")
    return key


# --- Sender identity (secp256k1 signing account) ---

def generate_identity_account() -> Tuple[str, str]:
    """
    Generates a sender identity used to sign binding claims.
    Returns:
        tuple: (checksum_address, private_key_hex)
    """
    account = Account.create()
    logger.info(f"ENVELOPE_CRYPTO.key_generation: Generated identity account {account.address}")
    return account.address, "0x" + bytes(account.key).hex()


def load_identity_account(private_key: Union[str, bytes, LocalAccount]) -> LocalAccount:
    if isinstance(private_key, LocalAccount):
        return private_key
    if not private_key:
        raise MalformedKey("Empty identity private key")
    try:
        return Account.from_key(private_key)
    except (ValueError, TypeError, EthKeysValidationError) as key_error:
        raise MalformedKey(f"Identity private key is not a valid secp256k1 key: {type(key_error).__name__}") from None
