# envelope_crypto/__init__.py

"""
Envelope Crypto Package (Using PyCryptodome, eth-account)
This package provides the primitives of the secure message envelope protocol:
- One-time AES-256-GCM keys and authenticated encryption (PyCryptodome)
- RSA-OAEP-SHA256 wrapping of the one-time key (PyCryptodome)
- RSA recipient key pairs and secp256k1 sender identities (PyCryptodome, eth-account)
- EIP-712 typed binding signatures over (recipient, content locator, timestamp) (eth-account)
"""
import logging

from .binding_sign import (
    BINDING_CHAIN_ID,
    BINDING_DOMAIN,
    BINDING_TYPES,
    BindingClaim,
    BindingPolicy,
    binding_typed_data,
    make_claim,
    sign_binding,
    verify_binding,
)
from .errors import (
    AuthenticationFailed,
    BindingError,
    BindingVerificationFailed,
    ClaimExpired,
    CollaboratorUnavailable,
    EntropyUnavailable,
    EnvelopeCryptoError,
    EnvelopeDecodeError,
    KeyTooLarge,
    MalformedClaim,
    MalformedEnvelope,
    MalformedKey,
    MalformedMessage,
    MessageUnrecoverable,
    SignatureInvalid,
    UnsupportedAlgorithm,
    UnsupportedVersion,
    UnwrapFailed,
)
from .key_generation import (
    export_private_key,
    export_public_key,
    generate_identity_account,
    generate_rsa_keypair,
    import_private_key,
    import_public_key,
    load_identity_account,
)
from .key_wrap import unwrap_symmetric_key, wrap_symmetric_key
from .symmetric_ciphers import SymmetricKey, aes_gcm_decrypt, aes_gcm_encrypt, generate_key

logger = logging.getLogger(__name__)

__all__ = [
    "generate_key",
    "SymmetricKey",
    "aes_gcm_encrypt",
    "aes_gcm_decrypt",
    "wrap_symmetric_key",
    "unwrap_symmetric_key",
    "generate_rsa_keypair",
    "import_public_key",
    "import_private_key",
    "export_public_key",
    "export_private_key",
    "generate_identity_account",
    "load_identity_account",
    "BindingClaim",
    "BindingPolicy",
    "BINDING_DOMAIN",
    "BINDING_TYPES",
    "BINDING_CHAIN_ID",
    "make_claim",
    "binding_typed_data",
    "sign_binding",
    "verify_binding",
    "EnvelopeCryptoError",
    "EntropyUnavailable",
    "MalformedKey",
    "MalformedMessage",
    "KeyTooLarge",
    "MessageUnrecoverable",
    "AuthenticationFailed",
    "UnwrapFailed",
    "EnvelopeDecodeError",
    "MalformedEnvelope",
    "UnsupportedVersion",
    "UnsupportedAlgorithm",
    "BindingError",
    "MalformedClaim",
    "BindingVerificationFailed",
    "SignatureInvalid",
    "ClaimExpired",
    "CollaboratorUnavailable",
]

logger.debug("Envelope Crypto Package Initialized (Using PyCryptodome, eth-account)")
