# envelope_crypto/errors.py

"""
Exception taxonomy for the envelope protocol.

Every failure carries a short machine-readable ``code`` so that callers (the
inbox, the HTTP layer) can report outcomes without inspecting class names.
AuthenticationFailed and UnwrapFailed share one code and one
message: a caller must not learn which sub-step rejected the message.
"""


class EnvelopeCryptoError(Exception):
    """Base class for all envelope protocol failures."""
    code = "envelope_error"


class EntropyUnavailable(EnvelopeCryptoError):
    """The secure random source could not service a request."""
    code = "entropy_unavailable"


class MalformedKey(EnvelopeCryptoError):
    """Invalid key encoding, wrong key type, or wrong algorithm family."""
    code = "malformed_key"


class KeyTooLarge(EnvelopeCryptoError):
    """Key material does not fit the RSA-OAEP payload limit of the modulus."""
    code = "key_too_large"

    def __init__(self, key_length: int, max_length: int):
        self.key_length = key_length
        self.max_length = max_length
        super().__init__(f"Cannot wrap {key_length} bytes, modulus allows at most {max_length}")


class MalformedMessage(EnvelopeCryptoError):
    """Plaintext cannot be encoded as UTF-8 (e.g. it holds a lone surrogate)."""
    code = "malformed_message"


# --- Confidentiality failures ---

_UNRECOVERABLE_MESSAGE = "Cannot recover this message with the given key"


class MessageUnrecoverable(EnvelopeCryptoError):
    """The message cannot be recovered with the supplied key."""
    code = "unrecoverable"

    def __init__(self, message: str = _UNRECOVERABLE_MESSAGE):
        super().__init__(message)


class AuthenticationFailed(MessageUnrecoverable):
    """AEAD tag did not verify (tampering, wrong key or wrong nonce)."""


class UnwrapFailed(MessageUnrecoverable):
    """RSA-OAEP unwrap failed (wrong private key or corrupted bytes)."""


# --- Decode failures (terminal, never retried) ---

class EnvelopeDecodeError(EnvelopeCryptoError):
    code = "envelope_decode_error"


class MalformedEnvelope(EnvelopeDecodeError):
    code = "malformed_envelope"


class UnsupportedVersion(EnvelopeDecodeError):
    code = "unsupported_version"

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"Unsupported envelope format version: {version!r}")


class UnsupportedAlgorithm(EnvelopeDecodeError):
    code = "unsupported_algorithm"

    def __init__(self, algorithm: str):
        self.algorithm = algorithm
        super().__init__(f"Unsupported envelope algorithm: {algorithm!r}")


# --- Authenticity failures ---

class BindingError(EnvelopeCryptoError):
    code = "binding_error"


class MalformedClaim(BindingError):
    """A binding claim field is not a valid value for its type."""
    code = "malformed_claim"


class BindingVerificationFailed(BindingError):
    code = "binding_verification_failed"


class SignatureInvalid(BindingVerificationFailed):
    code = "signature_invalid"


class ClaimExpired(BindingVerificationFailed):
    code = "claim_expired"

    def __init__(self, issued_at: int, now: int):
        self.issued_at = issued_at
        self.now = now
        super().__init__(f"Claim issued at {issued_at} is outside the accepted window (now={now})")


class CollaboratorUnavailable(RuntimeError):
    """A flow needs a content store or ledger that was not configured."""

    def __init__(self, collaborator: str):
        self.collaborator = collaborator
        super().__init__(f"{collaborator} is not configured")
