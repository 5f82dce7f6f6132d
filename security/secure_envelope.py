# --- File: security/secure_envelope.py ---
import json
import logging
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from envelope_crypto.errors import MalformedEnvelope, UnsupportedAlgorithm, UnsupportedVersion
from envelope_crypto.symmetric_ciphers import GCM_NONCE_BYTES
from utils import b64decode_strict, b64encode_str

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"
ALGORITHM_TAG = "AES-256-GCM + RSA-OAEP-SHA256"

SUPPORTED_FORMAT_VERSIONS = frozenset({FORMAT_VERSION})
SUPPORTED_ALGORITHMS = frozenset({ALGORITHM_TAG})

# Wire field names
WIRE_WRAPPED_KEY = "encryptedKey"
WIRE_CIPHERTEXT = "encryptedMessage"
WIRE_NONCE = "iv"
WIRE_NONCE_ALIAS = "nonce"
WIRE_ALGORITHM = "algorithm"
WIRE_VERSION = "version"


class Envelope(BaseModel):
    """
    The storable unit of one sealed message.
    Created once by seal and immutable afterwards; opening it any number of times is allowed.
    """
    model_config = ConfigDict(frozen=True)

    wrapped_key: bytes = Field(..., description="One-time AES key, RSA-OAEP wrapped for the recipient.")
    ciphertext: bytes = Field(..., description="AES-GCM ciphertext with the 16-byte tag appended.")
    nonce: bytes = Field(..., description="96-bit AES-GCM nonce.")
    algorithm_tag: str = Field(ALGORITHM_TAG, description="Exact cipher suite identifier.")
    format_version: str = Field(FORMAT_VERSION, description="Envelope layout version.")


def encode_envelope(
    wrapped_key: bytes,
    ciphertext: bytes,
    nonce: bytes,
    algorithm_tag: str = ALGORITHM_TAG,
    format_version: str = FORMAT_VERSION,
) -> Envelope:
    return Envelope(
        wrapped_key=wrapped_key,
        ciphertext=ciphertext,
        nonce=nonce,
        algorithm_tag=algorithm_tag,
        format_version=format_version,
    )


def serialize_envelope(envelope: Envelope) -> bytes:
    """Serializes to a UTF-8 JSON record with base64 binary fields."""
    record = {
        WIRE_WRAPPED_KEY: b64encode_str(envelope.wrapped_key),
        WIRE_CIPHERTEXT: b64encode_str(envelope.ciphertext),
        WIRE_NONCE: b64encode_str(envelope.nonce),
        WIRE_ALGORITHM: envelope.algorithm_tag,
        WIRE_VERSION: envelope.format_version,
    }
    return json.dumps(record, separators=(',', ':')).encode('utf-8')


def _required_text(record: Dict[str, Any], field: str) -> str:
    value = record.get(field)
    if not isinstance(value, str):
        raise MalformedEnvelope(f"Envelope field '{field}' is missing or not a string")
    return value


def _required_binary(record: Dict[str, Any], *fields: str) -> bytes:
    for field in fields:
        if field in record:
            break
    else:
        raise MalformedEnvelope(f"Envelope field '{fields[0]}' is missing")

    value = record[field]
    if not isinstance(value, str) or not value:
        raise MalformedEnvelope(f"Envelope field '{field}' must be a non-empty base64 string")
    try:
        return b64decode_strict(value)
    except ValueError:
        raise MalformedEnvelope(f"Envelope field '{field}' is not valid base64") from None


def deserialize_envelope(data: bytes) -> Envelope:
    """
    Parses an envelope record.

    Version and algorithm are checked before any binary field is decoded, so an
    unrecognized envelope is rejected without touching its payload.
    Raises MalformedEnvelope, UnsupportedVersion or UnsupportedAlgorithm.
    """
    try:
        record = json.loads(data.decode('utf-8') if isinstance(data, (bytes, bytearray)) else data)
    except (UnicodeDecodeError, json.JSONDecodeError, TypeError):
        raise MalformedEnvelope("Envelope is not a UTF-8 JSON document") from None
    if not isinstance(record, dict):
        raise MalformedEnvelope("Envelope must be a JSON object")

    format_version = _required_text(record, WIRE_VERSION)
    if format_version not in SUPPORTED_FORMAT_VERSIONS:
        logger.warning(f"ENVELOPE DECODE: Rejecting unsupported format version {format_version!r}.")
        raise UnsupportedVersion(format_version)

    algorithm_tag = _required_text(record, WIRE_ALGORITHM)
    if algorithm_tag not in SUPPORTED_ALGORITHMS:
        logger.warning(f"ENVELOPE DECODE: Rejecting unsupported algorithm {algorithm_tag!r}.")
        raise UnsupportedAlgorithm(algorithm_tag)

    wrapped_key = _required_binary(record, WIRE_WRAPPED_KEY)
    ciphertext = _required_binary(record, WIRE_CIPHERTEXT)
    nonce = _required_binary(record, WIRE_NONCE, WIRE_NONCE_ALIAS)
    if len(nonce) != GCM_NONCE_BYTES:
        raise MalformedEnvelope(f"Envelope nonce must be {GCM_NONCE_BYTES} bytes, got {len(nonce)}")

    return encode_envelope(wrapped_key, ciphertext, nonce, algorithm_tag, format_version)
