# security/__init__.py
from .key_manager import KeyManager
from .secure_envelope import (
    ALGORITHM_TAG,
    FORMAT_VERSION,
    Envelope,
    deserialize_envelope,
    encode_envelope,
    serialize_envelope,
)
from .secure_communication import ReceivedMessage, SealResult, SecureCommunicator, SentMessage

__all__ = [
    "KeyManager",
    "Envelope",
    "ALGORITHM_TAG",
    "FORMAT_VERSION",
    "encode_envelope",
    "serialize_envelope",
    "deserialize_envelope",
    "SecureCommunicator",
    "SealResult",
    "SentMessage",
    "ReceivedMessage",
]
