# --- File: security/secure_communication.py ---
import logging
from typing import List, NamedTuple, Optional, Union

from Crypto.PublicKey import RSA
from eth_account.signers.local import LocalAccount
from pydantic import BaseModel, Field

from core.content_store import ContentIntegrityError, ContentStore, ContentStoreError
from core.ledger import MessageLedger, MessageRecord
from envelope_crypto import (
    BindingClaim,
    BindingError,
    BindingPolicy,
    CollaboratorUnavailable,
    EnvelopeCryptoError,
    MalformedClaim,
    MalformedEnvelope,
    MalformedMessage,
    SymmetricKey,
    UnwrapFailed,
    aes_gcm_decrypt,
    aes_gcm_encrypt,
    generate_key,
    import_private_key,
    import_public_key,
    load_identity_account,
    make_claim,
    sign_binding,
    unwrap_symmetric_key,
    verify_binding,
    wrap_symmetric_key,
)
from envelope_crypto.symmetric_ciphers import AES_KEY_BYTES
from utils import normalize_address, short_address, short_locator, utc_now_seconds
from .secure_envelope import Envelope, deserialize_envelope, encode_envelope, serialize_envelope

logger = logging.getLogger(__name__)

IdentityKey = Union[str, bytes, LocalAccount]

# Stands in for the content locator when claim fields are checked before storing
_PENDING_LOCATOR = "pending"


class SealResult(NamedTuple):
    envelope_bytes: bytes
    algorithm_tag: str
    format_version: str


class SentMessage(BaseModel):
    message_id: int
    sender_identity: str
    recipient_identity: str
    content_locator: str
    issued_at: int
    signature: bytes


class ReceivedMessage(BaseModel):
    """
    One inbox entry with confidentiality and authenticity reported separately.
    A message can decrypt yet fail verification, or verify yet fail to decrypt.
    """
    message_id: int
    sender_identity: str
    recipient_identity: str
    issued_at: int
    content_locator: str
    signature: bytes
    plaintext: Optional[str] = Field(None, description="Decrypted message, when decryption succeeded.")
    decrypt_error: Optional[str] = Field(None, description="Error code when decryption failed.")
    verified_sender: Optional[str] = Field(None, description="Recovered signer, when the binding verified.")
    verification_error: Optional[str] = Field(None, description="Error code when binding verification failed.")

    @property
    def decrypted(self) -> bool:
        return self.decrypt_error is None and self.plaintext is not None

    @property
    def verified(self) -> bool:
        return self.verification_error is None and self.verified_sender is not None


class SecureCommunicator:
    """
    Seals and opens message envelopes, and signs/verifies the bindings that
    publish them. The content store and ledger are only needed for the
    send/inbox/history flows.
    """
    def __init__(
        self,
        content_store: Optional[ContentStore] = None,
        ledger: Optional[MessageLedger] = None,
        binding_policy: Optional[BindingPolicy] = None,
    ):
        self.content_store = content_store
        self.ledger = ledger
        self.binding_policy = binding_policy or BindingPolicy()

    # --- Core protocol ---

    def seal(self, message: str, recipient_public_key_b64: str) -> SealResult:
        """
        Encrypts a message for the holder of recipient_public_key_b64.
        Does not store or sign; the locator is only known once the caller stores the envelope.
        """
        try:
            plaintext_bytes = message.encode('utf-8')
        except UnicodeEncodeError:
            raise MalformedMessage("Message is not encodable as UTF-8") from None
        recipient_public_key = import_public_key(recipient_public_key_b64)

        with generate_key() as one_time_key:
            ciphertext, nonce = aes_gcm_encrypt(one_time_key, plaintext_bytes)
            wrapped_key = wrap_symmetric_key(one_time_key.raw(), recipient_public_key)

        envelope = encode_envelope(wrapped_key, ciphertext, nonce)
        envelope_bytes = serialize_envelope(envelope)
        logger.info(f"SEAL: Sealed {len(message)}-char message into {len(envelope_bytes)}-byte envelope "
                    f"({envelope.algorithm_tag}, v{envelope.format_version}).")
        return SealResult(envelope_bytes, envelope.algorithm_tag, envelope.format_version)

    def bind_and_sign(
        self,
        identity_private_key: IdentityKey,
        recipient_identity: str,
        content_locator: str,
        issued_at: int,
    ) -> bytes:
        claim = make_claim(recipient_identity, content_locator, issued_at)
        return sign_binding(identity_private_key, claim)

    def _open_envelope(self, envelope: Envelope, recipient_private_key: RSA.RsaKey) -> str:
        key_bytes = unwrap_symmetric_key(envelope.wrapped_key, recipient_private_key)
        if len(key_bytes) != AES_KEY_BYTES:
            raise UnwrapFailed()

        with SymmetricKey(key_bytes) as one_time_key:
            plaintext_bytes = aes_gcm_decrypt(one_time_key, envelope.ciphertext, envelope.nonce)

        try:
            return plaintext_bytes.decode('utf-8')
        except UnicodeDecodeError:
            raise MalformedEnvelope("Decrypted payload is not UTF-8 text") from None

    def open(self, envelope_bytes: bytes, recipient_private_key_b64: str) -> str:
        """
        Decrypts an envelope with the recipient's private key.
        Failures are terminal for this (envelope, key) pair and propagate typed.
        """
        try:
            envelope = deserialize_envelope(envelope_bytes)
            recipient_private_key = import_private_key(recipient_private_key_b64)
            message = self._open_envelope(envelope, recipient_private_key)
        except EnvelopeCryptoError as e:
            logger.warning(f"OPEN: Envelope could not be opened ({e.code}).")
            raise
        logger.info("OPEN: Envelope opened successfully.")
        return message

    def verify_binding(self, claim: BindingClaim, signature: bytes, expected_sender: Optional[str] = None) -> str:
        """Checks provenance of a published locator. Independent of whether the envelope decrypts."""
        return verify_binding(claim, signature, expected_sender=expected_sender, policy=self.binding_policy)

    # --- Flows over the collaborators ---

    def _require_store(self) -> ContentStore:
        if self.content_store is None:
            raise CollaboratorUnavailable("content store")
        return self.content_store

    def _require_ledger(self) -> MessageLedger:
        if self.ledger is None:
            raise CollaboratorUnavailable("message ledger")
        return self.ledger

    def send_message(
        self,
        message: str,
        recipient_identity: str,
        recipient_public_key_b64: str,
        identity_private_key: IdentityKey,
        issued_at: Optional[int] = None,
    ) -> SentMessage:
        """seal -> store -> sign (recipient, locator, timestamp) -> publish."""
        store = self._require_store()
        ledger = self._require_ledger()
        account = load_identity_account(identity_private_key)
        try:
            recipient = normalize_address(recipient_identity)
        except ValueError as e:
            raise MalformedClaim(str(e)) from None

        issued_at = utc_now_seconds() if issued_at is None else issued_at
        # Nothing is stored for a claim that could never be signed
        make_claim(recipient, _PENDING_LOCATOR, issued_at)

        tag = f"SEND ({short_address(account.address)} -> {short_address(recipient)})"
        logger.info(f"{tag}: Initiating secure send.")

        sealed = self.seal(message, recipient_public_key_b64)
        content_locator = store.put(sealed.envelope_bytes)
        logger.debug(f"{tag}: Envelope stored at {short_locator(content_locator)}.")

        signature = self.bind_and_sign(account, recipient, content_locator, issued_at)
        message_id = ledger.publish(recipient, content_locator, issued_at, signature, sender_identity=account.address)

        logger.info(f"{tag}: Published as message {message_id}.")
        return SentMessage(
            message_id=message_id,
            sender_identity=account.address,
            recipient_identity=recipient,
            content_locator=content_locator,
            issued_at=issued_at,
            signature=signature,
        )

    def _receive(self, record: MessageRecord, recipient_private_key: RSA.RsaKey) -> ReceivedMessage:
        plaintext = decrypt_error = None
        try:
            envelope_bytes = self._require_store().get(record.content_locator)
            plaintext = self._open_envelope(deserialize_envelope(envelope_bytes), recipient_private_key)
        except ContentIntegrityError:
            decrypt_error = "content_integrity"
        except ContentStoreError:
            decrypt_error = "content_unavailable"
        except EnvelopeCryptoError as e:
            decrypt_error = e.code

        verified_sender = verification_error = None
        try:
            claim = make_claim(record.recipient_identity, record.content_locator, record.issued_at)
            verified_sender = self.verify_binding(claim, record.signature, expected_sender=record.sender_identity)
        except BindingError as e:
            verification_error = e.code

        if decrypt_error or verification_error:
            logger.warning(f"INBOX: Message {record.message_id} decrypt={decrypt_error or 'ok'} "
                           f"verify={verification_error or 'ok'}.")
        return ReceivedMessage(
            **record.model_dump(),
            plaintext=plaintext,
            decrypt_error=decrypt_error,
            verified_sender=verified_sender,
            verification_error=verification_error,
        )

    def fetch_inbox(self, recipient_identity: str, recipient_private_key_b64: str) -> List[ReceivedMessage]:
        """
        Lists, fetches, opens and verifies every message published for a recipient, in publish order.
        A malformed private key fails the whole call; per-message failures are reported per entry.
        """
        self._require_store()
        ledger = self._require_ledger()
        recipient_private_key = import_private_key(recipient_private_key_b64)

        records = ledger.list_for_recipient(recipient_identity)
        logger.info(f"INBOX ({short_address(recipient_identity)}): {len(records)} message(s) listed.")
        return [self._receive(record, recipient_private_key) for record in records]

    def sent_history(self, sender_identity: str) -> List[MessageRecord]:
        """Messages published by a sender, newest first."""
        return list(reversed(self._require_ledger().list_for_sender(sender_identity)))
