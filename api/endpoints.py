# --- File: api/endpoints.py ---
from fastapi import HTTPException, Body, Depends
from typing import List, NoReturn, Optional, Tuple
import logging

from api.models import (
    RsaKeyPairRequest, RsaKeyPairResponse, IdentityRequest, IdentityResponse,
    SealRequest, SealResponse, OpenRequest, OpenResponse,
    SignBindingRequest, SignBindingResponse, VerifyBindingRequest, VerifyBindingResponse,
    SendMessageRequest, MessageRecordModel, InboxRequest, InboxMessageModel, InboxResponse,
    SentHistoryResponse,
)
from core.content_store import ContentStoreError
from core.ledger import LedgerError
from envelope_crypto import (
    BindingVerificationFailed,
    CollaboratorUnavailable,
    EntropyUnavailable,
    EnvelopeCryptoError,
    EnvelopeDecodeError,
    KeyTooLarge,
    MalformedClaim,
    MalformedKey,
    MalformedMessage,
    MessageUnrecoverable,
    binding_typed_data,
    generate_rsa_keypair,
    load_identity_account,
    make_claim,
)
from security.key_manager import KeyManager
from security.secure_communication import SecureCommunicator
from utils import hex_to_signature, normalize_address, signature_to_hex
import config

logger = logging.getLogger(__name__)

# --- Dependency Injection Setup ---
# Global instances, set by lifespan in main.py
_key_manager_instance: Optional[KeyManager] = None
_secure_communicator_instance: Optional[SecureCommunicator] = None


def get_key_manager() -> KeyManager:
    global _key_manager_instance
    if _key_manager_instance is None:
        logger.warning("KeyManager instance was None, attempting to initialize now (should have been done by lifespan).")
        _key_manager_instance = KeyManager(key_file_path=config.KEYS_FILE, rsa_bits=config.RSA_KEY_BITS)
    return _key_manager_instance

def get_secure_communicator() -> SecureCommunicator:
    if _secure_communicator_instance is None:
        logger.critical("SecureCommunicator instance is None during request. This indicates a severe startup issue.")
        raise HTTPException(status_code=503, detail="Messaging service not available or not initialized.")
    return _secure_communicator_instance


# --- Error mapping ---

def _raise_http(e: Exception) -> NoReturn:
    """Converts a domain failure into the matching HTTPException."""
    if isinstance(e, (MalformedKey, MalformedMessage, MalformedClaim, KeyTooLarge)):
        status_code = 400
    elif isinstance(e, (EnvelopeDecodeError, MessageUnrecoverable)):
        status_code = 422
    elif isinstance(e, (EntropyUnavailable, CollaboratorUnavailable)):
        status_code = 503
    elif isinstance(e, ContentStoreError):
        status_code = 502
    elif isinstance(e, LedgerError):
        status_code = 500
    else:
        raise e
    code = getattr(e, "code", type(e).__name__)
    raise HTTPException(status_code=status_code, detail=f"{code}: {e}") from e


def _record_fields(record) -> dict:
    return dict(
        message_id=record.message_id,
        sender=record.sender_identity,
        recipient=record.recipient_identity,
        cid=record.content_locator,
        timestamp=record.issued_at,
        signature=signature_to_hex(record.signature),
    )


def _local_identity(key_manager: KeyManager, name: str) -> Tuple[str, str, str]:
    """(address, account private key, rsa private key) of a local identity, or 404."""
    address = key_manager.get_account_address(name)
    if not address:
        raise HTTPException(status_code=404, detail=f"Local identity '{name}' not found.")
    return address, key_manager.get_account_private_key(name), key_manager.get_rsa_private_key(name)


# --- API Endpoints ---
# Plain 'def' endpoints run in FastAPI's threadpool; RSA and IPFS calls block.

def create_rsa_keypair(request: Optional[RsaKeyPairRequest] = None):
    request = request or RsaKeyPairRequest()
    logger.info(f"Received RSA key pair request ({request.bits} bits)")
    try:
        public_key_b64, private_key_b64 = generate_rsa_keypair(request.bits)
    except EnvelopeCryptoError as e:
        _raise_http(e)
    return RsaKeyPairResponse(public_key_b64=public_key_b64, private_key_b64=private_key_b64)

def create_identity(
    request: IdentityRequest = Body(...),
    key_manager: KeyManager = Depends(get_key_manager),
):
    logger.info(f"Received identity request for '{request.name}'")
    try:
        profile = key_manager.ensure_identity(request.name)
    except EnvelopeCryptoError as e:
        _raise_http(e)
    except OSError as e:
        logger.error(f"Failed to persist local identity '{request.name}': {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error: Could not save identity keys.")
    return IdentityResponse(**profile)

def seal_envelope(
    request: SealRequest = Body(...),
    communicator: SecureCommunicator = Depends(get_secure_communicator),
):
    try:
        sealed = communicator.seal(request.message, request.recipient_public_key_b64)
        content_locator = communicator.content_store.put(sealed.envelope_bytes) if communicator.content_store else None
    except (EnvelopeCryptoError, ContentStoreError) as e:
        _raise_http(e)
    return SealResponse(
        envelope=sealed.envelope_bytes.decode('utf-8'),
        content_locator=content_locator,
        algorithm=sealed.algorithm_tag,
        version=sealed.format_version,
    )

def open_envelope(
    request: OpenRequest = Body(...),
    communicator: SecureCommunicator = Depends(get_secure_communicator),
):
    try:
        message = communicator.open(request.envelope.encode('utf-8'), request.recipient_private_key_b64)
    except EnvelopeCryptoError as e:
        _raise_http(e)
    return OpenResponse(message=message)

def sign_binding(
    request: SignBindingRequest = Body(...),
    communicator: SecureCommunicator = Depends(get_secure_communicator),
):
    try:
        account = load_identity_account(request.identity_private_key)
        claim = make_claim(request.recipient, request.cid, request.timestamp)
        signature = communicator.bind_and_sign(account, claim.recipient_identity, claim.content_locator, claim.issued_at)
    except EnvelopeCryptoError as e:
        _raise_http(e)
    return SignBindingResponse(
        signature=signature_to_hex(signature),
        signer=account.address,
        typed_data=binding_typed_data(claim),
    )

def verify_binding(
    request: VerifyBindingRequest = Body(...),
    communicator: SecureCommunicator = Depends(get_secure_communicator),
):
    try:
        claim = make_claim(request.recipient, request.cid, request.timestamp)
    except MalformedClaim as e:
        _raise_http(e)
    try:
        signature = hex_to_signature(request.signature)
        signer = communicator.verify_binding(claim, signature, expected_sender=request.expected_sender)
    except ValueError:
        return VerifyBindingResponse(valid=False, error="signature_invalid")
    except BindingVerificationFailed as e:
        return VerifyBindingResponse(valid=False, error=e.code)
    return VerifyBindingResponse(valid=True, signer=signer)

def send_message(
    request: SendMessageRequest = Body(...),
    communicator: SecureCommunicator = Depends(get_secure_communicator),
    key_manager: KeyManager = Depends(get_key_manager),
):
    identity_private_key = request.identity_private_key
    if identity_private_key is None:
        if not request.sender_name:
            raise HTTPException(status_code=400, detail="Either identity_private_key or sender_name is required.")
        _, identity_private_key, _ = _local_identity(key_manager, request.sender_name)

    try:
        sent = communicator.send_message(
            request.message,
            request.recipient,
            request.recipient_public_key_b64,
            identity_private_key,
        )
    except (EnvelopeCryptoError, CollaboratorUnavailable, ContentStoreError, LedgerError) as e:
        _raise_http(e)
    return MessageRecordModel(**_record_fields(sent))

def fetch_inbox(
    request: InboxRequest = Body(...),
    communicator: SecureCommunicator = Depends(get_secure_communicator),
    key_manager: KeyManager = Depends(get_key_manager),
):
    recipient, private_key_b64 = request.recipient, request.recipient_private_key_b64
    if request.recipient_name:
        address, _, rsa_private_key_b64 = _local_identity(key_manager, request.recipient_name)
        recipient = recipient or address
        private_key_b64 = private_key_b64 or rsa_private_key_b64
    if not recipient or not private_key_b64:
        raise HTTPException(status_code=400, detail="recipient and recipient_private_key_b64 (or recipient_name) are required.")
    try:
        recipient = normalize_address(recipient)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"malformed_claim: {e}")

    try:
        received = communicator.fetch_inbox(recipient, private_key_b64)
    except (EnvelopeCryptoError, CollaboratorUnavailable, LedgerError) as e:
        _raise_http(e)

    messages: List[InboxMessageModel] = [
        InboxMessageModel(
            **_record_fields(item),
            message=item.plaintext,
            decrypt_error=item.decrypt_error,
            verified=item.verified,
            verification_error=item.verification_error,
        )
        for item in received
    ]
    return InboxResponse(recipient=recipient, messages=messages)

def get_sent_history(
    sender: str,
    communicator: SecureCommunicator = Depends(get_secure_communicator),
):
    try:
        sender_address = normalize_address(sender)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"malformed_claim: {e}")
    try:
        records = communicator.sent_history(sender_address)
    except (CollaboratorUnavailable, LedgerError) as e:
        _raise_http(e)
    return SentHistoryResponse(
        sender=sender_address,
        messages=[MessageRecordModel(**_record_fields(record)) for record in records],
    )
