from pydantic import BaseModel, Field
from typing import List, Optional

# --- API Request/Response Models (using Pydantic) ---
# Binary values travel as base64 (keys, envelopes) or 0x-hex (signatures) strings.

class RsaKeyPairRequest(BaseModel):
    """Request model for generating an RSA recipient key pair."""
    bits: int = Field(default=2048, ge=2048, le=8192, description="RSA modulus size in bits")

class RsaKeyPairResponse(BaseModel):
    public_key_b64: str = Field(..., description="Base64 DER SubjectPublicKeyInfo; share this with senders")
    private_key_b64: str = Field(..., description="Base64 DER PKCS#8; keep this secret")

class IdentityRequest(BaseModel):
    """Request model for creating (or looking up) a named local identity."""
    name: str = Field(..., min_length=1, max_length=64, description="Local identity name, e.g. 'alice'")

class IdentityResponse(BaseModel):
    name: str
    address: str = Field(..., description="Checksum address of the signing identity")
    rsa_public_key_b64: str = Field(..., description="RSA public key for receiving envelopes")

class SealRequest(BaseModel):
    message: str = Field(..., description="Plaintext message (UTF-8 text)")
    recipient_public_key_b64: str = Field(..., description="Recipient RSA public key, base64 DER")

class SealResponse(BaseModel):
    envelope: str = Field(..., description="Serialized envelope (JSON text)")
    content_locator: Optional[str] = Field(None, description="Content identifier, when the envelope was stored")
    algorithm: str
    version: str

class OpenRequest(BaseModel):
    envelope: str = Field(..., description="Serialized envelope (JSON text)")
    recipient_private_key_b64: str = Field(..., description="Recipient RSA private key, base64 DER")

class OpenResponse(BaseModel):
    message: str

class BindingClaimModel(BaseModel):
    recipient: str = Field(..., description="Recipient address")
    cid: str = Field(..., description="Content locator of the stored envelope")
    timestamp: int = Field(..., description="Issue time in seconds since the epoch")

class SignBindingRequest(BindingClaimModel):
    identity_private_key: str = Field(..., description="Sender identity private key, 0x hex")

class SignBindingResponse(BaseModel):
    signature: str = Field(..., description="65-byte signature, 0x hex")
    signer: str
    typed_data: dict = Field(..., description="eth_signTypedData_v4 payload that was signed")

class VerifyBindingRequest(BindingClaimModel):
    signature: str = Field(..., description="65-byte signature, 0x hex")
    expected_sender: Optional[str] = Field(None, description="Address the signature must recover to")

class VerifyBindingResponse(BaseModel):
    """Verification outcome. A failed check is a result, not an HTTP error."""
    valid: bool
    signer: Optional[str] = None
    error: Optional[str] = Field(None, description="Error code when the binding did not verify")

class SendMessageRequest(BaseModel):
    message: str
    recipient: str = Field(..., description="Recipient address or ethereum: URI")
    recipient_public_key_b64: str
    identity_private_key: Optional[str] = Field(None, description="Sender identity private key, 0x hex")
    sender_name: Optional[str] = Field(None, description="Local identity to send as, instead of a raw key")

class MessageRecordModel(BaseModel):
    message_id: int
    sender: str
    recipient: str
    cid: str
    timestamp: int
    signature: str

class InboxRequest(BaseModel):
    recipient: Optional[str] = Field(None, description="Recipient address; defaults to the address of recipient_name")
    recipient_private_key_b64: Optional[str] = None
    recipient_name: Optional[str] = Field(None, description="Local identity whose inbox to read, instead of a raw key")

class InboxMessageModel(MessageRecordModel):
    message: Optional[str] = None
    decrypt_error: Optional[str] = None
    verified: bool
    verification_error: Optional[str] = None

class InboxResponse(BaseModel):
    recipient: str
    messages: List[InboxMessageModel]

class SentHistoryResponse(BaseModel):
    sender: str
    messages: List[MessageRecordModel]
