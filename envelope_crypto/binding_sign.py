# envelope_crypto/binding_sign.py

"""
Typed, domain-separated signatures over (recipient, content locator, timestamp).

Claims are signed as EIP-712 structured data under a fixed domain, so a
signature produced here is only valid as a MessageBinding of this protocol and
can equally be produced by an external wallet via eth_signTypedData_v4.
"""
import copy
import logging
import time
from typing import Any, Dict, Optional, Union

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from eth_account.signers.local import LocalAccount
from eth_keys.exceptions import BadSignature
from eth_keys.exceptions import ValidationError as EthKeysValidationError
from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ClaimExpired, MalformedClaim, SignatureInvalid
from .key_generation import load_identity_account

logger = logging.getLogger(__name__)

# Fixed for the lifetime of the protocol; only field values vary per message.
BINDING_DOMAIN_NAME = "SealedCourier"
BINDING_DOMAIN_VERSION = "1"
BINDING_CHAIN_ID = 80002
BINDING_PRIMARY_TYPE = "MessageBinding"

BINDING_DOMAIN: Dict[str, Any] = {
    "name": BINDING_DOMAIN_NAME,
    "version": BINDING_DOMAIN_VERSION,
    "chainId": BINDING_CHAIN_ID,
}

BINDING_TYPES: Dict[str, Any] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
    ],
    BINDING_PRIMARY_TYPE: [
        {"name": "recipient", "type": "address"},
        {"name": "cid", "type": "string"},
        {"name": "timestamp", "type": "uint256"},
    ],
}

SIGNATURE_LENGTH = 65
_ACCEPTED_V_VALUES = (0, 1, 27, 28)


class BindingClaim(BaseModel):
    """The (recipient, locator, timestamp) tuple a sender signs at seal time."""
    model_config = ConfigDict(frozen=True)

    recipient_identity: str = Field(..., description="Recipient address (normalized to checksum form).")
    content_locator: str = Field(..., min_length=1, description="Content identifier of the stored envelope.")
    issued_at: int = Field(..., ge=0, lt=2 ** 256, description="Issue time, integer seconds since the epoch.")

    @field_validator("recipient_identity")
    @classmethod
    def _normalize_recipient(cls, value: str) -> str:
        if not isinstance(value, str) or not is_address(value):
            raise ValueError(f"not an address: {value!r}")
        return to_checksum_address(value)


class BindingPolicy(BaseModel):
    """Acceptance window for issued_at. max_age_seconds=None disables the age check."""
    model_config = ConfigDict(frozen=True)

    max_age_seconds: Optional[int] = Field(None, ge=0)
    max_future_skew_seconds: int = Field(300, ge=0)


def make_claim(recipient_identity: str, content_locator: str, issued_at: int) -> BindingClaim:
    """Builds a BindingClaim, reporting invalid field values as MalformedClaim."""
    try:
        return BindingClaim(
            recipient_identity=recipient_identity,
            content_locator=content_locator,
            issued_at=issued_at,
        )
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        raise MalformedClaim(f"Invalid binding claim field(s): {fields}") from None


def binding_typed_data(claim: BindingClaim) -> Dict[str, Any]:
    """Full eth_signTypedData_v4 payload for a claim."""
    return {
        "types": copy.deepcopy(BINDING_TYPES),
        "primaryType": BINDING_PRIMARY_TYPE,
        "domain": dict(BINDING_DOMAIN),
        "message": {
            "recipient": claim.recipient_identity,
            "cid": claim.content_locator,
            "timestamp": claim.issued_at,
        },
    }


def _signable(claim: BindingClaim) -> SignableMessage:
    return encode_typed_data(full_message=binding_typed_data(claim))


def sign_binding(identity_private_key: Union[str, bytes, LocalAccount], claim: BindingClaim) -> bytes:
    """
    Signs a claim with the sender's secp256k1 identity key.
    Returns the 65-byte r || s || v signature (deterministic, RFC 6979).
    """
    account = load_identity_account(identity_private_key)
    signed = account.sign_message(_signable(claim))
    logger.info(f"ENVELOPE_CRYPTO.binding_sign: {account.address} signed binding for "
                f"{claim.recipient_identity} cid={claim.content_locator}")
    return bytes(signed.signature)


def _check_window(claim: BindingClaim, policy: BindingPolicy, now: int) -> None:
    if policy.max_age_seconds is not None and now - claim.issued_at > policy.max_age_seconds:
        raise ClaimExpired(claim.issued_at, now)
    if claim.issued_at - now > policy.max_future_skew_seconds:
        raise ClaimExpired(claim.issued_at, now)


def verify_binding(
    claim: BindingClaim,
    signature: bytes,
    expected_sender: Optional[str] = None,
    policy: Optional[BindingPolicy] = None,
    now: Optional[int] = None,
) -> str:
    """
    Recovers the signer of a claim and checks it against expected_sender and
    the acceptance window.

    Returns:
        str: the recovered sender address (checksum form).
    Raises:
        SignatureInvalid: malformed signature, failed recovery, or sender mismatch.
        ClaimExpired: issued_at outside the policy window.
    """
    if not isinstance(signature, (bytes, bytearray)) or len(signature) != SIGNATURE_LENGTH:
        raise SignatureInvalid(f"Signature must be {SIGNATURE_LENGTH} bytes")
    if signature[-1] not in _ACCEPTED_V_VALUES:
        raise SignatureInvalid("Signature has an invalid recovery id")

    try:
        recovered = Account.recover_message(_signable(claim), signature=bytes(signature))
    except (BadSignature, EthKeysValidationError, ValueError) as recover_error:
        logger.warning(f"ENVELOPE_CRYPTO.binding_sign: Signer recovery failed: {type(recover_error).__name__}")
        raise SignatureInvalid("Signer could not be recovered from signature") from None

    if expected_sender is not None:
        if not is_address(expected_sender) or to_checksum_address(expected_sender) != recovered:
            logger.warning(f"ENVELOPE_CRYPTO.binding_sign: Binding for cid={claim.content_locator} "
                           f"recovered {recovered}, expected {expected_sender}.")
            raise SignatureInvalid("Recovered signer does not match the expected sender")

    if policy is not None:
        _check_window(claim, policy, int(time.time()) if now is None else now)

    return recovered
