"""
EIP-712 binding signatures:
- Sign/recover round-trip and determinism
- Altered claim fields change the recovered signer
- Malformed signatures, wrong sender, expiry window
- Typed data compatible with external eth_signTypedData_v4 signers
- Signatures made under another domain, or as personal messages, rejected
"""
import json

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data

from envelope_crypto import (
    BINDING_CHAIN_ID,
    BindingPolicy,
    ClaimExpired,
    MalformedClaim,
    SignatureInvalid,
    binding_typed_data,
    make_claim,
    sign_binding,
    verify_binding,
)

CID = "bafkreigh2akiscaildcqabsyg3dfr6chu3fgpregiymsck7e7aqa4s52zy"
NOW = 1_700_000_000


@pytest.fixture
def claim(recipient_identity):
    return make_claim(recipient_identity[0], CID, NOW)


def test_sign_and_recover(sender_identity, claim):
    signature = sign_binding(sender_identity[1], claim)

    assert len(signature) == 65
    assert verify_binding(claim, signature) == sender_identity[0]
    assert verify_binding(claim, signature, expected_sender=sender_identity[0]) == sender_identity[0]


def test_signatures_are_deterministic(sender_identity, claim):
    assert sign_binding(sender_identity[1], claim) == sign_binding(sender_identity[1], claim)


def test_expected_sender_compared_case_insensitively(sender_identity, claim):
    signature = sign_binding(sender_identity[1], claim)

    assert verify_binding(claim, signature, expected_sender=sender_identity[0].lower()) == sender_identity[0]


@pytest.mark.parametrize("field,value", [
    ("content_locator", CID[:-1] + "a"),
    ("issued_at", NOW + 1),
])
def test_altered_claim_detected(sender_identity, claim, field, value):
    signature = sign_binding(sender_identity[1], claim)
    altered = claim.model_copy(update={field: value})

    assert verify_binding(altered, signature) != sender_identity[0]
    with pytest.raises(SignatureInvalid):
        verify_binding(altered, signature, expected_sender=sender_identity[0])


def test_altered_recipient_detected(sender_identity, third_identity, claim):
    signature = sign_binding(sender_identity[1], claim)
    redirected = make_claim(third_identity[0], claim.content_locator, claim.issued_at)

    with pytest.raises(SignatureInvalid):
        verify_binding(redirected, signature, expected_sender=sender_identity[0])


def test_wrong_signer_rejected(third_identity, sender_identity, claim):
    signature = sign_binding(third_identity[1], claim)

    with pytest.raises(SignatureInvalid):
        verify_binding(claim, signature, expected_sender=sender_identity[0])


@pytest.mark.parametrize("signature", [
    b"",
    b"\x01" * 64,
    b"\x01" * 66,
    b"\x01" * 64 + bytes([29]),
])
def test_malformed_signature(claim, signature):
    with pytest.raises(SignatureInvalid) as excinfo:
        verify_binding(claim, signature)
    assert excinfo.value.code == "signature_invalid"


def test_expiry_window(sender_identity, claim):
    signature = sign_binding(sender_identity[1], claim)
    policy = BindingPolicy(max_age_seconds=3600, max_future_skew_seconds=60)

    assert verify_binding(claim, signature, policy=policy, now=NOW + 3600) == sender_identity[0]
    with pytest.raises(ClaimExpired) as excinfo:
        verify_binding(claim, signature, policy=policy, now=NOW + 3601)
    assert excinfo.value.issued_at == NOW

    # issued too far in the future
    with pytest.raises(ClaimExpired):
        verify_binding(claim, signature, policy=policy, now=NOW - 61)


def test_age_check_disabled_by_default(sender_identity, claim):
    signature = sign_binding(sender_identity[1], claim)

    assert verify_binding(claim, signature, policy=BindingPolicy(), now=NOW + 10 ** 9) == sender_identity[0]


def test_signature_checked_before_expiry(third_identity, sender_identity, claim):
    signature = sign_binding(third_identity[1], claim)
    policy = BindingPolicy(max_age_seconds=1)

    with pytest.raises(SignatureInvalid):
        verify_binding(claim, signature, expected_sender=sender_identity[0], policy=policy, now=NOW + 100)


@pytest.mark.parametrize("recipient,locator,issued_at", [
    ("not-an-address", CID, NOW),
    ("0x1234", CID, NOW),
    ("0x" + "ab" * 20, "", NOW),
    ("0x" + "ab" * 20, CID, -1),
    ("0x" + "ab" * 20, CID, 2 ** 256),
])
def test_malformed_claim(recipient, locator, issued_at):
    with pytest.raises(MalformedClaim):
        make_claim(recipient, locator, issued_at)


def test_claim_normalizes_recipient(recipient_identity):
    claim = make_claim(recipient_identity[0].lower(), CID, NOW)

    assert claim.recipient_identity == recipient_identity[0]


def test_typed_data_matches_external_signer(sender_identity, claim):
    """A wallet signing the v4 payload produces the same signature"""
    typed_data = binding_typed_data(claim)

    assert typed_data["primaryType"] == "MessageBinding"
    assert typed_data["domain"] == {"name": "SealedCourier", "version": "1", "chainId": BINDING_CHAIN_ID}
    assert [f["name"] for f in typed_data["types"]["MessageBinding"]] == ["recipient", "cid", "timestamp"]

    external = Account.sign_message(encode_typed_data(full_message=typed_data), sender_identity[1])
    assert bytes(external.signature) == sign_binding(sender_identity[1], claim)


def test_typed_data_is_a_copy(claim):
    binding_typed_data(claim)["types"]["MessageBinding"].append({"name": "extra", "type": "string"})

    assert len(binding_typed_data(claim)["types"]["MessageBinding"]) == 3


@pytest.mark.parametrize("domain_change", [{"chainId": 1}, {"name": "OtherApp"}, {"version": "2"}])
def test_signature_from_other_domain_rejected(sender_identity, claim, domain_change):
    """The same (recipient, cid, timestamp) signed for another app or chain does not verify here"""
    typed_data = binding_typed_data(claim)
    typed_data["domain"] = {**typed_data["domain"], **domain_change}
    foreign = Account.sign_message(encode_typed_data(full_message=typed_data), sender_identity[1])

    with pytest.raises(SignatureInvalid):
        verify_binding(claim, bytes(foreign.signature), expected_sender=sender_identity[0])


def test_personal_message_signature_rejected(sender_identity, claim):
    """An eth_sign personal message over the same fields is not a binding"""
    message = binding_typed_data(claim)["message"]
    personal = Account.sign_message(encode_defunct(text=json.dumps(message)), sender_identity[1])

    with pytest.raises(SignatureInvalid):
        verify_binding(claim, bytes(personal.signature), expected_sender=sender_identity[0])
