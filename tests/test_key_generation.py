"""
Key pair generation, import/export and sender identities.
"""
import base64

import pytest
from Crypto.PublicKey import ECC

from envelope_crypto import (
    MalformedKey,
    export_private_key,
    export_public_key,
    generate_identity_account,
    import_private_key,
    import_public_key,
    load_identity_account,
)


def test_generated_pair_formats(recipient_keys):
    public_b64, private_b64 = recipient_keys

    public_key = import_public_key(public_b64)
    private_key = import_private_key(private_b64)

    assert public_key.size_in_bits() == 2048
    assert public_key.e == 65537
    assert private_key.publickey() == public_key
    # SPKI DER starts with a SEQUENCE; PKCS#8 embeds the rsaEncryption OID
    assert base64.b64decode(public_b64)[0] == 0x30
    assert bytes.fromhex("2a864886f70d010101") in base64.b64decode(private_b64)


def test_export_import_round_trip(recipient_keys):
    private_key = import_private_key(recipient_keys[1])

    assert export_private_key(private_key) == recipient_keys[1]
    assert export_public_key(private_key) == recipient_keys[0]


def test_surrounding_whitespace_tolerated(recipient_keys):
    public_b64 = recipient_keys[0]
    wrapped_lines = "\n".join(public_b64[i:i + 64] for i in range(0, len(public_b64), 64))

    assert import_public_key(f"  {wrapped_lines}\n") == import_public_key(public_b64)


@pytest.mark.parametrize("value", ["", "   ", "not base64!!", "AAAA", "ключ"])
def test_malformed_public_key(value):
    with pytest.raises(MalformedKey) as excinfo:
        import_public_key(value)
    assert excinfo.value.code == "malformed_key"


def test_wrong_half_rejected(recipient_keys):
    public_b64, private_b64 = recipient_keys

    with pytest.raises(MalformedKey):
        import_public_key(private_b64)
    with pytest.raises(MalformedKey):
        import_private_key(public_b64)


def test_non_rsa_key_rejected():
    ec_public_der = ECC.generate(curve="P-256").public_key().export_key(format="DER")

    with pytest.raises(MalformedKey):
        import_public_key(base64.b64encode(ec_public_der).decode())


def test_identity_account_round_trip():
    address, private_key = generate_identity_account()

    assert address.startswith("0x") and len(address) == 42
    assert private_key.startswith("0x") and len(private_key) == 66
    assert load_identity_account(private_key).address == address


def test_load_identity_passes_accounts_through():
    account = load_identity_account(generate_identity_account()[1])

    assert load_identity_account(account) is account


@pytest.mark.parametrize("value", ["", "0x1234", "zz" * 32])
def test_malformed_identity_key(value):
    with pytest.raises(MalformedKey):
        load_identity_account(value)
