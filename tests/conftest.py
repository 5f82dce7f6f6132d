"""
Shared fixtures: RSA recipient key pairs and secp256k1 identities.

RSA-2048 generation is slow, so key pairs are created once per session.
"""
import pytest

from core.content_store import InMemoryContentStore
from core.ledger import SqliteMessageLedger
from envelope_crypto import BindingPolicy, generate_identity_account, generate_rsa_keypair
from security.secure_communication import SecureCommunicator


@pytest.fixture(scope="session")
def recipient_keys():
    """(public_b64, private_b64) of the intended recipient"""
    return generate_rsa_keypair(2048)


@pytest.fixture(scope="session")
def other_keys():
    """(public_b64, private_b64) of an unrelated key holder"""
    return generate_rsa_keypair(2048)


@pytest.fixture(scope="session")
def sender_identity():
    """(address, private_key_hex) of the sender"""
    return generate_identity_account()


@pytest.fixture(scope="session")
def recipient_identity():
    """(address, private_key_hex) of the recipient"""
    return generate_identity_account()


@pytest.fixture(scope="session")
def third_identity():
    """(address, private_key_hex) of a third party"""
    return generate_identity_account()


@pytest.fixture
def content_store():
    return InMemoryContentStore()


@pytest.fixture
def ledger():
    """Throwaway in-memory SQLite ledger"""
    ledger = SqliteMessageLedger(":memory:")
    yield ledger
    ledger.close()


@pytest.fixture
def communicator(content_store, ledger):
    return SecureCommunicator(content_store=content_store, ledger=ledger, binding_policy=BindingPolicy())
