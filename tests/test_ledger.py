"""
SQLite message ledger:
- Publish order and per-identity listings
- Idempotent publish
- Persistence across reopen
"""
import pytest

from core.ledger import LedgerError, SqliteMessageLedger

SENDER = "0x" + "11" * 20
RECIPIENT = "0x" + "22" * 20
OTHER = "0x" + "33" * 20
SIGNATURE = b"\x07" * 65


def test_publish_and_list(ledger):
    first = ledger.publish(RECIPIENT, "bafkreione", 100, SIGNATURE, sender_identity=SENDER)
    second = ledger.publish(RECIPIENT, "bafkreitwo", 200, SIGNATURE, sender_identity=SENDER)

    assert second > first
    records = ledger.list_for_recipient(RECIPIENT)
    assert [r.content_locator for r in records] == ["bafkreione", "bafkreitwo"]
    assert records[0].signature == SIGNATURE
    assert records[0].issued_at == 100


@pytest.mark.parametrize("issued_at", [2 ** 63 - 1, 2 ** 63, 2 ** 256 - 1])
def test_full_uint256_timestamp_kept_exactly(ledger, issued_at):
    ledger.publish(RECIPIENT, "bafkreione", issued_at, SIGNATURE, sender_identity=SENDER)

    assert ledger.list_for_recipient(RECIPIENT)[0].issued_at == issued_at
    assert ledger.list_for_sender(SENDER)[0].issued_at == issued_at


def test_addresses_stored_in_checksum_form(ledger):
    checksummed = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
    ledger.publish(checksummed.lower(), "bafkreione", 100, SIGNATURE, sender_identity=SENDER)

    records = ledger.list_for_recipient(checksummed.lower())
    assert records[0].recipient_identity == checksummed
    assert ledger.list_for_recipient(checksummed) == records


def test_listings_are_per_identity(ledger):
    ledger.publish(RECIPIENT, "bafkreione", 100, SIGNATURE, sender_identity=SENDER)
    ledger.publish(OTHER, "bafkreitwo", 100, SIGNATURE, sender_identity=SENDER)
    ledger.publish(RECIPIENT, "bafkreithree", 100, SIGNATURE, sender_identity=OTHER)

    assert len(ledger.list_for_recipient(RECIPIENT)) == 2
    assert len(ledger.list_for_recipient(OTHER)) == 1
    assert len(ledger.list_for_sender(SENDER)) == 2
    assert ledger.list_for_sender(RECIPIENT) == []


def test_duplicate_publish_is_idempotent(ledger):
    first = ledger.publish(RECIPIENT, "bafkreione", 100, SIGNATURE, sender_identity=SENDER)
    again = ledger.publish(RECIPIENT, "bafkreione", 100, SIGNATURE, sender_identity=SENDER)

    assert again == first
    assert len(ledger.list_for_recipient(RECIPIENT)) == 1


def test_invalid_address_rejected(ledger):
    with pytest.raises(LedgerError):
        ledger.publish("nobody", "bafkreione", 100, SIGNATURE, sender_identity=SENDER)
    with pytest.raises(LedgerError):
        ledger.list_for_recipient("nobody")


def test_ledger_persists(tmp_path):
    db_path = str(tmp_path / "ledger.db")
    ledger = SqliteMessageLedger(db_path)
    message_id = ledger.publish(RECIPIENT, "bafkreione", 100, SIGNATURE, sender_identity=SENDER)
    ledger.close()

    reopened = SqliteMessageLedger(db_path)
    records = reopened.list_for_recipient(RECIPIENT)
    reopened.close()

    assert [r.message_id for r in records] == [message_id]
