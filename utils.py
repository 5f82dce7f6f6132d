# --- File: utils.py ---
import base64
import time

from eth_utils import is_address, to_checksum_address

# --- Utility Functions ---

ETHEREUM_URI_SCHEME = "ethereum:"


def normalize_address(value: str) -> str:
    """
    Normalizes a recipient/sender identity to its checksum address.
    Accepts a bare 0x address or an 'ethereum:' payment URI as produced by wallet QR codes,
    e.g. 'ethereum:0xAbC...@80002?value=0'.
    """
    if not isinstance(value, str):
        raise ValueError("Address must be a string")
    candidate = value.strip()
    if candidate.lower().startswith(ETHEREUM_URI_SCHEME):
        candidate = candidate[len(ETHEREUM_URI_SCHEME):]
        # Strip chain id and query parameters of EIP-681 URIs
        for separator in ("@", "?", "/"):
            candidate = candidate.split(separator, 1)[0]
    if not is_address(candidate):
        raise ValueError(f"Not a valid address: {value!r}")
    return to_checksum_address(candidate)


def short_address(address: str) -> str:
    """0x1234...abcd form for log lines."""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def short_locator(locator: str, keep: int = 12) -> str:
    return locator if len(locator) <= keep else f"{locator[:keep]}..."


def signature_to_hex(signature: bytes) -> str:
    return "0x" + bytes(signature).hex()


def hex_to_signature(value: str) -> bytes:
    """Parses a 0x-prefixed (or bare) hex signature; raises ValueError on bad input."""
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise ValueError("Signature is not valid hex") from None


def b64encode_str(data: bytes) -> str:
    return base64.b64encode(data).decode('utf-8')


def b64decode_strict(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except ValueError:
        raise ValueError("Value is not valid base64") from None


def utc_now_seconds() -> int:
    return int(time.time())
