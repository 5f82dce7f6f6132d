# --- File: core/content_store.py ---
import base64
import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

import requests

import config
from utils import short_locator

logger = logging.getLogger(__name__)

# CIDv1 building blocks
CID_VERSION_1 = 0x01
CODEC_RAW = 0x55
MULTIHASH_SHA2_256 = 0x12
SHA2_256_LENGTH = 0x20
MULTIBASE_BASE32_LOWER = "b"


class ContentStoreError(Exception):
    """Transport or storage failure of the content store."""


class ContentNotFound(ContentStoreError):
    def __init__(self, locator: str):
        self.locator = locator
        super().__init__(f"Content not found: {locator}")


class ContentIntegrityError(ContentStoreError):
    def __init__(self, locator: str, actual: str):
        self.locator = locator
        self.actual = actual
        super().__init__(f"Content for {locator} hashes to {actual}")


def compute_cid(data: bytes) -> str:
    """
    Content identifier of raw bytes: CIDv1, raw codec, sha2-256 multihash,
    base32-lower multibase (the familiar 'bafkrei...' form).
    """
    digest = hashlib.sha256(data).digest()
    cid_bytes = bytes([CID_VERSION_1, CODEC_RAW, MULTIHASH_SHA2_256, SHA2_256_LENGTH]) + digest
    return MULTIBASE_BASE32_LOWER + base64.b32encode(cid_bytes).decode('ascii').lower().rstrip("=")


class ContentStore(ABC):
    """'Store bytes, get a locator' and 'fetch bytes given a locator'."""

    @abstractmethod
    def put(self, data: bytes) -> str:
        ...

    @abstractmethod
    def get(self, locator: str) -> bytes:
        ...


class InMemoryContentStore(ContentStore):
    """Content-addressed store kept in process memory. Re-derives the locator on every read."""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, data: bytes) -> str:
        locator = compute_cid(data)
        with self._lock:
            self._blobs[locator] = bytes(data)
        logger.debug(f"CONTENT STORE (memory): Stored {len(data)} bytes at {short_locator(locator)}")
        return locator

    def get(self, locator: str) -> bytes:
        with self._lock:
            data = self._blobs.get(locator)
        if data is None:
            raise ContentNotFound(locator)
        actual = compute_cid(data)
        if actual != locator:
            logger.error(f"CONTENT STORE (memory): Integrity check failed for {locator}.")
            raise ContentIntegrityError(locator, actual)
        return data

    def __len__(self) -> int:
        return len(self._blobs)


class PinataContentStore(ContentStore):
    """
    IPFS pinning service upload plus gateway retrieval.
    Reads from the configured gateway first and falls back to the public gateway.
    """

    def __init__(
        self,
        jwt: Optional[str] = config.PINATA_JWT,
        api_url: str = config.PINATA_API_URL,
        gateway_url: str = config.IPFS_GATEWAY_URL,
        fallback_gateway_url: Optional[str] = config.IPFS_FALLBACK_GATEWAY_URL,
        timeout: float = config.IPFS_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.jwt = jwt
        self.api_url = api_url
        self.gateway_url = gateway_url
        self.fallback_gateway_url = fallback_gateway_url
        self.timeout = timeout
        self.session = session or requests.Session()
        if not self.jwt:
            logger.warning("CONTENT STORE (pinata): PINATA_JWT not set. Uploads will fail.")

    def put(self, data: bytes) -> str:
        if not self.jwt:
            raise ContentStoreError("Pinata JWT not configured")
        try:
            response = self.session.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.jwt}"},
                files={"file": ("message.json", data, "application/json")},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"CONTENT STORE (pinata): Upload request failed: {e}")
            raise ContentStoreError(f"Failed to upload to IPFS: {e}") from e

        if not response.ok:
            logger.error(f"CONTENT STORE (pinata): Upload rejected with HTTP {response.status_code}.")
            raise ContentStoreError(f"Failed to upload to IPFS: {response.status_code} {response.reason}")

        try:
            locator = response.json()["IpfsHash"]
        except (ValueError, KeyError, TypeError):
            raise ContentStoreError("Pinning service response has no IpfsHash") from None
        logger.info(f"CONTENT STORE (pinata): Pinned {len(data)} bytes as {short_locator(locator)}")
        return locator

    def _fetch(self, gateway_url: str, locator: str) -> Optional[bytes]:
        url = f"{gateway_url.rstrip('/')}/{locator}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"CONTENT STORE (pinata): Gateway request to {gateway_url} failed: {e}")
            return None
        if not response.ok:
            logger.warning(f"CONTENT STORE (pinata): Gateway {gateway_url} answered HTTP {response.status_code} "
                           f"for {short_locator(locator)}.")
            return None
        return response.content

    def get(self, locator: str) -> bytes:
        data = self._fetch(self.gateway_url, locator)
        if data is None and self.fallback_gateway_url:
            data = self._fetch(self.fallback_gateway_url, locator)
        if data is None:
            raise ContentNotFound(locator)
        return data


def build_content_store(kind: str = config.CONTENT_STORE) -> ContentStore:
    if kind == "pinata":
        return PinataContentStore()
    if kind == "memory":
        return InMemoryContentStore()
    raise ValueError(f"Unknown content store type: {kind!r}")
