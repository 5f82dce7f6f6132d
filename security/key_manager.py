# --- File: security/key_manager.py ---
import json
import logging
import os
from typing import Dict, List, Optional

from envelope_crypto import generate_identity_account, generate_rsa_keypair
from envelope_crypto.key_generation import DEFAULT_RSA_BITS

logger = logging.getLogger(__name__)

DEFAULT_KEY_FILE = "local_identity_keys.json"

# Entry fields of one local identity
RSA_PUBLIC = "rsa_public_key_b64"
RSA_PRIVATE = "rsa_private_key_b64"
ACCOUNT_ADDRESS = "account_address"
ACCOUNT_PRIVATE = "account_private_key"
_REQUIRED_FIELDS = (RSA_PUBLIC, RSA_PRIVATE, ACCOUNT_ADDRESS, ACCOUNT_PRIVATE)


class KeyManager:
    """
    Keeps the local identities of this process: an RSA key pair for receiving
    envelopes and a signing account for binding claims, per identity name.
    Private halves stay in the local key file, written owner-readable only.
    """
    def __init__(self, key_file_path: str = DEFAULT_KEY_FILE, rsa_bits: int = DEFAULT_RSA_BITS):
        self.key_file_path = key_file_path
        self.rsa_bits = rsa_bits
        self.identities: Dict[str, Dict[str, str]] = {}
        self._is_dirty = False # Flag to track if keys were generated/changed and need saving
        self._load_keys()

    def _load_keys(self):
        if not os.path.exists(self.key_file_path):
            logger.info(f"No key file at {self.key_file_path}. Starting with no local identities.")
            return
        try:
            with open(self.key_file_path, 'r') as f:
                loaded = json.load(f)
        except (IOError, json.JSONDecodeError) as e:
            logger.error(f"Error loading keys from {self.key_file_path}: {e}. Missing identities will be regenerated.")
            return

        if not isinstance(loaded, dict):
            logger.error(f"Key file {self.key_file_path} does not hold an object. Ignoring its content.")
            return
        for name, entry in loaded.items():
            if isinstance(entry, dict) and all(entry.get(field) for field in _REQUIRED_FIELDS):
                self.identities[name] = entry
            else:
                logger.warning(f"Incomplete key entry for identity '{name}' ignored.")
        logger.info(f"Loaded {len(self.identities)} local identities from {self.key_file_path}")

    def _generate_identity(self, name: str):
        logger.info(f"Generating keys for local identity: {name}...")
        rsa_public_b64, rsa_private_b64 = generate_rsa_keypair(self.rsa_bits)
        address, account_private_key = generate_identity_account()
        self.identities[name] = {
            RSA_PUBLIC: rsa_public_b64,
            RSA_PRIVATE: rsa_private_b64,
            ACCOUNT_ADDRESS: address,
            ACCOUNT_PRIVATE: account_private_key,
        }
        self._is_dirty = True
        logger.info(f"Generated identity '{name}' with address {address}.")

    def ensure_identity(self, name: str) -> Dict[str, str]:
        """Returns the public profile of an identity, generating and saving its keys if missing."""
        if name not in self.identities:
            self._generate_identity(name)
            self.save()
        return self.public_profile(name)

    def save(self):
        if not self._is_dirty:
            logger.debug("No changes to local identities, skipping save.")
            return

        key_dir = os.path.dirname(self.key_file_path)
        if key_dir and not os.path.exists(key_dir):
            os.makedirs(key_dir, exist_ok=True)
            logger.info(f"Created directory for key file: {key_dir}")

        fd = os.open(self.key_file_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'w') as f:
            json.dump(self.identities, f, indent=4)
        os.chmod(self.key_file_path, 0o600)
        self._is_dirty = False
        logger.info(f"Local identities saved to {self.key_file_path}")

    def list_identities(self) -> List[str]:
        return sorted(self.identities)

    def _field(self, name: str, field: str) -> Optional[str]:
        entry = self.identities.get(name)
        if entry and entry.get(field):
            return entry[field]
        logger.warning(f"{field} not found for identity: {name}")
        return None

    def get_rsa_private_key(self, name: str) -> Optional[str]:
        return self._field(name, RSA_PRIVATE)

    def get_account_address(self, name: str) -> Optional[str]:
        return self._field(name, ACCOUNT_ADDRESS)

    def get_account_private_key(self, name: str) -> Optional[str]:
        return self._field(name, ACCOUNT_PRIVATE)

    def public_profile(self, name: str) -> Dict[str, str]:
        """What an identity shares out of band: its address and RSA public key."""
        entry = self.identities.get(name)
        if not entry:
            raise KeyError(f"Unknown local identity: {name}")
        return {"name": name, "address": entry[ACCOUNT_ADDRESS], "rsa_public_key_b64": entry[RSA_PUBLIC]}
