"""
Module for keeping a static credential blob in the operating system keyring.
"""
import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .config import DEFAULT_CREDENTIAL_ACCOUNT, DEFAULT_CREDENTIAL_SERVICE

logger = logging.getLogger(__name__)


class KeyringCredentialStore:
    """Reads and writes one opaque credential blob under a service/account pair."""

    def __init__(self, service: str = DEFAULT_CREDENTIAL_SERVICE,
                 account: str = DEFAULT_CREDENTIAL_ACCOUNT):
        self.service = service
        self.account = account

    def get(self) -> Optional[bytes]:
        """Return the stored blob, or None if it is absent or unreadable."""
        try:
            secret = keyring.get_password(self.service, self.account)
        except KeyringError as e:
            logger.debug(f"Keyring lookup for {self.service}/{self.account} failed: {e}")
            return None
        if not secret:
            return None
        return secret.encode("utf-8")

    def put(self, blob: bytes) -> None:
        """Store ``blob``, replacing any existing entry.

        Raises:
            KeyringError: If the backend refuses the write
            UnicodeDecodeError: If the blob is not UTF-8 text
        """
        keyring.set_password(self.service, self.account, blob.decode("utf-8"))
        logger.info(f"Stored credentials in keyring for service '{self.service}', account '{self.account}'")

    def delete(self) -> bool:
        try:
            keyring.delete_password(self.service, self.account)
        except PasswordDeleteError:
            return False
        return True
