"""OpenAI API key storage in the system keychain."""

from __future__ import annotations

import logging

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

KEYCHAIN_SERVICE = "com.whisper-dictate"
KEYCHAIN_ACCOUNT = "openai-api-key"


class CredentialStore:
    """Get, save and delete a single secret string."""

    def __init__(
        self,
        service: str = KEYCHAIN_SERVICE,
        account: str = KEYCHAIN_ACCOUNT,
    ) -> None:
        self._service = service
        self._account = account

    @property
    def has_api_key(self) -> bool:
        return bool(self.get_api_key())

    def get_api_key(self) -> str | None:
        try:
            return keyring.get_password(self._service, self._account)
        except KeyringError as e:
            logger.error("Failed to read API key from keychain: %s", e)
            return None

    def save_api_key(self, api_key: str) -> bool:
        try:
            keyring.set_password(self._service, self._account, api_key)
        except KeyringError as e:
            logger.error("Failed to store API key in keychain: %s", e)
            return False
        return True

    def delete_api_key(self) -> None:
        try:
            keyring.delete_password(self._service, self._account)
        except PasswordDeleteError:
            pass  # Nothing stored
        except KeyringError as e:
            logger.error("Failed to delete API key from keychain: %s", e)
