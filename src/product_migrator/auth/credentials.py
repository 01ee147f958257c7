"""
Read-only credential lookup in the OS Keychain
Secrets are stored by the user (e.g. `keyring set product_migrator_payhip me@example.com`);
the engine only reads them at invocation time
"""
import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError

from ..core.models import AccountCredentials

logger = logging.getLogger(__name__)


class KeychainCredentialSource:
    """Resolves account passwords from the OS Keychain"""

    SERVICE_NAME = "product_migrator"

    def service_name(self, platform: str) -> str:
        return f"{self.SERVICE_NAME}_{platform.strip().lower()}"

    def get_password(self, platform: str, username: str) -> Optional[str]:
        try:
            password = keyring.get_password(self.service_name(platform), username)
        except KeyringError as e:
            logger.error(f"Keychain lookup failed for {platform}: {e}")
            return None

        if password is None:
            logger.warning(f"No keychain entry for {platform} (user: {username})")
        return password

    def credentials_for(self, platform: str, username: str) -> AccountCredentials:
        """
        Build AccountCredentials from the keychain

        Raises:
            LookupError: no password stored for the account
        """
        password = self.get_password(platform, username)
        if password is None:
            raise LookupError(f"No stored password for {username} on {platform}")
        return AccountCredentials(username=username, password=password)
