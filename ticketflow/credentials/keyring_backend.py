"""OS-level keyring backend using system credential stores.

Platform Support:
- Linux: Secret Service API (GNOME Keyring, KWallet)
- macOS: Keychain
- Windows: Windows Credential Locker
"""

import logging
from typing import cast

import keyring
from keyring.backends.fail import Keyring as FailKeyring
from keyring.errors import KeyringError

from ticketflow.exceptions import BackendNotAvailableError, CredentialError

logger = logging.getLogger(__name__)

NAMESPACE = "ticketflow"


class KeyringBackend:
    """OS-level credential lookup using the system keyring.

    Credentials are namespaced under ``ticketflow/<service>``.

    Example:
        >>> backend = KeyringBackend()
        >>> token = backend.get('jira', 'token')
    """

    @property
    def name(self) -> str:
        return "keyring"

    @property
    def available(self) -> bool:
        """Check if a functional keyring backend is configured.

        Returns False on headless systems where keyring falls back to its
        always-failing backend.
        """
        try:
            return not isinstance(keyring.get_keyring(), FailKeyring)
        except Exception as e:
            logger.debug(f"Keyring not available: {e}")
            return False

    def get(self, service: str, key: str | None = None) -> str | None:
        """Retrieve credential from OS keyring.

        Raises:
            BackendNotAvailableError: If keyring is not available
            CredentialError: If keyring operation fails
        """
        if not self.available:
            raise BackendNotAvailableError(
                "Keyring backend is not available",
                suggestion="Use @pass: or ${VAR_NAME} references instead",
            )

        try:
            credential = cast(str | None, keyring.get_password(f"{NAMESPACE}/{service}", key or ""))

            if credential is not None:
                logger.debug(f"Retrieved credential from keyring: {service}/{key}")

            return credential

        except KeyringError as e:
            raise CredentialError(
                f"Keyring operation failed: {e}", reference=f"@keyring:{service}/{key}"
            ) from e
