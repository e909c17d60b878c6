"""Abstract backend protocol for credential lookup."""

from typing import Protocol


class CredentialBackend(Protocol):
    """Protocol defining the interface for credential backends.

    Backends are read-only: ticketflow resolves secrets from an external
    store but never writes them.
    """

    @property
    def name(self) -> str:
        """Backend identifier (e.g., 'keyring', 'pass', 'environment')."""
        ...

    @property
    def available(self) -> bool:
        """Check if this backend is available on the current system."""
        ...

    def get(self, service: str, key: str | None = None) -> str | None:
        """Retrieve a credential.

        Args:
            service: Service identifier, pass entry directory, or variable name
            key: Key within the service (unused by single-name backends)

        Returns:
            Credential value or None if not found

        Raises:
            BackendNotAvailableError: If backend is not available
        """
        ...
