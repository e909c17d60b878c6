"""Environment variable backend for CI/CD and containerized environments."""

import logging
import os

logger = logging.getLogger(__name__)


class EnvironmentBackend:
    """Environment variable credential lookup.

    Example:
        >>> import os
        >>> os.environ['JIRA_TOKEN'] = 'abc123'
        >>> backend = EnvironmentBackend()
        >>> token = backend.get('JIRA_TOKEN')
    """

    @property
    def name(self) -> str:
        return "environment"

    @property
    def available(self) -> bool:
        """Environment backend is always available."""
        return True

    def get(self, service: str, key: str | None = None) -> str | None:
        """Retrieve credential from environment variable.

        Args:
            service: Environment variable name (e.g., 'JIRA_TOKEN')
            key: Ignored; environment variables have a single name

        Returns:
            Credential value or None if not set
        """
        value = os.getenv(service)

        if value is not None:
            logger.debug(f"Retrieved credential from environment: {service}")

        return value
