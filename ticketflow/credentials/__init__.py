"""Credential resolution for the ticket tracker and source-control host.

Credentials are referenced from configuration, never stored by ticketflow:

    - ``@keyring:service/key`` - OS keyring
    - ``@pass:path/to/entry``  - the ``pass`` password store
    - ``${VAR_NAME}``          - environment variable
    - anything else           - literal value (discouraged)
"""

from ticketflow.credentials.backend import CredentialBackend
from ticketflow.credentials.environment_backend import EnvironmentBackend
from ticketflow.credentials.keyring_backend import KeyringBackend
from ticketflow.credentials.pass_backend import PassBackend
from ticketflow.credentials.resolver import CredentialProvider, CredentialResolver
from ticketflow.exceptions import (
    BackendNotAvailableError,
    CredentialError,
    CredentialFormatError,
    CredentialNotFoundError,
)

__all__ = [
    "BackendNotAvailableError",
    "CredentialBackend",
    "CredentialError",
    "CredentialFormatError",
    "CredentialNotFoundError",
    "CredentialProvider",
    "CredentialResolver",
    "EnvironmentBackend",
    "KeyringBackend",
    "PassBackend",
]
