"""Credential resolution with run-scoped caching."""

import asyncio
import logging
import re
from collections.abc import Mapping, Sequence
from types import TracebackType

from ticketflow.credentials.backend import CredentialBackend
from ticketflow.credentials.environment_backend import EnvironmentBackend
from ticketflow.credentials.keyring_backend import KeyringBackend
from ticketflow.credentials.pass_backend import PassBackend
from ticketflow.exceptions import (
    BackendNotAvailableError,
    CredentialError,
    CredentialFormatError,
    CredentialNotFoundError,
)

logger = logging.getLogger(__name__)

NOT_FOUND_SUGGESTIONS = {
    "environment": "Set the environment variable:\n  export {service}='your-credential-here'",
    "keyring": "Store the credential with:\n  keyring set ticketflow/{service} {key}",
    "pass": "Store the credential with:\n  pass insert {entry}",
}


class CredentialResolver:
    """Resolve credential references to actual values.

    Supports four reference formats:
    1. @keyring:service/key - OS keyring
    2. @pass:entry or @pass:path/to/entry - pass password store
    3. ${VAR_NAME} - Environment variable
    4. Direct value - Returned as-is (not recommended)

    Any other value starting with ``@`` is a malformed reference and is
    rejected rather than sent as a token.

    Example:
        >>> resolver = CredentialResolver()
        >>> token = resolver.resolve("@pass:jira/token")
        >>> api_key = resolver.resolve("${GITHUB_TOKEN}")
    """

    KEYRING_PATTERN = re.compile(r"^@keyring:([^/]+)/(.+)$")
    PASS_PATTERN = re.compile(r"^@pass:([^/]+)(?:/(.+))?$")
    ENV_PATTERN = re.compile(r"^\$\{([A-Z_][A-Z0-9_]*)\}$")

    def __init__(self, backends: Sequence[CredentialBackend] | None = None) -> None:
        """Initialize credential resolver.

        Args:
            backends: Optional backends to use instead of the defaults
                (environment, keyring, pass). Matched by ``name``.
        """
        self._backends: tuple[CredentialBackend, ...] = (
            tuple(backends)
            if backends
            else (EnvironmentBackend(), KeyringBackend(), PassBackend())
        )
        self._cache: dict[str, str] = {}

    @property
    def backends(self) -> tuple[CredentialBackend, ...]:
        return self._backends

    def clear_cache(self) -> None:
        self._cache.clear()

    def resolve(self, value: str, cache: bool = True) -> str:
        """Resolve credential reference to actual value.

        Raises:
            CredentialNotFoundError: If credential doesn't exist
            BackendNotAvailableError: If required backend is unavailable
            CredentialFormatError: If an ``@`` reference matches no known format
        """
        if cache and value in self._cache:
            logger.debug(f"Credential resolved from cache: {value}")
            return self._cache[value]

        resolved: str | None = None
        if match := self.KEYRING_PATTERN.match(value):
            resolved = self._resolve_via_backend("keyring", match.group(1), match.group(2), value)
        elif match := self.PASS_PATTERN.match(value):
            resolved = self._resolve_via_backend("pass", match.group(1), match.group(2), value)
        elif match := self.ENV_PATTERN.match(value):
            resolved = self._resolve_via_backend("environment", match.group(1), None, value)

        if resolved is not None:
            if cache:
                self._cache[value] = resolved
            return resolved

        if value.startswith("@"):
            raise CredentialFormatError(
                "Unrecognized credential reference",
                reference=value,
                suggestion="Use @keyring:service/key, @pass:entry or ${VAR_NAME}",
            )

        if self._looks_like_token(value):
            logger.warning(
                "Credential appears to be a direct token value. "
                "Consider using @pass:, @keyring: or ${ENV_VAR} instead."
            )

        return value

    def _resolve_via_backend(
        self,
        backend_name: str,
        service: str,
        key: str | None,
        reference: str,
    ) -> str:
        for backend in self._backends:
            if backend.name != backend_name:
                continue

            if not backend.available:
                raise BackendNotAvailableError(
                    f"{backend_name} backend is not available on this system",
                    reference=reference,
                    suggestion="Use ${VAR_NAME} references instead",
                )

            try:
                credential = backend.get(service, key)
            except CredentialError:
                raise
            except Exception as e:
                raise CredentialError(
                    f"Failed to resolve {backend_name} credential: {e}",
                    reference=reference,
                ) from e

            label = f"{service}/{key}" if key else service
            if credential is None:
                raise CredentialNotFoundError(
                    f"Credential not found in {backend_name}: {label}",
                    reference=reference,
                    suggestion=NOT_FOUND_SUGGESTIONS[backend_name].format(
                        service=service, key=key, entry=label
                    ),
                )

            logger.debug(f"Resolved {backend_name} credential: {label}")
            return credential

        raise BackendNotAvailableError(
            f"No {backend_name} backend configured",
            reference=reference,
            suggestion=f"Ensure a {backend_name} backend is available in the resolver.",
        )

    @staticmethod
    def _looks_like_token(value: str) -> bool:
        if len(value) < 20:
            return False
        prefixes = ("ghp_", "gho_", "github_pat_", "glpat-", "ATATT", "sk-")
        if value.startswith(prefixes):
            return True
        return " " not in value and any(c.isdigit() for c in value)


class CredentialProvider:
    """Symbolic-name secret lookup scoped to one orchestration run.

    Maps names such as ``tracker`` and ``repository`` to credential
    references from configuration. Resolved tokens are cached only between
    ``open()`` and ``close()``; outside a run every lookup re-resolves.

    Example:
        >>> provider = CredentialProvider({"tracker": "@pass:jira/token"})
        >>> async with provider:
        ...     token = await provider.get_secret("tracker")
    """

    def __init__(
        self,
        references: Mapping[str, str],
        resolver: CredentialResolver | None = None,
    ) -> None:
        self._references = dict(references)
        self._resolver = resolver or CredentialResolver()
        self._active = False

    @property
    def names(self) -> list[str]:
        return sorted(self._references)

    @property
    def active(self) -> bool:
        return self._active

    async def open(self) -> None:
        self._resolver.clear_cache()
        self._active = True

    async def close(self) -> None:
        self._resolver.clear_cache()
        self._active = False

    async def __aenter__(self) -> "CredentialProvider":
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def get_secret(self, name: str) -> str:
        """Resolve the secret registered under ``name``.

        Raises:
            CredentialNotFoundError: If no reference is configured for the
                name or the reference does not resolve
            CredentialError: If a backend fails
        """
        reference = self._references.get(name)
        if not reference:
            raise CredentialNotFoundError(
                f"No credential configured for '{name}'",
                suggestion=f"Add credentials.{name} to the configuration file",
            )

        # Backends may shell out (pass) or block on the OS keyring.
        return await asyncio.to_thread(self._resolver.resolve, reference, self._active)
