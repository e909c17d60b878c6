"""Backend for the ``pass`` standard unix password store.

``pass show <entry>`` prints the secret on its first line, optionally
followed by free-form metadata lines which are ignored.
"""

import logging
import shutil
import subprocess

from ticketflow.exceptions import BackendNotAvailableError, CredentialError

logger = logging.getLogger(__name__)


class PassBackend:
    """Credential lookup through the ``pass`` CLI.

    Example:
        >>> backend = PassBackend()
        >>> token = backend.get('jira', 'token')   # runs: pass show jira/token
    """

    def __init__(self, executable: str = "pass", timeout: float = 10.0) -> None:
        self.executable = executable
        self.timeout = timeout

    @property
    def name(self) -> str:
        return "pass"

    @property
    def available(self) -> bool:
        return shutil.which(self.executable) is not None

    def get(self, service: str, key: str | None = None) -> str | None:
        """Retrieve the first line of a password-store entry.

        Returns:
            Credential value or None if the entry does not exist

        Raises:
            BackendNotAvailableError: If the pass executable is missing
            CredentialError: If pass fails for any other reason
        """
        if not self.available:
            raise BackendNotAvailableError(
                "pass password store is not installed",
                suggestion="Install pass or use ${VAR_NAME} references",
            )

        entry = f"{service}/{key}" if key else service
        try:
            result = subprocess.run(  # nosec B603 - fixed executable, no shell
                [self.executable, "show", entry],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise CredentialError(
                "pass timed out (is the GPG agent waiting for a passphrase?)",
                reference=f"@pass:{entry}",
            ) from e

        if result.returncode != 0:
            if "is not in the password store" in result.stderr:
                return None
            raise CredentialError(
                f"pass failed: {result.stderr.strip() or result.returncode}",
                reference=f"@pass:{entry}",
            )

        lines = result.stdout.splitlines()
        secret = lines[0].strip() if lines else ""
        if not secret:
            return None

        logger.debug(f"Retrieved credential from pass: {entry}")
        return secret
