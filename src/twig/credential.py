"""git credential helper answering with the GitHub CLI login.

twig passes ``helper_command()`` as ``credential.helper`` to the pushes it
makes, so git runs ``python -m twig.credential get`` only when the remote
actually asks for credentials. git writes the request as ``key=value``
lines on stdin, e.g.::

    protocol=https
    host=github.com

and reads ``username=`` and ``password=`` lines back. Printing nothing
lets git carry on without credentials.
"""

import logging
import sys
from pathlib import Path
from typing import IO, Optional

from rich.console import Console
from rich.logging import RichHandler

from twig.auth import DEFAULT_HOST, CredentialError, CredentialProvider, Credentials, GhCliCredentialProvider

logger = logging.getLogger(__name__)


def helper_command() -> str:
    """``credential.helper`` value that runs this module with the current interpreter."""
    return f'!"{Path(sys.executable).as_posix()}" -m twig.credential'


def parse_request(stream: IO[str]) -> dict[str, str]:
    """Read a credential request up to the blank line or end of input."""
    request: dict[str, str] = {}
    for line in stream:
        line = line.rstrip("\r\n")
        if not line:
            break
        key, sep, value = line.partition("=")
        if sep:
            request[key] = value
    return request


def fill(request: dict[str, str], provider: CredentialProvider) -> Optional[Credentials]:
    """Credentials for the requested host, or None when there are none."""
    # host may carry a port, as in git.example.com:8443
    host = request.get("host", "").split(":", 1)[0] or DEFAULT_HOST
    try:
        return provider.resolve(host)
    except CredentialError as err:
        logger.error("GitHub CLI auth error: %s", err)
        return None


def main(
    argv: Optional[list[str]] = None,
    stdin: Optional[IO[str]] = None,
    stdout: Optional[IO[str]] = None,
    provider: Optional[CredentialProvider] = None,
) -> int:
    """Serve one git credential request.

    Args:
        argv: Helper arguments; git passes the action (get, store, erase)
        stdin: Stream the request is read from
        stdout: Stream the answer is written to
        provider: Credential source (default: the GitHub CLI login)
    """
    argv = sys.argv[1:] if argv is None else argv
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout

    request = parse_request(stdin)
    # Nothing is stored, so store and erase have nothing to do
    if not argv or argv[0] != "get":
        return 0

    credentials = fill(request, provider or GhCliCredentialProvider())
    if credentials is not None:
        stdout.write(f"username={credentials.username}\npassword={credentials.token}\n")
        stdout.flush()
    return 0


if __name__ == "__main__":
    # stdout belongs to git
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    sys.exit(main())
