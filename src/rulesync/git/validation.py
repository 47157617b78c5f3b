"""
Repository address validation.

Addresses are accepted in two forms:

* ``user@host:path`` (scp-like), always treated as scheme ``ssh``;
* ``scheme://[user@]host[:port]/path``.

Validation is a pure function of the address and the policy: it performs
no network or filesystem access and must run before anything else touches
the address.

Example:
    ```python
    policy = ValidationPolicy(allowed_schemes={"https", "ssh"})
    policy.validate("https://example.com/org/repo.git")      # ok

    policy = ValidationPolicy(
        allowed_schemes={"https", "ssh"},
        allowed_hosts={"github.com"},
    )
    policy.validate("https://example.com/org/repo.git")      # UnauthorizedHostError
    ```
"""

import re
from dataclasses import dataclass, field
from typing import Iterable
from urllib.parse import urlsplit

from rulesync.git.exceptions import (
    InvalidAddressError,
    UnauthorizedHostError,
    UnsupportedSchemeError,
)
from rulesync.git.models import ParsedAddress

DEFAULT_SCHEMES = ("https", "ssh")
DEFAULT_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")

_SCHEME_RE = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*)://(?P<rest>.*)$")
_SCP_PREFIX_RE = re.compile(r"^[^/:@]+@")
_SCP_RE = re.compile(r"^(?P<user>[^/:@]+)@(?P<host>[A-Za-z0-9.-]+):(?P<path>[^:].*)$")
_HOST_RE = re.compile(r"^[a-z0-9]([a-z0-9.-]*[a-z0-9])?$")
_USERINFO_RE = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*://)[^/?#]*@(?P<rest>.*)$")


def parse_address(address: str) -> ParsedAddress:
    """
    Split a repository address into scheme, host and path.

    Args:
        address: Repository address

    Returns:
        ParsedAddress for the address

    Raises:
        InvalidAddressError: If the address is empty or malformed
        UnsupportedSchemeError: If the address matches neither form
    """
    if not address or not address.strip():
        raise InvalidAddressError("empty repository address")
    if any(c.isspace() for c in address):
        raise InvalidAddressError(
            "repository address contains whitespace", address=mask_credentials(address)
        )

    match = _SCHEME_RE.match(address)
    if match:
        return _parse_url(address, match.group("scheme").lower())

    if _SCP_PREFIX_RE.match(address):
        return _parse_scp(address)

    raise UnsupportedSchemeError(
        "address is neither scheme://host/path nor user@host:path",
        address=mask_credentials(address),
    )


def _parse_url(address: str, scheme: str) -> ParsedAddress:
    try:
        parts = urlsplit(address)
        port = parts.port
    except ValueError as e:
        raise InvalidAddressError(
            f"malformed URL: {e}", address=mask_credentials(address)
        ) from e

    host = parts.hostname or ""
    path = parts.path

    if scheme == "file":
        if host not in ("", "localhost") or not path.strip("/"):
            raise InvalidAddressError("malformed file URL", address=mask_credentials(address))
        return ParsedAddress(scheme=scheme, host="", path=path)

    if not host or not _HOST_RE.match(host):
        raise InvalidAddressError("missing or malformed host", address=mask_credentials(address))
    if not path.strip("/"):
        raise InvalidAddressError("missing repository path", address=mask_credentials(address))

    return ParsedAddress(
        scheme=scheme,
        host=host,
        path=path.lstrip("/"),
        user=parts.username,
        port=port,
    )


def _parse_scp(address: str) -> ParsedAddress:
    match = _SCP_RE.match(address)
    if not match:
        raise InvalidAddressError(
            "invalid user@host:path address", address=mask_credentials(address)
        )

    host = match.group("host").lower()
    if not _HOST_RE.match(host):
        raise InvalidAddressError("malformed host", address=mask_credentials(address))

    return ParsedAddress(
        scheme="ssh",
        host=host,
        path=match.group("path"),
        user=match.group("user"),
        scp_like=True,
    )


@dataclass(frozen=True)
class ValidationPolicy:
    """
    Allowed schemes and hosts for repository addresses.

    An empty ``allowed_hosts`` set accepts every host. Host matching is
    exact: ``api.github.com`` does not match ``github.com``.
    """

    allowed_schemes: frozenset[str] = field(default=frozenset(DEFAULT_SCHEMES))
    allowed_hosts: frozenset[str] = field(default=frozenset())

    def __post_init__(self) -> None:
        schemes = frozenset(s.lower() for s in self.allowed_schemes)
        if not schemes:
            raise ValueError("at least one scheme must be allowed")
        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "allowed_schemes", schemes)
        object.__setattr__(
            self, "allowed_hosts", frozenset(h.lower() for h in self.allowed_hosts)
        )

    @classmethod
    def default(cls) -> "ValidationPolicy":
        """Secure defaults: https/ssh to the large public hosts only."""
        return cls(allowed_schemes=DEFAULT_SCHEMES, allowed_hosts=DEFAULT_HOSTS)

    @classmethod
    def open(cls, schemes: Iterable[str] = DEFAULT_SCHEMES) -> "ValidationPolicy":
        """Any host, restricted to ``schemes`` (default https/ssh)."""
        return cls(allowed_schemes=frozenset(schemes))

    def validate(self, address: str) -> ParsedAddress:
        """
        Validate an address against this policy.

        Args:
            address: Repository address

        Returns:
            The parsed address

        Raises:
            InvalidAddressError: Empty or malformed address
            UnsupportedSchemeError: Scheme not allowed
            UnauthorizedHostError: Host not allowed
        """
        parsed = parse_address(address)

        if parsed.scheme not in self.allowed_schemes:
            raise UnsupportedSchemeError(
                f"scheme {parsed.scheme!r} not in allowlist {sorted(self.allowed_schemes)}",
                address=mask_credentials(address),
            )

        if self.allowed_hosts and parsed.host not in self.allowed_hosts:
            raise UnauthorizedHostError(
                f"host {parsed.host!r} not in allowlist {sorted(self.allowed_hosts)}",
                address=mask_credentials(address),
            )

        return parsed



# =============================================================================
# URL helpers for logging
# =============================================================================

def strip_credentials(url: str) -> str:
    """
    Remove userinfo from a ``scheme://`` URL.

    Example:
        ```python
        clean = strip_credentials("https://token@github.com/user/repo.git")
        # Result: https://github.com/user/repo.git
        ```
    """
    match = _USERINFO_RE.match(url)
    return match["scheme"] + match["rest"] if match else url


def mask_credentials(url: str) -> str:
    """
    Mask userinfo in a URL for safe logging and error messages.

    scp-like addresses (``git@host:path``) carry no secret and are
    returned unchanged. Never raises, so it is safe on malformed input.
    """
    match = _USERINFO_RE.match(url)
    return f"{match['scheme']}***@{match['rest']}" if match else url
