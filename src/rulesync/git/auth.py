"""
Git authentication.

This module decides which credential a clone or pull should use and
renders it into the environment of the ``git`` process.

SSH addresses walk a chain of strategies and take the first that works:

1. a running SSH agent holding at least one key,
2. the ``IdentityFile`` configured for the host in ``~/.ssh/config``,
3. the ``SSH_KEY_PATH`` override,
4. the standard keys under ``~/.ssh`` (ed25519, rsa, ecdsa, dsa).

HTTP(S) addresses use the GitHub token for ``github.com`` only, then a
generic username/password pair, and otherwise no credentials at all.

Nothing is cached: settings are re-read for every call unless a fixed
``AuthSettings`` was given to the negotiator.
"""

import base64
import logging
import os
import shlex
import socket
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import paramiko
from paramiko.agent import AgentSSH
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from rulesync.git.exceptions import AuthenticationFailedError, NoAuthMethodError
from rulesync.git.models import ParsedAddress
from rulesync.git.validation import mask_credentials, parse_address

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"
GITHUB_TOKEN_USERNAME = "x-access-token"
STANDARD_KEY_NAMES = ("id_ed25519", "id_rsa", "id_ecdsa", "id_dsa")


class AuthSettings(BaseSettings):
    """
    Environment-provided secrets and paths.

    Every field maps to the upper-cased environment variable of the same
    name (``GITHUB_TOKEN``, ``GIT_USERNAME``, ``SSH_KEY_PATH``, ...).

    SECURITY: token and password are SecretStr and never shown in repr.
    """

    model_config = SettingsConfigDict(extra="ignore")

    github_token: Optional[SecretStr] = Field(
        default=None, description="Token used for github.com over HTTPS"
    )
    git_username: Optional[str] = Field(
        default=None, description="Generic HTTPS username"
    )
    git_password: Optional[SecretStr] = Field(
        default=None, description="Generic HTTPS password (may be empty)"
    )
    ssh_key_path: Optional[str] = Field(
        default=None, description="Explicit SSH identity file"
    )
    ssh_auth_sock: Optional[str] = Field(
        default=None, description="SSH agent socket"
    )
    home: Optional[Path] = Field(default=None, description="Home directory")
    ssh_config_path: Optional[Path] = Field(
        default=None, description="SSH client config (default: ~/.ssh/config)"
    )

    @property
    def home_dir(self) -> Path:
        """Resolved home directory."""
        return self.home if self.home else Path.home()

    @property
    def ssh_config_file(self) -> Path:
        if self.ssh_config_path:
            return expand_home(str(self.ssh_config_path), self.home_dir)
        return self.home_dir / ".ssh" / "config"


class CredentialKind(str, Enum):
    """Kind of credential handed to the transport."""

    NONE = "none"
    BASIC = "basic"
    SSH_IDENTITY = "ssh_identity"
    SSH_AGENT = "ssh_agent"


class Credential(BaseModel):
    """
    Credential for one clone or pull.

    Example:
        ```python
        Credential.none()
        Credential.basic("x-access-token", "ghp_xxxx")
        Credential.identity(Path("~/.ssh/id_ed25519").expanduser())
        Credential.agent("/run/user/1000/ssh-agent.socket")
        ```
    """

    model_config = {"frozen": True}

    kind: CredentialKind = Field(description="Credential variant")
    username: Optional[str] = Field(default=None, description="Basic auth username")
    password: Optional[SecretStr] = Field(default=None, description="Basic auth password")
    identity_file: Optional[Path] = Field(default=None, description="SSH private key")
    agent_socket: Optional[str] = Field(default=None, description="SSH agent socket")

    @classmethod
    def none(cls) -> "Credential":
        return cls(kind=CredentialKind.NONE)

    @classmethod
    def basic(cls, username: str, password: Optional[str] = "") -> "Credential":
        return cls(
            kind=CredentialKind.BASIC,
            username=username,
            password=SecretStr(password or ""),
        )

    @classmethod
    def identity(cls, path: Path) -> "Credential":
        return cls(kind=CredentialKind.SSH_IDENTITY, identity_file=path)

    @classmethod
    def agent(cls, socket_path: str) -> "Credential":
        return cls(kind=CredentialKind.SSH_AGENT, agent_socket=socket_path)

    def get_password(self) -> str:
        """Get the password as a plain string."""
        return self.password.get_secret_value() if self.password else ""

    def to_env(self) -> dict[str, str]:
        """
        Environment for a ``git`` process using this credential.

        Basic credentials travel as an ``http.extraHeader`` set through
        ``GIT_CONFIG_*`` so they appear neither on the command line nor in
        ``.git/config``. The entry is appended after any ``GIT_CONFIG_*``
        pairs already in the environment. Interactive prompts are always disabled.
        """
        env = {"GIT_TERMINAL_PROMPT": "0"}

        if self.kind == CredentialKind.BASIC:
            pair = f"{self.username}:{self.get_password()}".encode()
            header = "Authorization: Basic " + base64.b64encode(pair).decode()
            index = _config_count()
            env.update({
                "GIT_CONFIG_COUNT": str(index + 1),
                f"GIT_CONFIG_KEY_{index}": "http.extraHeader",
                f"GIT_CONFIG_VALUE_{index}": header,
            })
        elif self.kind == CredentialKind.SSH_IDENTITY:
            env["GIT_SSH_COMMAND"] = shlex.join([
                "ssh", "-i", str(self.identity_file),
                "-o", "IdentitiesOnly=yes", "-o", "BatchMode=yes",
            ])
        elif self.kind == CredentialKind.SSH_AGENT:
            env["SSH_AUTH_SOCK"] = self.agent_socket or ""
            env["GIT_SSH_COMMAND"] = "ssh -o BatchMode=yes"

        return env

    def __repr__(self) -> str:
        """Safe representation that hides the password."""
        if self.kind == CredentialKind.BASIC:
            return f"Credential(kind='basic', username={self.username!r}, password='***')"
        if self.kind == CredentialKind.SSH_IDENTITY:
            return f"Credential(kind='ssh_identity', identity_file='{self.identity_file}')"
        if self.kind == CredentialKind.SSH_AGENT:
            return f"Credential(kind='ssh_agent', agent_socket={self.agent_socket!r})"
        return "Credential(kind='none')"

    def __str__(self) -> str:
        return repr(self)


def _config_count() -> int:
    """Number of GIT_CONFIG_* entries already present in the environment."""
    try:
        return max(int(os.environ.get("GIT_CONFIG_COUNT", "0")), 0)
    except ValueError:
        return 0


class IdentityUnavailable(Exception):
    """One SSH strategy could not produce a usable identity."""

    pass


# =============================================================================
# Default probes (replaceable for tests)
# =============================================================================

class _SocketAgent(AgentSSH):
    """paramiko agent client bound to an explicit socket path."""

    def __init__(self, socket_path: str):
        super().__init__()
        conn = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        conn.settimeout(2.0)
        try:
            conn.connect(socket_path)
            self._connect(conn)
        except Exception:
            conn.close()
            raise


def probe_agent(socket_path: str) -> int:
    """
    Count the keys held by the agent at ``socket_path``.

    Raises:
        IdentityUnavailable: If the agent cannot be reached
    """
    try:
        agent = _SocketAgent(socket_path)
    except (OSError, paramiko.SSHException) as e:
        raise IdentityUnavailable(f"SSH agent at {socket_path} unreachable: {e}") from e
    try:
        return len(agent.get_keys())
    finally:
        agent.close()


def lookup_ssh_config_identity(config_file: Path, hostname: str) -> Optional[str]:
    """Return the first ``IdentityFile`` configured for ``hostname``."""
    if not config_file.is_file():
        return None
    config = paramiko.SSHConfig.from_path(str(config_file))
    identity_files = config.lookup(hostname).get("identityfile") or []
    return identity_files[0] if identity_files else None


def load_identity(path: Path) -> None:
    """
    Check that ``path`` is a private key usable without a passphrase.

    Raises:
        IdentityUnavailable: Missing, unreadable or passphrase-protected key
    """
    if not path.is_file():
        raise IdentityUnavailable(f"SSH key file not found: {path}")
    try:
        paramiko.PKey.from_path(path)
    except (paramiko.PasswordRequiredException, TypeError) as e:
        # cryptography raises TypeError for encrypted PEM without a password
        raise IdentityUnavailable(f"SSH key {path} is passphrase-protected") from e
    except Exception as e:
        raise IdentityUnavailable(f"failed to load SSH key {path}: {e}") from e


def expand_home(path: str, home: Path) -> Path:
    """Expand a leading ``~`` against ``home`` (not the process HOME)."""
    if path == "~":
        return home
    if path.startswith("~/"):
        return home / path[2:]
    return Path(path)


# =============================================================================
# Negotiator
# =============================================================================

SSHStrategy = Callable[[AuthSettings, ParsedAddress], Optional[Credential]]


class AuthNegotiator:
    """
    Produce the credential for a repository address.

    Example:
        ```python
        negotiator = AuthNegotiator()
        cred = negotiator.resolve("git@github.com:org/rules.git")
        env = cred.to_env()
        ```
    """

    def __init__(
        self,
        settings: Optional[AuthSettings] = None,
        *,
        ssh_config_lookup: Callable[[Path, str], Optional[str]] = lookup_ssh_config_identity,
        agent_probe: Callable[[str], int] = probe_agent,
        key_loader: Callable[[Path], None] = load_identity,
    ):
        """
        Args:
            settings: Fixed settings; when omitted the environment is read
                on every call
            ssh_config_lookup: (config file, host) -> IdentityFile or None
            agent_probe: socket path -> number of keys held
            key_loader: raises IdentityUnavailable for unusable keys
        """
        self._settings = settings
        self._ssh_config_lookup = ssh_config_lookup
        self._agent_probe = agent_probe
        self._key_loader = key_loader
        self._ssh_strategies: list[tuple[str, SSHStrategy]] = [
            ("ssh-agent", self._from_agent),
            ("ssh-config", self._from_ssh_config),
            ("SSH_KEY_PATH", self._from_override),
            ("standard keys", self._from_standard_keys),
        ]

    def current_settings(self) -> AuthSettings:
        """Settings for this call (fresh environment read unless fixed)."""
        return self._settings if self._settings is not None else AuthSettings()

    def resolve(self, address: str) -> Credential:
        """
        Resolve the credential for ``address``.

        Args:
            address: Repository address (already validated)

        Returns:
            Credential (``Credential.none()`` for anonymous HTTPS)

        Raises:
            NoAuthMethodError: Scheme has no authentication method
            AuthenticationFailedError: No SSH identity is usable
        """
        parsed = parse_address(address)
        settings = self.current_settings()

        if parsed.is_ssh:
            return self._resolve_ssh(parsed, settings, address)
        if parsed.is_http:
            return self._resolve_http(parsed, settings)

        raise NoAuthMethodError(
            f"no authentication method for scheme {parsed.scheme!r}",
            address=mask_credentials(address),
        )

    def _resolve_ssh(
        self, parsed: ParsedAddress, settings: AuthSettings, address: str
    ) -> Credential:
        last_error: Optional[Exception] = None

        for name, strategy in self._ssh_strategies:
            try:
                credential = strategy(settings, parsed)
            except IdentityUnavailable as e:
                logger.debug(f"SSH auth via {name} failed: {e}")
                last_error = e
                continue
            if credential is not None:
                logger.debug(f"SSH auth via {name}: {credential}")
                return credential

        raise AuthenticationFailedError(
            "SSH agent authentication failed and no usable SSH keys found",
            address=mask_credentials(address),
            cause=last_error,
        ) from last_error

    def _from_agent(self, settings: AuthSettings, parsed: ParsedAddress) -> Optional[Credential]:
        sock = settings.ssh_auth_sock
        if not sock:
            return None
        if self._agent_probe(sock) == 0:
            raise IdentityUnavailable("SSH agent holds no keys")
        return Credential.agent(sock)

    def _from_ssh_config(
        self, settings: AuthSettings, parsed: ParsedAddress
    ) -> Optional[Credential]:
        identity = self._ssh_config_lookup(settings.ssh_config_file, parsed.host)
        if not identity:
            return None
        return self._try_key(expand_home(identity, settings.home_dir))

    def _from_override(
        self, settings: AuthSettings, parsed: ParsedAddress
    ) -> Optional[Credential]:
        if not settings.ssh_key_path:
            return None
        return self._try_key(expand_home(settings.ssh_key_path, settings.home_dir))

    def _from_standard_keys(
        self, settings: AuthSettings, parsed: ParsedAddress
    ) -> Optional[Credential]:
        last_error: Optional[IdentityUnavailable] = None
        for name in STANDARD_KEY_NAMES:
            try:
                return self._try_key(settings.home_dir / ".ssh" / name)
            except IdentityUnavailable as e:
                last_error = e
        if last_error:
            raise last_error
        return None

    def _try_key(self, path: Path) -> Credential:
        self._key_loader(path)
        return Credential.identity(path)

    def _resolve_http(self, parsed: ParsedAddress, settings: AuthSettings) -> Credential:
        # exact host match only; subdomains and look-alikes never get the token
        if settings.github_token and parsed.host == GITHUB_HOST:
            return Credential.basic(
                GITHUB_TOKEN_USERNAME, settings.github_token.get_secret_value()
            )

        if settings.git_username:
            password = settings.git_password.get_secret_value() if settings.git_password else ""
            return Credential.basic(settings.git_username, password)

        return Credential.none()
