"""
Secure Git repository access.

This package validates remote addresses, negotiates credentials, runs
clone and pull under a deadline, and answers read-only questions about a
repository's history.

Example:
    ```python
    from rulesync.git import GitClient, GitConfig, OperationContext

    client = GitClient(GitConfig(allowed_hosts=["github.com"]))

    # Clone a public repository
    client.clone("https://github.com/org/rules.git", "/tmp/rules", depth=1)

    # Clone with a caller-supplied deadline
    ctx = OperationContext.with_deadline_in(30)
    client.clone("git@github.com:org/private.git", "/tmp/private", context=ctx)

    # Read a file as it was at a commit
    info = client.file_commit_info("/tmp/rules", "python/style.md")
    text = client.file_at_commit("/tmp/rules", "python/style.md", info.short_hash)
    ```
"""

from rulesync.git.auth import (
    AuthNegotiator,
    AuthSettings,
    Credential,
    CredentialKind,
)
from rulesync.git.config import GitConfig
from rulesync.git.context import OperationContext
from rulesync.git.exceptions import (
    AuthenticationFailedError,
    CancelledError,
    CheckoutError,
    CommitNotFoundError,
    FileNotInCommitError,
    GitError,
    InvalidAddressError,
    NoAuthMethodError,
    NotARepositoryError,
    ReferenceNotFoundError,
    RemoteError,
    RepositoryEmptyError,
    RepositoryExistsError,
    RepositoryNotFoundError,
    TimeoutExceededError,
    TransportError,
    UnauthorizedHostError,
    UnsupportedSchemeError,
    ValidationError,
)
from rulesync.git.models import CommitInfo, ParsedAddress
from rulesync.git.progress import GitProgressAdapter, LoggingProgressHandler, ProgressHandler
from rulesync.git.repository import GitClient
from rulesync.git.validation import (
    ValidationPolicy,
    mask_credentials,
    parse_address,
    strip_credentials,
)

__all__ = [
    # Main class
    "GitClient",
    "GitConfig",
    "OperationContext",
    # Validation
    "ValidationPolicy",
    "parse_address",
    # Authentication
    "AuthNegotiator",
    "AuthSettings",
    "Credential",
    "CredentialKind",
    "mask_credentials",
    "strip_credentials",
    # Progress
    "ProgressHandler",
    "LoggingProgressHandler",
    "GitProgressAdapter",
    # Models
    "CommitInfo",
    "ParsedAddress",
    # Exceptions
    "GitError",
    "ValidationError",
    "InvalidAddressError",
    "UnsupportedSchemeError",
    "UnauthorizedHostError",
    "AuthenticationFailedError",
    "NoAuthMethodError",
    "NotARepositoryError",
    "RepositoryNotFoundError",
    "RepositoryEmptyError",
    "RepositoryExistsError",
    "TimeoutExceededError",
    "CancelledError",
    "ReferenceNotFoundError",
    "CommitNotFoundError",
    "FileNotInCommitError",
    "CheckoutError",
    "RemoteError",
    "TransportError",
]
