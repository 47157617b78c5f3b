"""
Git data models.

This module defines Pydantic models for the values exchanged with the
repository access layer.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

COMMIT_DATE_FORMAT = "%b %Y"


class ParsedAddress(BaseModel):
    """A repository address split into its components."""

    model_config = {"frozen": True}

    scheme: str = Field(description="Lower-cased scheme (https, ssh, file, ...)")
    host: str = Field(default="", description="Host name without user or port")
    path: str = Field(description="Repository path on the host")
    user: Optional[str] = Field(default=None, description="User part, if any")
    port: Optional[int] = Field(default=None, description="Explicit port, if any")
    scp_like: bool = Field(
        default=False, description="Whether the address used the user@host:path form"
    )

    @property
    def is_ssh(self) -> bool:
        """Check if the address is key-based."""
        return self.scheme == "ssh"

    @property
    def is_http(self) -> bool:
        """Check if the address is token/credential based."""
        return self.scheme in ("http", "https")


class CommitInfo(BaseModel):
    """Hash and human-readable date of a commit."""

    model_config = {"frozen": True}

    hash: str = Field(description="Full 40-character commit hash")
    date: str = Field(description="Author date formatted as '2 Jan 2006'")

    @field_validator("hash")
    @classmethod
    def check_hash(cls, v: str) -> str:
        if len(v) != 40 or any(c not in "0123456789abcdef" for c in v):
            raise ValueError(f"not a full commit hash: {v!r}")
        return v

    @property
    def short_hash(self) -> str:
        """Get the 7-character abbreviation."""
        return self.hash[:7]

    @classmethod
    def from_commit(cls, commit) -> "CommitInfo":
        """Build from a GitPython commit object."""
        return cls(hash=commit.hexsha, date=format_commit_date(commit.authored_datetime))


def format_commit_date(when: datetime) -> str:
    """Format a commit date as '2 Jan 2006' (day without padding)."""
    return f"{when.day} {when.strftime(COMMIT_DATE_FORMAT)}"
