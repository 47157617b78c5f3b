"""Shared fixtures: local origin repositories reachable over file://."""

from pathlib import Path

import pytest
from git import Actor, Repo

from rulesync.git import AuthNegotiator, Credential, GitClient, GitConfig

AUTHOR = Actor("Rule Author", "author@example.com")

# 2 Jan 2024 10:00 UTC
FIRST_DATE = "1704189600 +0000"
# 15 Mar 2024 10:00 UTC
SECOND_DATE = "1710496800 +0000"


class AnonymousAuth(AuthNegotiator):
    """Negotiator for local file:// remotes, which need no credential."""

    def resolve(self, address: str) -> Credential:
        return Credential.none()


def commit_files(repo: Repo, files: dict[str, str], message: str, date: str = FIRST_DATE):
    """Write files into the working tree and commit them."""
    root = Path(repo.working_tree_dir)
    for name, content in files.items():
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    repo.index.add(list(files))
    return repo.index.commit(
        message,
        author=AUTHOR,
        committer=AUTHOR,
        author_date=date,
        commit_date=date,
    )


def file_url(path: Path) -> str:
    return path.resolve().as_uri()


@pytest.fixture
def origin(tmp_path):
    """Origin repository on branch main with two commits and a tag."""
    repo = Repo.init(tmp_path / "origin", initial_branch="main")
    commit_files(
        repo,
        {
            "README.md": "# Rules\n",
            "python/style.md": "Use black.\n",
            "go/errors.md": "Wrap errors.\n",
        },
        "Initial rules",
        FIRST_DATE,
    )
    repo.create_tag("v1.0")
    commit_files(repo, {"python/style.md": "Use ruff.\n"}, "Switch formatter", SECOND_DATE)
    repo.create_head("develop")
    yield repo
    repo.close()


@pytest.fixture
def origin_url(origin) -> str:
    return file_url(Path(origin.working_tree_dir))


@pytest.fixture
def local_config() -> GitConfig:
    return GitConfig(allowed_schemes=["file"], allowed_hosts=[], clone_timeout=60, pull_timeout=60)


@pytest.fixture
def client(local_config) -> GitClient:
    return GitClient(local_config, auth=AnonymousAuth())


@pytest.fixture
def clone_dir(client, origin_url, tmp_path) -> Path:
    """A clone of the origin fixture."""
    return client.clone(origin_url, tmp_path / "clone")
