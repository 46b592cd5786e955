"""Test configuration and fixtures."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import pytest

from repo_from_template.config import CreationRequest
from repo_from_template.github.client import BranchRef, CreatedRepository, GitHubClient

_ENV_VARS = (
    "REPO_NAME",
    "REPO_DESC",
    "REPO_TYPE",
    "TEMPLATE_NAME",
    "BRANCH",
    "PROTECT_DEFAULT_BRANCH",
    "REPO_OWNER",
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "GITHUB_API_URL",
    "BRANCH_WAIT_ATTEMPTS",
    "BRANCH_WAIT_INTERVAL_SECONDS",
    "VERIFY_TEMPLATE",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every test without inherited settings and away from any real `.env`."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def created_repo() -> CreatedRepository:
    return CreatedRepository(
        full_name="acme/new-repo",
        html_url="https://github.com/acme/new-repo",
        default_branch="main",
    )


@pytest.fixture
def mock_github(created_repo: CreatedRepository) -> Mock:
    """A GitHub client whose calls all succeed."""
    github = Mock(spec=GitHubClient)
    github.create_from_template.return_value = created_repo
    github.get_branch.return_value = BranchRef(name="main", sha="abc123")
    github.create_branch.return_value = True
    github.is_template_repository.return_value = True
    return github


@pytest.fixture
def service_request() -> CreationRequest:
    return CreationRequest(
        repo_name="new-repo",
        repo_desc="A new service",
        repo_type="private",
        template_name="acme/service-golang",
        include_all_branches=False,
        protect_default_branch=True,
    )


@pytest.fixture
def plain_request() -> CreationRequest:
    return CreationRequest(
        repo_name="new-repo",
        repo_desc="",
        repo_type="public",
        template_name="acme/plain-template",
        include_all_branches=False,
        protect_default_branch=False,
    )
