"""Repository provisioning.

Runs the ordered sequence of GitHub calls for one :class:`CreationRequest`:

1. generate the repository from its template
2. wait for the default branch to become visible and protect it (if enabled)
3. for service templates, create and protect ``dev`` and configure the
   ``dev`` / ``release`` deployment environments

Nothing is rolled back: a failure leaves whatever was already created in place and
surfaces the failing step.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any

import requests

from repo_from_template.config import CreationRequest
from repo_from_template.errors import (
    ConsistencyError,
    CreationError,
    ProtectionError,
)
from repo_from_template.github.client import (
    BranchRef,
    CreatedRepository,
    GitHubApiError,
    GitHubClient,
)
from repo_from_template.policy import (
    DEFAULT_BRANCH_WAIT_ATTEMPTS,
    DEFAULT_BRANCH_WAIT_INTERVAL_SECONDS,
    DEV_BRANCH,
    ENVIRONMENT_BRANCH_PATTERNS,
    branch_protection_payload,
)

logger = logging.getLogger(__name__)

# Anything a client call can fail with once a request has been attempted. ValueError covers
# malformed 2xx bodies.
_CALL_ERRORS = (GitHubApiError, requests.RequestException, ValueError)


@dataclass(slots=True)
class ProvisionResult:
    """What was done for a request."""

    full_name: str
    html_url: str
    default_branch: str
    protected_branches: list[str] = field(default_factory=list)
    dev_branch_created: bool | None = None
    environments: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class RepositoryProvisioner:
    """Create a repository from a template and apply the GitFlow setup."""

    def __init__(
        self,
        *,
        github: GitHubClient,
        wait_attempts: int = DEFAULT_BRANCH_WAIT_ATTEMPTS,
        wait_interval_seconds: float = DEFAULT_BRANCH_WAIT_INTERVAL_SECONDS,
        verify_template: bool = False,
    ) -> None:
        if wait_attempts < 1:
            raise ValueError("wait_attempts must be at least 1")
        if wait_interval_seconds < 0:
            raise ValueError("wait_interval_seconds must not be negative")

        self._github = github
        self._wait_attempts = wait_attempts
        self._wait_interval_seconds = wait_interval_seconds
        self._verify_template = verify_template

    def provision(self, request: CreationRequest) -> ProvisionResult:
        """Run every step for ``request``.

        Raises:
            CreationError: Template check, repository, branch or environment creation failed.
            ConsistencyError: The default branch never became visible.
            ProtectionError: Branch protection could not be applied.
        """

        if self._verify_template:
            self._check_template(request.template_name)

        repo = self._create_repository(request)
        result = ProvisionResult(
            full_name=repo.full_name,
            html_url=repo.html_url,
            default_branch=repo.default_branch,
        )

        default_head: BranchRef | None = None
        if request.protect_default_branch:
            default_head = self.wait_for_branch(repo.full_name, repo.default_branch)
            self._protect(repo.full_name, repo.default_branch)
            result.protected_branches.append(repo.default_branch)

        if request.is_service_template:
            if default_head is None:
                # The dev branch is cut from the default branch head, so it must be visible.
                default_head = self.wait_for_branch(repo.full_name, repo.default_branch)

            result.dev_branch_created = self._create_dev_branch(repo.full_name, default_head.sha)
            if request.protect_default_branch:
                self._protect(repo.full_name, DEV_BRANCH)
                result.protected_branches.append(DEV_BRANCH)

            for env_name, patterns in ENVIRONMENT_BRANCH_PATTERNS.items():
                self._upsert_environment(repo.full_name, env_name, patterns)
                result.environments.append(env_name)

        logger.info(
            "Repository provisioned",
            extra={
                "repo": result.full_name,
                "url": result.html_url,
                "protected_branches": result.protected_branches,
                "environments": result.environments,
            },
        )
        return result

    def _check_template(self, template_name: str) -> None:
        try:
            ok = self._github.is_template_repository(template_name)
        except _CALL_ERRORS as e:
            raise CreationError("verify-template", str(e)) from e
        if not ok:
            raise CreationError(
                "verify-template",
                f"{template_name} does not exist or is not a template repository",
            )

    def _create_repository(self, request: CreationRequest) -> CreatedRepository:
        try:
            return self._github.create_from_template(
                template_name=request.template_name,
                name=request.repo_name,
                description=request.repo_desc,
                private=request.private,
                include_all_branches=request.include_all_branches,
                owner=request.owner,
            )
        except _CALL_ERRORS as e:
            raise CreationError("create-repository", str(e)) from e

    def wait_for_branch(self, repository: str, branch: str) -> BranchRef:
        """Poll until ``branch`` is readable, tolerating 404s.

        Makes at most ``wait_attempts`` requests and sleeps a fixed interval between them.

        Raises:
            ConsistencyError: The branch is still missing after the last attempt.
            CreationError: Any failure other than a 404 (including transport errors).
        """

        for attempt in range(1, self._wait_attempts + 1):
            try:
                ref = self._github.get_branch(repository=repository, branch=branch)
            except _CALL_ERRORS as e:
                if not (isinstance(e, GitHubApiError) and e.is_not_found):
                    raise CreationError(f"wait-for-branch {branch}", str(e)) from e
                logger.debug(
                    "Branch not visible yet",
                    extra={"repo": repository, "branch": branch, "attempt": attempt},
                )
            else:
                logger.info(
                    "Branch available",
                    extra={"repo": repository, "branch": branch, "attempt": attempt},
                )
                return ref

            if attempt < self._wait_attempts:
                time.sleep(self._wait_interval_seconds)

        raise ConsistencyError(
            f"wait-for-branch {branch}",
            f"{repository}@{branch} not visible after {self._wait_attempts} attempts",
        )

    def _protect(self, repository: str, branch: str) -> None:
        try:
            self._github.set_branch_protection(
                repository=repository,
                branch=branch,
                policy=branch_protection_payload(),
            )
        except _CALL_ERRORS as e:
            raise ProtectionError(f"protect-branch {branch}", str(e)) from e

    def _create_dev_branch(self, repository: str, sha: str) -> bool:
        try:
            return self._github.create_branch(repository=repository, branch=DEV_BRANCH, sha=sha)
        except _CALL_ERRORS as e:
            raise CreationError(f"create-branch {DEV_BRANCH}", str(e)) from e

    def _upsert_environment(self, repository: str, name: str, patterns: tuple[str, ...]) -> None:
        try:
            self._github.upsert_environment(
                repository=repository,
                name=name,
                branch_patterns=list(patterns),
            )
        except _CALL_ERRORS as e:
            raise CreationError(f"configure-environment {name}", str(e)) from e

