"""GitHub REST client for repository generation and setup.

Plain REST calls go through a `requests.Session`; the optional template
pre-flight lookup goes through PyGithub.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence
from urllib.parse import quote

import requests
from github import Auth, Github, GithubException, UnknownObjectException

from repo_from_template.policy import split_template_name

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"
REQUEST_TIMEOUT_SECONDS = 30


@dataclass(frozen=True, slots=True)
class CreatedRepository:
    """Minimal repository metadata returned by the generate endpoint."""

    full_name: str
    html_url: str
    default_branch: str


@dataclass(frozen=True, slots=True)
class BranchRef:
    name: str
    sha: str


class GitHubApiError(Exception):
    """A non-2xx response from the GitHub REST API.

    Transport failures (timeouts, resets) are reported with ``status_code`` 0.
    """

    def __init__(self, status_code: int, message: str, *, method: str = "", url: str = "") -> None:
        super().__init__(f"GitHub API error (status {status_code}): {message}")
        self.status_code = status_code
        self.message = message
        self.method = method
        self.url = url

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class GitHubClient:
    """Small wrapper around the GitHub REST endpoints used during provisioning."""

    def __init__(
        self,
        *,
        token: str,
        base_url: str = DEFAULT_BASE_URL,
        session: requests.Session | None = None,
        github_api: Github | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")

        self._token = token
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "repo-from-template",
            }
        )
        # Created lazily; only the template pre-flight check needs it.
        self._github = github_api

    @property
    def base_url(self) -> str:
        return self._base_url

    def _repo_url(self, *, repository: str, path: str = "") -> str:
        repo = repository.strip().strip("/")
        path = path.lstrip("/")
        if not path:
            return f"{self._base_url}/repos/{repo}"
        return f"{self._base_url}/repos/{repo}/{path}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        expected: Sequence[int] = (),
    ) -> requests.Response:
        logger.debug("GitHub request", extra={"method": method, "url": url})
        try:
            resp = self._session.request(method, url, json=json, timeout=REQUEST_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            # Transport failures carry no HTTP status.
            raise GitHubApiError(0, f"{type(e).__name__}: {e}", method=method, url=url) from e
        if 200 <= resp.status_code < 300 or resp.status_code in expected:
            return resp
        raise GitHubApiError(
            resp.status_code,
            self._error_message(resp),
            method=method,
            url=url,
        )

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            message = data.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        text = (resp.text or "").strip()
        return text or "<no body>"

    def create_from_template(
        self,
        *,
        template_name: str,
        name: str,
        description: str = "",
        private: bool = True,
        include_all_branches: bool = False,
        owner: str | None = None,
    ) -> CreatedRepository:
        """Generate a new repository from a template repository.

        Args:
            template_name: Template in the form 'owner/repo'.
            name: Name of the repository to create.
            description: Repository description (may be empty).
            private: Whether the new repository is private.
            include_all_branches: Copy every template branch, not only the default one.
            owner: Organisation or user to own the repository (defaults to the token's user).

        Returns:
            Metadata of the created repository.

        Raises:
            GitHubApiError: On any non-2xx response (name collision, missing permission, ...).
        """

        template_owner, template_repo = split_template_name(template_name)
        url = self._repo_url(repository=f"{template_owner}/{template_repo}", path="generate")
        payload: dict[str, Any] = {
            "name": name,
            "description": description,
            "private": private,
            "include_all_branches": include_all_branches,
        }
        if owner:
            payload["owner"] = owner

        logger.info(
            "Generating repository from template",
            extra={"template": template_name, "repo_name": name, "private": private},
        )
        resp = self._request("POST", url, json=payload)
        data: dict[str, Any] = resp.json()

        full_name = data.get("full_name")
        html_url = data.get("html_url")
        if not isinstance(full_name, str) or not full_name.strip():
            raise ValueError("Unexpected generate response: missing full_name")
        if not isinstance(html_url, str):
            html_url = ""
        default_branch = data.get("default_branch")
        if not isinstance(default_branch, str) or not default_branch.strip():
            default_branch = "main"

        return CreatedRepository(
            full_name=full_name,
            html_url=html_url,
            default_branch=default_branch,
        )

    def get_branch(self, *, repository: str, branch: str) -> BranchRef:
        """Fetch a branch and its head commit.

        Raises:
            GitHubApiError: 404 while the branch (or a just-generated repository) is not visible.
        """

        if not branch.strip():
            raise ValueError("branch is required")
        url = self._repo_url(repository=repository, path=f"branches/{quote(branch, safe='')}")
        resp = self._request("GET", url)
        data: dict[str, Any] = resp.json()

        commit = data.get("commit")
        sha = commit.get("sha") if isinstance(commit, dict) else None
        if not isinstance(sha, str) or not sha.strip():
            raise ValueError("Unexpected branch response: missing commit sha")
        name = data.get("name")
        return BranchRef(name=name if isinstance(name, str) else branch, sha=sha)

    def create_branch(self, *, repository: str, branch: str, sha: str) -> bool:
        """Create ``refs/heads/<branch>`` at ``sha``.

        Returns:
            True if the branch was created, False if it already existed.
        """

        if not branch.strip():
            raise ValueError("branch is required")
        if not sha.strip():
            raise ValueError("sha is required")

        url = self._repo_url(repository=repository, path="git/refs")
        payload = {"ref": f"refs/heads/{branch}", "sha": sha}
        try:
            self._request("POST", url, json=payload)
        except GitHubApiError as e:
            if e.status_code == 422 and "already exists" in e.message.lower():
                logger.info(
                    "Branch already exists", extra={"repo": repository, "branch": branch}
                )
                return False
            raise
        logger.info("Branch created", extra={"repo": repository, "branch": branch, "sha": sha})
        return True

    def set_branch_protection(
        self,
        *,
        repository: str,
        branch: str,
        policy: Mapping[str, Any],
    ) -> None:
        url = self._repo_url(
            repository=repository, path=f"branches/{quote(branch, safe='')}/protection"
        )
        self._request("PUT", url, json=dict(policy))
        logger.info("Branch protection applied", extra={"repo": repository, "branch": branch})

    def upsert_environment(
        self,
        *,
        repository: str,
        name: str,
        branch_patterns: Sequence[str],
    ) -> None:
        """Create or update an environment restricted to the given branch patterns.

        Existing deployment branch policies are reconciled so the environment ends up
        allowing exactly ``branch_patterns``.
        """

        env_path = f"environments/{quote(name, safe='')}"
        self._request(
            "PUT",
            self._repo_url(repository=repository, path=env_path),
            json={
                "deployment_branch_policy": {
                    "protected_branches": False,
                    "custom_branch_policies": True,
                }
            },
        )

        policies_url = self._repo_url(
            repository=repository, path=f"{env_path}/deployment-branch-policies"
        )
        existing = self._list_deployment_branch_policies(policies_url)

        wanted = list(dict.fromkeys(branch_patterns))
        for policy_id, pattern in existing.items():
            if pattern not in wanted:
                self._request("DELETE", f"{policies_url}/{policy_id}")
                logger.debug(
                    "Removed deployment branch policy",
                    extra={"repo": repository, "environment": name, "pattern": pattern},
                )

        present = set(existing.values())
        for pattern in wanted:
            if pattern in present:
                continue
            self._request("POST", policies_url, json={"name": pattern, "type": "branch"})

        logger.info(
            "Environment configured",
            extra={"repo": repository, "environment": name, "branch_patterns": wanted},
        )

    def _list_deployment_branch_policies(self, url: str) -> dict[int, str]:
        """Return ``{policy_id: pattern}`` for an environment's branch policies."""

        resp = self._request("GET", url)
        data = resp.json()
        raw = data.get("branch_policies") if isinstance(data, dict) else None
        policies: dict[int, str] = {}
        for item in raw or []:
            if not isinstance(item, dict):
                continue
            policy_id = item.get("id")
            pattern = item.get("name")
            if isinstance(policy_id, int) and isinstance(pattern, str):
                policies[policy_id] = pattern
        return policies

    def is_template_repository(self, template_name: str) -> bool:
        """Return True if ``template_name`` exists and is marked as a template."""

        split_template_name(template_name)
        if self._github is None:
            self._github = Github(auth=Auth.Token(self._token), base_url=self._base_url)
        try:
            repo = self._github.get_repo(template_name.strip())
        except UnknownObjectException:
            logger.warning("Template repository not found", extra={"template": template_name})
            return False
        except GithubException as e:
            raise GitHubApiError(
                e.status, str(e.data.get("message", e)) if isinstance(e.data, dict) else str(e)
            ) from e
        return bool(repo.is_template)

    def close(self) -> None:
        """Close the HTTP session and the PyGithub connection, if any."""

        self._session.close()
        if self._github is not None:
            self._github.close()
        logger.debug("GitHub client closed")
