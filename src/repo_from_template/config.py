"""Configuration resolver.

Configuration is loaded from:
- explicit values (CLI flags), which always win
- environment variables
- and a local `.env` file (if present)

The result is a validated :class:`CreationRequest` plus the runtime settings needed
to talk to GitHub.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal, Mapping

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from repo_from_template.errors import ConfigError
from repo_from_template.policy import (
    DEFAULT_BRANCH_WAIT_ATTEMPTS,
    DEFAULT_BRANCH_WAIT_INTERVAL_SECONDS,
    is_service_template,
    split_template_name,
)

_REPO_NAME_RE = re.compile(r"^[A-Za-z0-9._-]{1,100}$")

# field -> (CLI flag, environment variable); used to build actionable error messages.
_FIELD_SOURCES: dict[str, tuple[str, str]] = {
    "repo_name": ("--repo-name", "REPO_NAME"),
    "repo_desc": ("--repo-desc", "REPO_DESC"),
    "repo_type": ("--repo-type", "REPO_TYPE"),
    "template_name": ("--template-name", "TEMPLATE_NAME"),
    "include_all_branches": ("--branch", "BRANCH"),
    "protect_default_branch": ("--protect-default-branch", "PROTECT_DEFAULT_BRANCH"),
    "owner": ("--owner", "REPO_OWNER"),
    "github_token": ("--token", "GITHUB_TOKEN"),
    "gh_token": ("", "GH_TOKEN"),
    "github_api_url": ("--api-base", "GITHUB_API_URL"),
    "branch_wait_attempts": ("", "BRANCH_WAIT_ATTEMPTS"),
    "branch_wait_interval_seconds": ("", "BRANCH_WAIT_INTERVAL_SECONDS"),
    "verify_template": ("--verify-template", "VERIFY_TEMPLATE"),
    "log_level": ("--log-level", "LOG_LEVEL"),
}
_ENV_TO_FIELD = {env.lower(): field for field, (_, env) in _FIELD_SOURCES.items()}


@dataclass(frozen=True, slots=True)
class CreationRequest:
    """A validated request to create one repository from a template."""

    repo_name: str
    repo_desc: str
    repo_type: Literal["public", "private"]
    template_name: str
    include_all_branches: bool = False
    protect_default_branch: bool = True
    owner: str | None = None

    @property
    def private(self) -> bool:
        return self.repo_type == "private"

    @property
    def is_service_template(self) -> bool:
        return is_service_template(self.template_name)


class ResolverSettings(BaseSettings):
    """Settings for a single repository creation run.

    Environment variables:
    - REPO_NAME, REPO_DESC, REPO_TYPE, TEMPLATE_NAME
    - BRANCH                  (include all template branches)
    - PROTECT_DEFAULT_BRANCH
    - REPO_OWNER              (optional)
    - GITHUB_TOKEN / GH_TOKEN
    - GITHUB_API_URL          (optional)
    - BRANCH_WAIT_ATTEMPTS, BRANCH_WAIT_INTERVAL_SECONDS (optional)
    - VERIFY_TEMPLATE         (optional)
    - LOG_LEVEL               (optional)

    Notes:
        Explicit values passed to the constructor (keyed by the environment
        variable name) override the environment. Tests can point at a different env file via
        `ResolverSettings(_env_file=path)`.
    """

    repo_name: str = Field(
        default="",
        validation_alias="REPO_NAME",
        validate_default=True,
        description="Name of the repository to create",
    )
    repo_desc: str = Field(
        default="",
        validation_alias="REPO_DESC",
        description="Repository description",
    )
    repo_type: Literal["public", "private"] = Field(
        default="private",
        validation_alias="REPO_TYPE",
        description="Repository visibility",
    )
    template_name: str = Field(
        default="",
        validation_alias="TEMPLATE_NAME",
        validate_default=True,
        description="Template repository in the form 'owner/repo'",
    )
    include_all_branches: bool = Field(
        default=False,
        validation_alias="BRANCH",
        description="Include all branches from the template",
    )
    protect_default_branch: bool = Field(
        default=True,
        validation_alias="PROTECT_DEFAULT_BRANCH",
        description="Apply branch protection to the default branch",
    )
    owner: str | None = Field(
        default=None,
        validation_alias="REPO_OWNER",
        description="Organisation or user that will own the repository",
    )

    github_token: str = Field(default="", validation_alias="GITHUB_TOKEN")
    gh_token: str = Field(default="", validation_alias="GH_TOKEN")
    github_api_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_API_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )

    branch_wait_attempts: int = Field(
        default=DEFAULT_BRANCH_WAIT_ATTEMPTS,
        ge=1,
        validation_alias="BRANCH_WAIT_ATTEMPTS",
        description="How many times to look for the default branch after creation",
    )
    branch_wait_interval_seconds: float = Field(
        default=DEFAULT_BRANCH_WAIT_INTERVAL_SECONDS,
        ge=0.0,
        validation_alias="BRANCH_WAIT_INTERVAL_SECONDS",
        description="Fixed delay between default-branch lookups",
    )
    verify_template: bool = Field(
        default=False,
        validation_alias="VERIFY_TEMPLATE",
        description="Check that the template exists and is template-enabled before creating",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    @field_validator("repo_name", mode="after")
    @classmethod
    def _check_repo_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("is required")
        if value in {".", ".."} or not _REPO_NAME_RE.match(value):
            raise ValueError(
                f"{value!r} is not a valid repository name "
                "(letters, digits, '.', '-' and '_' only, at most 100 characters)"
            )
        return value

    @field_validator("template_name", mode="after")
    @classmethod
    def _check_template_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("is required")
        split_template_name(value)
        return value

    @field_validator("repo_type", mode="before")
    @classmethod
    def _normalise_repo_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("include_all_branches", "protect_default_branch", "verify_template", mode="before")
    @classmethod
    def _parse_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == "true":
                return True
            if lowered == "false":
                return False
        raise ValueError(f"expected 'true' or 'false', got {value!r}")

    @field_validator("owner", mode="after")
    @classmethod
    def _blank_owner_is_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @property
    def token(self) -> str:
        """GITHUB_TOKEN if set, otherwise GH_TOKEN."""

        return self.github_token.strip() or self.gh_token.strip()

    def to_request(self) -> CreationRequest:
        return CreationRequest(
            repo_name=self.repo_name,
            repo_desc=self.repo_desc,
            repo_type=self.repo_type,
            template_name=self.template_name,
            include_all_branches=self.include_all_branches,
            protect_default_branch=self.protect_default_branch,
            owner=self.owner,
        )


def _describe(field: str) -> str:
    flag, env = _FIELD_SOURCES.get(field, ("", ""))
    return " / ".join(s for s in (flag, env) if s)


def _config_error_from(exc: ValidationError) -> ConfigError:
    error = exc.errors()[0]
    loc = error.get("loc") or ()
    raw_field = str(loc[0]) if loc else "configuration"
    field = _ENV_TO_FIELD.get(raw_field.lower(), raw_field)
    message = str(error.get("msg", "invalid value"))
    # Pydantic prefixes messages raised from validators with "Value error, ".
    message = message.removeprefix("Value error, ")
    sources = _describe(field)
    return ConfigError(field, f"{message} ({sources})" if sources else message)


def resolve_request(
    overrides: Mapping[str, Any] | None = None,
    **settings_kwargs: Any,
) -> tuple[CreationRequest, ResolverSettings]:
    """Merge explicit overrides with the environment into a validated request.

    Args:
        overrides: Explicit values keyed by field name; ``None`` values are ignored
            so that absent CLI flags fall through to the environment.
        **settings_kwargs: Extra pydantic-settings options such as ``_env_file``.

    Raises:
        ConfigError: When a required value is missing or a value is invalid.
    """

    explicit: dict[str, Any] = {}
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key == "token":
            key = "github_token"
        # Keyed by the environment alias so explicit values replace, not sit beside, env values.
        _, env = _FIELD_SOURCES.get(key, ("", key))
        explicit[env] = value

    try:
        settings = ResolverSettings(**explicit, **settings_kwargs)
    except ValidationError as e:
        raise _config_error_from(e) from e

    if not settings.token:
        raise ConfigError("github_token", "set GITHUB_TOKEN or GH_TOKEN, or pass --token")

    return settings.to_request(), settings
