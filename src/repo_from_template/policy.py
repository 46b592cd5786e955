"""Repository policy: the fixed rules applied to newly created repositories.

Everything here is plain data or a pure predicate so that the rules can be
audited and asserted on without touching the HTTP layer.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Final, Mapping

SERVICE_TEMPLATE_PREFIX: Final = "service-"

DEV_BRANCH: Final = "dev"

# Bounded wait for a freshly generated repository's default branch to become
# queryable. Overridable via BRANCH_WAIT_ATTEMPTS / BRANCH_WAIT_INTERVAL_SECONDS.
DEFAULT_BRANCH_WAIT_ATTEMPTS: Final = 10
DEFAULT_BRANCH_WAIT_INTERVAL_SECONDS: Final = 2.0

BRANCH_PROTECTION_POLICY: Final[Mapping[str, Any]] = MappingProxyType(
    {
        "required_status_checks": MappingProxyType(
            {
                "strict": True,
                "contexts": (),
            }
        ),
        "enforce_admins": True,
        "required_pull_request_reviews": MappingProxyType(
            {
                "required_approving_review_count": 1,
                "dismiss_stale_reviews": True,
                "require_code_owner_reviews": False,
                "require_last_push_approval": True,
            }
        ),
        "restrictions": None,
        "allow_force_pushes": False,
        "allow_deletions": False,
        "required_linear_history": True,
        "block_creations": False,
        "required_conversation_resolution": True,
        "lock_branch": False,
        "allow_fork_syncing": False,
    }
)

# Deployment environments created for service templates, in creation order.
ENVIRONMENT_BRANCH_PATTERNS: Final[Mapping[str, tuple[str, ...]]] = MappingProxyType(
    {
        "dev": ("dev", "feature/*", "hotfix/*"),
        "release": ("release/*", "main"),
    }
)


def split_template_name(template_name: str) -> tuple[str, str]:
    """Split an ``owner/repo`` template reference.

    Raises:
        ValueError: If the value is not exactly two non-empty parts.
    """

    parts = template_name.strip().split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(
            f"Invalid template name; expected 'owner/repo', got {template_name!r}"
        )
    return parts[0], parts[1]


def is_service_template(template_name: str) -> bool:
    """Return True when the template's repository part starts with ``service-``."""

    _, repo = split_template_name(template_name)
    return repo.startswith(SERVICE_TEMPLATE_PREFIX)


def branch_protection_payload() -> dict[str, Any]:
    """Return :data:`BRANCH_PROTECTION_POLICY` as plain, mutable dicts and lists for a request body."""

    return _thaw(BRANCH_PROTECTION_POLICY)


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value
