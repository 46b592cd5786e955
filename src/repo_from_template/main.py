"""CLI entrypoint: create a repository from a GitHub template.

Every flag has an environment variable equivalent; an explicit flag wins.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Sequence

from repo_from_template import __version__
from repo_from_template.config import resolve_request
from repo_from_template.errors import (
    ConfigError,
    ConsistencyError,
    ProvisioningError,
)
from repo_from_template.github.client import GitHubClient
from repo_from_template.logging import configure_logging
from repo_from_template.provisioning import RepositoryProvisioner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIG = 2
EXIT_PROVISIONING = 3
EXIT_CONSISTENCY = 4


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo-from-template",
        description="Create a GitHub repository from a template repository",
    )
    parser.add_argument(
        "--version", action="version", version=f"repo-from-template {__version__}"
    )

    parser.add_argument("--repo-name", default=None, help="Repository name to create [REPO_NAME]")
    parser.add_argument("--repo-desc", default=None, help="Repository description [REPO_DESC]")
    parser.add_argument(
        "--repo-type",
        default=None,
        type=str.lower,
        choices=["public", "private"],
        help="Repository visibility [REPO_TYPE]",
    )
    parser.add_argument(
        "--template-name",
        default=None,
        help="Template repository in the form 'owner/repo' [TEMPLATE_NAME]",
    )
    parser.add_argument(
        "--branch",
        dest="include_all_branches",
        nargs="?",
        const="true",
        default=None,
        metavar="true|false",
        help="Include all branches from the template [BRANCH]",
    )
    parser.add_argument(
        "--protect-default-branch",
        nargs="?",
        const="true",
        default=None,
        metavar="true|false",
        help="Protect the default branch (default: true) [PROTECT_DEFAULT_BRANCH]",
    )
    parser.add_argument(
        "--owner",
        default=None,
        help="Organisation or user that will own the new repository [REPO_OWNER]",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="GitHub token; defaults to GITHUB_TOKEN, then GH_TOKEN",
    )
    parser.add_argument(
        "--api-base",
        dest="github_api_url",
        default=None,
        help="GitHub API base URL [GITHUB_API_URL]",
    )
    parser.add_argument(
        "--verify-template",
        nargs="?",
        const="true",
        default=None,
        metavar="true|false",
        help="Check the template is template-enabled before creating [VERIFY_TEMPLATE]",
    )
    parser.add_argument("--log-level", default=None, help="Logging level [LOG_LEVEL]")
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "repo_name": args.repo_name,
        "repo_desc": args.repo_desc,
        "repo_type": args.repo_type,
        "template_name": args.template_name,
        "include_all_branches": args.include_all_branches,
        "protect_default_branch": args.protect_default_branch,
        "owner": args.owner,
        "token": args.token,
        "github_api_url": args.github_api_url,
        "verify_template": args.verify_template,
        "log_level": args.log_level,
    }


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        request, settings = resolve_request(_overrides(args))
    except ConfigError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(settings.log_level)

    try:
        github = GitHubClient(token=settings.token, base_url=settings.github_api_url)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        provisioner = RepositoryProvisioner(
            github=github,
            wait_attempts=settings.branch_wait_attempts,
            wait_interval_seconds=settings.branch_wait_interval_seconds,
            verify_template=settings.verify_template,
        )
        result = provisioner.provision(request)
        print(json.dumps(result.to_dict()))
        return EXIT_OK

    except ConsistencyError as e:
        logger.error(str(e), extra={"step": e.step})
        print(str(e), file=sys.stderr)
        return EXIT_CONSISTENCY

    except ProvisioningError as e:
        logger.error(str(e), extra={"step": e.step})
        print(str(e), file=sys.stderr)
        return EXIT_PROVISIONING

    except Exception:
        logger.exception("Repository creation failed")
        return EXIT_UNEXPECTED

    finally:
        github.close()


if __name__ == "__main__":
    raise SystemExit(main())
