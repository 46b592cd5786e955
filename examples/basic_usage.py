#!/usr/bin/env python3
"""Programmatic repository creation example.

This demonstrates using the components directly instead of the CLI:

* resolve the request from `.env` / environment, with a few explicit values
* generate the repository and apply the branch/environment setup
* print the resulting repository URL
"""

from __future__ import annotations

import argparse
from typing import Sequence

from repo_from_template.config import resolve_request
from repo_from_template.errors import RepoFromTemplateError
from repo_from_template.github.client import GitHubClient
from repo_from_template.logging import configure_logging
from repo_from_template.provisioning import RepositoryProvisioner


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a repository from a template (example).")
    parser.add_argument("--name", required=True, help="Repository name to create")
    parser.add_argument("--template", required=True, help='Template in the form "owner/repo"')
    parser.add_argument("--public", action="store_true", help="Create a public repository")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    request, settings = resolve_request(
        {
            "repo_name": args.name,
            "template_name": args.template,
            "repo_type": "public" if args.public else "private",
        }
    )
    configure_logging(settings.log_level)

    github = GitHubClient(token=settings.token, base_url=settings.github_api_url)
    try:
        result = RepositoryProvisioner(
            github=github,
            wait_attempts=settings.branch_wait_attempts,
            wait_interval_seconds=settings.branch_wait_interval_seconds,
            verify_template=settings.verify_template,
        ).provision(request)
    except RepoFromTemplateError as exc:
        print(str(exc))
        return 1
    finally:
        github.close()

    print(f"Created {result.full_name}: {result.html_url}")
    if result.environments:
        print(f"Environments: {', '.join(result.environments)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
