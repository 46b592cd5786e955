"""Repo from template.

Creates a GitHub repository from a template repository and, for service
templates, lays down a GitFlow-style `dev` branch, branch protection and
deployment environments.
"""

__version__ = "0.1.0"

from repo_from_template.config import CreationRequest, ResolverSettings, resolve_request
from repo_from_template.provisioning import ProvisionResult, RepositoryProvisioner

__all__ = [
    "__version__",
    "CreationRequest",
    "ProvisionResult",
    "RepositoryProvisioner",
    "ResolverSettings",
    "resolve_request",
]
