"""GitHub API client subpackage."""
