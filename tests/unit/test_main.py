"""Unit tests for the CLI entrypoint (GitHub client mocked)."""

from __future__ import annotations

import json
from unittest.mock import Mock

import pytest
import requests

from repo_from_template import main as main_module
from repo_from_template.github.client import GitHubApiError


@pytest.fixture
def client_factory(monkeypatch: pytest.MonkeyPatch, mock_github: Mock) -> Mock:
    factory = Mock(return_value=mock_github)
    monkeypatch.setattr(main_module, "GitHubClient", factory)
    return factory


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    from repo_from_template import provisioning

    monkeypatch.setattr(provisioning.time, "sleep", lambda _: None)


def test_plain_template_success_prints_json(
    client_factory: Mock, mock_github: Mock, capsys: pytest.CaptureFixture[str]
) -> None:
    code = main_module.main(
        [
            "--repo-name",
            "new-repo",
            "--template-name",
            "acme/plain-template",
            "--repo-type",
            "public",
            "--protect-default-branch",
            "false",
            "--token",
            "cli-token",
        ]
    )

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["full_name"] == "acme/new-repo"
    assert out["html_url"] == "https://github.com/acme/new-repo"
    assert out["default_branch"] == "main"
    client_factory.assert_called_once_with(token="cli-token", base_url="https://api.github.com")
    assert [name for name, _, _ in mock_github.method_calls] == ["create_from_template", "close"]


def test_environment_only_invocation(
    monkeypatch: pytest.MonkeyPatch,
    client_factory: Mock,
    mock_github: Mock,
    no_sleep: None,
) -> None:
    monkeypatch.setenv("REPO_NAME", "new-repo")
    monkeypatch.setenv("TEMPLATE_NAME", "acme/service-golang")
    monkeypatch.setenv("GH_TOKEN", "env-token")
    monkeypatch.setenv("BRANCH", "TRUE")

    assert main_module.main([]) == 0

    kwargs = mock_github.create_from_template.call_args.kwargs
    assert kwargs["include_all_branches"] is True
    assert kwargs["private"] is True
    assert mock_github.create_branch.call_args.kwargs["branch"] == "dev"
    assert mock_github.upsert_environment.call_count == 2


def test_bare_flag_means_true(
    monkeypatch: pytest.MonkeyPatch, client_factory: Mock, mock_github: Mock
) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")
    monkeypatch.setenv("PROTECT_DEFAULT_BRANCH", "false")

    code = main_module.main(
        ["--repo-name", "new-repo", "--template-name", "acme/plain-template", "--branch"]
    )

    assert code == 0
    assert mock_github.create_from_template.call_args.kwargs["include_all_branches"] is True


def test_missing_required_value_exits_with_config_error(
    monkeypatch: pytest.MonkeyPatch,
    client_factory: Mock,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")

    code = main_module.main(["--template-name", "acme/plain-template"])

    assert code == 2
    assert "repo_name" in capsys.readouterr().err
    client_factory.assert_not_called()


def test_creation_failure_names_the_step(
    monkeypatch: pytest.MonkeyPatch,
    client_factory: Mock,
    mock_github: Mock,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")
    mock_github.create_from_template.side_effect = GitHubApiError(
        422, "Name already exists on this account"
    )

    code = main_module.main(
        ["--repo-name", "taken", "--template-name", "acme/plain-template"]
    )

    assert code == 3
    assert "create-repository failed" in capsys.readouterr().err
    mock_github.close.assert_called_once()


def test_consistency_failure_exit_code(
    monkeypatch: pytest.MonkeyPatch,
    client_factory: Mock,
    mock_github: Mock,
    no_sleep: None,
) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")
    monkeypatch.setenv("BRANCH_WAIT_ATTEMPTS", "2")
    mock_github.get_branch.side_effect = GitHubApiError(404, "Branch not found")

    code = main_module.main(["--repo-name", "new-repo", "--template-name", "acme/plain-template"])

    assert code == 4
    assert mock_github.get_branch.call_count == 2


def test_unexpected_error_exit_code(
    monkeypatch: pytest.MonkeyPatch, client_factory: Mock, mock_github: Mock
) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")
    mock_github.create_from_template.side_effect = RuntimeError("network down")

    code = main_module.main(["--repo-name", "new-repo", "--template-name", "acme/plain-template"])

    assert code == 1
    mock_github.close.assert_called_once()


def test_transport_failure_after_creation_reports_the_step(
    monkeypatch: pytest.MonkeyPatch,
    client_factory: Mock,
    mock_github: Mock,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")
    mock_github.set_branch_protection.side_effect = requests.Timeout("read timed out")

    code = main_module.main(
        ["--repo-name", "new-repo", "--template-name", "acme/service-golang"]
    )

    assert code == 3
    assert "protect-branch main" in capsys.readouterr().err
