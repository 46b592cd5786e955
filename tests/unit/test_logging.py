"""Unit tests for structured logging."""

from __future__ import annotations

import io
import json
import logging

from repo_from_template.logging import configure_logging


def test_json_log_lines_include_extra_fields() -> None:
    stream = io.StringIO()
    configure_logging("debug", stream=stream)

    logging.getLogger("repo_from_template.test").info(
        "Branch created", extra={"repo": "acme/new-repo", "branch": "dev"}
    )

    record = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert record["level"] == "INFO"
    assert record["logger"] == "repo_from_template.test"
    assert record["message"] == "Branch created"
    assert record["extra"] == {"repo": "acme/new-repo", "branch": "dev"}


def test_reconfiguring_does_not_duplicate_handlers() -> None:
    configure_logging("INFO", stream=io.StringIO())
    configure_logging("WARNING", stream=io.StringIO())

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.level == logging.WARNING
    assert logging.getLogger("github").level == logging.WARNING
