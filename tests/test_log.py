"""Tests for logging helpers."""

import json
import logging
from datetime import datetime

import pytest

from paneguard.utils.log import (
    AuditFormatter,
    audit_log_path,
    enable_audit_file_logging,
    get_logger,
)


@pytest.fixture
def audit_logger():
    logger = get_logger()
    yield logger
    logger.close_audit_file()


def test_audit_formatter_appends_extras():
    record = logging.LogRecord("paneguard", logging.INFO, __file__, 1, "decided", None, None)
    record.rule = "Bash(ls:*)"

    line = AuditFormatter().format(record)

    message, _, extras = line.partition(" | ")
    assert message.endswith("[INFO] decided")
    assert json.loads(extras) == {"rule": "Bash(ls:*)"}
    timestamp = message.split(" ")[0]
    assert "T" in timestamp and timestamp.endswith("Z")


def test_audit_formatter_without_extras():
    record = logging.LogRecord("paneguard", logging.WARNING, __file__, 1, "plain", None, None)
    assert " | " not in AuditFormatter().format(record)


def test_audit_log_path_is_dated(tmp_path):
    path = audit_log_path(tmp_path, datetime(2026, 3, 1))
    assert path == tmp_path / "logs" / "paneguard_20260301.log"


def test_audit_file_logging_writes_under_project(tmp_path, audit_logger):
    log_file = enable_audit_file_logging(tmp_path)
    audit_logger.info("[test] audit entry", extra={"action": "ls"})

    assert log_file.parent == tmp_path / "logs"
    assert audit_logger.audit_file == log_file
    content = log_file.read_text(encoding="utf-8")
    assert "[test] audit entry" in content
    assert '"action": "ls"' in content


def test_close_audit_file_stops_writing(tmp_path, audit_logger):
    log_file = enable_audit_file_logging(tmp_path)
    audit_logger.close_audit_file()
    audit_logger.info("[test] after close")

    assert audit_logger.audit_file is None
    assert "after close" not in log_file.read_text(encoding="utf-8")
