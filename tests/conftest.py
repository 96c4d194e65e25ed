# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared fixtures."""

import logging

import pytest

from tests.helpers import FakeSMTP


@pytest.fixture
def smtp_script():
    """Configuration applied to every FakeSMTP the code under test creates."""
    return {"extensions": {"starttls", "auth"}, "failures": {}}


@pytest.fixture
def fake_smtp(monkeypatch, smtp_script):
    created = []

    def factory(**kwargs):
        smtp = FakeSMTP(**kwargs)
        smtp.extensions = set(smtp_script["extensions"])
        smtp.failures = dict(smtp_script["failures"])
        created.append(smtp)
        return smtp

    monkeypatch.setattr("mime_mailer.smtp_session.aiosmtplib.SMTP", factory)
    return created


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The CLI reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
