# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for loading sender settings from INI files and the environment."""

import pytest

from mime_mailer.config_loader import SenderSettings, load_settings
from mime_mailer.errors import ConfigurationError
from mime_mailer.smtp_session import TLSMode


def write_config(tmp_path, body: str):
    path = tmp_path / "mime-mailer.ini"
    path.write_text(body)
    return path


def test_defaults_without_file_or_environment(tmp_path):
    settings = load_settings(environ={"MIME_MAILER_CONFIG": str(tmp_path / "missing.ini")})

    assert settings == SenderSettings()
    assert settings.credentials() is None
    assert settings.tls_policy().mode is TLSMode.OPPORTUNISTIC


def test_values_from_ini_file(tmp_path):
    path = write_config(
        tmp_path,
        "[smtp]\n"
        "host = smtp.example.com\n"
        "port = 587\n"
        "user = mailer@example.com\n"
        "password = secret\n"
        "tls_mode = required\n"
        "timeout = 30\n",
    )

    settings = load_settings(str(path), environ={})

    assert settings.host == "smtp.example.com"
    assert settings.port == 587
    assert settings.tls_mode is TLSMode.REQUIRED
    assert settings.timeout == 30.0
    credentials = settings.credentials()
    assert (credentials.username, credentials.password) == ("mailer@example.com", "secret")


def test_environment_fallbacks(tmp_path):
    environ = {
        "MIME_MAILER_CONFIG": str(tmp_path / "missing.ini"),
        "MIME_MAILER_SMTP_HOST": "env.example.com",
        "MIME_MAILER_SMTP_PORT": "2525",
        "MIME_MAILER_TLS_MODE": "IMPLICIT",
    }

    settings = load_settings(environ=environ)

    assert (settings.host, settings.port) == ("env.example.com", 2525)
    assert settings.tls_mode is TLSMode.IMPLICIT


def test_ini_wins_over_environment(tmp_path):
    path = write_config(tmp_path, "[smtp]\nhost = file.example.com\n")

    settings = load_settings(
        str(path),
        environ={"MIME_MAILER_SMTP_HOST": "env.example.com", "MIME_MAILER_SMTP_PORT": "465"},
    )

    assert settings.host == "file.example.com"
    assert settings.port == 465


def test_config_path_from_environment(tmp_path):
    path = write_config(tmp_path, "[smtp]\nport = 1025\n")

    settings = load_settings(environ={"MIME_MAILER_CONFIG": str(path)})

    assert settings.port == 1025


def test_explicit_missing_file_is_an_error(tmp_path):
    with pytest.raises(ConfigurationError):
        load_settings(str(tmp_path / "missing.ini"), environ={})


@pytest.mark.parametrize("body", ["[smtp]\nport = abc\n", "[smtp]\nport = -1\n", "[smtp]\ntimeout = 0\n"])
def test_invalid_numbers(tmp_path, body):
    path = write_config(tmp_path, body)
    with pytest.raises(ConfigurationError):
        load_settings(str(path), environ={})


def test_invalid_tls_mode(tmp_path):
    path = write_config(tmp_path, "[smtp]\ntls_mode = sometimes\n")
    with pytest.raises(ConfigurationError) as excinfo:
        load_settings(str(path), environ={})
    assert "sometimes" in str(excinfo.value)


def test_password_not_in_repr():
    assert "secret" not in repr(SenderSettings(user="u", password="secret"))
