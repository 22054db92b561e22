from __future__ import annotations

import os
import unittest
from unittest.mock import patch

import tests  # noqa: F401

from pydantic import ValidationError

from salesreport.settings import Settings

SECRET = "s" * 32


class SettingsValidationTests(unittest.TestCase):
    def test_defaults_are_valid(self) -> None:
        settings = Settings(session_secret=SECRET, _env_file=None)
        self.assertEqual(settings.session_max_age_days, 30)
        self.assertTrue(settings.database_url.startswith("postgresql"))

    def test_app_env_defaults_to_development(self) -> None:
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("APP_ENV", None)
            settings = Settings(session_secret=SECRET, _env_file=None)
        self.assertEqual(settings.app_env, "development")

    def test_database_url_must_be_postgres(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(session_secret=SECRET, database_url="mysql://user@localhost/db", _env_file=None)
        with self.assertRaises(ValidationError):
            Settings(session_secret=SECRET, database_url="not a url", _env_file=None)

    def test_postgres_driver_suffix_is_accepted(self) -> None:
        settings = Settings(
            session_secret=SECRET,
            database_url="postgresql+psycopg://app:pw@db:5432/reports",
            _env_file=None,
        )
        self.assertEqual(settings.database_url, "postgresql+psycopg://app:pw@db:5432/reports")

    def test_session_secret_needs_32_characters(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(session_secret="short-secret", _env_file=None)

    def test_app_env_is_restricted(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(session_secret=SECRET, app_env="staging", _env_file=None)

    def test_base_public_url_must_be_http(self) -> None:
        with self.assertRaises(ValidationError):
            Settings(session_secret=SECRET, base_public_url="ftp://example.com", _env_file=None)
        settings = Settings(session_secret=SECRET, base_public_url="https://reports.example.com/", _env_file=None)
        self.assertEqual(settings.base_public_url, "https://reports.example.com")


if __name__ == "__main__":
    unittest.main()
