from __future__ import annotations

import pytest

from mongodrop.core.config import get_settings
from mongodrop.tests.utils.auth import TEST_JWT_SECRET


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path):
    # Point every test at a private staging dir and a known token key.
    monkeypatch.setenv("MONGO_URI", "mongodb://localhost:27017/app")
    monkeypatch.setenv("DROPBOX_TOKEN", "test-dropbox-token")
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("BACKUP_STAGING_DIR", str(tmp_path / "staging"))
    monkeypatch.setenv("DROPBOX_FOLDER", "")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()
