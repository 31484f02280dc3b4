from __future__ import annotations

import sys

import pytest

from mongodrop.core.config import get_settings
from mongodrop.services import coordinator as coordinator_module
from mongodrop.tests.utils.fakes import RecordingStore, StubRunner, frozen_clock
import scripts.backup_create as backup_create
import scripts.backup_list as backup_list
import scripts.backup_restore as backup_restore


def _patch_initialize(monkeypatch, module, store: RecordingStore, runner: StubRunner) -> None:
    real_initialize = coordinator_module.initialize

    def _initialize(settings):
        return real_initialize(settings, store=store, runner=runner, clock=frozen_clock)

    monkeypatch.setattr(module, "initialize", _initialize)


def test_backup_create_prints_name(monkeypatch, capsys) -> None:
    store = RecordingStore()
    _patch_initialize(monkeypatch, backup_create, store, StubRunner())
    monkeypatch.setattr(sys, "argv", ["backup_create.py"])

    backup_create.main()

    assert capsys.readouterr().out.strip() == "backup_name=backup_2024-01-01_00-00-00.gz"
    assert len(store.uploads) == 1


def test_backup_create_exits_on_missing_config(monkeypatch) -> None:
    monkeypatch.delenv("MONGO_URI")
    get_settings.cache_clear()
    monkeypatch.setattr(sys, "argv", ["backup_create.py"])
    with pytest.raises(SystemExit) as exc_info:
        backup_create.main()
    assert exc_info.value.code == 1


def test_backup_restore_requires_confirmation(monkeypatch) -> None:
    runner = StubRunner()
    _patch_initialize(monkeypatch, backup_restore, RecordingStore({"/a.gz": b"x"}), runner)
    monkeypatch.setattr(sys, "argv", ["backup_restore.py", "--name", "a.gz"])
    with pytest.raises(SystemExit) as exc_info:
        backup_restore.main()
    assert exc_info.value.code == 2
    assert runner.calls == []


def test_backup_restore_runs_with_confirmation(monkeypatch, capsys) -> None:
    runner = StubRunner()
    _patch_initialize(monkeypatch, backup_restore, RecordingStore({"/a.gz": b"x"}), runner)
    monkeypatch.setattr(sys, "argv", ["backup_restore.py", "--name", "a.gz", "--yes"])

    backup_restore.main()

    assert capsys.readouterr().out.strip() == "restored=a.gz"
    assert len(runner.calls) == 1


def test_backup_list_prints_json(monkeypatch, capsys) -> None:
    store = RecordingStore({"/backup_2024-01-01_00-00-00.gz": b"abc", "/other.txt": b"x"})
    _patch_initialize(monkeypatch, backup_list, store, StubRunner())
    monkeypatch.setattr(sys, "argv", ["backup_list.py"])

    backup_list.main()

    out = capsys.readouterr().out
    assert '"name": "backup_2024-01-01_00-00-00.gz"' in out
    assert "other.txt" not in out
