"""
Tests for reconciliation configuration and env loading.
"""

import os
import pytest

from gradeviewer.config import ReconciliationConfig
from gradeviewer.env import database_path, load_env


class TestReconciliationConfig:
    """Test explicit run configuration."""

    def test_defaults(self):
        config = ReconciliationConfig(course_id="7", enrol_id="9")

        assert config.max_workers == 1
        assert config.per_page == 10
        assert config.match_threshold == 0.3

    @pytest.mark.parametrize("workers", [0, 9])
    def test_worker_bounds(self, workers):
        with pytest.raises(ValueError):
            ReconciliationConfig(course_id="7", enrol_id="9", max_workers=workers)

    def test_ids_required(self):
        with pytest.raises(ValueError):
            ReconciliationConfig(course_id=" ", enrol_id="9")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MOODLE_COURSE_ID", "7")
        monkeypatch.setenv("MOODLE_ENROL_ID", "9")
        monkeypatch.setenv("RECONCILE_MAX_WORKERS", "4")
        monkeypatch.setenv("MOODLE_PER_PAGE", "25")

        config = ReconciliationConfig.from_env()

        assert (config.course_id, config.enrol_id, config.max_workers, config.per_page) == ("7", "9", 4, 25)

    def test_arguments_win_over_env(self, monkeypatch):
        monkeypatch.setenv("MOODLE_COURSE_ID", "7")
        monkeypatch.setenv("MOODLE_ENROL_ID", "9")
        monkeypatch.delenv("RECONCILE_MAX_WORKERS", raising=False)

        config = ReconciliationConfig.from_env(course_id="70", max_workers=2)

        assert config.course_id == "70"
        assert config.enrol_id == "9"
        assert config.max_workers == 2

    def test_from_env_missing(self, monkeypatch):
        monkeypatch.delenv("MOODLE_COURSE_ID", raising=False)
        monkeypatch.delenv("MOODLE_ENROL_ID", raising=False)

        with pytest.raises(ValueError):
            ReconciliationConfig.from_env()


class TestEnvLoading:
    """Test .env.local / .env precedence."""

    def test_local_overrides_env_file(self, tmp_path, monkeypatch):
        for name in ("GRADEVIEWER_TEST_VALUE", "GRADEVIEWER_TEST_ONLY_ENV"):
            # register the name so teardown removes what load_env sets
            monkeypatch.setenv(name, "unset")
            monkeypatch.delenv(name)
        (tmp_path / ".env").write_text("GRADEVIEWER_TEST_VALUE=from-env\nGRADEVIEWER_TEST_ONLY_ENV=yes\n")
        (tmp_path / ".env.local").write_text("GRADEVIEWER_TEST_VALUE=from-local\n")

        load_env(tmp_path)

        assert os.environ["GRADEVIEWER_TEST_VALUE"] == "from-local"
        assert os.environ["GRADEVIEWER_TEST_ONLY_ENV"] == "yes"

    def test_missing_files_ignored(self, tmp_path):
        load_env(tmp_path)

    def test_database_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GRADEVIEWER_DB", str(tmp_path / "x.db"))
        assert database_path() == tmp_path / "x.db"

        monkeypatch.delenv("GRADEVIEWER_DB")
        assert str(database_path()) == os.path.join("data", "gradeviewer.db")
