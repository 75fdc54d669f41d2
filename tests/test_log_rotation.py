import os

import MySQLdb
import pytest

from mysql_agent import constants
from mysql_agent.monitor.log_rotation import LogRotator
from tests.fakes import sample


@pytest.fixture
def rotator(mysql, metrics, tmp_path):
    return LogRotator(mysql, metrics, str(tmp_path))


def test_rotate(rotator, fake_db, metrics, tmp_path):
    error_log = tmp_path / constants.MYSQL_ERROR_LOG_NAME
    slow_log = tmp_path / constants.MYSQL_SLOW_LOG_NAME
    error_log.write_text("error\n")
    slow_log.write_text("slow\n")

    assert rotator.rotate()

    assert not error_log.exists()
    assert not slow_log.exists()
    assert (tmp_path / "mysql.err.0").read_text() == "error\n"
    assert (tmp_path / "mysql.slow.0").read_text() == "slow\n"
    assert fake_db.sql == ["FLUSH LOCAL ERROR LOGS, SLOW LOGS"]
    assert sample(metrics, "mysql_agent_log_rotation_count_total") == 1
    assert sample(metrics, "mysql_agent_log_rotation_failure_count_total") == 0
    assert sample(metrics, "mysql_agent_log_rotation_duration_seconds_count") == 1


def test_missing_files_are_ignored(rotator, fake_db, metrics, tmp_path):
    assert rotator.rotate()
    assert fake_db.sql == ["FLUSH LOCAL ERROR LOGS, SLOW LOGS"]
    assert not (tmp_path / "mysql.err.0").exists()
    assert sample(metrics, "mysql_agent_log_rotation_failure_count_total") == 0


def test_existing_destination_is_overwritten(rotator, tmp_path):
    (tmp_path / "mysql.err").write_text("new\n")
    (tmp_path / "mysql.err.0").write_text("old\n")
    assert rotator.rotate()
    assert (tmp_path / "mysql.err.0").read_text() == "new\n"


def test_rename_failure(rotator, fake_db, metrics, tmp_path, mocker):
    (tmp_path / "mysql.err").write_text("error\n")
    mocker.patch("mysql_agent.monitor.log_rotation.os.replace", side_effect=PermissionError("denied"))

    assert rotator.rotate() is False
    assert fake_db.statements == []
    assert sample(metrics, "mysql_agent_log_rotation_count_total") == 1
    assert sample(metrics, "mysql_agent_log_rotation_failure_count_total") == 1
    assert sample(metrics, "mysql_agent_log_rotation_duration_seconds_count") == 0


def test_flush_failure(rotator, fake_db, metrics):
    fake_db.on(r"FLUSH", MySQLdb.OperationalError(2013, "Lost connection"))
    assert rotator.rotate() is False
    assert sample(metrics, "mysql_agent_log_rotation_failure_count_total") == 1


def test_log_files(rotator, tmp_path):
    assert rotator.log_files == [os.path.join(str(tmp_path), "mysql.err"), os.path.join(str(tmp_path), "mysql.slow")]
