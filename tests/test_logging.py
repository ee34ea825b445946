"""
Tests for logging setup and handlers.
"""

import json
import logging

import pytest

from backend.core.logging import (
    SQLiteLogHandler,
    level_from_string,
    setup_logging,
)
from backend.store import SolarStore


@pytest.fixture
def store(tmp_path):
    return SolarStore(str(tmp_path / "solarplant.db"))


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.getLogger("solarplant").setLevel(logging.NOTSET)


class TestLevelFromString:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("debug", logging.DEBUG),
            ("WARN", logging.WARNING),
            ("error", logging.ERROR),
            ("loud", logging.INFO),
            (None, logging.INFO),
        ],
    )
    def test_levels(self, value, expected):
        assert level_from_string(value) == expected


class TestSQLiteLogHandler:
    def test_writes_records_with_extra_attrs(self, store):
        handler = SQLiteLogHandler(store, level=logging.INFO)
        log = logging.getLogger("solarplant.test.sqlite")
        log.setLevel(logging.DEBUG)
        log.addHandler(handler)
        try:
            log.debug("too quiet")
            log.info("planned %d hours", 8, extra={"hours": 8})
        finally:
            log.removeHandler(handler)

        df = store.get_log_entries()
        assert df["message"].tolist() == ["planned 8 hours"]
        assert df["level"].tolist() == ["INFO"]
        assert json.loads(df["attrs"].iloc[0]) == {"hours": 8}

    def test_store_records_not_written(self, store):
        handler = SQLiteLogHandler(store, level=logging.DEBUG)
        record = logging.makeLogRecord({"name": "solarplant.store", "msg": "saving", "levelno": 20})
        handler.emit(record)
        assert store.get_log_entries().empty


class TestSetupLogging:
    def test_installs_handlers(self, tmp_path, store, restore_root_logger):
        config = {
            "logging": {
                "console_level": "DEBUG",
                "db_level": "WARNING",
                "file": str(tmp_path / "logs" / "solarplant.log"),
            }
        }
        before = list(restore_root_logger.handlers)
        setup_logging(config, store)

        assert logging.getLogger("solarplant").level == logging.DEBUG
        added = [type(h).__name__ for h in restore_root_logger.handlers if h not in before]
        assert added == ["StreamHandler", "TimedRotatingFileHandler", "SQLiteLogHandler"]

        logging.getLogger("solarplant.test").warning("written to db")
        logging.getLogger("solarplant.test").info("console only")
        assert store.get_log_entries()["message"].tolist() == ["written to db"]
        assert (tmp_path / "logs" / "solarplant.log").exists()

    def test_no_file_or_store_installs_console_only(self, restore_root_logger):
        before = list(restore_root_logger.handlers)
        setup_logging({"logging": {"file": None}})

        added = [h for h in restore_root_logger.handlers if h not in before]
        assert [type(h).__name__ for h in added] == ["StreamHandler"]
