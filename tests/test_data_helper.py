import json
import pathlib

import pytest

from stakefarm.helpers import DataHelper, LoggingHelper, TimeHelper

BUNDLED_DATA = pathlib.Path(__file__).resolve().parent.parent / "stakefarm" / "data"


@pytest.fixture
def logger():
    return LoggingHelper(None)


def test_bundled_token_types_load_sorted_by_unlock_level(logger):
    helper = DataHelper(BUNDLED_DATA, logger)
    helper.load_all_data()

    levels = [t.unlock_level for t in helper.token_types]
    assert levels == sorted(levels)
    assert helper.get_token_type("BASE").growth_time_ms == 30000
    assert [t.id for t in helper.get_available_token_types(1)] == ["base"]
    assert not hasattr(helper.token_types[0], "base_reward")


def test_missing_data_directory_uses_fallback(logger, tmp_path):
    helper = DataHelper(tmp_path / "missing", logger)
    helper.load_all_data()

    assert [t.id for t in helper.token_types] == ["base", "eth", "usdc", "onchain"]


def test_malformed_entries_are_skipped(logger, tmp_path):
    (tmp_path / "token_types.json").write_text(json.dumps([
        {"id": "base", "growth_time_ms": 1000},
        {"id": "bogus", "growth_time_ms": 1000, "colour": "red"},
    ]), encoding="utf-8")

    helper = DataHelper(tmp_path, logger)
    helper.load_all_data()

    assert [t.id for t in helper.token_types] == ["base"]
    assert helper.get_token_type("base").name == "BASE"


def test_format_remaining():
    assert TimeHelper.format_remaining(0) == "0:00"
    assert TimeHelper.format_remaining(65_400) == "1:05"
    assert TimeHelper.format_remaining(-10) == "0:00"


def test_console_logging_without_bot(capsys):
    logger = LoggingHelper(None, channel_level="WARNING")

    logger.log("plot 3 ready", "debug")

    assert "[LOG|DEBUG|" in capsys.readouterr().out
    assert not logger._goes_to_channel("INFO")
    assert logger._goes_to_channel("CRITICAL")
