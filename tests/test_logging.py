import json
import logging

from libs.logging import ErrorLog, _JsonFormatter, log_duration, setup_logging


def test_error_log_is_bounded_and_newest_first() -> None:
    log = ErrorLog(max_errors=2)
    log.log(ValueError("one"), "first")
    log.log(RuntimeError("two"), "second")
    log.log("three", "third")

    errors = log.get_errors()
    assert len(log) == 2
    assert [e["message"] for e in errors] == ["three", "two"]
    assert errors[1]["type"] == "RuntimeError"
    assert errors[0]["type"] == "str"
    assert json.loads(log.export())[0]["context"] == "third"

    log.clear()
    assert log.get_errors() == []


def test_error_log_emits_on_errors_logger(caplog) -> None:
    with caplog.at_level(logging.ERROR, logger="errors"):
        ErrorLog().log(KeyError("k"), "somewhere")
    record = caplog.records[0]
    assert record.name == "errors"
    assert record.context == "somewhere"


def test_json_formatter_merges_extras() -> None:
    record = logging.LogRecord("libs.store", logging.INFO, __file__, 1, "saved", None, None)
    record.operation = "saveData"
    payload = json.loads(_JsonFormatter().format(record))

    assert payload["message"] == "saved"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "libs.store"
    assert payload["operation"] == "saveData"
    assert payload["service"] == "qa-synthesizer"


def test_json_formatter_reprs_unserializable_extras() -> None:
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "m", None, None)
    record.thing = object()
    payload = json.loads(_JsonFormatter().format(record))
    assert payload["thing"].startswith("<object object")


def test_setup_logging_installs_json_handler() -> None:
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    try:
        setup_logging()
        assert isinstance(root.handlers[0].formatter, _JsonFormatter)
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)


def test_log_duration_reports_timing(caplog) -> None:
    @log_duration("work")
    def work(x):
        return x * 2

    with caplog.at_level(logging.DEBUG):
        assert work(21) == 42
    timing = [r for r in caplog.records if r.getMessage() == "timing"]
    assert timing[0].operation == "work"
    assert timing[0].duration_ms >= 0
