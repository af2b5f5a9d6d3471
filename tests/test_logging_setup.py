import json
import logging

from noderun.config import load_settings
from noderun.core import logging_setup


def _record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord("noderun.test", level, __file__, 1, msg, None, None)


def test_diagnostic_lines_are_prefixed():
    formatter = logging_setup.DiagnosticFormatter()
    assert formatter.format(_record(logging.DEBUG, "Running: x")) == "# Running: x"
    assert formatter.format(_record(logging.INFO, "one\ntwo")) == "# one\n# two"


def test_warnings_carry_their_level():
    formatter = logging_setup.DiagnosticFormatter()
    assert formatter.format(_record(logging.WARNING, "careful")) == "# Warning: careful"
    assert formatter.format(_record(logging.ERROR, "broken")) == "# Error: broken"


def test_json_formatter_includes_plugin():
    record = _record(logging.INFO, "hello")
    record.plugin = "df"

    line = logging_setup.JSONFormatter().format(record)

    assert line.startswith("# ")
    payload = json.loads(line[2:])
    assert payload["message"] == "hello"
    assert payload["plugin"] == "df"
    assert payload["level"] == "INFO"


def test_get_logger_hierarchy():
    assert logging_setup.get_logger().name == "noderun"
    assert logging_setup.get_logger("sandbox").name == "noderun.sandbox"


def test_configure_writes_prefixed_lines_to_stderr(capsys):
    logging_setup.configure(load_settings(), debug=True)
    logging_setup.get_logger("test").debug("visible")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "# visible" in captured.err


def test_configure_default_level_hides_debug(capsys):
    logging_setup.configure(load_settings())
    log = logging_setup.get_logger("test")
    log.info("hidden")
    log.warning("shown")

    err = capsys.readouterr().err
    assert "hidden" not in err
    assert "# Warning: shown" in err


def test_configure_json_format(capsys):
    logging_setup.set_plugin_context("load")
    try:
        logging_setup.configure(load_settings(logging={"format": "json"}), verbose=True)
        logging_setup.get_logger("test").info("structured")
    finally:
        logging_setup.set_plugin_context(None)

    line = capsys.readouterr().err.strip().splitlines()[-1]
    payload = json.loads(line[2:])
    assert payload["message"] == "structured"
    assert payload["plugin"] == "load"


def test_custom_configuration_file(tmp_path, capsys):
    config = tmp_path / "logging.yml"
    config.write_text(
        "version: 1\n"
        "disable_existing_loggers: false\n"
        "handlers:\n"
        "  err:\n"
        "    class: logging.StreamHandler\n"
        "    stream: ext://sys.stderr\n"
        "root:\n"
        "  handlers: [err]\n",
        encoding="utf-8",
    )

    logging_setup.configure(load_settings(logging={"config_path": config}), verbose=True)
    logging_setup.get_logger("test").info("custom")

    assert "custom" in capsys.readouterr().err
