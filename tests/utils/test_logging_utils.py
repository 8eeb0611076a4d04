import logging
from pathlib import Path

import pytest

from caller_trust.utils.logging_utils import DEBUG_LOG_FORMAT, DEFAULT_LOG_FORMAT, setup_global_logging


# Clean up logging state before each test
@pytest.fixture(autouse=True)
def reset_logging_state():
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.WARNING)
    logging.getLogger("caller_trust").setLevel(logging.NOTSET)
    yield
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.WARNING)
    logging.getLogger("caller_trust").setLevel(logging.NOTSET)


def file_handlers():
    return [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]


class TestSetupGlobalLogging:

    def test_defaults_without_config(self, tmp_path: Path, capsys):
        default_log_file = tmp_path / "default.log"
        setup_global_logging(
            config_path=str(tmp_path / "missing.ini"),
            default_level=logging.INFO,
            log_to_file=True,
            default_log_file_path=str(default_log_file),
        )

        root_logger = logging.getLogger()
        assert root_logger.getEffectiveLevel() == logging.INFO
        [file_handler] = file_handlers()
        assert Path(file_handler.baseFilename).resolve() == default_log_file.resolve()
        for handler in root_logger.handlers:
            assert handler.formatter._fmt == DEFAULT_LOG_FORMAT

        logging.getLogger("caller_trust.test").info("Defaults test message.")
        assert "Defaults test message." in capsys.readouterr().err
        file_handler.flush()
        assert "Defaults test message." in default_log_file.read_text()

    def test_debug_level_without_file(self, tmp_path: Path, capsys):
        config_path = tmp_path / "config_debug.ini"
        config_path.write_text("[Logging]\nlevel = DEBUG\nlog_to_file = False\n")
        setup_global_logging(config_path=str(config_path))

        root_logger = logging.getLogger()
        assert root_logger.getEffectiveLevel() == logging.DEBUG
        assert not file_handlers()
        assert root_logger.handlers[0].formatter._fmt == DEBUG_LOG_FORMAT

        logging.debug("This is a debug message.")
        assert "This is a debug message." in capsys.readouterr().err

    def test_file_path_and_format_from_config(self, tmp_path: Path, capsys):
        config_path = tmp_path / "config_file.ini"
        log_path = tmp_path / "nested" / "custom.log"
        config_path.write_text(
            "[Logging]\n"
            "level = WARNING\n"
            "log_to_file = true\n"
            f"log_file_path = {log_path}\n"
            "log_format = %%(levelname)s|%%(message)s\n"
        )
        setup_global_logging(config_path=str(config_path))

        [file_handler] = file_handlers()
        assert Path(file_handler.baseFilename).resolve() == log_path.resolve()
        logging.warning("Warning for file and console.")
        assert "WARNING|Warning for file and console." in capsys.readouterr().err
        file_handler.flush()
        assert "WARNING|Warning for file and console." in log_path.read_text()

    def test_unknown_level_falls_back_to_default(self, tmp_path: Path, caplog):
        config_path = tmp_path / "config_invalid.ini"
        config_path.write_text("[Logging]\nlevel = NOTALEVEL\nlog_to_file = false\n")
        with caplog.at_level(logging.WARNING):
            setup_global_logging(config_path=str(config_path), default_level=logging.INFO)
            root_level = logging.getLogger().getEffectiveLevel()
        assert root_level == logging.INFO
        assert any("Unknown log level 'NOTALEVEL'" in r.getMessage() for r in caplog.records)

    def test_file_handler_error_keeps_console(self, tmp_path: Path, caplog, capsys):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        config_path = tmp_path / "config_dir_error.ini"
        config_path.write_text(f"[Logging]\nlevel = INFO\nlog_to_file = true\nlog_file_path = {blocker / 'x.log'}\n")

        setup_global_logging(config_path=str(config_path), default_level=logging.INFO)

        assert any("Could not configure file logging" in r.getMessage() for r in caplog.records)
        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 1
        assert not file_handlers()
        logging.info("Console logging still works.")
        assert "Console logging still works." in capsys.readouterr().err

    def test_malformed_config_uses_defaults(self, tmp_path: Path, caplog):
        config_path = tmp_path / "malformed.ini"
        config_path.write_text("this is not a valid ini file\n[Malformed")
        with caplog.at_level(logging.WARNING):
            setup_global_logging(config_path=str(config_path), default_level=logging.INFO, log_to_file=False)
            root_level = logging.getLogger().getEffectiveLevel()
        assert any("Error reading logging configuration" in r.getMessage() for r in caplog.records)
        assert root_level == logging.INFO


class TestPackageLogger:

    def test_package_level_only_affects_package_loggers(self, tmp_path: Path, capsys):
        config_path = tmp_path / "config_package.ini"
        config_path.write_text("[Logging]\nlevel = INFO\npackage_level = DEBUG\nlog_to_file = false\n")
        package_logger = setup_global_logging(config_path=str(config_path))

        assert package_logger.name == "caller_trust"
        assert logging.getLogger().getEffectiveLevel() == logging.INFO
        assert logging.getLogger("caller_trust.simulation_runner").getEffectiveLevel() == logging.DEBUG
        assert logging.getLogger().handlers[0].formatter._fmt == DEBUG_LOG_FORMAT

        logging.getLogger("caller_trust.simulation_runner").debug("Package debug message.")
        logging.getLogger("some_library").debug("Library debug message.")
        err = capsys.readouterr().err
        assert "Package debug message." in err
        assert "Library debug message." not in err

    def test_package_level_argument(self, tmp_path: Path):
        setup_global_logging(config_path=str(tmp_path / "missing.ini"), log_to_file=False,
                             package_level=logging.WARNING)
        assert logging.getLogger("caller_trust.trust_score_optimizer").getEffectiveLevel() == logging.WARNING
        assert logging.getLogger().getEffectiveLevel() == logging.INFO

    def test_setup_clears_previous_package_level(self, tmp_path: Path):
        logging.getLogger("caller_trust").setLevel(logging.ERROR)
        setup_global_logging(config_path=str(tmp_path / "missing.ini"), log_to_file=False)
        assert logging.getLogger("caller_trust").level == logging.NOTSET
        assert logging.getLogger("caller_trust.accuracy").getEffectiveLevel() == logging.INFO

    def test_unknown_package_level_is_ignored(self, tmp_path: Path, caplog):
        config_path = tmp_path / "config_bad_package.ini"
        config_path.write_text("[Logging]\nlevel = INFO\npackage_level = LOUD\nlog_to_file = false\n")
        with caplog.at_level(logging.WARNING):
            setup_global_logging(config_path=str(config_path))
            package_level = logging.getLogger("caller_trust").level
        assert package_level == logging.NOTSET
        assert any("Unknown log level 'LOUD'" in r.getMessage() for r in caplog.records)
