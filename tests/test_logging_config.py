"""Tests for package logging configuration."""

import io
import logging
import tempfile
from pathlib import Path

import pytest

import composite_pta
from composite_pta.logging_config import configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    package_logger = logging.getLogger("composite_pta")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


class TestConfigureLogging:
    """Test configure_logging."""

    def test_stream_output(self):
        """Test records from package modules reach the configured stream."""
        stream = io.StringIO()
        configure_logging(level="INFO", stream=stream, format_string="%(levelname)s:%(message)s")

        get_logger("composite_pta.solver").info("curve ready")
        get_logger("composite_pta.solver").debug("hidden")

        assert stream.getvalue() == "INFO:curve ready\n"

    def test_root_logger_untouched(self):
        """Test only the package logger gets handlers."""
        root_handlers = list(logging.getLogger().handlers)
        logger = configure_logging(level=logging.DEBUG, stream=io.StringIO())

        assert logger.name == "composite_pta"
        assert logging.getLogger().handlers == root_handlers
        assert not logger.propagate

    def test_reconfigure_replaces_handlers(self):
        """Test calling twice does not duplicate output."""
        stream = io.StringIO()
        configure_logging(stream=stream)
        logger = configure_logging(level="WARNING", stream=stream, format_string="%(message)s")
        get_logger("composite_pta.fitting").warning("once")

        assert len(logger.handlers) == 1
        assert stream.getvalue() == "once\n"

    def test_log_file(self):
        """Test logging to a file in a new directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = Path(tmpdir) / "logs" / "session.log"
            logger = configure_logging(level="INFO", stream=io.StringIO(), log_file=log_path)
            get_logger("composite_pta.fitting").info("fit started")
            for handler in logger.handlers:
                handler.flush()

            assert "fit started" in log_path.read_text()
            configure_logging(stream=io.StringIO())

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            configure_logging(level="CHATTY")


class TestPackage:
    """Test the package namespace."""

    def test_version(self):
        assert composite_pta.__version__ == "0.1.0"

    def test_lazy_exports(self):
        from composite_pta.solver import ModelSolver

        assert composite_pta.ModelSolver is ModelSolver
        assert composite_pta.ModelVariant.from_model_id(8).model_id == 8

    def test_unknown_attribute(self):
        with pytest.raises(AttributeError):
            composite_pta.does_not_exist
