import logging
import logging.handlers

import pytest

from light_node.logging import logger_config
from light_node.logging.logger_config import (
    COMPONENT_NAMES,
    get_component_logger,
    get_log_files,
    setup_application_logging,
)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    for name, handler in list(logger_config._component_handlers.items()):
        logging.getLogger(name).removeHandler(handler)
        handler.close()
    logger_config._component_handlers.clear()


def test_component_logger_names():
    assert get_component_logger('reconnect').name == 'RECONNECT'
    assert get_component_logger('session').name == 'light_node.session'


def test_unknown_component_rejected():
    with pytest.raises(ValueError, match="Unknown component"):
        get_component_logger('dashboard')


def test_setup_creates_one_file_per_component(tmp_path, restore_logging):
    setup_application_logging(log_dir=str(tmp_path / "logs"), level="DEBUG")

    files = get_log_files()
    assert set(files) == set(COMPONENT_NAMES.values())

    get_component_logger('health_poll').info("poll tick")
    logging.getLogger('light_node.session.stdio_engine').debug("child line")
    for handler in logger_config._component_handlers.values():
        handler.flush()

    assert "poll tick" in (tmp_path / "logs" / "health_poll.log").read_text(encoding="utf-8")
    assert "child line" in (tmp_path / "logs" / "session.log").read_text(encoding="utf-8")


def test_setup_twice_does_not_duplicate_handlers(tmp_path, restore_logging):
    setup_application_logging(log_dir=str(tmp_path), level="INFO")
    setup_application_logging(log_dir=str(tmp_path), level="INFO")

    component = logging.getLogger('SUPERVISOR')
    file_handlers = [h for h in component.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
    assert len(file_handlers) == 1
