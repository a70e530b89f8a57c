import logging

import pytest

from socketio_server.server import parse_args
from utils.config_loader import ConfigManager
from utils.log_utils import setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    # setup_logging replaces root handlers; keep pytest's own out of its reach
    root.handlers[:] = []
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_writes_to_file(tmp_path):
    log_file = tmp_path / "relay.log"
    setup_logging("DEBUG", log_file=str(log_file))

    logging.getLogger("core.relay").debug("relayed notification")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger().level == logging.DEBUG
    assert "relayed notification" in log_file.read_text()
    assert logging.getLogger("engineio").level == logging.WARNING


def test_setup_logging_rejects_unknown_level():
    with pytest.raises(ValueError):
        setup_logging("CHATTY")


def test_parse_args_defaults_come_from_config(tmp_path):
    config = ConfigManager(config_file=str(tmp_path / "missing.json"), use_env=False)
    config.set("server", "port", 9090)

    args = parse_args(config, [])
    assert (args.host, args.port, args.log_level) == ("0.0.0.0", 9090, "INFO")

    args = parse_args(config, ["--port", "7000", "--log-level", "DEBUG"])
    assert (args.port, args.log_level) == (7000, "DEBUG")
