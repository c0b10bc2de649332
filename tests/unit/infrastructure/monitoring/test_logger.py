# nosec B101


import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from infrastructure.monitoring import logger as logger_module
from infrastructure.monitoring.logger import JSONFormatter, setup_logging


@pytest.fixture
def isolated_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    logger_module.app_logger = None
    yield
    for handler in root.handlers:
        if isinstance(handler, RotatingFileHandler):
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    for name in (logger_module.PROVIDER_LOGGER_NAME, logger_module.PIPELINE_LOGGER_NAME):
        for handler in logging.getLogger(name).handlers:
            handler.close()
        logging.getLogger(name).handlers.clear()
    logger_module.app_logger = None


def test_json_formatter_includes_exception():
    try:
        raise ValueError('bad rate')
    except ValueError:
        record = logging.getLogger('test').makeRecord(
            'test', logging.ERROR, __file__, 10, 'failed %s', ('USD',), sys.exc_info()
        )

    entry = json.loads(JSONFormatter().format(record))

    assert entry['level'] == 'ERROR'
    assert entry['message'] == 'failed USD'
    assert entry['exception']['type'] == 'ValueError'


def test_json_formatter_writes_context_fields():
    record = logging.getLogger('test').makeRecord(
        'test', logging.INFO, __file__, 1, 'fetched', (), None,
        extra={'provider': 'open-er-api', 'base_currency': 'USD', 'unrelated': 1},
    )

    entry = json.loads(JSONFormatter().format(record))

    assert entry['context'] == {'base_currency': 'USD', 'provider': 'open-er-api'}


def test_setup_logging_creates_log_files(tmp_path, isolated_logging):
    setup_logging(str(tmp_path), 'WARNING')

    logging.getLogger('application.services.resolution_engine').warning('Live rates unavailable')
    logging.getLogger(logger_module.PROVIDER_LOGGER_NAME).info('GET latest/USD')

    for handler in logging.getLogger().handlers:
        handler.flush()
    for handler in logging.getLogger(logger_module.PROVIDER_LOGGER_NAME).handlers:
        handler.flush()

    app_log = (tmp_path / 'system' / 'app.log').read_text(encoding='utf-8')
    errors_log = (tmp_path / 'errors' / 'errors.log').read_text(encoding='utf-8')
    api_log = (tmp_path / 'api' / 'api_calls.log').read_text(encoding='utf-8')
    assert 'Live rates unavailable' in app_log
    assert 'Live rates unavailable' in errors_log
    assert 'GET latest/USD' in api_log
    assert 'GET latest/USD' not in errors_log


def test_setup_logging_is_configured_once(tmp_path, isolated_logging):
    first = setup_logging(str(tmp_path))
    second = setup_logging(str(tmp_path / 'elsewhere'))

    assert first is second
