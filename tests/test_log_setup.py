import logging
import sys

from conftest import FROZEN_NOW
import orjson
import pytest

from exporter.driver import DriverState
from exporter.log_setup import (
    DEFAULT_LOG_CONFIG,
    JsonFormatter,
    LogConfig,
    TextFormatter,
    create_formatter,
    load_log_config,
    setup_logging,
)


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name='exporter.driver',
        level=logging.ERROR,
        pathname=__file__,
        lineno=1,
        msg='Export cycle failed',
        args=(),
        exc_info=None,
    )
    record.created = FROZEN_NOW.timestamp()
    record.__dict__.update(extra)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_bundled_config_marks_driver_and_cycle_as_context():
    assert DEFAULT_LOG_CONFIG.context_fields == ('driver', 'cycle')
    assert 'levelno' in DEFAULT_LOG_CONFIG.record_attributes


def test_json_formatter_separates_context_from_extras():
    formatter = JsonFormatter(service_name='flowmetry-exporter', version='0.1.0')

    entry = orjson.loads(
        formatter.format(
            _record(cycle=42, driver='cloudwatch', state=DriverState.RUNNING)
        )
    )

    assert entry['timestamp'] == '2024-05-17T12:30:00.000Z'
    assert entry['level'] == 'ERROR'
    assert entry['service'] == 'flowmetry-exporter'
    assert entry['logger'] == 'exporter.driver'
    assert entry['message'] == 'Export cycle failed'
    assert entry['context'] == {'driver': 'cloudwatch', 'cycle': 42}
    assert entry['extra'] == {'state': 'running'}
    assert 'levelno' not in entry['extra']


def test_json_formatter_omits_empty_sections():
    formatter = JsonFormatter(service_name='svc', version='1')

    entry = orjson.loads(formatter.format(_record()))

    assert 'context' not in entry
    assert 'extra' not in entry


def test_json_formatter_includes_exception():
    formatter = JsonFormatter(service_name='svc', version='1')
    try:
        raise RuntimeError('boom')
    except RuntimeError:
        record = _record(driver='redis_stream')
        record.exc_info = sys.exc_info()

    entry = orjson.loads(formatter.format(record))

    assert entry['exception']['type'] == 'RuntimeError'
    assert entry['exception']['message'] == 'boom'
    assert 'RuntimeError: boom' in entry['exception']['traceback']


def test_text_formatter_puts_driver_context_before_the_message():
    formatter = TextFormatter(service_name='svc', version='1')

    line = formatter.format(
        _record(error_type='BackendError', cycle=3, driver='redis_stream')
    )

    assert line == (
        '2024-05-17T12:30:00.000Z ERROR    exporter.driver '
        '[driver=redis_stream cycle=3] Export cycle failed error_type=BackendError'
    )


def test_text_formatter_without_context():
    formatter = TextFormatter(service_name='svc', version='1')

    line = formatter.format(_record(state=DriverState.STOPPED))

    assert line.endswith('exporter.driver Export cycle failed state=stopped')


def test_custom_context_fields():
    config = LogConfig(
        context_fields=('driver',),
        record_attributes=DEFAULT_LOG_CONFIG.record_attributes,
    )
    formatter = TextFormatter(service_name='svc', version='1', config=config)

    line = formatter.format(_record(driver='cloudwatch', cycle=7))

    assert '[driver=cloudwatch]' in line
    assert line.endswith('cycle=7')


def test_unknown_format_falls_back_to_text():
    assert isinstance(create_formatter('xml', 'svc', '1'), TextFormatter)
    assert isinstance(create_formatter('JSON', 'svc', '1'), JsonFormatter)


def test_setup_logging_configures_root_and_quiets_libraries(restore_root_logger):
    setup_logging(service_name='svc', level='debug', log_format='json', version='1')

    assert restore_root_logger.level == logging.DEBUG
    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0].formatter, JsonFormatter)
    for name in DEFAULT_LOG_CONFIG.quiet_loggers:
        assert logging.getLogger(name).level == logging.WARNING


def test_missing_config_file(tmp_path):
    with pytest.raises(RuntimeError, match='not found'):
        load_log_config(tmp_path / 'missing.json')


@pytest.mark.parametrize(
    'content', ['{not json', '[]', '{"context_fields": "driver"}']
)
def test_invalid_config_file(tmp_path, content):
    path = tmp_path / 'log_config.json'
    path.write_text(content)

    with pytest.raises(RuntimeError, match='Invalid log config'):
        load_log_config(path)
