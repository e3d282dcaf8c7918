# -*- coding: utf-8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Tests for logging setup.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import logging
import pytest
from codaspec.csp_logging import setup_logging
from codaspec.csp_config import default_config


@pytest.fixture
def clean_logging():
    yield
    logger_root = logging.getLogger()
    for hdlr in logger_root.handlers[:]:
        if getattr(hdlr, 'codaspec_handler', False):
            hdlr.close()
            logger_root.removeHandler(hdlr)
    logging.captureWarnings(False)


def _codaspec_handlers():
    return [
        hdlr for hdlr in logging.getLogger().handlers
        if getattr(hdlr, 'codaspec_handler', False)]


def test_setup_logging_writes_logfile(tmp_path, clean_logging):
    logfile = tmp_path / 'codaspec.log'
    logger = setup_logging(str(logfile), level='WARNING')
    assert logger.name == 'codaspec'
    logging.getLogger('csp_spectral_fit').info('fitting event ev1')
    for hdlr in _codaspec_handlers():
        hdlr.flush()
    text = logfile.read_text()
    assert 'fitting event ev1' in text
    assert 'codaspec version' in text


def test_setup_logging_replaces_handlers(tmp_path, clean_logging):
    setup_logging(str(tmp_path / 'first.log'))
    assert len(_codaspec_handlers()) == 2
    setup_logging(level='ERROR')
    handlers = _codaspec_handlers()
    assert len(handlers) == 1
    assert handlers[0].level == logging.ERROR


def test_setup_logging_level_from_config(clean_logging):
    config = default_config()
    config.log_level = 'WARNING'
    setup_logging(config=config)
    handlers = _codaspec_handlers()
    assert len(handlers) == 1
    assert handlers[0].level == logging.WARNING
    # an explicit level wins over the configuration
    setup_logging(level='DEBUG', config=config)
    assert _codaspec_handlers()[0].level == logging.DEBUG


def test_setup_logging_default_level(clean_logging):
    setup_logging()
    assert _codaspec_handlers()[0].level == logging.INFO
