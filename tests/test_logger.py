# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
import logging

from mime_mailer.logger import configure_logging, get_logger


def test_get_logger_reuses_existing_logger():
    logger = get_logger("TestLogger")
    handler_count = len(logger.handlers)

    same_logger = get_logger("TestLogger")
    assert logger is same_logger
    assert len(same_logger.handlers) == handler_count


def test_configure_logging_sets_root_level():
    root = logging.getLogger()

    configure_logging("debug")
    assert root.level == logging.DEBUG

    configure_logging("not-a-level")
    assert root.level == logging.INFO
