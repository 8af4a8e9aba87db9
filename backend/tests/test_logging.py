"""
Tests for the structured logging setup.
"""

import logging

import structlog

from coworking.core.logging import _service_context, get_logger, setup_logging


def test_service_context_is_added_without_overriding(settings):
    add_context = _service_context(settings)

    event = add_context(None, "info", {"event": "lock_added", "storage": "redis"})

    assert event["service"] == settings.APP_NAME
    assert event["environment"] == settings.ENVIRONMENT
    assert event["storage"] == "redis"


def test_setup_logging_is_idempotent():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging()
        setup_logging()

        assert len(root.handlers) == 1
        get_logger(__name__).info("logging_configured")
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
        structlog.reset_defaults()
