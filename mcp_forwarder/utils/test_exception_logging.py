"""
Tests for exception description and logging helpers.
"""

import logging
from unittest.mock import Mock

import httpx

from mcp_forwarder.utils import mask_session, mask_token
from mcp_forwarder.utils.exception_logging import (
    describe_exception,
    log_exception_with_details,
)


class Unprintable(Exception):
    def __str__(self):
        raise RuntimeError("no str")


def test_describe_uses_message():
    assert describe_exception(ValueError("bad value")) == "bad value"


def test_describe_falls_back_to_type_name():
    assert describe_exception(httpx.ReadTimeout("")) == "ReadTimeout"


def test_describe_never_raises_on_broken_str():
    assert "Unprintable" in describe_exception(Unprintable())


def test_describe_exception_group():
    group = ExceptionGroup("tasks failed", [ValueError("a"), KeyError("b")])
    description = describe_exception(group)

    assert description.startswith("tasks failed")
    assert "ValueError: a" in description
    assert "KeyError: 'b'" in description


def test_log_single_exception():
    logger = Mock()
    error = ValueError("boom")

    log_exception_with_details(logger, "[Test]", error)

    logger.log.assert_called_once_with(
        logging.ERROR, "[Test] Exception: boom", exc_info=error
    )


def test_log_exception_group_logs_each_member():
    logger = Mock()
    group = ExceptionGroup("many", [ValueError("x"), RuntimeError("y")])

    log_exception_with_details(logger, "[Test]", group, level=logging.WARNING)

    assert logger.log.call_count == 3
    messages = [c.args[1] for c in logger.log.call_args_list]
    assert messages[0].startswith("[Test] Exception with 2 sub-exceptions")
    assert messages[1] == "[Test] Sub-exception 1: ValueError: x"
    assert messages[2] == "[Test] Sub-exception 2: RuntimeError: y"


def test_log_survives_broken_logger():
    logger = Mock()
    logger.log.side_effect = RuntimeError("handler broke")

    log_exception_with_details(logger, "[Test]", ValueError("x"))


def test_mask_session():
    assert mask_session("abcdef123456") == "abcd****"
    assert mask_session(None) == "<none>"


def test_mask_token_in_text():
    assert mask_token("token=secret-value;", "secret-value") == "token=secr****;"
    assert mask_token("unchanged", None) == "unchanged"
