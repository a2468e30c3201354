import logging
import sys

from utilities.logsetup import log_uncaught_exception


def test_uncaught_exception_is_logged(caplog):
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        exc_info = sys.exc_info()

    with caplog.at_level(logging.ERROR):
        log_uncaught_exception(*exc_info)

    assert "Uncaught exception" in caplog.text
    assert "boom" in caplog.text


def test_keyboard_interrupt_is_ignored(caplog):
    with caplog.at_level(logging.ERROR):
        log_uncaught_exception(KeyboardInterrupt, KeyboardInterrupt(), None)

    assert caplog.text == ""
