import logging

import pytest

from assetpak.reporting import SilentReporter, set_reporter, set_verbosity


@pytest.fixture(autouse=True)
def _reset_reporting():
    """Each test starts with a quiet reporter and an unconfigured logger."""
    set_reporter(SilentReporter())
    set_verbosity(0)
    yield
    logger = logging.getLogger("assetpak")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    set_reporter(SilentReporter())
    set_verbosity(0)
