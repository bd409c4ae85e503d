import logging

import pytest

from tracehooks import HookDispatcher, HookImports, Location, MemorySink


@pytest.fixture(autouse=True)
def reset_tracehooks_logger():
    yield
    logger = logging.getLogger("tracehooks")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def dispatcher(sink):
    return HookDispatcher(sink)


@pytest.fixture
def imports(dispatcher):
    return HookImports(dispatcher)


@pytest.fixture
def loc():
    def _loc(func=0, instr=3):
        return Location(func=func, instr=instr)

    return _loc
