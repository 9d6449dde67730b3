import pytest

from .fakes import PythonFactory, python as _python


@pytest.fixture
def python() -> PythonFactory:
    return _python
