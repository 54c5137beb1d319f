import pytest

from fleet.storage import Storage

from tests.factories import NOW


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def storage(tmp_path):
    return Storage(str(tmp_path / "fleet_test.sqlite"))
