import pytest
from drive_forecast.app.coordinates import Location
from fakes import BERGEN, OSLO, FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def oslo():
    return Location(OSLO, "Oslo")


@pytest.fixture
def bergen():
    return Location(BERGEN, "Bergen")
