from unittest import mock

import pytest


@pytest.fixture(autouse=True)
def no_poll_wait():
    """Challenge polling never really sleeps in tests."""
    with mock.patch("minacme.client.time.sleep") as mocked:
        yield mocked
