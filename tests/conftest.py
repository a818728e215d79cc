import os

os.environ.setdefault("ZK_ELECTION_QUIET", "1")

import pytest

from fakes import FakeCoordinator, FakeEnsemble, RecordingListener


@pytest.fixture
def ensemble() -> FakeEnsemble:
    return FakeEnsemble()


@pytest.fixture
def coordinator(ensemble: FakeEnsemble) -> FakeCoordinator:
    return FakeCoordinator(ensemble)


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()
