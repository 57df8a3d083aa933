import random

import pytest

from echoverse.app import create_app
from echoverse.config import Settings
from echoverse.context import AppContext
from echoverse.db import Store
from echoverse.generator import NarrativeGenerator


@pytest.fixture
def settings(tmp_path):
    return Settings(database_path=str(tmp_path / "echoverse-test.db"))


@pytest.fixture
def ctx(settings):
    return AppContext.build(settings, generator=NarrativeGenerator(rng=random.Random(1234)))


@pytest.fixture
def app(ctx):
    return create_app(ctx)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(tmp_path):
    s = Store(str(tmp_path / "store-test.db"))
    s.bootstrap_schema()
    return s
