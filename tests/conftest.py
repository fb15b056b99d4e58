import pytest

from adlinkton import create_app
from adlinkton.config import TestConfig
from adlinkton.extensions import db


@pytest.fixture
def app(tmp_path):
    class _Config(TestConfig):
        FAVICON_STORAGE_DIR = str(tmp_path / "favicons")

    app = create_app(_Config)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def offline_favicons(monkeypatch):
    monkeypatch.setattr(
        "adlinkton.services.favicons.fetch_with_timeout",
        lambda *_args, **_kwargs: None,
    )
