"""Shared pytest fixtures for the image resize tests."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from imageresize.config import Settings
from imageresize.main import create_app
from imageresize.service import ImageResizer
from imageresize.utils.cache import ConfigCache, MemoryTransientStore
from imageresize.utils.image_variants import ResizeExecutor
from imageresize.utils.signing import IdentifierSigner
from imageresize.utils.variants import VariantResolver

from .util import make_image

SECRET = "test-secret-key"


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    path = tmp_path / "content"
    path.mkdir()
    return path


@pytest.fixture
def source_image(content_dir: Path) -> Path:
    """A 400x200 landscape JPEG under ``uploads/``."""
    return make_image(content_dir / "uploads" / "a.jpg")


@pytest.fixture
def settings(tmp_path: Path, content_dir: Path) -> Settings:
    return Settings(
        secret_key   = SECRET,
        content_dir  = content_dir,
        content_url  = "http://testserver/content",
        db_url       = f"sqlite:///{tmp_path / 'test.db'}",
        max_failures = 3,
    )


@pytest.fixture
def signer() -> IdentifierSigner:
    return IdentifierSigner(SECRET)


@pytest.fixture
def resolver(signer: IdentifierSigner, settings: Settings) -> VariantResolver:
    return VariantResolver(signer, settings.resized_dir, settings.content_url)


@pytest.fixture
def store() -> MemoryTransientStore:
    return MemoryTransientStore()


@pytest.fixture
def cache(store: MemoryTransientStore, resolver: VariantResolver) -> ConfigCache:
    return ConfigCache(store, resolver)


@pytest.fixture
def executor(resolver: VariantResolver, settings: Settings) -> ResizeExecutor:
    return ResizeExecutor(resolver, scratch_dir=settings.scratch_path)


@pytest.fixture
def resizer(settings: Settings, store: MemoryTransientStore) -> ImageResizer:
    return ImageResizer.from_settings(settings, store=store)


@pytest.fixture
def app(settings: Settings, store: MemoryTransientStore):
    return create_app(settings, store=store)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
