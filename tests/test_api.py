import io
from unittest.mock import Mock
from urllib.parse import quote

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from imageresize.config import CACHE_PREFIX
from imageresize.main import create_app

from .util import split_resizer_url, target_of


class BrokenEngine:
    def open(self, path):
        raise OSError("corrupt image")


@pytest.fixture
def resizer(app):
    return app.state.resizer


def test_signed_link_redirects_to_materialized_file(client, resizer, source_image):
    url = resizer.image_url("uploads/a.jpg", 200, 100, {"mode": "auto", "extension": "jpg", "quality": 90})
    assert url.startswith("/orgnk-imageresize/")
    canonical = target_of(url)

    resp = client.get(url, follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == canonical
    assert canonical.startswith("http://testserver/content/resized-uploads/a_resized_")

    # Fetching the signed link again still lands on the same file
    again = client.get(url, follow_redirects=False)
    assert again.status_code == 302
    assert again.headers["location"] == canonical

    # The canonical URL is a plain static file now
    static = client.get(canonical)
    assert static.status_code == 200
    assert static.headers["content-type"] == "image/jpeg"
    with Image.open(io.BytesIO(static.content)) as img:
        assert img.size == (200, 100)

    # And callers get the direct URL from now on
    assert resizer.image_url("uploads/a.jpg", 200, 100, {"quality": 90}) == canonical


def test_tampered_identifier_is_not_found(app, resizer, source_image):
    url = resizer.image_url("uploads/a.jpg", 200, 100)
    identifier, encoded = split_resizer_url(url)
    tampered = ("0" if identifier[5] != "0" else "1").join([identifier[:5], identifier[6:]])

    spy = Mock(wraps=resizer.cache.store_backend)
    resizer.cache.store_backend = spy

    resp = TestClient(app).get(f"/orgnk-imageresize/{tampered}/{encoded}", follow_redirects=False)
    assert resp.status_code == 404
    spy.get.assert_not_called()
    spy.delete.assert_not_called()


def test_tampered_target_is_not_found(client, resizer, source_image):
    url = resizer.image_url("uploads/a.jpg", 200, 100)
    identifier, encoded = split_resizer_url(url)
    other = quote(target_of(url).replace("a_resized", "b_resized"), safe="")

    resp = client.get(f"/orgnk-imageresize/{identifier}/{other}", follow_redirects=False)
    assert resp.status_code == 404


def test_malformed_identifier_is_not_found(client, resizer, source_image):
    url = resizer.image_url("uploads/a.jpg", 200, 100)
    _, encoded = split_resizer_url(url)
    resp = client.get(f"/orgnk-imageresize/not-an-identifier/{encoded}", follow_redirects=False)
    assert resp.status_code == 404


def test_expired_link(client, resizer, store, source_image):
    url = resizer.image_url("uploads/a.jpg", 200, 100)
    identifier, _ = split_resizer_url(url)
    store.delete(CACHE_PREFIX + identifier)

    resp = client.get(url, follow_redirects=False)
    assert resp.status_code == 410
    assert "expired" in resp.json()["detail"]


def test_resize_failure_keeps_link_usable(client, resizer, store, source_image):
    url = resizer.image_url("uploads/a.jpg", 200, 100)
    identifier, _ = split_resizer_url(url)
    engine = resizer.executor.engine
    resizer.executor.engine = BrokenEngine()

    resp = client.get(url, follow_redirects=False)
    assert resp.status_code == 500
    assert store.get(CACHE_PREFIX + identifier) is not None

    resizer.executor.engine = engine
    resp = client.get(url, follow_redirects=False)
    assert resp.status_code == 302


def test_double_encoded_target(client, resizer, source_image):
    url = resizer.image_url("uploads/a.jpg", 200, 100)
    identifier, encoded = split_resizer_url(url)

    resp = client.get(f"/orgnk-imageresize/{identifier}/{quote(encoded, safe='')}", follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers["location"] == target_of(url)


def test_crop_link(client, resizer, source_image):
    url = resizer.image_url("uploads/a.jpg", 64, 64, {"offset": [20, 20]}, action="crop")
    resp = client.get(url)
    assert resp.status_code == 200
    with Image.open(io.BytesIO(resp.content)) as img:
        assert img.size == (64, 64)


def test_sql_backed_store(settings, source_image):
    client = TestClient(create_app(settings))
    resizer = client.app.state.resizer
    url = resizer.image_url("uploads/a.jpg", 100, 50)

    resp = client.get(url, follow_redirects=False)
    assert resp.status_code == 302
    assert resizer.cache.store_backend.get(CACHE_PREFIX + split_resizer_url(url)[0]) is None


def test_static_serving_can_be_disabled(settings, store, source_image):
    settings.serve_static = False
    client = TestClient(create_app(settings, store=store))
    resizer = client.app.state.resizer
    url = resizer.image_url("uploads/a.jpg", 100, 50)

    resp = client.get(url, follow_redirects=False)
    assert resp.status_code == 302
    assert client.get(resp.headers["location"]).status_code == 404


def test_working_directories_are_not_served(client, settings, source_image):
    settings.scratch_path.mkdir(parents=True, exist_ok=True)
    (settings.scratch_path / "inflight.jpg").write_bytes(source_image.read_bytes())
    mirror = settings.content_dir / "remote-sources" / "photo.jpg"
    mirror.parent.mkdir(parents=True)
    mirror.write_bytes(source_image.read_bytes())

    assert client.get("/content/uploads/a.jpg").status_code == 200
    assert client.get(f"/content/{settings.scratch_path.name}/inflight.jpg").status_code == 404
    assert client.get("/content/remote-sources/photo.jpg").status_code == 404
