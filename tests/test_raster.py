import pytest
from PIL import Image

from imageresize.utils.raster import PillowEngine, optimal_size

from .util import make_image


@pytest.mark.parametrize("orig, target, mode, expected", [
    ((400, 200), (0, 0), "auto", (400, 200)),
    ((400, 200), (200, 0), "auto", (200, 100)),
    ((400, 200), (0, 50), "auto", (100, 50)),
    ((400, 200), (200, 200), "auto", (200, 100)),   # landscape keeps width
    ((200, 400), (200, 200), "auto", (100, 200)),   # portrait keeps height
    ((300, 300), (200, 100), "auto", (200, 200)),
    ((400, 200), (150, 150), "exact", (150, 150)),
    ((400, 200), (100, 100), "fit", (100, 50)),
    ((400, 200), (100, 100), "portrait", (200, 100)),
    ((400, 200), (100, 100), "landscape", (100, 50)),
])
def test_optimal_size(orig, target, mode, expected):
    assert optimal_size(*orig, *target, mode) == expected


def test_resize_and_save(tmp_path):
    source = make_image(tmp_path / "in.jpg")
    out = tmp_path / "out.bin"

    PillowEngine().open(source).resize(200, 0, {"mode": "auto"}).save(out, {"extension": "png"})

    with Image.open(out) as img:
        assert img.format == "PNG"
        assert img.size == (200, 100)


def test_crop_mode_fills_box(tmp_path):
    source = make_image(tmp_path / "in.jpg")
    image = PillowEngine().open(source).resize(100, 100, {"mode": "crop", "offset": [500, 0]})
    assert image.size == (100, 100)


def test_fixed_crop(tmp_path):
    source = make_image(tmp_path / "in.jpg")
    assert PillowEngine().open(source).crop(10, 20, 50, 40).size == (50, 40)
    # Zero width/height take the rest of the image
    assert PillowEngine().open(source).crop(100, 50, 0, 0).size == (300, 150)


def test_save_uses_options_from_resize(tmp_path):
    source = make_image(tmp_path / "in.png")
    out = tmp_path / "out.tmp"
    image = PillowEngine().open(source).resize(40, 20, {"extension": "jpg", "quality": 70, "interlace": True})
    image.save(out)

    with Image.open(out) as img:
        assert img.format == "JPEG"
        assert img.info.get("progressive") or img.info.get("progression")


def test_transparent_image_to_jpeg(tmp_path):
    source = tmp_path / "in.png"
    Image.new("RGBA", (20, 20), (0, 0, 0, 0)).save(source)
    out = tmp_path / "out.tmp"
    PillowEngine().open(source).resize(10, 10, {"sharpen": 20}).save(out, {"extension": "jpg"})

    with Image.open(out) as img:
        assert img.format == "JPEG"
        assert img.mode == "RGB"


def test_unknown_format(tmp_path):
    source = make_image(tmp_path / "in.png")
    with pytest.raises(ValueError):
        PillowEngine().open(source).save(tmp_path / "out", {"extension": "tiff"})
