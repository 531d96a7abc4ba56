import math
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from PIL import Image, ImageFilter, ImageOps

FORMATS = {"jpg": "JPEG", "jpeg": "JPEG", "png": "PNG", "gif": "GIF", "webp": "WEBP"}


def optimal_size(orig_w: int, orig_h: int, width: int, height: int, mode: str) -> Tuple[int, int]:
    """Target size for a resize; a zero width or height follows the aspect ratio."""
    if not width and not height:
        return orig_w, orig_h
    if not width:
        return max(1, round(orig_w * height / orig_h)), height
    if not height:
        return width, max(1, round(orig_h * width / orig_w))

    by_width  = (width, max(1, round(orig_h * width / orig_w)))
    by_height = (max(1, round(orig_w * height / orig_h)), height)

    if mode == "exact":
        return width, height
    if mode == "landscape":
        return by_width
    if mode == "portrait":
        return by_height
    if mode == "fit":
        ratio = min(width / orig_w, height / orig_h)
        return max(1, round(orig_w * ratio)), max(1, round(orig_h * ratio))

    # auto: follow the orientation of the source
    if orig_h < orig_w:
        return by_width
    if orig_h > orig_w:
        return by_height
    if height < width:
        return by_width
    if height > width:
        return by_height
    return width, height


class RasterImage:
    def __init__(self, image: Image.Image, source_format: Optional[str] = None):
        self.image         = image
        self.source_format = source_format
        self.options: Dict[str, Any] = {}

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    def _derive(self, image: Image.Image, options: Mapping[str, Any]) -> "RasterImage":
        derived = RasterImage(image, self.source_format)
        derived.options = {**self.options, **options}
        return derived

    def resize(self, width: int, height: int, options: Mapping[str, Any]) -> "RasterImage":
        orig_w, orig_h = self.size
        mode = options.get("mode", "auto")

        if mode == "crop" and width and height:
            ratio  = max(width / orig_w, height / orig_h)
            scaled = (max(width, math.ceil(orig_w * ratio)), max(height, math.ceil(orig_h * ratio)))
            img    = self.image.resize(scaled, resample=Image.LANCZOS)
            off_x, off_y = options.get("offset", (0, 0))
            left = min(max((scaled[0] - width) // 2 + off_x, 0), scaled[0] - width)
            top  = min(max((scaled[1] - height) // 2 + off_y, 0), scaled[1] - height)
            img  = img.crop((left, top, left + width, top + height))
        else:
            target = optimal_size(orig_w, orig_h, width, height, mode)
            img = self.image if target == (orig_w, orig_h) else self.image.resize(target, resample=Image.LANCZOS)

        sharpen = int(options.get("sharpen") or 0)
        if sharpen:
            if img.mode not in ("L", "RGB", "RGBA"):
                img = img.convert("RGBA")
            img = img.filter(ImageFilter.UnsharpMask(radius=2, percent=sharpen * 2, threshold=3))
        return self._derive(img, options)

    def crop(self, x: int, y: int, width: int, height: int) -> "RasterImage":
        orig_w, orig_h = self.size
        x, y   = max(0, min(x, orig_w - 1)), max(0, min(y, orig_h - 1))
        right  = min(orig_w, x + width) if width else orig_w
        bottom = min(orig_h, y + height) if height else orig_h
        return self._derive(self.image.crop((x, y, right, bottom)), {})

    def save(self, path: Path, options: Optional[Mapping[str, Any]] = None) -> None:
        opts = {**self.options, **(options or {})}
        extension = opts.get("extension")
        fmt = FORMATS.get(str(extension).lower()) if extension else self.source_format
        if fmt is None:
            raise ValueError(f"Unsupported output format: {extension!r}")

        img = self.image
        save_kwargs: Dict[str, Any] = {}
        if fmt == "JPEG":
            if img.mode not in ("RGB", "L", "CMYK"):
                img = img.convert("RGB")
            save_kwargs.update({"quality": int(opts.get("quality", 90)), "optimize": True})
            if opts.get("interlace"):
                save_kwargs["progressive"] = True
        elif img.mode == "CMYK":
            img = img.convert("RGB")
        if fmt == "WEBP":
            save_kwargs["quality"] = int(opts.get("quality", 90))
        if fmt == "GIF":
            save_kwargs["interlace"] = bool(opts.get("interlace"))
        if fmt == "PNG":
            save_kwargs["optimize"] = True

        exif_bytes = self.image.info.get("exif")
        if exif_bytes and fmt in ("JPEG", "WEBP"):
            save_kwargs["exif"] = exif_bytes
        img.save(path, format=fmt, **save_kwargs)


class RasterEngine(Protocol):
    def open(self, path: Path) -> RasterImage: ...


class PillowEngine:
    def open(self, path: Path) -> RasterImage:
        with Image.open(path) as img:
            source_format = img.format
            img.load()
            oriented = ImageOps.exif_transpose(img)
        return RasterImage(oriented, source_format)
