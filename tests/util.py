from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import unquote

from PIL import Image


def make_image(path: Path, size: Tuple[int, int] = (400, 200), color=(200, 30, 30), fmt: Optional[str] = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format=fmt)
    return path


def split_resizer_url(url: str, prefix: str = "orgnk-imageresize") -> Tuple[str, str]:
    """Return ``(identifier, encoded target url)`` from a signed resize link."""
    tail = url.split(f"/{prefix}/", 1)[1]
    identifier, encoded = tail.split("/", 1)
    return identifier, encoded


def target_of(url: str, prefix: str = "orgnk-imageresize") -> str:
    return unquote(split_resizer_url(url, prefix)[1])
