"""Template helpers built on top of ``ImageResizer``."""

from html import escape
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from imageresize.errors import InvalidOptions
from imageresize.schemas import Breakpoint, Dimension
from imageresize.service import ImageInput, ImageResizer

MIME_SUBTYPES = {"jpg": "jpeg", "png": "png", "gif": "gif", "webp": "webp"}


def image_resize(
    resizer: ImageResizer,
    image: ImageInput,
    width: Dimension,
    height: Dimension,
    options: Optional[Mapping[str, Any]] = None,
) -> str:
    """URL of ``image`` at the given size; resized lazily on first fetch."""
    return resizer.image_url(image, width, height, options or {})


def _attributes(attributes: Mapping[str, Any]) -> str:
    return "".join(
        f' {escape(str(key))}="{escape(str(value))}"' for key, value in attributes.items()
    )


def picture(
    resizer: ImageResizer,
    image: ImageInput,
    breakpoints: Iterable[Union[Breakpoint, Mapping[str, Any]]],
    attributes: Optional[Mapping[str, Any]] = None,
) -> str:
    """Render a ``<picture>`` element with one source per breakpoint.

    A breakpoint of ``0`` is the fallback ``<img>``; without one, the first
    breakpoint is used. If nothing but the fallback remains, a plain
    ``<img>`` is returned instead.
    """
    default: Optional[str] = None
    sources: List[Dict[str, Any]] = []

    for raw in breakpoints:
        bp = raw if isinstance(raw, Breakpoint) else Breakpoint.model_validate(raw)
        if bp.format not in MIME_SUBTYPES:
            raise InvalidOptions(f"Invalid image format: {bp.format!r}")

        url = image_resize(resizer, image, bp.width, bp.height, {**bp.options, "extension": bp.format})
        if bp.breakpoint == 0 and default is None:
            default = url
            continue
        sources.append({"url": url, "breakpoint": bp})

    if default is None:
        if not sources:
            raise InvalidOptions("At least one breakpoint is required")
        default = sources.pop(0)["url"]

    img_tag = f'<img src="{escape(default)}"{_attributes(attributes or {})}>'
    if not sources:
        return img_tag

    source_tags = "".join(
        '<source srcset="{}" media="(min-width: {}px)" type="image/{}">'.format(
            escape(s["url"]), s["breakpoint"].breakpoint, MIME_SUBTYPES[s["breakpoint"].format],
        )
        for s in sources
    )
    return f"<picture>{source_tags}{img_tag}</picture>"
