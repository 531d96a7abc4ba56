import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator

from imageresize.config import ALLOWED_EXTENSIONS
from imageresize.errors import InvalidOptions, SourceNotFound

MODES   = ("auto", "exact", "fit", "portrait", "landscape", "crop")
ACTIONS = ("resize", "crop")

Dimension = Union[int, str, None]


def _dimension(value: Dimension) -> int:
    # "auto", None and 0 all mean "derive from the aspect ratio"
    if value in (None, "", "auto"):
        return 0
    try:
        size = int(value)
    except (TypeError, ValueError):
        raise InvalidOptions(f"Invalid dimension: {value!r}")
    if size < 0:
        raise InvalidOptions(f"Invalid dimension: {value!r}")
    return size


def default_options(path: Union[str, Path]) -> Dict[str, Any]:
    return {
        "mode":      "auto",
        "offset":    (0, 0),
        "sharpen":   0,
        "interlace": False,
        "quality":   90,
        "extension": Path(path).suffix.lstrip(".").lower(),
    }


def _check_options(options: Dict[str, Any]) -> Dict[str, Any]:
    if options["mode"] not in MODES:
        raise InvalidOptions(f"Invalid resize mode: {options['mode']!r}")

    extension = str(options["extension"]).lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise InvalidOptions(f"Invalid image format: {options['extension']!r}")
    options["extension"] = extension

    try:
        x, y = options["offset"]
        options["offset"] = (int(x), int(y))
        quality = int(options["quality"])
        sharpen = int(options["sharpen"])
    except (TypeError, ValueError):
        raise InvalidOptions("offset, quality and sharpen must be numeric")
    if not 0 <= quality <= 100:
        raise InvalidOptions(f"Quality must be between 0 and 100, got {quality}")
    if not 0 <= sharpen <= 100:
        raise InvalidOptions(f"Sharpen must be between 0 and 100, got {sharpen}")
    options["quality"]   = quality
    options["sharpen"]   = sharpen
    options["interlace"] = bool(options["interlace"])
    return options


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_thaw(v) for v in value]
    return value


class SourceInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    path:  str
    mtime: int


class Descriptor(BaseModel):
    """One resize or crop request.

    The serialized form (compact JSON, field and option order preserved) is
    what gets signed and what gets stored in the config cache, so two
    descriptors built from the same inputs always serialize identically.
    ``options`` is a read-only mapping with sequences held as tuples, so a
    built descriptor cannot drift away from the identifier it was signed
    under.
    """

    model_config = ConfigDict(frozen=True)

    image:   SourceInfo
    width:   int = 0
    height:  int = 0
    options: Mapping[str, Any]
    action:  str = "resize"

    @field_validator("options", mode="after")
    @classmethod
    def _freeze_options(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return _freeze(value)

    @field_serializer("options")
    def _dump_options(self, value: Mapping[str, Any]) -> Dict[str, Any]:
        return _thaw(value)

    @classmethod
    def build(
        cls,
        path: Union[str, Path],
        width: Dimension = 0,
        height: Dimension = 0,
        options: Optional[Mapping[str, Any]] = None,
        action: str = "resize",
    ) -> "Descriptor":
        if action not in ACTIONS:
            raise InvalidOptions(f"Invalid action: {action!r}")

        source = Path(path)
        try:
            mtime = int(source.stat().st_mtime)
        except OSError:
            raise SourceNotFound(f"Source image {source} does not exist")
        if not source.is_file():
            raise SourceNotFound(f"Source image {source} is not a file")

        merged = default_options(source)
        merged.update(options or {})

        return cls(
            image   = SourceInfo(path=str(source), mtime=mtime),
            width   = _dimension(width),
            height  = _dimension(height),
            options = _check_options(merged),
            action  = action,
        )

    @property
    def source(self) -> Path:
        return Path(self.image.path)

    @property
    def extension(self) -> str:
        return self.options["extension"]

    def serialize(self) -> str:
        return json.dumps(self.model_dump(mode="json"), separators=(",", ":"))

    @classmethod
    def deserialize(cls, raw: str) -> "Descriptor":
        return cls.model_validate_json(raw)


class SizeSpec(BaseModel):
    width:   Optional[int] = None
    height:  Optional[int] = None
    options: Dict[str, Any] = {}


class Breakpoint(BaseModel):
    breakpoint: int
    width:      Dimension = None
    height:     Dimension = None
    format:     str
    options:    Dict[str, Any] = {}
