import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from imageresize.config import logger
from imageresize.errors import DirectoryCreateFailed, ResizeFailed, SourceNotFound
from imageresize.schemas import Descriptor
from imageresize.utils.raster import PillowEngine, RasterEngine, RasterImage
from imageresize.utils.variants import VariantResolver


@contextmanager
def scratch_copy(source: Path, scratch_dir: Optional[Path] = None) -> Iterator[Path]:
    """Copy ``source`` to a fresh private file, removed again on exit."""
    if scratch_dir is not None:
        scratch_dir.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix=f"{source.stem}_", suffix=".tmp", dir=scratch_dir)
    tmp_path = Path(name)
    try:
        with os.fdopen(fd, "wb") as out:
            try:
                with source.open("rb") as src:
                    shutil.copyfileobj(src, out)
            except FileNotFoundError as e:
                raise SourceNotFound(f"Source image {source} does not exist") from e
        yield tmp_path
    finally:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed removing scratch file %s: %s", tmp_path, e)


class ResizeExecutor:
    """Materializes descriptors at their canonical path.

    Work happens on a per-call scratch copy that is renamed into place only
    once the engine has saved it, so the canonical path never holds a
    partial file. Concurrent calls for the same descriptor each do the work
    and the last rename wins.
    """

    def __init__(
        self,
        resolver: VariantResolver,
        engine: Optional[RasterEngine] = None,
        scratch_dir: Optional[Path] = None,
    ):
        self.resolver    = resolver
        self.engine      = engine or PillowEngine()
        self.scratch_dir = scratch_dir

    def run(self, descriptor: Descriptor) -> Path:
        if descriptor.action == "crop":
            return self.crop(descriptor)
        return self.resize(descriptor)

    def resize(self, descriptor: Descriptor) -> Path:
        return self._materialize(
            descriptor,
            lambda img: img.resize(descriptor.width, descriptor.height, descriptor.options),
        )

    def crop(self, descriptor: Descriptor) -> Path:
        x, y = descriptor.options["offset"]
        return self._materialize(
            descriptor,
            lambda img: img.crop(x, y, descriptor.width, descriptor.height),
        )

    def _materialize(
        self,
        descriptor: Descriptor,
        transform: Callable[[RasterImage], RasterImage],
    ) -> Path:
        target = self.resolver.canonical_path(descriptor)
        if self.resolver.is_materialized(descriptor):
            logger.debug("Variant %s already exists", target.name)
            return target

        logger.info("Processing %s %s → %s", descriptor.action, descriptor.source.name, target.name)
        with scratch_copy(descriptor.source, self.scratch_dir) as tmp_path:
            try:
                transform(self.engine.open(tmp_path)).save(tmp_path, descriptor.options)
            except Exception as e:
                raise ResizeFailed(f"Could not {descriptor.action} {descriptor.source}: {e}") from e

            self._ensure_dir(target.parent)
            try:
                os.replace(tmp_path, target)
            except OSError as e:
                raise ResizeFailed(f"Could not publish {target.name}: {e}") from e

        logger.info("Published %s", target.name)
        return target

    @staticmethod
    def _ensure_dir(path: Path) -> None:
        if path.is_dir():
            return
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DirectoryCreateFailed(f"Could not create resized images directory {path}") from e
