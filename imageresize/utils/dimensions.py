import json
from pathlib import Path
from typing import Dict, Optional

from PIL import Image, UnidentifiedImageError

from imageresize.config import CACHE_PREFIX, logger
from imageresize.errors import ResizeFailed
from imageresize.schemas import Descriptor
from imageresize.utils.cache import TransientStore
from imageresize.utils.image_variants import scratch_copy
from imageresize.utils.variants import VariantResolver


class DimensionProbe:
    def __init__(
        self,
        store: TransientStore,
        resolver: VariantResolver,
        scratch_dir: Optional[Path] = None,
        prefix: str = CACHE_PREFIX,
    ):
        self.store       = store
        self.resolver    = resolver
        self.scratch_dir = scratch_dir
        self.prefix      = prefix

    def dimensions(self, path: Path) -> Dict[str, int]:
        # The identifier covers the source mtime, so an edited source is re-probed
        identifier = self.resolver.identifier(Descriptor.build(path, options={"extension": "png"}))
        key = f"{self.prefix}dimensions.{identifier}"

        cached = self.store.get(key)
        if cached is not None:
            return json.loads(cached)

        with scratch_copy(path, self.scratch_dir) as tmp_path:
            try:
                with Image.open(tmp_path) as img:
                    width, height = img.size
            except (UnidentifiedImageError, OSError) as e:
                raise ResizeFailed(f"Could not read dimensions of {path}: {e}") from e

        dimensions = {"width": width, "height": height}
        self.store.set(key, json.dumps(dimensions))
        logger.debug("Probed %s: %sx%s", path.name, width, height)
        return dimensions
