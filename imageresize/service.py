from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import quote

from sqlalchemy.orm import sessionmaker

from imageresize.config import Settings, logger
from imageresize.errors import InvalidOptions, SourceNotFound
from imageresize.handler import DeferredRequestHandler
from imageresize.schemas import Descriptor, Dimension
from imageresize.utils.cache import ConfigCache, SqlTransientStore, TransientStore
from imageresize.utils.dimensions import DimensionProbe
from imageresize.utils.image_variants import ResizeExecutor
from imageresize.utils.raster import RasterEngine
from imageresize.utils.signing import IdentifierSigner
from imageresize.utils.sizes import SizeRegistry
from imageresize.utils.sources import ImageReference, SourceContext, as_reference
from imageresize.utils.storage import S3Storage
from imageresize.utils.variants import VariantResolver

ImageInput = Union[ImageReference, str, Path]


class ImageResizer:
    """Entry point for callers: builds descriptors and hands out image URLs.

    ``url()`` returns the file itself once it exists, and otherwise a signed
    link to the deferred resize route (storing the config as it does so).
    """

    def __init__(
        self,
        resolver: VariantResolver,
        cache: ConfigCache,
        executor: ResizeExecutor,
        handler: DeferredRequestHandler,
        sources: SourceContext,
        sizes: SizeRegistry,
        probe: DimensionProbe,
        home_url: str = "",
        resize_prefix: str = "orgnk-imageresize",
    ):
        self.resolver      = resolver
        self.cache         = cache
        self.executor      = executor
        self.handler       = handler
        self.sources       = sources
        self.sizes         = sizes
        self.probe         = probe
        self.home_url      = home_url.rstrip("/")
        self.resize_prefix = resize_prefix.strip("/")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: Optional[TransientStore] = None,
        session_factory: Optional[sessionmaker] = None,
        storage: Optional[S3Storage] = None,
        engine: Optional[RasterEngine] = None,
    ) -> "ImageResizer":
        if store is None:
            if session_factory is None:
                raise ValueError("Either a transient store or a session factory is required")
            store = SqlTransientStore(session_factory)
        if storage is None and settings.s3_bucket:
            storage = S3Storage(settings.s3_bucket, settings.aws_region)

        signer   = IdentifierSigner(settings.secret_key)
        resolver = VariantResolver(signer, settings.resized_dir, settings.content_url)
        cache    = ConfigCache(store, resolver, ttl=settings.config_ttl)
        executor = ResizeExecutor(resolver, engine=engine, scratch_dir=settings.scratch_path)
        handler  = DeferredRequestHandler(signer, resolver, cache, executor, max_failures=settings.max_failures)

        return cls(
            resolver      = resolver,
            cache         = cache,
            executor      = executor,
            handler       = handler,
            sources       = SourceContext(settings.content_dir, storage, session_factory),
            sizes         = SizeRegistry(settings.sizes),
            probe         = DimensionProbe(store, resolver, scratch_dir=settings.scratch_path),
            home_url      = settings.home_url,
            resize_prefix = settings.resize_prefix,
        )

    def local_path(self, image: ImageInput) -> Path:
        return as_reference(image).local_path(self.sources)

    def descriptor(
        self,
        image: ImageInput,
        width: Dimension = 0,
        height: Dimension = 0,
        options: Optional[Mapping[str, Any]] = None,
        action: str = "resize",
    ) -> Descriptor:
        return Descriptor.build(self.local_path(image), width, height, options, action)

    def url(self, descriptor: Descriptor) -> str:
        if self.resolver.is_materialized(descriptor):
            return self.resolver.canonical_url(descriptor)
        return self.resizer_url(descriptor)

    def resizer_url(self, descriptor: Descriptor) -> str:
        encoded    = quote(self.resolver.canonical_url(descriptor), safe="")
        identifier = self.resolver.identifier(descriptor)
        self.cache.store(descriptor)
        return f"{self.home_url}/{self.resize_prefix}/{identifier}/{encoded}"

    def image_url(
        self,
        image: ImageInput,
        width: Dimension = 0,
        height: Dimension = 0,
        options: Optional[Mapping[str, Any]] = None,
        action: str = "resize",
    ) -> str:
        return self.url(self.descriptor(image, width, height, options, action))

    def filter_url(
        self,
        image: Any,
        width: Dimension = None,
        height: Dimension = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Like ``image_url`` but leaves plain strings it cannot resize untouched."""
        try:
            descriptor = self.descriptor(image, width, height, options)
        except (SourceNotFound, InvalidOptions, TypeError):
            if not image or isinstance(image, (str, int, float)):
                logger.debug("Leaving unresolvable image %r as is", image)
                return str(image) if image else ""
            raise
        return self.url(descriptor)

    def named_url(self, image: ImageInput, size_name: str) -> str:
        size = self.sizes.get(size_name)
        return self.image_url(image, size.width, size.height, size.options)

    def dimensions(self, image: ImageInput) -> Dict[str, int]:
        return self.probe.dimensions(self.local_path(image))
