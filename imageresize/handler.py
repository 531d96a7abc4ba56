from imageresize.config import logger
from imageresize.utils.cache import ConfigCache
from imageresize.utils.image_variants import ResizeExecutor
from imageresize.utils.signing import IdentifierSigner
from imageresize.utils.variants import VariantResolver


class DeferredRequestHandler:
    """Serves a signed resize link.

    validate → load config → consume → resize → return the redirect target.
    The signature is checked before the cache is touched, so forged links
    never reach the store. A link whose file already exists redirects
    straight away, which keeps repeat fetches working after the config has
    been consumed. If the resize fails the config is stored again so the
    same link can be retried, until ``max_failures`` attempts have failed
    (0 = no limit), after which the link retires.

    The config is consumed before the resize starts. A second fetch that
    arrives while the first one is still resizing finds no config and gets
    ``ConfigNotFound``; once the file is in place, fetches redirect again.
    """

    def __init__(
        self,
        signer: IdentifierSigner,
        resolver: VariantResolver,
        cache: ConfigCache,
        executor: ResizeExecutor,
        max_failures: int = 0,
    ):
        self.signer       = signer
        self.resolver     = resolver
        self.cache        = cache
        self.executor     = executor
        self.max_failures = max_failures

    def handle(self, identifier: str, encoded_url: str) -> str:
        resized_url = self.signer.validate(identifier, encoded_url)

        existing = self.resolver.path_for_url(resized_url)
        if existing is not None and existing.is_file():
            logger.debug("Resize %s already materialized", identifier)
            return resized_url

        descriptor = self.cache.load(identifier)
        # Only drop the config once it has been read back successfully
        self.cache.consume(identifier)

        try:
            self.executor.run(descriptor)
        except Exception:
            failures = self.cache.record_failure(identifier)
            if self.max_failures and failures >= self.max_failures:
                logger.warning("Retiring resize link %s after %d failures", identifier, failures)
            else:
                self.cache.store(descriptor)
                logger.warning("Resize %s failed (attempt %d), config restored", identifier, failures)
            raise

        self.cache.clear_failures(identifier)
        return resized_url
