from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote

from imageresize.config import RESIZED_DIRNAME
from imageresize.schemas import Descriptor
from imageresize.utils.signing import IdentifierSigner


class VariantResolver:
    """Where a descriptor's output lives on disk and on the web."""

    def __init__(self, signer: IdentifierSigner, resized_dir: Path, content_url: str):
        self.signer      = signer
        self.resized_dir = Path(resized_dir)
        self.content_url = content_url.rstrip("/")

    def file_identifier(self, descriptor: Descriptor) -> str:
        return self.signer.sign(descriptor.serialize())

    def filename(self, descriptor: Descriptor) -> str:
        return "{}_resized_{}.{}".format(
            descriptor.source.stem,
            self.file_identifier(descriptor),
            descriptor.extension,
        )

    def canonical_path(self, descriptor: Descriptor) -> Path:
        return self.resized_dir / self.filename(descriptor)

    def canonical_url(self, descriptor: Descriptor) -> str:
        url = f"{self.content_url}/{RESIZED_DIRNAME}/{self.filename(descriptor)}"
        # Only the last segment is encoded; decoding first avoids double encoding
        head, _, last = url.rpartition("/")
        return f"{head}/{quote(unquote(last), safe='')}"

    def identifier(self, descriptor: Descriptor) -> str:
        return self.signer.sign(self.canonical_url(descriptor))

    def is_materialized(self, descriptor: Descriptor) -> bool:
        path = self.canonical_path(descriptor)
        return bool(path.suffix) and path.is_file()

    def path_for_url(self, url: str) -> Optional[Path]:
        """Map a canonical URL back to its file, or None if it is not one."""
        prefix = f"{self.content_url}/{RESIZED_DIRNAME}/"
        if not url.startswith(prefix):
            return None
        name = unquote(url[len(prefix):])
        if not name or name != Path(name).name or name in (".", ".."):
            return None
        return self.resized_dir / name
