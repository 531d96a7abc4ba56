"""Image references accepted by the resizer.

A reference is one of three closed cases, each knowing how to turn itself
into a readable local file:

  • ``FilePath``            – a path, absolute or relative to the content dir
  • ``RemoteReference``     – an object key in the configured S3 bucket,
                              mirrored once under ``remote-sources/``
  • ``AttachmentReference`` – a row of the ``attachments`` table
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from botocore.exceptions import ClientError
from sqlalchemy.orm import sessionmaker

from imageresize.config import logger
from imageresize.database import session_scope
from imageresize.errors import SourceNotFound
from imageresize.models import Attachment
from imageresize.utils.storage import S3Storage

REMOTE_DIRNAME = "remote-sources"


@dataclass(frozen=True)
class SourceContext:
    content_dir:     Path
    storage:         Optional[S3Storage] = None
    session_factory: Optional[sessionmaker] = None


@dataclass(frozen=True)
class FilePath:
    path: str

    def local_path(self, ctx: SourceContext) -> Path:
        path = Path(self.path)
        if not path.is_absolute():
            path = ctx.content_dir / path
        if not path.is_file():
            raise SourceNotFound(f"Source image {path} does not exist")
        return path


@dataclass(frozen=True)
class RemoteReference:
    key: str

    def local_path(self, ctx: SourceContext) -> Path:
        if ctx.storage is None:
            raise SourceNotFound(f"No bucket configured to fetch {self.key}")
        key = self.key.lstrip("/")
        if not key or ".." in Path(key).parts:
            raise SourceNotFound(f"Invalid remote key {self.key!r}")

        mirror = ctx.content_dir / REMOTE_DIRNAME / key
        if mirror.is_file():
            return mirror
        try:
            return ctx.storage.download_file(key, mirror)
        except ClientError as e:
            logger.warning("Fetching %s from S3 failed: %s", key, e)
            raise SourceNotFound(f"Remote image {key} could not be fetched") from e


@dataclass(frozen=True)
class AttachmentReference:
    attachment_id: int

    def local_path(self, ctx: SourceContext) -> Path:
        if ctx.session_factory is None:
            raise SourceNotFound("Attachments are not available without a database")
        with session_scope(ctx.session_factory) as db:
            attachment = db.get(Attachment, self.attachment_id)
            if attachment is None:
                raise SourceNotFound(f"Attachment {self.attachment_id} does not exist")
            relative = attachment.path
        return FilePath(relative).local_path(ctx)


ImageReference = Union[FilePath, RemoteReference, AttachmentReference]


def as_reference(image: Union[ImageReference, str, Path]) -> ImageReference:
    if isinstance(image, (FilePath, RemoteReference, AttachmentReference)):
        return image
    if isinstance(image, (str, Path)):
        return FilePath(str(image))
    raise TypeError(f"Unsupported image reference: {type(image).__name__}")
