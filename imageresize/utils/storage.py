from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

import boto3

from imageresize.config import logger

class S3Storage:
    def __init__(self, bucket: str, region: str, client: Optional[Any] = None):
        self.bucket = bucket
        self.region = region
        self.client = client or boto3.client("s3", region_name=region)

    def download_file(self, key: str, path: Path) -> Path:
        logger.info("Downloading %s → %s", key, path.name)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Download beside the target then rename, so readers never see a partial file
        partial = path.with_name(f".{path.name}.{uuid4().hex}.part")
        try:
            self.client.download_file(self.bucket, key, str(partial))
            partial.replace(path)
        finally:
            partial.unlink(missing_ok=True)
        return path
