import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

CACHE_PREFIX       = "orgnk.imageresizer."
RESIZED_DIRNAME    = "resized-uploads"
ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("imageresize")


class Settings(BaseModel):
    secret_key:    str
    content_dir:   Path
    content_url:   str = "/content"
    home_url:      str = ""
    resize_prefix: str = "orgnk-imageresize"
    db_url:        str = "sqlite:///imageresize.db"
    config_ttl:    Optional[int] = None
    max_failures:  int = 3
    scratch_dir:   Optional[Path] = None
    sizes:         Dict[str, Dict[str, Any]] = {}
    aws_region:    str = "us-west-1"
    s3_bucket:     Optional[str] = None
    serve_static:  bool = True

    @property
    def resized_dir(self) -> Path:
        return self.content_dir / RESIZED_DIRNAME

    @property
    def scratch_path(self) -> Path:
        return self.scratch_dir or self.content_dir / ".resize-scratch"


def _int_or_none(value: Optional[str]) -> Optional[int]:
    return int(value) if value not in (None, "") else None


def load_settings() -> Settings:
    secret_key = os.getenv("IMAGERESIZE_SECRET_KEY")
    if not secret_key:
        raise RuntimeError("IMAGERESIZE_SECRET_KEY must be set")

    sizes: Dict[str, Dict[str, Any]] = {}
    sizes_file = os.getenv("SIZES_FILE")
    if sizes_file:
        with open(sizes_file, encoding="utf-8") as fh:
            sizes = json.load(fh)

    scratch_dir = os.getenv("SCRATCH_DIR")
    return Settings(
        secret_key    = secret_key,
        content_dir   = Path(os.getenv("CONTENT_DIR", "./content")).resolve(),
        content_url   = os.getenv("CONTENT_URL", "/content"),
        home_url      = os.getenv("HOME_URL", ""),
        resize_prefix = os.getenv("RESIZE_PREFIX", "orgnk-imageresize"),
        db_url        = os.getenv("DATABASE_URL", "sqlite:///imageresize.db"),
        config_ttl    = _int_or_none(os.getenv("CONFIG_TTL")),
        max_failures  = int(os.getenv("MAX_RESIZE_FAILURES", "3")),
        scratch_dir   = Path(scratch_dir) if scratch_dir else None,
        sizes         = sizes,
        aws_region    = os.getenv("AWS_DEFAULT_REGION", "us-west-1"),
        s3_bucket     = os.getenv("S3_BUCKET") or None,
        serve_static  = os.getenv("SERVE_STATIC", "1").lower() not in ("0", "false", "no"),
    )
