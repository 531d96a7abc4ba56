from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urlparse

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from imageresize.api.resize import router as resize_router
from imageresize.config import Settings, load_settings, logger
from imageresize.database import init_db, make_engine, make_session_factory
from imageresize.service import ImageResizer
from imageresize.utils.cache import TransientStore
from imageresize.utils.sources import REMOTE_DIRNAME


class ContentFiles(StaticFiles):
    """Static content mount that refuses working directories inside it."""

    def __init__(self, *args, hidden: Iterable[str] = (), **kwargs):
        super().__init__(*args, **kwargs)
        self.hidden = frozenset(hidden)

    async def get_response(self, path: str, scope):
        parts = Path(path).parts
        if parts and parts[0] in self.hidden:
            raise StarletteHTTPException(status_code=404)
        return await super().get_response(path, scope)


def _hidden_dirs(settings: Settings) -> list:
    hidden = [REMOTE_DIRNAME]
    try:
        scratch = settings.scratch_path.resolve().relative_to(settings.content_dir.resolve())
    except ValueError:
        return hidden
    if scratch.parts:
        hidden.append(scratch.parts[0])
    return hidden


def create_app(settings: Optional[Settings] = None, store: Optional[TransientStore] = None) -> FastAPI:
    settings = settings or load_settings()

    engine = make_engine(settings.db_url)
    init_db(engine)
    session_factory = make_session_factory(engine)

    app = FastAPI(title="Image Resize API")
    app.state.settings = settings
    app.state.resizer  = ImageResizer.from_settings(settings, store=store, session_factory=session_factory)
    app.include_router(resize_router, prefix=f"/{settings.resize_prefix.strip('/')}")

    if settings.serve_static:
        mount_path = urlparse(settings.content_url).path.rstrip("/") or "/content"
        settings.content_dir.mkdir(parents=True, exist_ok=True)
        hidden = _hidden_dirs(settings)
        app.mount(mount_path, ContentFiles(directory=settings.content_dir, hidden=hidden), name="content")
        logger.info("Serving %s at %s (hiding %s)", settings.content_dir, mount_path, ", ".join(hidden))

    return app
