from fastapi import Request

from imageresize.handler import DeferredRequestHandler
from imageresize.service import ImageResizer

def get_resizer(request: Request) -> ImageResizer:
    return request.app.state.resizer

def get_handler(request: Request) -> DeferredRequestHandler:
    return get_resizer(request).handler
