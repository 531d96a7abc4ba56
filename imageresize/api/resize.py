from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from imageresize.config import logger
from imageresize.deps import get_handler
from imageresize.errors import ConfigNotFound, ImageResizeError, InvalidSignature
from imageresize.handler import DeferredRequestHandler

router = APIRouter()


def _raw_target(request: Request, identifier: str, decoded: str) -> str:
    # Starlette hands us the decoded path; the signature covers the encoded form
    raw_path = request.scope.get("raw_path")
    if raw_path:
        _, found, tail = raw_path.decode("latin-1").partition(f"/{identifier}/")
        if found:
            return tail
    return quote(decoded, safe="")


@router.get("/{identifier}/{encoded_url:path}", status_code=302,
            responses={404: {"description": "Not found"},
                       410: {"description": "Resize link expired"}})
def resize_image(
    identifier: str,
    encoded_url: str,
    request: Request,
    handler: DeferredRequestHandler = Depends(get_handler),
):
    try:
        resized_url = handler.handle(identifier, _raw_target(request, identifier, encoded_url))
    except InvalidSignature:
        raise HTTPException(status_code=404, detail="Not found")
    except ConfigNotFound as e:
        raise HTTPException(status_code=410, detail=f"Resize link expired: {e}")
    except ImageResizeError as e:
        logger.error("Resize request %s failed: %s", identifier, e)
        raise HTTPException(status_code=500, detail=f"Image could not be resized: {e}")

    return RedirectResponse(resized_url, status_code=302)
