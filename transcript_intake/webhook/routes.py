from functools import lru_cache

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .controller import WebhookController, WebhookResponse

router = APIRouter()


@lru_cache
def get_controller() -> WebhookController:
    return WebhookController()


def _to_http(response: WebhookResponse) -> Response:
    if response.media_type == "text/plain":
        return PlainTextResponse(str(response.body), status_code=response.status_code)
    return JSONResponse(response.body, status_code=response.status_code)


@router.api_route("/transcripts", methods=["GET", "POST"])
async def transcript_webhook(request: Request, controller: WebhookController = Depends(get_controller)):
    # Answer the handshake before touching the body.
    token = controller.validate(request.query_params)
    if token is not None:
        return PlainTextResponse(token)
    body = await request.body()
    return _to_http(await controller.handle_request(request.query_params, body))
