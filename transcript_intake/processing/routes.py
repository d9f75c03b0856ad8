from __future__ import annotations

from functools import lru_cache

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse

from transcript_intake.errors import ConfigurationError, DispatchError, GraphError, TransientError

from .controller import ProcessingController

router = APIRouter()


@lru_cache
def get_controller() -> ProcessingController:
    return ProcessingController()


async def _trigger(join_url: str | None, controller: ProcessingController) -> JSONResponse:
    if not join_url:
        raise HTTPException(status_code=400, detail="Missing 'joinUrl' parameter. Provide a Teams meeting join URL.")
    try:
        payload = await controller.trigger_from_join_url(join_url)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except (GraphError, TransientError, RuntimeError) as exc:
        raise HTTPException(status_code=502, detail=f"Failed to process: {exc}") from exc
    return JSONResponse(payload, status_code=202)


@router.get("/trigger")
async def trigger_processing(joinUrl: str | None = None, controller: ProcessingController = Depends(get_controller)):
    return await _trigger(joinUrl, controller)


@router.post("/trigger")
async def trigger_processing_post(
    payload: dict | None = Body(default=None),
    joinUrl: str | None = None,
    controller: ProcessingController = Depends(get_controller),
):
    join_url = joinUrl or (payload or {}).get("joinUrl")
    return await _trigger(join_url, controller)


@router.api_route("/jobs/{job_id}/cancel", methods=["GET", "POST"])
async def cancel_processing(job_id: str, controller: ProcessingController = Depends(get_controller)):
    try:
        return await controller.cancel_job(job_id)
    except DispatchError as exc:
        raise HTTPException(status_code=502, detail=f"Failed to cancel: {exc}") from exc
