from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..capture import new_record
from ..domain.models import GraveRecord, Person
from ..errors import NotFound, PersistenceFailure, RecordValidationError, TranscriptionError
from ..export import records_to_csv
from ..geo import bounds, to_geojson
from ..logging import get_logger
from ..registry import Registry, build_registry
from ..sync import (
    STATUS_ALREADY_IN_PROGRESS,
    STATUS_NOT_CONFIGURED,
    STATUS_NOTHING_TO_SYNC,
    STATUS_OFFLINE,
    STATUS_SYNCED,
    STATUS_TRANSFER_FAILED,
)
from ..transcribe import transcribe_grave_photo


LOG = get_logger("api")

SYNC_HTTP_STATUS: Dict[str, int] = {
    STATUS_SYNCED: 200,
    STATUS_NOTHING_TO_SYNC: 200,
    STATUS_NOT_CONFIGURED: 400,
    STATUS_ALREADY_IN_PROGRESS: 409,
    STATUS_TRANSFER_FAILED: 502,
    STATUS_OFFLINE: 503,
}


async def _json_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Body must be valid JSON") from exc
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")
    return data


def _optional_float(value: Any, name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name}") from exc


def create_app(
    registry: Optional[Registry] = None,
    *,
    allow_origins: Optional[List[str]] = None,
) -> Starlette:
    """Create a Starlette app exposing the registry as a JSON API."""

    reg = registry or build_registry()
    store = reg.store

    async def health(_: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "db_path": reg.settings.db_path, "records": len(store.records())})

    async def list_records(_: Request) -> JSONResponse:
        items = [r.to_dict() for r in store.records()]
        return JSONResponse({"items": items, "total": len(items)})

    async def unsynced(_: Request) -> JSONResponse:
        items = [r.to_dict() for r in store.unsynced_records()]
        return JSONResponse({"items": items, "total": len(items)})

    async def create_record(request: Request) -> JSONResponse:
        body = await _json_body(request)
        people_raw = body.get("people") or []
        if not isinstance(people_raw, list):
            raise HTTPException(status_code=400, detail="people must be a list")
        record = new_record(
            photo_url=str(body.get("photoUrl") or ""),
            people=[Person.from_dict(p) for p in people_raw],
            aisle_number=str(body.get("aisleNumber") or ""),
            condition=body.get("condition"),
            lat=_optional_float(body.get("lat"), "lat"),
            lng=_optional_float(body.get("lng"), "lng"),
        )
        stamped = store.append(record)
        return JSONResponse(stamped.to_dict(), status_code=201)

    async def record_detail(request: Request) -> JSONResponse:
        return JSONResponse(store.get(request.path_params["record_id"]).to_dict())

    async def update_record(request: Request) -> JSONResponse:
        record_id = request.path_params["record_id"]
        existing = store.get(record_id)
        body = await _json_body(request)
        merged = {**existing.to_dict(), **body, "id": record_id}
        updated = GraveRecord.from_dict(merged)
        store.update(updated)
        return JSONResponse(updated.to_dict())

    async def delete_record(request: Request) -> Response:
        store.delete(request.path_params["record_id"])
        return Response(status_code=204)

    async def sync(request: Request) -> JSONResponse:
        body = await _json_body(request)
        online = body.get("online")
        if online is not None and not isinstance(online, bool):
            raise HTTPException(status_code=400, detail="online must be true or false")
        outcome = await run_in_threadpool(reg.coordinator.sync, body.get("endpoint"), online=online)
        payload = {"status": outcome.status, "count": outcome.count, "message": outcome.message()}
        if outcome.detail:
            payload["detail"] = outcome.detail
        return JSONResponse(payload, status_code=SYNC_HTTP_STATUS.get(outcome.status, 500))

    async def export_csv(_: Request) -> Response:
        return Response(
            records_to_csv(store.records()),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": 'attachment; filename="registre.csv"'},
        )

    async def map_data(_: Request) -> JSONResponse:
        records = store.records()
        payload = to_geojson(records)
        box = bounds(records)
        payload["bbox"] = [box[1], box[0], box[3], box[2]] if box else None
        return JSONResponse(payload)

    async def get_webhook(_: Request) -> JSONResponse:
        url = store.webhook_url()
        return JSONResponse({"url": url, "configured": bool(url)})

    async def put_webhook(request: Request) -> JSONResponse:
        body = await _json_body(request)
        url = body.get("url")
        if url is not None and not isinstance(url, str):
            raise HTTPException(status_code=400, detail="url must be a string")
        store.set_webhook_url(url)
        current = store.webhook_url()
        return JSONResponse({"url": current, "configured": bool(current)})

    async def transcribe(request: Request) -> JSONResponse:
        body = await _json_body(request)
        data_url = body.get("photoUrl")
        if not isinstance(data_url, str) or not data_url.startswith("data:image/"):
            raise HTTPException(status_code=400, detail="photoUrl must be an image data URL")
        people = await run_in_threadpool(
            transcribe_grave_photo,
            data_url,
            api_key=reg.settings.api_key,
            model=reg.settings.transcribe_model,
            base_url=reg.settings.transcribe_base_url,
        )
        return JSONResponse({"people": [p.to_dict() for p in people]})

    async def not_found(_: Request, exc: NotFound) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=404)

    async def invalid(_: Request, exc: RecordValidationError) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=400)

    async def persistence_failed(_: Request, exc: PersistenceFailure) -> JSONResponse:
        LOG.error(f"Persistence failure: {exc}")
        return JSONResponse({"detail": "Enregistrement impossible", "error": str(exc)}, status_code=500)

    async def transcription_failed(_: Request, exc: TranscriptionError) -> JSONResponse:
        return JSONResponse({"detail": str(exc)}, status_code=502)

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/records", list_records, methods=["GET"]),
        Route("/api/records", create_record, methods=["POST"]),
        Route("/api/records/unsynced", unsynced, methods=["GET"]),
        Route("/api/records/{record_id}", record_detail, methods=["GET"]),
        Route("/api/records/{record_id}", update_record, methods=["PUT"]),
        Route("/api/records/{record_id}", delete_record, methods=["DELETE"]),
        Route("/api/sync", sync, methods=["POST"]),
        Route("/api/export.csv", export_csv, methods=["GET"]),
        Route("/api/map", map_data, methods=["GET"]),
        Route("/api/settings/webhook", get_webhook, methods=["GET"]),
        Route("/api/settings/webhook", put_webhook, methods=["PUT"]),
        Route("/api/transcribe", transcribe, methods=["POST"]),
    ]

    app = Starlette(
        routes=routes,
        exception_handlers={
            NotFound: not_found,
            RecordValidationError: invalid,
            PersistenceFailure: persistence_failed,
            TranscriptionError: transcription_failed,
        },
    )

    if allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allow_origins,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["*"],
        )

    app.state.registry = reg
    return app
