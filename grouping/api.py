"""FastAPI app exposing the collector, grouping batch and group listing handlers."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import MISSING_CREDENTIALS_MESSAGE, Settings, get_settings
from .data_models import SignupSubmission
from .runner import GroupingRun, RecordStore
from .store import AirtableStore, StoreError

logger = logging.getLogger(__name__)

# Every method gets a JSON envelope; handlers that need one method check it themselves
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

app = FastAPI(
    title="Coffee Grouping API",
    description="Signup collector and small-group batching backed by Airtable.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store(settings: Settings = Depends(get_settings)) -> Optional[RecordStore]:
    """Store client for this request, or None when credentials are not configured."""
    if not settings.has_credentials:
        return None
    return AirtableStore.from_settings(settings)


def _ok(**body: Any) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_200_OK, content={"ok": True, **body})


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


def _missing_credentials() -> JSONResponse:
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, MISSING_CREDENTIALS_MESSAGE)


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@app.api_route("/api/collector", methods=ALL_METHODS)
async def collector(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: Optional[RecordStore] = Depends(get_store),
):
    """Store one signup submission with Grouped = false."""
    if request.method != "POST":
        return _error(status.HTTP_405_METHOD_NOT_ALLOWED, "Method Not Allowed")
    if store is None:
        return _missing_credentials()
    try:
        submission = SignupSubmission.model_validate(await _json_body(request))
        created = await run_in_threadpool(store.create_record, settings.signups_table, submission.to_fields())
        logger.info("Stored signup %s", created.get("id"))
        return _ok(id=created.get("id"))
    except StoreError as exc:
        return _error(exc.status_code, exc.message)
    except Exception as exc:
        logger.exception("Collector failed")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Unknown error")


@app.api_route("/api/group", methods=ALL_METHODS)
def group(
    settings: Settings = Depends(get_settings),
    store: Optional[RecordStore] = Depends(get_store),
):
    """Run one grouping batch over every ungrouped signup."""
    if store is None:
        return _missing_credentials()
    try:
        report = GroupingRun.from_settings(store, settings).run()
        return _ok(
            groups=[g.model_dump() for g in report.groups],
            failures=[f.model_dump() for f in report.failures],
            leftover=len(report.leftover_ids),
            unassigned=len(report.unassigned_ids),
        )
    except StoreError as exc:
        return _error(exc.status_code, exc.message)
    except Exception as exc:
        logger.exception("Grouping run failed")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Error grouping signups")


@app.api_route("/api/list-groups", methods=ALL_METHODS)
def list_groups(
    settings: Settings = Depends(get_settings),
    store: Optional[RecordStore] = Depends(get_store),
):
    """Every group record, newest first."""
    if store is None:
        return _missing_credentials()
    try:
        records = store.list_records(settings.groups_table, sort=[("CreatedAt", "desc")])
        return _ok(records=records)
    except StoreError as exc:
        return _error(exc.status_code, exc.message)
    except Exception as exc:
        logger.exception("Listing groups failed")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "Unknown error")


@app.get("/health")
def health():
    return {"status": "ok"}
