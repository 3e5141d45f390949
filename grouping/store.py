"""Thin Airtable REST client used by the handlers and the grouping run."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from .config import Settings

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.airtable.com/v0"
# Airtable rejects batch writes of more than 10 records
MAX_BATCH = 10

Sort = Sequence[Tuple[str, str]]


class StoreError(Exception):
    """Non-2xx response from the store. Carries the upstream status and message."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def error_message(payload: Any) -> str:
    """Pick the upstream error text: `error.message`, a string `error`, or the whole body."""
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return err
    return json.dumps(payload)


class AirtableStore:
    """
    Minimal client for the three operations the service needs:
    list-records-with-filter, create-record and batch-update-records.
    """

    def __init__(
        self,
        api_key: str,
        base_id: str,
        session: Optional[requests.Session] = None,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.base_id = base_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings, session: Optional[requests.Session] = None) -> "AirtableStore":
        settings.require_credentials()
        return cls(
            api_key=str(settings.airtable_api_key),
            base_id=str(settings.airtable_base_id),
            session=session,
            base_url=settings.airtable_api_url,
            timeout=settings.request_timeout,
        )

    def table_url(self, table: str) -> str:
        return f"{self.base_url}/{self.base_id}/{quote(table, safe='')}"

    def _request(self, method: str, table: str, **kwargs: Any) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if "json" in kwargs:
            headers["Content-Type"] = "application/json"
        resp = self.session.request(
            method,
            self.table_url(table),
            headers=headers,
            timeout=self.timeout,
            **kwargs,
        )
        try:
            payload = resp.json()
        except ValueError:
            payload = {"error": resp.text or resp.reason or "Invalid JSON from store"}
        if not resp.ok:
            message = error_message(payload)
            logger.warning("Airtable %s %s failed (%s): %s", method, table, resp.status_code, message)
            raise StoreError(resp.status_code, message)
        return payload

    def list_records(
        self,
        table: str,
        formula: Optional[str] = None,
        sort: Optional[Sort] = None,
        fields: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return every record of `table` matching `formula`, following the offset cursor.

        Args:
            table: Table name.
            formula: Airtable `filterByFormula` expression.
            sort: (field, "asc"|"desc") pairs.
            fields: Restrict returned fields.
        """
        params: Dict[str, Any] = {}
        if formula:
            params["filterByFormula"] = formula
        for i, (field, direction) in enumerate(sort or []):
            params[f"sort[{i}][field]"] = field
            params[f"sort[{i}][direction]"] = direction
        if fields:
            params["fields[]"] = list(fields)

        records: List[Dict[str, Any]] = []
        while True:
            payload = self._request("GET", table, params=params)
            records.extend(payload.get("records") or [])
            offset = payload.get("offset")
            if not offset:
                break
            params = {**params, "offset": offset}
        return records

    def create_record(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", table, json={"fields": fields})

    def update_records(self, table: str, updates: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """PATCH `updates` (`{"id", "fields"}` items) in chunks Airtable accepts."""
        updated: List[Dict[str, Any]] = []
        for start in range(0, len(updates), MAX_BATCH):
            chunk = list(updates[start:start + MAX_BATCH])
            payload = self._request("PATCH", table, json={"records": chunk})
            updated.extend(payload.get("records") or [])
        return updated


def record_id_formula(ids: Sequence[str]) -> str:
    """Formula matching any of the given record ids."""
    clauses = ", ".join(f"RECORD_ID() = '{i}'" for i in ids)
    return f"OR({clauses})" if len(ids) > 1 else clauses
