from unittest.mock import MagicMock

import pytest
import requests

from grouping.config import ConfigurationError, Settings
from grouping.store import AirtableStore, StoreError, error_message, record_id_formula


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    resp.json.return_value = payload if payload is not None else {}
    resp.text = ""
    resp.reason = ""
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


def test_table_url_encodes_name(session):
    store = AirtableStore("key", "app1", session=session)
    assert store.table_url("My Signups") == "https://api.airtable.com/v0/app1/My%20Signups"


def test_list_records_follows_offset(session):
    session.request.side_effect = [
        _response(payload={"records": [{"id": "r1"}], "offset": "next"}),
        _response(payload={"records": [{"id": "r2"}]}),
    ]
    store = AirtableStore("key", "app1", session=session)
    records = store.list_records("Signups", formula="NOT({Grouped})")
    assert [r["id"] for r in records] == ["r1", "r2"]
    first_params = session.request.call_args_list[0].kwargs["params"]
    second_params = session.request.call_args_list[1].kwargs["params"]
    assert first_params == {"filterByFormula": "NOT({Grouped})"}
    assert second_params["offset"] == "next"
    headers = session.request.call_args_list[0].kwargs["headers"]
    assert headers["Authorization"] == "Bearer key"


def test_list_records_sort_params(session):
    session.request.return_value = _response(payload={"records": []})
    store = AirtableStore("key", "app1", session=session)
    store.list_records("Groups", sort=[("CreatedAt", "desc")])
    params = session.request.call_args.kwargs["params"]
    assert params == {"sort[0][field]": "CreatedAt", "sort[0][direction]": "desc"}


def test_create_record_posts_fields(session):
    session.request.return_value = _response(payload={"id": "rec9", "fields": {}})
    store = AirtableStore("key", "app1", session=session, timeout=3)
    created = store.create_record("Signups", {"Email": "a@x.com"})
    assert created["id"] == "rec9"
    args, kwargs = session.request.call_args
    assert args[0] == "POST"
    assert kwargs["json"] == {"fields": {"Email": "a@x.com"}}
    assert kwargs["timeout"] == 3
    assert kwargs["headers"]["Content-Type"] == "application/json"


def test_update_records_chunks_by_ten(session):
    session.request.side_effect = lambda method, url, **kw: _response(payload={"records": kw["json"]["records"]})
    store = AirtableStore("key", "app1", session=session)
    updates = [{"id": f"r{i}", "fields": {"Grouped": True}} for i in range(23)]
    updated = store.update_records("Signups", updates)
    sizes = [len(c.kwargs["json"]["records"]) for c in session.request.call_args_list]
    assert sizes == [10, 10, 3]
    assert len(updated) == 23


def test_error_passthrough(session):
    session.request.return_value = _response(422, {"error": {"type": "INVALID", "message": "Bad field"}})
    store = AirtableStore("key", "app1", session=session)
    with pytest.raises(StoreError) as info:
        store.create_record("Signups", {})
    assert info.value.status_code == 422
    assert info.value.message == "Bad field"


def test_error_message_variants():
    assert error_message({"error": "NOT_FOUND"}) == "NOT_FOUND"
    assert error_message({"error": {"message": "nope"}}) == "nope"
    assert error_message({"weird": 1}) == '{"weird": 1}'


def test_record_id_formula():
    assert record_id_formula(["a"]) == "RECORD_ID() = 'a'"
    assert record_id_formula(["a", "b"]) == "OR(RECORD_ID() = 'a', RECORD_ID() = 'b')"


def test_from_settings_requires_credentials():
    with pytest.raises(ConfigurationError):
        AirtableStore.from_settings(Settings(_env_file=None, airtable_api_key="key"))


def test_from_settings(settings):
    store = AirtableStore.from_settings(settings)
    assert store.base_id == "app123"
    assert store.timeout == 10.0
