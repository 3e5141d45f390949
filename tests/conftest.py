from typing import Any, Dict, List, Optional, Sequence

import pytest

from grouping.config import Settings
from grouping.data_models import Signup


class FakeStore:
    """In-memory stand-in for AirtableStore. Understands the formulas the runner sends."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = tables or {"Signups": [], "Groups": []}
        self.calls: List[tuple] = []
        self.fail_create: Dict[int, Exception] = {}
        self.fail_update: Dict[int, Exception] = {}
        self.fail_list: Optional[Exception] = None
        # raised once, by the next lookup of specific record ids
        self.fail_lookup: Optional[Exception] = None
        self._creates = 0
        self._updates = 0

    def list_records(self, table, formula=None, sort=None, fields=None):
        self.calls.append(("list", table, formula))
        if self.fail_list is not None:
            raise self.fail_list
        if self.fail_lookup is not None and formula and "RECORD_ID()" in formula:
            exc, self.fail_lookup = self.fail_lookup, None
            raise exc
        records = list(self.tables.get(table, []))
        if formula and "NOT({Grouped})" in formula:
            records = [r for r in records if not r["fields"].get("Grouped")]
        if formula and "RECORD_ID()" in formula:
            records = [r for r in records if f"RECORD_ID() = '{r['id']}'" in formula]
        if sort:
            field, direction = sort[0]
            records.sort(key=lambda r: r["fields"].get(field, ""), reverse=direction == "desc")
        return records

    def create_record(self, table, fields):
        self._creates += 1
        self.calls.append(("create", table, fields))
        if self._creates in self.fail_create:
            raise self.fail_create[self._creates]
        record = {"id": f"rec{table[:3]}{len(self.tables.setdefault(table, [])) + 1}", "fields": dict(fields)}
        self.tables[table].append(record)
        return record

    def update_records(self, table, updates: Sequence[Dict[str, Any]]):
        self._updates += 1
        self.calls.append(("update", table, [u["id"] for u in updates]))
        if self._updates in self.fail_update:
            raise self.fail_update[self._updates]
        by_id = {r["id"]: r for r in self.tables.get(table, [])}
        for u in updates:
            by_id[u["id"]]["fields"].update(u["fields"])
        return [by_id[u["id"]] for u in updates]

    def grouped_ids(self, table: str = "Signups") -> List[str]:
        return [r["id"] for r in self.tables[table] if r["fields"].get("Grouped")]


def signup_record(rec_id: str, date: str = "Weekend", vibe: str = "Any", sections: str = "",
                  email: Optional[str] = None, grouped: bool = False) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "Email": email if email is not None else f"{rec_id}@example.com",
        "DatePreference": date,
        "CoffeePersonality": vibe,
        "Sections": sections,
    }
    if grouped:
        fields["Grouped"] = True
    return {"id": rec_id, "fields": fields}


def make_signup(rec_id: str, sections: str = "", date: str = "Weekend", vibe: str = "Any") -> Signup:
    return Signup(id=rec_id, email=f"{rec_id}@example.com", sections=sections,
                  date_preference=date, coffee_personality=vibe)


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        airtable_api_key="key123",
        airtable_base_id="app123",
    )
