import json

import pandas as pd
import pytest
from typer.testing import CliRunner

from grouping import main as cli

from conftest import FakeStore, signup_record

runner = CliRunner()


@pytest.fixture
def store(monkeypatch):
    store = FakeStore()
    monkeypatch.setenv("AIRTABLE_API_KEY", "key")
    monkeypatch.setenv("AIRTABLE_BASE_ID", "app")
    monkeypatch.setattr(cli.AirtableStore, "from_settings", classmethod(lambda cls, settings: store))
    return store


def test_group_dry_run_from_csv(tmp_path):
    path = tmp_path / "signups.csv"
    pd.DataFrame(
        {
            "id": ["r1", "r2", "r3", "r4"],
            "date_preference": ["Weekend"] * 4,
            "sections": ["A", "B", "C", "A"],
        }
    ).to_csv(path, index=False)
    result = runner.invoke(cli.app, ["group", "--csv", str(path)])
    assert result.exit_code == 0, result.output
    assert "1 groups" in result.output
    assert "0 leftover" in result.output


def test_group_persists(store):
    store.tables["Signups"] = [signup_record(f"s{i}", sections=sec) for i, sec in enumerate("ABC")]
    result = runner.invoke(cli.app, ["group"])
    assert result.exit_code == 0, result.output
    assert "Created 1 groups" in result.output
    assert sorted(store.grouped_ids()) == ["s0", "s1", "s2"]


@pytest.mark.parametrize("size", ["0", "-1"])
def test_group_rejects_non_positive_size(store, size):
    store.tables["Signups"] = [signup_record(f"s{i}", sections=sec) for i, sec in enumerate("ABC")]
    result = runner.invoke(cli.app, ["group", "--group-size", size])
    assert result.exit_code == 2
    assert "must be a positive integer" in result.output
    assert store.tables["Groups"] == []


def test_group_missing_credentials(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("AIRTABLE_API_KEY", raising=False)
    monkeypatch.delenv("AIRTABLE_BASE_ID", raising=False)
    result = runner.invoke(cli.app, ["group"])
    assert result.exit_code == 1
    assert "Missing Airtable env vars" in result.output


def test_submit(store, tmp_path):
    payload = tmp_path / "signup.json"
    payload.write_text(json.dumps({"email": "a@example.com", "sections": ["Art"]}))
    result = runner.invoke(cli.app, ["submit", str(payload)])
    assert result.exit_code == 0, result.output
    assert store.tables["Signups"][0]["fields"]["Sections"] == "Art"


def test_export(store, tmp_path):
    store.tables["Groups"] = [
        {"id": "g1", "fields": {"Vibe": "Any", "MemberIds": "a, b, c", "Size": 3, "CreatedAt": "2026-01-01"}},
    ]
    out = tmp_path / "groups.csv"
    result = runner.invoke(cli.app, ["export", str(out)])
    assert result.exit_code == 0, result.output
    df = pd.read_csv(out)
    assert list(df["id"]) == ["g1"]
    assert list(df["member_ids"]) == ["a, b, c"]


def test_list_groups(store):
    store.tables["Groups"] = [{"id": "g1", "fields": {"Vibe": "Latte", "Size": 3}}]
    result = runner.invoke(cli.app, ["list-groups"])
    assert result.exit_code == 0, result.output
    assert "Latte" in result.output
