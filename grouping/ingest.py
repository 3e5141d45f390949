from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from .data_models import Group, Signup


# Airtable column -> Signup attribute
SIGNUP_FIELDS: Dict[str, str] = {
    "Email": "email",
    "Phone": "phone",
    "DatePreference": "date_preference",
    "Sections": "sections",
    "SectionOther": "section_other",
    "CoffeePersonality": "coffee_personality",
    "LullResponse": "lull_response",
    "UnknownSocial": "unknown_social",
    "EnjoyGatherings": "enjoy_gatherings",
    "BackgroundSoundtrack": "background_soundtrack",
    "WildOrderReaction": "wild_order_reaction",
    "Timestamp": "timestamp",
    "Grouped": "grouped",
}

GROUP_FIELDS: Dict[str, str] = {
    "DatePreference": "date_preference",
    "Vibe": "vibe",
    "Members": "members",
    "MemberIds": "member_ids",
    "Size": "size",
    "CreatedAt": "created_at",
}

# Accepted CSV headers for offline signup files, in priority order
FIELD_ALIASES: Dict[str, List[str]] = {
    "id": ["id", "record_id", "Record ID"],
    "email": ["email", "Email"],
    "phone": ["phone", "Phone"],
    "date_preference": ["date_preference", "DatePreference"],
    "sections": ["sections", "Sections"],
    "section_other": ["section_other", "SectionOther"],
    "coffee_personality": ["coffee_personality", "CoffeePersonality", "vibe"],
    "lull_response": ["lull_response", "LullResponse"],
    "unknown_social": ["unknown_social", "UnknownSocial"],
    "enjoy_gatherings": ["enjoy_gatherings", "EnjoyGatherings"],
    "background_soundtrack": ["background_soundtrack", "BackgroundSoundtrack"],
    "wild_order_reaction": ["wild_order_reaction", "WildOrderReaction"],
    "timestamp": ["timestamp", "Timestamp"],
    "grouped": ["grouped", "Grouped"],
}


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def split_ids(value: Any) -> List[str]:
    """Parse a comma-joined id string (or a list) into trimmed ids."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        parts = [str(v) for v in value]
    else:
        parts = str(value).split(",")
    return [p.strip() for p in parts if p.strip()]


def signup_from_record(record: Dict[str, Any]) -> Signup:
    """Build a Signup from an Airtable record (`{"id": ..., "fields": {...}}`).

    Airtable omits empty and false fields entirely, so every field is optional.
    """
    fields = record.get("fields") or {}
    data: Dict[str, Any] = {"id": str(record["id"])}
    for column, attr in SIGNUP_FIELDS.items():
        if column not in fields:
            continue
        if attr == "grouped":
            data[attr] = bool(fields[column])
        elif attr == "timestamp":
            data[attr] = _text(fields[column]) or None
        else:
            data[attr] = _text(fields[column])
    return Signup(**data)


def group_from_record(record: Dict[str, Any]) -> Group:
    fields = record.get("fields") or {}
    size = fields.get("Size") or 0
    return Group(
        id=str(record["id"]),
        date_preference=_text(fields.get("DatePreference")),
        vibe=_text(fields.get("Vibe")),
        members=_text(fields.get("Members")),
        member_ids=split_ids(fields.get("MemberIds")),
        size=int(size),
        created_at=_text(fields.get("CreatedAt")) or None,
    )


def signups_from_records(records: Iterable[Dict[str, Any]]) -> List[Signup]:
    return [signup_from_record(r) for r in records]


def get_alias_column(df: pd.DataFrame, key: str) -> Optional[str]:
    for candidate in FIELD_ALIASES.get(key, []):
        if candidate in df.columns:
            return candidate
    return None


def resolve_aliases(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    return {key: get_alias_column(df, key) for key in FIELD_ALIASES}


def clean_signup_df(df: pd.DataFrame) -> pd.DataFrame:
    """Light cleanup of a signup export: trimmed headers, collapsed whitespace, NaN -> None."""

    out = df.copy()
    out.columns = [col.strip() if isinstance(col, str) else col for col in out.columns]
    for col in out.columns:
        if pd.api.types.is_object_dtype(out[col]):
            out[col] = (
                out[col]
                .astype(str)
                .str.replace("\n", " ")
                .str.replace(r"\s+", " ", regex=True)
                .str.strip()
                .replace({"nan": None, "None": None, "": None})
            )
    return out


def _truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "y", "checked"}
    if isinstance(value, float) and pd.isna(value):
        return False
    return bool(value)


def signups_from_df(df: pd.DataFrame) -> List[Signup]:
    """Convert a cleaned signup DataFrame into Signup models.

    Rows without an id column get a positional id (`row_<n>`). Rows already
    flagged grouped are kept; callers decide whether to filter them.
    """
    alias_map = resolve_aliases(df)
    signups: List[Signup] = []
    for position, (_, row) in enumerate(df.iterrows()):
        data: Dict[str, Any] = {}
        for key, col in alias_map.items():
            if col is None:
                continue
            value = row.get(col)
            if key == "grouped":
                data[key] = _truthy(value)
            elif value is None or (isinstance(value, float) and pd.isna(value)):
                continue
            else:
                data[key] = str(value)
        data.setdefault("id", f"row_{position}")
        signups.append(Signup(**data))
    return signups


def load_signups_csv(csv_path: Path, include_grouped: bool = False) -> List[Signup]:
    df = clean_signup_df(pd.read_csv(csv_path))
    signups = signups_from_df(df)
    if include_grouped:
        return signups
    return [s for s in signups if not s.grouped]


def groups_to_df(groups: Iterable[Group]) -> pd.DataFrame:
    rows = [g.model_dump() for g in groups]
    df = pd.DataFrame(
        rows,
        columns=["id", "date_preference", "vibe", "members", "member_ids", "size", "created_at"],
    )
    df["member_ids"] = df["member_ids"].apply(lambda ids: ", ".join(ids))
    return df
