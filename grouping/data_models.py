from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class Signup(BaseModel):
    """
    Represents one person who registered interest through the signup form.

    `sections` is kept exactly as stored (a comma-joined string); the first
    usable token is the primary section used as the diversity key.
    """

    id: str
    email: str = ""
    phone: str = ""
    date_preference: str = ""
    sections: str = ""
    section_other: str = ""
    coffee_personality: str = ""
    lull_response: str = ""
    unknown_social: str = ""
    enjoy_gatherings: str = ""
    background_soundtrack: str = ""
    wild_order_reaction: str = ""
    timestamp: Optional[str] = None
    grouped: bool = False

    @property
    def primary_section(self) -> str:
        from .engine import primary_section

        return primary_section(self.sections)


class SignupSubmission(BaseModel):
    """
    Client payload accepted by the collector. Every field is optional and
    blank values are stored as empty strings.
    """

    email: Optional[str] = None
    phone: Optional[str] = None
    date_preference: Optional[str] = None
    section_other: Optional[str] = None
    sections: Optional[Union[List[str], str]] = None
    timestamp: Optional[str] = None
    coffee_personality: Optional[str] = None
    lull_response: Optional[str] = None
    unknown_social: Optional[str] = None
    enjoy_gatherings: Optional[str] = None
    background_soundtrack: Optional[str] = None
    wild_order_reaction: Optional[str] = None

    @field_validator("sections", mode="before")
    @classmethod
    def _coerce_sections(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return value

    def joined_sections(self) -> str:
        if isinstance(self.sections, list):
            return ", ".join(self.sections)
        return self.sections or ""

    def to_fields(self) -> Dict[str, Any]:
        """Airtable field map for a new Signups record."""
        return {
            "Email": self.email or "",
            "Phone": self.phone or "",
            "DatePreference": self.date_preference or "",
            "Sections": self.joined_sections(),
            "SectionOther": self.section_other or "",
            "Timestamp": self.timestamp or _utc_now_iso(),
            "Grouped": False,
            "CoffeePersonality": self.coffee_personality or "",
            "LullResponse": self.lull_response or "",
            "UnknownSocial": self.unknown_social or "",
            "EnjoyGatherings": self.enjoy_gatherings or "",
            "BackgroundSoundtrack": self.background_soundtrack or "",
            "WildOrderReaction": self.wild_order_reaction or "",
        }


class FormedGroup(BaseModel):
    """A cohort produced by the engine, not yet persisted."""

    date_preference: str
    vibe: str
    members: List[Signup]

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def member_ids(self) -> List[str]:
        return [m.id for m in self.members]

    @property
    def member_emails(self) -> List[str]:
        return [m.email for m in self.members if m.email]

    def to_fields(self, created_at: Optional[str] = None) -> Dict[str, Any]:
        return {
            "DatePreference": self.date_preference,
            "Vibe": self.vibe,
            "Members": ", ".join(self.member_emails),
            "MemberIds": ", ".join(self.member_ids),
            "Size": self.size,
            "CreatedAt": created_at or _utc_now_iso(),
        }


class Group(BaseModel):
    """A persisted Groups record."""

    id: str
    date_preference: str = ""
    vibe: str = ""
    members: str = ""
    member_ids: List[str] = Field(default_factory=list)
    size: int = 0
    created_at: Optional[str] = None


class GroupSummary(BaseModel):
    """Item of the grouping handler response: `{id, pref, vibe, size}`."""

    id: str
    pref: str
    vibe: str
    size: int


class GroupingFailure(BaseModel):
    """A group the run could not complete.

    Fields:
        pref: Bucket date preference.
        vibe: Bucket vibe.
        member_ids: Signup ids of the tentative group.
        stage: `claim`, `create` or `mark`.
        error: Upstream or local error message.
        status_code: Upstream HTTP status, when there was one.
        group_id: Id of the created group when the failure happened after creation.
    """

    pref: str
    vibe: str
    member_ids: List[str]
    stage: str
    error: str
    status_code: Optional[int] = None
    group_id: Optional[str] = None


class GroupingReport(BaseModel):
    """Outcome of a single grouping run.

    `leftover_ids` holds only the bucket remainders the engine could not place.
    Members of groups skipped at the `claim` or `create` stage are also still
    ungrouped; `unassigned_ids` covers both.
    """

    groups: List[GroupSummary] = Field(default_factory=list)
    failures: List[GroupingFailure] = Field(default_factory=list)
    leftover_ids: List[str] = Field(default_factory=list)
    recovered_ids: List[str] = Field(default_factory=list)

    @property
    def unassigned_ids(self) -> List[str]:
        skipped = [i for f in self.failures if f.stage in ("claim", "create") for i in f.member_ids]
        return self.leftover_ids + skipped
