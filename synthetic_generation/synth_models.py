#!/usr/bin/env python3
"""Pydantic models for synthetic signup rows.

These mirror the collector's stored fields so generated CSVs can be fed to
`grouping group --csv` for dry runs.
"""

from typing import List, Literal

from pydantic import BaseModel, Field


DatePreference = Literal[
    "Weekday mornings",
    "Weekday evenings",
    "Weekend",
    "",
]

CoffeePersonality = Literal[
    "Espresso (quick and intense)",
    "Latte (warm and chatty)",
    "Cold brew (slow and chill)",
    "",
]

Section = Literal[
    "Hiking",
    "Reading",
    "Board games",
    "Live music",
    "Cooking",
    "Tech",
    "Art",
    "Sports",
]


class SyntheticSignup(BaseModel):
    """Schema for a single synthetic signup row.

    Notes:
    - `id` imitates an Airtable record id (`rec` + short uuid).
    - `sections` is stored comma-joined, as the collector writes it.
    - Blank date/vibe values exercise the "Unspecified" / "Any" buckets.
    """

    id: str = Field(..., description="Synthetic record id")
    email: str = Field(..., description="Fabricated address on example.com")
    date_preference: DatePreference = ""
    coffee_personality: CoffeePersonality = ""
    sections: str = Field(default="", description="Comma-joined interest sections")
    grouped: bool = False


class SyntheticSignupBatch(BaseModel):
    signups: List[SyntheticSignup] = Field(default_factory=list)
