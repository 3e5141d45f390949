#!/usr/bin/env python3
"""Generate synthetic signup data for grouping dry runs."""

import argparse
import random
from datetime import datetime
from pathlib import Path
from typing import List, Optional, get_args

import pandas as pd
import shortuuid

from synth_models import CoffeePersonality, DatePreference, Section, SyntheticSignup, SyntheticSignupBatch


DATE_PREFERENCES: List[str] = list(get_args(DatePreference))
PERSONALITIES: List[str] = list(get_args(CoffeePersonality))
SECTIONS: List[str] = list(get_args(Section))


def generate_record_id(rng: Optional[random.Random] = None) -> str:
    """Airtable-looking record id, e.g. `recA1b2C3d4E5f6G7h`. Reproducible when `rng` is seeded."""
    if rng is None:
        return f"rec{shortuuid.ShortUUID().random(length=14)}"
    alphabet = shortuuid.get_alphabet()
    return "rec" + "".join(rng.choice(alphabet) for _ in range(14))


def generate_timestamped_filename(prefix: str, extension: str) -> str:
    """Generate a timestamped filename for output files.

    Args:
        prefix: Filename prefix (e.g., "synthetic_signups")
        extension: File extension (e.g., "csv")

    Returns:
        Timestamped filename (e.g., "synthetic_signups_20241220_143022.csv")
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{timestamp}.{extension}"


def generate_signups(total: int, seed: Optional[int] = None, max_sections: int = 3) -> SyntheticSignupBatch:
    """Draw `total` signups from the small vocabularies above."""
    rng = random.Random(seed)
    signups = []
    for n in range(total):
        picked = rng.sample(SECTIONS, k=rng.randint(0, max_sections))
        signups.append(
            SyntheticSignup(
                id=generate_record_id(rng),
                email=f"person{n + 1}@example.com",
                date_preference=rng.choice(DATE_PREFERENCES),
                coffee_personality=rng.choice(PERSONALITIES),
                sections=", ".join(picked),
            )
        )
    return SyntheticSignupBatch(signups=signups)


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Generate synthetic signup data.")
    parser.add_argument("--total", type=int, required=True, help="Number of synthetic signups to generate")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible output")
    parser.add_argument("--out", type=Path, default=None, help="Output CSV path (default: data/synthetic_signups_<ts>.csv)")
    return parser.parse_args()


def main() -> None:
    """Entry point for CLI execution."""
    args = parse_args()

    output_path = args.out
    if output_path is None:
        data_dir = Path("data")
        data_dir.mkdir(exist_ok=True)
        output_path = data_dir / generate_timestamped_filename("synthetic_signups", "csv")

    print(f"Generating {args.total} synthetic signups...")
    batch = generate_signups(args.total, seed=args.seed)
    pd.DataFrame([s.model_dump() for s in batch.signups]).to_csv(output_path, index=False)
    print(f"Saved {len(batch.signups)} synthetic signups to {output_path}")


if __name__ == "__main__":
    main()
