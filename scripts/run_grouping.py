"""Run one grouping batch against Airtable (for cron / scheduled jobs).

Pseudocode:
1) Load settings from the environment (.env supported)
2) Fetch ungrouped signups
3) Form and persist groups via grouping.runner.GroupingRun
4) Print a brief summary; exit non-zero on failure

Notes:
- Schedule at most one run at a time. Two concurrent runs can still race on
  the same signups between the claim check and the mark step.
"""

from __future__ import annotations

from pathlib import Path
import logging
import sys

# Ensure project root (parent of scripts/) is on sys.path for package imports
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from grouping.config import Settings
from grouping.runner import GroupingRun, fetch_ungrouped
from grouping.store import AirtableStore
from dotenv import load_dotenv


def main() -> int:
    """Entry point to run a grouping batch.

    Returns:
        Process exit code: 0 when every formed group was persisted, 2 when some were skipped.

    Raises:
        ConfigurationError: If Airtable credentials are missing.
        StoreError: If Airtable rejects the fetch, or any write under fail-fast.
    """
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = Settings()
    store = AirtableStore.from_settings(settings)

    # 1) Load signups
    print(f"[1/3] Fetching ungrouped signups from '{settings.signups_table}'...")
    signups = fetch_ungrouped(store, settings.signups_table)
    print(f"       Loaded {len(signups)} signups.")

    # 2) Form + persist
    print(f"[2/3] Grouping (group_size={settings.group_size}, policy={settings.failure_policy.value})...")
    report = GroupingRun.from_settings(store, settings).run(signups)

    # 3) Report summary
    print("[3/3] Summary")
    for g in report.groups:
        print(f"   - {g.id}: {g.pref} / {g.vibe} ({g.size} people)")
    for f in report.failures:
        print(f"   ! skipped at {f.stage}: {f.pref} / {f.vibe} ({len(f.member_ids)} people): {f.error}")
    if report.recovered_ids:
        print(f"Re-flagged {len(report.recovered_ids)} signups from earlier groups.")
    print(f"Done. Created {len(report.groups)} groups; {len(report.unassigned_ids)} signups wait for the next run.")
    return 2 if report.failures else 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:
        print(f"Error: {exc}")
        sys.exit(1)
