"""
Orchestrates a grouping run against the store.

Steps:
1. Fetch signups not yet grouped (fresh every run).
2. Re-flag members of groups that were created by an interrupted run.
3. Form groups with the engine.
4. For each group: confirm its members are still ungrouped, create the group
   record, then flag the members grouped.

Per-group failures follow the configured FailurePolicy.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

import requests

from .config import FailurePolicy, Settings
from .data_models import FormedGroup, GroupingFailure, GroupingReport, GroupSummary, Signup
from .engine import DEFAULT_GROUP_SIZE, form_groups, leftover_signups
from .ingest import group_from_record, signups_from_records
from .store import StoreError, record_id_formula

logger = logging.getLogger(__name__)

UNGROUPED_FORMULA = "NOT({Grouped})"
# Per-group errors a best-effort run records and moves past
STORE_FAILURES = (StoreError, requests.RequestException)


class RecordStore(Protocol):
    def list_records(
        self,
        table: str,
        formula: Optional[str] = None,
        sort: Optional[Any] = None,
        fields: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]: ...

    def create_record(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]: ...

    def update_records(self, table: str, updates: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]: ...


def fetch_ungrouped(store: RecordStore, signups_table: str) -> List[Signup]:
    records = store.list_records(signups_table, formula=UNGROUPED_FORMULA)
    return [s for s in signups_from_records(records) if not s.grouped]


def mark_grouped(store: RecordStore, signups_table: str, ids: Sequence[str]) -> None:
    updates = [{"id": i, "fields": {"Grouped": True}} for i in ids]
    store.update_records(signups_table, updates)


def recover_unmarked_groups(
    store: RecordStore,
    signups_table: str,
    groups_table: str,
    pending: Sequence[Signup],
) -> List[str]:
    """
    Flag signups that already belong to a stored group but are still ungrouped.

    This completes runs that created a group and then failed to mark its members.

    Returns:
        List[str]: The signup ids that were flagged.
    """
    pending_ids = {s.id for s in pending}
    if not pending_ids:
        return []
    stranded: List[str] = []
    for record in store.list_records(groups_table, fields=["MemberIds"]):
        group = group_from_record(record)
        for member_id in group.member_ids:
            if member_id in pending_ids and member_id not in stranded:
                stranded.append(member_id)
    if stranded:
        logger.warning("Re-flagging %d signups from previously created groups", len(stranded))
        mark_grouped(store, signups_table, stranded)
    return stranded


def still_ungrouped(store: RecordStore, signups_table: str, group: FormedGroup) -> bool:
    """True when every member of `group` is still unclaimed in the store."""
    formula = f"AND({UNGROUPED_FORMULA}, {record_id_formula(group.member_ids)})"
    records = store.list_records(signups_table, formula=formula, fields=["Grouped"])
    return {r.get("id") for r in records} >= set(group.member_ids)


class GroupingRun:
    """One fetch-form-persist cycle."""

    def __init__(
        self,
        store: RecordStore,
        signups_table: str = "Signups",
        groups_table: str = "Groups",
        group_size: int = DEFAULT_GROUP_SIZE,
        policy: FailurePolicy = FailurePolicy.BEST_EFFORT,
    ):
        self.store = store
        self.signups_table = signups_table
        self.groups_table = groups_table
        self.group_size = group_size
        self.policy = policy

    @classmethod
    def from_settings(cls, store: RecordStore, settings: Settings) -> "GroupingRun":
        return cls(
            store,
            signups_table=settings.signups_table,
            groups_table=settings.groups_table,
            group_size=settings.group_size,
            policy=settings.failure_policy,
        )

    def _fail(self, report: GroupingReport, group: FormedGroup, stage: str, exc: Exception,
              group_id: Optional[str] = None) -> None:
        status_code = exc.status_code if isinstance(exc, StoreError) else None
        report.failures.append(
            GroupingFailure(
                pref=group.date_preference,
                vibe=group.vibe,
                member_ids=group.member_ids,
                stage=stage,
                error=str(exc),
                status_code=status_code,
                group_id=group_id,
            )
        )
        logger.warning(
            "Skipping %s step for group %s/%s (%d members): %s",
            stage, group.date_preference, group.vibe, group.size, exc,
        )
        if self.policy is FailurePolicy.FAIL_FAST:
            raise exc

    def persist(self, group: FormedGroup, report: GroupingReport) -> None:
        try:
            if not still_ungrouped(self.store, self.signups_table, group):
                self._fail(report, group, "claim", RuntimeError("Members were grouped by another run"))
                return
        except STORE_FAILURES as exc:
            self._fail(report, group, "claim", exc)
            return

        try:
            created = self.store.create_record(self.groups_table, group.to_fields())
        except STORE_FAILURES as exc:
            self._fail(report, group, "create", exc)
            return
        group_id = str(created.get("id"))
        report.groups.append(
            GroupSummary(id=group_id, pref=group.date_preference, vibe=group.vibe, size=group.size)
        )
        logger.info("Created group %s (%s / %s, %d members)", group_id, group.date_preference, group.vibe, group.size)

        try:
            mark_grouped(self.store, self.signups_table, group.member_ids)
        except STORE_FAILURES as exc:
            # The group exists; the next run's recovery step flags these members
            self._fail(report, group, "mark", exc, group_id=group_id)

    def run(self, signups: Optional[List[Signup]] = None) -> GroupingReport:
        """
        Execute the run.

        Args:
            signups: Pre-fetched ungrouped signups; fetched from the store when omitted.

        Returns:
            GroupingReport: Created groups, per-group failures and leftover ids.
        """
        report = GroupingReport()
        if signups is None:
            signups = fetch_ungrouped(self.store, self.signups_table)

        recovered = recover_unmarked_groups(self.store, self.signups_table, self.groups_table, signups)
        if recovered:
            report.recovered_ids = recovered
            done = set(recovered)
            signups = [s for s in signups if s.id not in done]

        for group in form_groups(signups, group_size=self.group_size):
            self.persist(group, report)

        report.leftover_ids = [s.id for s in leftover_signups(signups, group_size=self.group_size)]
        logger.info(
            "Grouping run done: %d groups, %d failures, %d leftover",
            len(report.groups), len(report.failures), len(report.leftover_ids),
        )
        return report


def run_grouping(store: RecordStore, settings: Settings) -> GroupingReport:
    return GroupingRun.from_settings(store, settings).run()
