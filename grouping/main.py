from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from rich import print
from rich.logging import RichHandler
from rich.table import Table

from .config import ConfigurationError, FailurePolicy, Settings
from .data_models import FormedGroup, GroupingReport, SignupSubmission
from .engine import form_groups, leftover_signups
from .ingest import group_from_record, groups_to_df, load_signups_csv
from .runner import GroupingRun, fetch_ungrouped
from .store import AirtableStore, StoreError


app = typer.Typer(help="Coffee Grouping CLI")


@app.callback()
def _setup(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
	load_dotenv()
	logging.basicConfig(
		level=logging.DEBUG if verbose else logging.INFO,
		format="%(message)s",
		handlers=[RichHandler(show_path=False)],
	)


def _store(settings: Settings) -> AirtableStore:
	try:
		return AirtableStore.from_settings(settings)
	except ConfigurationError as exc:
		print(f"[red]{exc}[/red] (set AIRTABLE_API_KEY and AIRTABLE_BASE_ID)")
		raise typer.Exit(code=1)


def _fail(exc: StoreError) -> None:
	print(f"[red]Airtable error {exc.status_code}:[/red] {exc.message}")
	raise typer.Exit(code=1)


def _render_formed(groups: List[FormedGroup]) -> Table:
	table = Table("#", "date_preference", "vibe", "size", "sections", "members")
	for i, g in enumerate(groups, start=1):
		sections = ", ".join(m.primary_section for m in g.members)
		table.add_row(str(i), g.date_preference, g.vibe, str(g.size), sections, ", ".join(g.member_ids))
	return table


def _render_report(report: GroupingReport) -> Table:
	table = Table("id", "pref", "vibe", "size")
	for g in report.groups:
		table.add_row(g.id, g.pref, g.vibe, str(g.size))
	return table


@app.command()
def submit(
	payload_path: Path = typer.Argument(..., help="JSON file with one signup submission"),
):
	"""Store one signup exactly as the collector endpoint would."""
	settings = Settings()
	store = _store(settings)
	submission = SignupSubmission.model_validate(json.loads(payload_path.read_text()))
	try:
		created = store.create_record(settings.signups_table, submission.to_fields())
	except StoreError as exc:
		_fail(exc)
	print(f"[green]Stored signup[/green] {created.get('id')}")


@app.command()
def group(
	group_size: Optional[int] = typer.Option(None, help="Maximum members per group (default: GROUP_SIZE or 6)"),
	policy: Optional[FailurePolicy] = typer.Option(None, help="Failure policy: 'best-effort' or 'fail-fast'"),
	dry_run: bool = typer.Option(False, "--dry-run/--no-dry-run", help="Only print groups; never write"),
	csv_path: Optional[Path] = typer.Option(None, "--csv", help="Signups CSV to group instead of the store (dry run)"),
):
	"""Form groups from every ungrouped signup and persist them."""
	settings = Settings()
	size = settings.group_size if group_size is None else group_size
	if size < 1:
		raise typer.BadParameter("must be a positive integer", param_hint="--group-size")

	if csv_path is not None or dry_run:
		if csv_path is not None:
			signups = load_signups_csv(csv_path)
		else:
			try:
				signups = fetch_ungrouped(_store(settings), settings.signups_table)
			except StoreError as exc:
				_fail(exc)
		groups = form_groups(signups, group_size=size)
		leftover = leftover_signups(signups, group_size=size)
		print(_render_formed(groups))
		print(f"[bold]{len(groups)} groups[/bold], {len(leftover)} leftover (dry run, nothing written)")
		return

	run = GroupingRun.from_settings(_store(settings), settings)
	run.group_size = size
	if policy is not None:
		run.policy = policy
	try:
		report = run.run()
	except StoreError as exc:
		_fail(exc)
	print(_render_report(report))
	for failure in report.failures:
		print(f"[yellow]Skipped ({failure.stage})[/yellow] {failure.pref} / {failure.vibe}: {failure.error}")
	print(f"[bold]Created {len(report.groups)} groups[/bold], {len(report.leftover_ids)} leftover, {len(report.unassigned_ids)} still ungrouped")


@app.command("list-groups")
def list_groups():
	"""Show stored groups, newest first."""
	settings = Settings()
	store = _store(settings)
	try:
		records = store.list_records(settings.groups_table, sort=[("CreatedAt", "desc")])
	except StoreError as exc:
		_fail(exc)
	table = Table("id", "created_at", "date_preference", "vibe", "size", "members")
	for g in (group_from_record(r) for r in records):
		table.add_row(g.id, g.created_at or "", g.date_preference, g.vibe, str(g.size), g.members)
	print(table)


@app.command()
def export(
	out_path: Path = typer.Argument(..., help="Where to write the groups CSV"),
):
	"""Write stored groups to CSV."""
	settings = Settings()
	store = _store(settings)
	try:
		records = store.list_records(settings.groups_table, sort=[("CreatedAt", "desc")])
	except StoreError as exc:
		_fail(exc)
	df = groups_to_df(group_from_record(r) for r in records)
	df.to_csv(out_path, index=False)
	print(f"[green]Wrote {len(df)} groups to[/green] {out_path}")


@app.command()
def serve(
	host: str = typer.Option("0.0.0.0", help="Bind address"),
	port: int = typer.Option(8080, envvar="PORT", help="Bind port"),
):
	"""Run the HTTP handlers under uvicorn."""
	import uvicorn

	uvicorn.run("grouping.api:app", host=host, port=port, proxy_headers=True, forwarded_allow_ips="*")


if __name__ == "__main__":
	app()
