from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any

import typer

from applyday.config import get_settings
from applyday.core.records import OperationResult, RecordListController
from applyday.core.stats import StatsDeriver, StatsReady
from applyday.logging_config import configure_logging
from applyday.service.client import ApplicationsClient, ApplicationsService
from applyday.types import ApplicationRecord

app = typer.Typer(help="ApplyDay job application tracker")


def build_service() -> ApplicationsService:
    return ApplicationsClient(get_settings())


@contextmanager
def open_service() -> Iterator[ApplicationsService]:
    service = build_service()
    try:
        yield service
    finally:
        service.close()


@asynccontextmanager
async def loaded_controller(service: ApplicationsService) -> AsyncIterator[RecordListController]:
    controller = RecordListController(service)
    try:
        _check(await controller.initialize())
        yield controller
    finally:
        controller.close()


def _echo(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _fail(message: str) -> None:
    typer.echo(f"ERROR: {message}", err=True)
    raise typer.Exit(code=1)


def _check(result: OperationResult) -> None:
    if not result.ok:
        message = result.error.message if result.error else result.status
        _fail(message)


def _serialize_record(record: ApplicationRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "company": record.company,
        "job_title": record.job_title,
        "status": record.status,
        "stage_notes": record.stage_notes,
        "job_description": record.description_text,
    }


@app.command("stats")
def stats_cmd() -> None:
    """Show application totals and the conversion funnel."""
    configure_logging()

    with open_service() as service:
        deriver = StatsDeriver(service)
        try:
            state = asyncio.run(deriver.initialize())
        finally:
            deriver.close()

    if not isinstance(state, StatsReady):
        _fail(f"Error loading dashboard: {getattr(state, 'message', state.kind)}")

    funnel = state.funnel
    _echo(
        {
            "totals": funnel.snapshot.model_dump(),
            "funnel": [
                {
                    "label": stage.label,
                    "count": stage.raw_count,
                    "percentage": stage.percentage_of_applied,
                    "display": f"{stage.raw_count} ({stage.percentage_of_applied:.1f}%)",
                }
                for stage in funnel.stages
            ],
            "overall_conversion_pct": funnel.overall_conversion_pct,
        }
    )


@app.command("list")
def list_cmd() -> None:
    """List applications in server order."""
    configure_logging()

    async def _run(service: ApplicationsService) -> dict[str, Any]:
        async with loaded_controller(service) as controller:
            return {
                "count": len(controller.records),
                "applications": [_serialize_record(record) for record in controller.records],
            }

    with open_service() as service:
        _echo(asyncio.run(_run(service)))


@app.command("show")
def show_cmd(record_id: str = typer.Argument(...)) -> None:
    """Show the full record of one application."""
    configure_logging()

    async def _run(service: ApplicationsService) -> dict[str, Any]:
        async with loaded_controller(service) as controller:
            result = await controller.begin_edit(record_id)
            _check(result)
            controller.cancel()
            return _serialize_record(result.value)

    with open_service() as service:
        _echo(asyncio.run(_run(service)))


@app.command("create")
def create_cmd(
    company: str = typer.Option(..., "--company"),
    job_title: str = typer.Option(..., "--job-title"),
    job_description: str = typer.Option("", "--job-description"),
    status: str = typer.Option("applied", "--status"),
    stage_notes: str = typer.Option("", "--stage-notes"),
) -> None:
    """Create an application."""
    configure_logging()

    async def _run(service: ApplicationsService) -> dict[str, Any]:
        async with loaded_controller(service) as controller:
            _check(controller.begin_create())
            result = await controller.submit_create(
                {
                    "company": company,
                    "job_title": job_title,
                    "job_description": job_description,
                    "status": status,
                    "stage_notes": stage_notes,
                }
            )
            _check(result)
            return {"created": _serialize_record(result.value), "count": len(controller.records)}

    with open_service() as service:
        _echo(asyncio.run(_run(service)))


@app.command("update")
def update_cmd(
    record_id: str = typer.Argument(...),
    company: str | None = typer.Option(None, "--company"),
    job_title: str | None = typer.Option(None, "--job-title"),
    job_description: str | None = typer.Option(None, "--job-description"),
    status: str | None = typer.Option(None, "--status"),
    stage_notes: str | None = typer.Option(None, "--stage-notes"),
) -> None:
    """Update an application; omitted options keep their current values."""
    configure_logging()
    changes = {
        key: value
        for key, value in {
            "company": company,
            "job_title": job_title,
            "job_description": job_description,
            "status": status,
            "stage_notes": stage_notes,
        }.items()
        if value is not None
    }

    async def _run(service: ApplicationsService) -> dict[str, Any]:
        async with loaded_controller(service) as controller:
            _check(await controller.begin_edit(record_id))
            fields = controller.form.fields.model_copy(update=changes)
            result = await controller.submit_update(fields.model_dump())
            _check(result)
            return {"updated": _serialize_record(result.value)}

    with open_service() as service:
        _echo(asyncio.run(_run(service)))


@app.command("delete")
def delete_cmd(
    record_id: str = typer.Argument(...),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Delete an application after confirmation."""
    configure_logging()
    confirmed = yes or typer.confirm("Are you sure deleting this record?")

    async def _run(service: ApplicationsService) -> dict[str, Any] | None:
        async with loaded_controller(service) as controller:
            result = await controller.delete_record(record_id, confirmed=confirmed)
            if result.status == "declined":
                return None
            _check(result)
            return {"deleted": record_id, "count": len(controller.records)}

    with open_service() as service:
        payload = asyncio.run(_run(service))

    if payload is None:
        typer.echo("Aborted")
        return
    _echo(payload)
