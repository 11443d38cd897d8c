import asyncio
import json
from pathlib import Path
import logging

import typer

from commitstatus.config import SETTINGS
from commitstatus.db_migrations import migrate_db
from commitstatus.logger import configure_logging, get_log_handlers
from commitstatus.model import PipelineActivity, WorkloadInstance
from commitstatus.runtime import open_runtime
from commitstatus.storage import StatusStore

logger = logging.getLogger("commitstatus")

app = typer.Typer()


@app.callback()
def init():
    configure_logging(SETTINGS)
    logger.setLevel(SETTINGS.OVERRIDE_LOGGING)
    get_log_handlers(logger, SETTINGS)


@app.command()
def serve(host: str = "0.0.0.0", port: int = 8000):
    from commitstatus.web import create_app

    create_app(SETTINGS).run(host=host, port=port, single_process=True)


@app.command()
def migrate(revision: str = "head"):
    migrate_db(SETTINGS.DB_PATH, revision=revision)
    typer.echo(f"Migrated {SETTINGS.DB_PATH} to {revision}")


@app.command()
def reconcile(pod_file: Path):
    """Reconcile a single pod manifest and post the resulting statuses."""
    instance = WorkloadInstance.from_pod(json.loads(pod_file.read_text()))

    async def handle():
        async with open_runtime(SETTINGS) as runtime:
            results = await runtime.reconciler.on_workload_instance(instance)
            for result in results:
                typer.echo(f"{result.name}: {result.action}")
                if result.changed:
                    await runtime.evaluator.on_status_record(
                        result.record, sha=result.sha or None
                    )

    asyncio.run(handle())


@app.command()
def record_activity(name: str, uid: str):
    """Record the uid of the pipeline activity ``name`` for a build."""
    store = StatusStore(SETTINGS.DB_PATH)
    store.initialize()
    store.upsert_activity(PipelineActivity(name=name, uid=uid))
    typer.echo(f"Recorded {name} uid={uid}")


@app.command()
def evaluate(name: str):
    async def handle():
        async with open_runtime(SETTINGS) as runtime:
            record = runtime.store.get(name)
            if record is None:
                typer.echo(f"No commit status named {name}", err=True)
                raise typer.Exit(code=1)
            for notification in await runtime.evaluator.on_status_record(record):
                typer.echo(f"{notification.state}: {notification.description}")

    asyncio.run(handle())


def main():
    app()
