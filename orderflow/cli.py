"""Command line interface for running orderflow workers."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import typer

from orderflow import ProcessTrigger, SlackNotifier, TaskType, WorkerContext, WorkerPool
from orderflow.config import load_config
from orderflow.constants import PROCESS_SEQUENCE
from orderflow.engine import get_engine
from orderflow.storefront.api import create_app

app = typer.Typer(help="CLI for orderflow order fulfilment workers")

# Command groups
worker_app = typer.Typer(help="Commands for running task workers")
workflow_app = typer.Typer(help="Commands for managing workflow instances")
storefront_app = typer.Typer(help="Commands for the storefront endpoints")
notify_app = typer.Typer(help="Commands for Slack notifications")

app.add_typer(worker_app, name="worker")
app.add_typer(workflow_app, name="workflow")
app.add_typer(storefront_app, name="storefront")
app.add_typer(notify_app, name="notify")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", help="Logging level for all commands"),
) -> None:
    """orderflow CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@worker_app.command("run")
def worker_run(
    task_type: Optional[List[str]] = typer.Option(
        None, "--task-type", help="Task type to handle; repeat for several (default: all)"
    ),
    lifespan: Optional[float] = None,
) -> None:
    """
    Run task workers against the configured engine.

    One worker per task type polls the engine, executes each job, reports the
    stage to the storefront and Slack, and completes or fails the job.

    Args:
        task_type: Task types to subscribe to (default: every task in the process)
        lifespan: Worker timeout in seconds (default: run indefinitely)

    Example:
        orderflow worker run
        orderflow worker run --task-type reserve-inventory --lifespan 300
    """
    try:
        task_types = [TaskType(t) for t in task_type] if task_type else list(PROCESS_SEQUENCE)
    except ValueError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    config = load_config()
    engine = get_engine(config=config)
    context = WorkerContext.from_config(config)
    pool = WorkerPool(engine, context, task_types=task_types)

    async def _run() -> None:
        await engine.connect()
        try:
            await pool.run(lifespan=lifespan)
        finally:
            await context.aclose()
            await engine.disconnect()

    typer.echo(f"Starting workers: {', '.join(t.value for t in task_types)}")
    typer.echo(f"Storefront: {config.storefront.base_url}")
    asyncio.run(_run())


@workflow_app.command("start")
def workflow_start(order_id: str) -> None:
    """
    Start the order fulfilment process for an order.

    Example:
        orderflow workflow start ord_123
        # Output: Workflow started for order ord_123
        #         Process instance key: 2251799813685249
    """
    config = load_config()
    engine = get_engine(config=config)
    trigger = ProcessTrigger(engine)

    async def _start():
        await engine.connect()
        try:
            return await trigger.start_order_workflow(order_id)
        finally:
            await engine.disconnect()

    try:
        instance = asyncio.run(_start())
    except ValueError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"Workflow started for order {order_id}")
    typer.echo(f"Process instance key: {instance.process_instance_key}")


@storefront_app.command("serve")
def storefront_serve(
    host: str = "127.0.0.1",
    port: int = 9000,
    trigger_workflows: bool = typer.Option(
        True, help="Start the fulfilment workflow for orders posted to /store/orders"
    ),
) -> None:
    """
    Serve the storefront endpoints backed by an in-memory order store.

    Orders are added with ``POST /store/orders`` ({"id": ..., "display_id": ...}).
    With the zeebe engine, workers in other processes pick up the started
    workflows and report back to this server.

    Example:
        orderflow storefront serve --port 9000
        curl -X POST localhost:9000/store/orders -d '{"id": "ord_123"}'
    """
    import uvicorn

    trigger = None
    if trigger_workflows:
        trigger = ProcessTrigger(get_engine(config=load_config()))
    uvicorn.run(create_app(trigger=trigger), host=host, port=port)


@notify_app.command("test")
def notify_test(order_id: str) -> None:
    """Send a payment-verified message to check the Slack webhook."""
    notifier = SlackNotifier.from_config(load_config().slack)
    if not notifier.enabled:
        typer.echo("Slack webhook not configured")
        raise typer.Exit(code=1)

    async def _send() -> None:
        try:
            await notifier.payment_verified(order_id)
        finally:
            await notifier.aclose()

    asyncio.run(_send())
    typer.echo(f"Notification sent for order {order_id}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
