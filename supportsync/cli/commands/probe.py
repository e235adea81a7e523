"""Probe command: fetch one conversation's messages and print the raw answer."""

from __future__ import annotations

import asyncio

import click

from supportsync.cli.helpers import fail, settings_for
from supportsync.cli.types import AppEnv
from supportsync.config import Settings
from supportsync.errors import SourceError
from supportsync.lib.json import dumps as json_dumps
from supportsync.sources.client import ProbeResult, SupportApiClient


async def _probe(settings: Settings, conversation_id: str) -> ProbeResult:
    async with SupportApiClient.from_settings(settings) as client:
        return await client.probe(conversation_id)


@click.command("probe")
@click.argument("conversation_id")
@click.option("--json", "json_mode", is_flag=True, help="Emit url, status and body as one JSON object")
@click.pass_obj
def probe_command(env: AppEnv, conversation_id: str, json_mode: bool) -> None:
    """Check credentials and URLs against CONVERSATION_ID's messages endpoint."""
    settings = settings_for(env, "probe")
    if settings.api_token is None and not json_mode:
        env.console.print("[yellow]No API token configured; request is unauthenticated.[/yellow]")
    try:
        result = asyncio.run(_probe(settings, conversation_id))
    except SourceError as exc:
        fail("probe", str(exc))

    if json_mode:
        click.echo(json_dumps({"url": result.url, "status": result.status, "body": result.body}))
    else:
        style = "green" if result.status < 400 else "red"
        env.console.print(f"GET {result.url}")
        env.console.print(f"[{style}]HTTP {result.status}[/{style}]")
        body = result.body if isinstance(result.body, str) else json_dumps(result.body)
        env.console.print(body, markup=False, highlight=False)
    if result.status >= 400:
        raise SystemExit(1)


__all__ = ["probe_command"]
