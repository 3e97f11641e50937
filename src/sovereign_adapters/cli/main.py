"""
Typer application for smoke-testing adapter catalogues.

Catalogue authors use it to confirm that a YAML definition loads, to inspect
the resulting capabilities, and to run a single fetch (live or mocked) before
the catalogue is handed to the Gateway.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import typer

from ..adapters import AdapterError, SchemaAdapterConfig, derive_adapter_id
from ..config import RuntimeOptions, load_secrets
from ..core.logging import configure_logging
from ..core.models import AttestationContext, DataRequest, DataResponse, category_label, current_millis, current_seconds
from ..registry import AdapterRegistry, RegistryLoadError, describe_config, load_schema_configs

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Smoke-test tooling for sovereign data adapters.\n\n"
        "Command groups:\n"
        "- sources: list and describe catalogued REST adapters.\n"
        "- fetch: run one request through an adapter and print the response."
    ),
)
sources_app = typer.Typer(help="Inspect adapters declared in the catalogue.")
app.add_typer(sources_app, name="sources")

_ATTESTATION_WINDOW_S = 60


def _parse_params(values: Optional[List[str]]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    if not values:
        return params
    for entry in values:
        if "=" not in entry:
            raise typer.BadParameter(f"Parameter '{entry}' must use key=value format.")
        key, value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise typer.BadParameter(f"Parameter '{entry}' is missing a key.")
        params[key] = value
    return params


@app.callback(invoke_without_command=False)
def main(
    ctx: typer.Context,
    catalog: Path = typer.Option(
        ...,
        "--catalog",
        "-c",
        help="YAML catalogue of REST adapter definitions.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
    mock: bool = typer.Option(False, "--mock", help="Force every adapter onto its mock path."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level override (e.g. DEBUG)."),
) -> None:
    """
    Load the catalogue and store it in Typer's state for child commands.
    """

    configure_logging(log_level, force=log_level is not None)
    try:
        configs = load_schema_configs(catalog)
    except RegistryLoadError as exc:
        typer.echo(f"Failed to load catalogue: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    options = RuntimeOptions(use_mocks=True) if mock else RuntimeOptions.from_env()
    state = ctx.ensure_object(dict)
    state["configs"] = configs
    state["options"] = options


def _require_configs(ctx: typer.Context) -> List[SchemaAdapterConfig]:
    state = ctx.ensure_object(dict)
    configs = state.get("configs")
    if not isinstance(configs, list):
        raise typer.Exit(code=2)
    return configs


def _require_options(ctx: typer.Context) -> RuntimeOptions:
    state = ctx.ensure_object(dict)
    options = state.get("options")
    if not isinstance(options, RuntimeOptions):
        raise typer.Exit(code=2)
    return options


def _find_config(configs: List[SchemaAdapterConfig], adapter_id: str) -> Optional[SchemaAdapterConfig]:
    for config in configs:
        if derive_adapter_id(config) == adapter_id:
            return config
    return None


@sources_app.command("list")
def sources_list(ctx: typer.Context) -> None:
    """List catalogued adapters with basic metadata."""

    configs = _require_configs(ctx)
    if not configs:
        typer.echo("The catalogue declares no adapters.")
        raise typer.Exit(code=0)

    header = f"{'ID':<24} {'Category':<12} {'Endpoints':<9} Base URL"
    typer.echo(header)
    typer.echo("-" * len(header))
    for config in configs:
        category = category_label(config.category) or "-"
        typer.echo(f"{derive_adapter_id(config):<24} {category:<12} {len(config.endpoints):<9} {config.base_url}")


@sources_app.command("describe")
def sources_describe(
    ctx: typer.Context,
    adapter_id: str = typer.Argument(..., help="Identifier of the adapter."),
    output_json: bool = typer.Option(False, "--json", help="Emit the definition in JSON format."),
) -> None:
    """Show the endpoint table and declared capabilities of one adapter."""

    config = _find_config(_require_configs(ctx), adapter_id)
    if config is None:
        typer.echo(f"Adapter '{adapter_id}' is not catalogued.", err=True)
        raise typer.Exit(code=1)

    summary = describe_config(config)
    if output_json:
        typer.echo(json.dumps(summary, ensure_ascii=False, indent=2))
        return

    typer.echo(f"ID: {summary['id']}")
    typer.echo(f"Name: {summary['name']}")
    typer.echo(f"Category: {summary['category'] or 'N/A'}")
    typer.echo(f"Base URL: {summary['base_url']}")
    typer.echo(f"Requires Auth: {summary['requires_auth']}")
    if summary["rate_limit_per_minute"] is not None:
        typer.echo(f"Rate Limit: {summary['rate_limit_per_minute']}/min (advisory)")
    if summary["proxy"]:
        typer.echo(f"Proxy: {summary['proxy']}")
    for name, endpoint in summary["endpoints"].items():
        extraction = f" -> {endpoint['data_path']}" if endpoint["data_path"] else ""
        typer.echo(f"Endpoint {name}: {endpoint['method']} {endpoint['path']}{extraction}")


async def _run_fetch(registry: AdapterRegistry, adapter_id: str, request: DataRequest) -> DataResponse[Any]:
    try:
        adapter = registry.require(adapter_id)
        return await adapter.fetch(request)
    finally:
        await registry.dispose_all()


@app.command("fetch")
def fetch(
    ctx: typer.Context,
    adapter_id: str = typer.Argument(..., help="Identifier of the adapter."),
    endpoint: str = typer.Argument(..., help="Endpoint name from the adapter's table."),
    param: Optional[List[str]] = typer.Option(
        None,
        "--param",
        "-p",
        help="Request parameter in the form key=value. Can be repeated.",
    ),
    request_id: Optional[str] = typer.Option(None, "--request-id", help="Attach an attestation context with this id."),
    attestation_timestamp: Optional[int] = typer.Option(
        None,
        "--attestation-timestamp",
        help="Fixed as-of time in Unix milliseconds. Implies an attestation context.",
    ),
) -> None:
    """Run one request through an adapter and print the JSON response."""

    configs = _require_configs(ctx)
    options = _require_options(ctx)
    if _find_config(configs, adapter_id) is None:
        typer.echo(f"Adapter '{adapter_id}' is not catalogued.", err=True)
        raise typer.Exit(code=1)

    params: Dict[str, Any] = _parse_params(param)
    params["endpoint"] = endpoint
    context: Optional[AttestationContext] = None
    if request_id is not None or attestation_timestamp is not None:
        context = AttestationContext(
            request_id=request_id or f"cli-{current_millis()}",
            attestation_timestamp=attestation_timestamp if attestation_timestamp is not None else current_millis(),
            deadline=current_seconds() + _ATTESTATION_WINDOW_S,
        )

    registry = AdapterRegistry.from_configs(configs, secrets=load_secrets(strict=False), options=options)
    try:
        response = asyncio.run(_run_fetch(registry, adapter_id, DataRequest(params=params, attestation_context=context)))
    except AdapterError as exc:
        typer.echo(f"Adapter error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except httpx.HTTPError as exc:
        typer.echo(f"Transport error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(json.dumps(response.to_dict(), ensure_ascii=False, indent=2, default=str))
