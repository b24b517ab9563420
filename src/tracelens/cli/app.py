"""Main Typer CLI application for tracelens."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from tracelens.config import AnalysisConfig, SettingsApiKeyLookup, get_settings
from tracelens.core.exceptions import StorageError, TracelensError
from tracelens.core.models import AnalysisMode, FailureInfo, ProviderType
from tracelens.embeddings import create_embedding_providers
from tracelens.llm.config import PROVIDER_CONFIGS
from tracelens.llm.providers import create_default_registry
from tracelens.logging import configure_logging
from tracelens.orchestrator import AnalysisOrchestrator
from tracelens.retrieval import (
    DocumentParser,
    DocumentStore,
    RetrievalService,
    refresh_document_store,
)

app = typer.Typer(
    name="tracelens",
    help="Retrieval-augmented AI analysis of failed test runs",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


@app.callback()
def _configure() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, json_format=settings.log_json_format)


def _open_store(database: Path | None) -> DocumentStore:
    return DocumentStore.from_path(str(database or get_settings().database_path))


def _parse_provider(value: str | None) -> ProviderType | None:
    return ProviderType.from_id(value) if value else None


@app.command()
def ingest(
    documents_dir: Annotated[
        Path | None,
        typer.Argument(help="Directory of markdown knowledge files"),
    ] = None,
    database: Annotated[
        Path | None,
        typer.Option("-d", "--database", help="SQLite document store path"),
    ] = None,
    keep_existing: Annotated[
        bool,
        typer.Option("--keep-existing", help="Do not clear the store before ingesting"),
    ] = False,
) -> None:
    """Parse knowledge files, embed them and rebuild the document store."""
    directory = documents_dir or Path(get_settings().documents_dir)
    documents = DocumentParser().parse_directory(directory)
    if not documents:
        err_console.print(f"[red]No documents found in {directory}[/red]")
        raise typer.Exit(code=1)

    api_keys = SettingsApiKeyLookup()

    async def _run():
        providers = create_embedding_providers()
        return await refresh_document_store(
            _open_store(database),
            documents,
            providers,
            api_keys,
            clear_existing=not keep_existing,
        )

    try:
        report = asyncio.run(_run())
    except StorageError as e:
        err_console.print(f"[red]Document store error: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"Inserted [bold]{report.inserted}[/bold] documents")
    for provider, count in sorted(report.embedded.items()):
        console.print(f"  {provider}: {count} embeddings")
    for failure in report.failures:
        err_console.print(f"[yellow]{failure}[/yellow]")
    raise typer.Exit(code=1 if report.has_failures else 0)


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Text to search the knowledge base for")],
    provider: Annotated[
        str | None,
        typer.Option("-p", "--provider", help="Embedding provider (openai, gemini)"),
    ] = None,
    overview: Annotated[
        bool,
        typer.Option("--overview", help="Return fewer documents"),
    ] = False,
    database: Annotated[
        Path | None,
        typer.Option("-d", "--database", help="SQLite document store path"),
    ] = None,
) -> None:
    """Show the documents most similar to a query."""
    settings = get_settings()
    preferred = _parse_provider(provider) or ProviderType.from_id(settings.preferred_provider)
    mode = AnalysisMode.OVERVIEW if overview else AnalysisMode.FULL

    try:
        service = RetrievalService(
            _open_store(database),
            create_embedding_providers(),
            SettingsApiKeyLookup(settings),
            preferred_provider=preferred,
            similarity_threshold=settings.similarity_threshold,
        )
        hits = asyncio.run(service.retrieve_relevant_documents(query, detail_level=mode))
    except TracelensError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    if not hits:
        console.print("No matching documents")
        return

    table = Table(title=f"Results for: {query}")
    table.add_column("Score", justify="right")
    table.add_column("Category")
    table.add_column("Title")
    for hit in hits:
        table.add_row(f"{hit.score:.3f}", hit.document.category, hit.document.title)
    console.print(table)


@app.command()
def validate() -> None:
    """Check connectivity for every provider that has an API key."""
    api_keys = SettingsApiKeyLookup()

    async def _run() -> dict[ProviderType, bool | None]:
        registry = create_default_registry()
        try:
            results: dict[ProviderType, bool | None] = {}
            for provider_type in registry.registered_types():
                api_key = api_keys.get_api_key(provider_type)
                provider = registry.get_provider(provider_type)
                results[provider_type] = (
                    await provider.validate_connection(api_key) if api_key else None
                )
            return results
        finally:
            await registry.aclose()

    results = asyncio.run(_run())
    all_ok = True
    for provider_type, ok in results.items():
        if ok is None:
            console.print(f"{provider_type.display_name}: [dim]no API key[/dim]")
        elif ok:
            console.print(f"{provider_type.display_name}: [green]connected[/green]")
        else:
            all_ok = False
            console.print(f"{provider_type.display_name}: [red]connection failed[/red]")
    raise typer.Exit(code=0 if all_ok else 1)


@app.command()
def discover(
    provider: Annotated[
        str | None,
        typer.Option("-p", "--provider", help="Only query this provider (openai, gemini)"),
    ] = None,
) -> None:
    """List generation models available to the configured API keys."""
    api_keys = SettingsApiKeyLookup()
    only = _parse_provider(provider)

    async def _run() -> dict[ProviderType, list[str]]:
        registry = create_default_registry()
        try:
            found: dict[ProviderType, list[str]] = {}
            for provider_type in registry.registered_types():
                api_key = api_keys.get_api_key(provider_type)
                if (only and provider_type is not only) or not api_key:
                    continue
                found[provider_type] = await registry.get_provider(
                    provider_type
                ).discover_available_models(api_key)
            return found
        finally:
            await registry.aclose()

    try:
        found = asyncio.run(_run())
    except TracelensError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    if not found:
        err_console.print("[yellow]No provider has an API key configured[/yellow]")
        raise typer.Exit(code=1)
    for provider_type, model_ids in found.items():
        console.print(f"[bold]{provider_type.display_name}[/bold] ({len(model_ids)} models)")
        for model_id in model_ids:
            console.print(f"  {model_id}")


@app.command()
def analyze(
    failure_file: Annotated[
        Path,
        typer.Argument(help="JSON file describing the failure"),
    ],
    model: Annotated[
        str | None,
        typer.Option("-m", "--model", help="Model id (defaults to the provider's default)"),
    ] = None,
    provider: Annotated[
        str | None,
        typer.Option("-p", "--provider", help="Provider (openai, gemini)"),
    ] = None,
    overview: Annotated[
        bool,
        typer.Option("--overview", help="Short summary instead of a full analysis"),
    ] = False,
    no_retrieval: Annotated[
        bool,
        typer.Option("--no-retrieval", help="Do not augment the prompt with documents"),
    ] = False,
    show_prompt: Annotated[
        bool,
        typer.Option("--show-prompt", help="Print the prompt sent to the model"),
    ] = False,
    output_format: Annotated[
        str,
        typer.Option("-f", "--output-format", help="Output format (text, json)"),
    ] = "text",
    database: Annotated[
        Path | None,
        typer.Option("-d", "--database", help="SQLite document store path"),
    ] = None,
) -> None:
    """Analyze one failure described in a JSON file."""
    try:
        failure = FailureInfo.from_dict(json.loads(failure_file.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, TracelensError) as e:
        err_console.print(f"[red]Cannot read failure file: {e}[/red]")
        raise typer.Exit(code=1) from e

    settings = get_settings()
    base = AnalysisConfig.from_settings(settings)
    provider_type = _parse_provider(provider) or base.preferred_provider
    model_id = model or base.default_model_id or PROVIDER_CONFIGS[provider_type].default_model
    config = AnalysisConfig(
        feature_enabled=base.feature_enabled,
        retrieval_enabled=base.retrieval_enabled and not no_retrieval,
        preferred_provider=provider_type,
        default_model_id=model_id,
        window_size=base.window_size,
        show_prompt=show_prompt or base.show_prompt,
        analysis_timeout_seconds=base.analysis_timeout_seconds,
        custom_instructions=base.custom_instructions,
    )
    api_keys = SettingsApiKeyLookup(settings)
    mode = AnalysisMode.OVERVIEW if overview else AnalysisMode.FULL

    async def _run():
        registry = create_default_registry()
        retrieval = None
        if config.retrieval_enabled:
            retrieval = RetrievalService(
                _open_store(database),
                create_embedding_providers(registry.http_client),
                api_keys,
                preferred_provider=provider_type,
                similarity_threshold=settings.similarity_threshold,
            )
        orchestrator = AnalysisOrchestrator(config, registry, api_keys, retrieval=retrieval)
        try:
            orchestrator.on_test_run_started()
            return await orchestrator.analyze_failure(failure, mode)
        finally:
            await registry.aclose()

    try:
        result = asyncio.run(_run())
    except StorageError as e:
        err_console.print(f"[red]Document store error: {e}[/red]")
        raise typer.Exit(code=1) from e

    if output_format == "json":
        console.print_json(json.dumps(result.to_dict()))
    else:
        if result.has_prompt:
            console.rule("Prompt")
            console.print(result.prompt, markup=False)
        console.rule(result.description)
        console.print(result.analysis, markup=False)
    raise typer.Exit(code=1 if result.is_failed else 0)


def main() -> None:
    """Entry point for the Typer CLI."""
    app()
