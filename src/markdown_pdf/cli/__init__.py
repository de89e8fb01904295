from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..config import AppConfig, build_session_options, dump_config, load_config
from ..core import MarkdownToPDF
from ..errors import AssetServerError, ConfigurationError
from ..logging import append_summary_csv
from ..models import BatchConversionResult, RenderRequest
from ..settings import DEFAULT_WORKSPACE, apply_settings, read_settings
from ..utils import generate_run_id, iter_markdown_files, read_text, strip_extension

console = Console()

app = typer.Typer(help="Convert Markdown documents into styled HTML and PDF files")


def _load_config(path: Path | None) -> AppConfig:
    try:
        return load_config(path)
    except ConfigurationError as exc:
        console.print(f"[red]Invalid configuration[/red]: {exc}")
        raise typer.Exit(1) from exc


def _build(config: AppConfig, files: list[Path], parallel: int | None) -> None:
    if not files:
        console.print("[red]No markdown files found![/red] Exiting.")
        raise typer.Exit(1)
    console.print(f"Markdown files found: {', '.join(path.name for path in files)}")

    try:
        options = build_session_options(config)
    except ConfigurationError as exc:
        console.print(f"[red]Invalid configuration[/red]: {exc}")
        raise typer.Exit(1) from exc

    requests = [RenderRequest(text=read_text(path), title=strip_extension(path.name)) for path in files]
    parallelism = parallel or config.render.parallelism
    if parallelism > 1 and options.slug_scope == "session":
        console.print("[red]Invalid configuration[/red]: concurrent conversion requires slug_scope = \"document\"")
        raise typer.Exit(1)
    session = MarkdownToPDF(options)
    try:
        session.start()
    except (AssetServerError, ConfigurationError) as exc:
        console.print(f"[red]Could not start image server[/red]: {exc}")
        raise typer.Exit(1) from exc
    serving_images = session.image_server_url is not None
    if serving_images:
        console.print(f"Started image server with image folder route '{options.image_dir}'.")
    try:
        batch = asyncio.run(session.convert_many(requests, parallelism=parallelism))
    finally:
        session.close()
        if serving_images:
            console.print("Gracefully shut down image server.")

    _write_outputs(config, batch)
    _report(batch)
    if config.output.summary_csv:
        append_summary_csv(config.output.output_dir / config.output.summary_csv, batch.summary, generate_run_id("batch"))
    if batch.summary.failures:
        raise typer.Exit(1)


def _write_outputs(config: AppConfig, batch: BatchConversionResult) -> None:
    output_dir = config.output.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    for result in batch.runs:
        if config.output.build_html:
            result.write_html(output_dir / f"{result.title}.html")
            console.print(f"Built HTML file: {result.title}.html")
        result.write_pdf(output_dir / f"{result.title}.pdf")
        console.print(f"Built PDF file: {result.title}.pdf")
        for warning in result.warnings:
            console.print(f"[yellow]Warning[/yellow] ({result.title}): {warning}")


def _report(batch: BatchConversionResult) -> None:
    table = Table(title="Conversion summary")
    table.add_column("Document")
    table.add_column("Status")
    table.add_column("Warnings")
    for result in batch.runs:
        table.add_row(result.title, "[green]ok[/green]", str(len(result.warnings)) if result.warnings else "-")
    for title, error in batch.failures.items():
        table.add_row(title, "[red]failed[/red]", error)
    console.print(table)
    console.print(
        f"Processed {batch.summary.total} files: "
        f"{batch.summary.successes} succeeded, {batch.summary.failures} failed."
    )


@app.command()
def convert(
    paths: list[Path],
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
    output_dir: Path | None = typer.Option(None, "--output-dir", help="Directory for the built files"),
    image_import: str | None = typer.Option(None, "--image-import", help="Image path prefix used in the Markdown"),
    image_dir: Path | None = typer.Option(None, "--image-dir", help="Directory the image prefix maps to"),
    toc: bool | None = typer.Option(None, "--toc/--no-toc", help="Generate a table of contents"),
    html: bool | None = typer.Option(None, "--html/--no-html", help="Also write the HTML document"),
    parallel: int | None = typer.Option(None, "--parallel", min=1, help="Documents converted concurrently"),
) -> None:
    cfg = _load_config(config)
    if image_import is not None or image_dir is not None:
        cfg.source = replace(
            cfg.source,
            image_import=image_import if image_import is not None else cfg.source.image_import,
            image_dir=image_dir if image_dir is not None else cfg.source.image_dir,
        )
    if toc is not None:
        cfg.render = replace(cfg.render, table_of_contents=toc)
    if output_dir is not None or html is not None:
        cfg.output = replace(
            cfg.output,
            output_dir=output_dir if output_dir is not None else cfg.output.output_dir,
            build_html=html if html is not None else cfg.output.build_html,
        )
    _build(cfg, list(iter_markdown_files(paths)), parallel)


@app.command()
def action(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
    workspace: Path = typer.Option(DEFAULT_WORKSPACE, "--workspace", help="Runner workspace root"),
) -> None:
    """Build every Markdown file named by the GitHub Action ``INPUT_*`` variables."""

    cfg = _load_config(config)
    try:
        cfg = apply_settings(cfg, read_settings(workspace=workspace))
    except ConfigurationError as exc:
        console.print(f"[red]Invalid action input[/red]: {exc}")
        raise typer.Exit(1) from exc
    if not cfg.source.input_dir.is_dir():
        console.print(f"[red]Input directory does not exist[/red]: {cfg.source.input_dir}")
        raise typer.Exit(1)
    _build(cfg, list(iter_markdown_files([cfg.source.input_dir])), None)


@app.command()
def show_config(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    console.print_json(dump_config(_load_config(config)))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
