"""Main CLI implementation using Typer."""

from typing import Any, Callable, List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console

from imagecustomizer.cli.commands import (
    customize_image,
    download_blob,
    show_config,
    upload_blob,
)
from imagecustomizer.errors import ImageCustomizerError
from imagecustomizer.models.config import CustomizeOptions
from imagecustomizer.utils.logging import setup_logging


# Create Typer app
app = typer.Typer(
    name="imagecustomizer",
    help="Image Customizer - sandboxed OS image customization",
    add_completion=False,
)

# Console for rich output
console = Console()


def _run_cli_command(handler: Callable[..., Any], **kwargs: Any):
    """Helper to run a CLI command with error handling."""
    try:
        handler(**kwargs)
    except ImageCustomizerError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command("customize")
def customize_command(
    image_root: str = typer.Option(..., "--image-root", "-r", help="Root directory of the image to customize"),
    config_file: str = typer.Option(..., "--config-file", "-c", help="Customization config file"),
    build_dir: str = typer.Option("./build", "--build-dir", "-b", help="Directory for temporary build files"),
    rpm_sources: Optional[List[str]] = typer.Option(
        None, "--rpm-source", help="Directory of RPMs to install from (repeatable)"
    ),
    use_base_image_rpm_repos: bool = typer.Option(
        True, "--use-base-image-rpm-repos/--no-base-image-rpm-repos",
        help="Allow the repos configured in the image",
    ),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Log level"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write a debug log to this file"),
):
    """Customize an image root according to a config file."""
    try:
        options = CustomizeOptions(
            image_root=image_root,
            config_file=config_file,
            build_dir=build_dir,
            rpm_sources=rpm_sources or [],
            use_base_image_rpm_repos=use_base_image_rpm_repos,
            log_level=log_level,
            log_file=log_file,
        )
    except ValidationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    setup_logging(options.log_level, options.log_file)
    _run_cli_command(customize_image, options=options)


@app.command("validate")
def validate_command(
    config_file: str = typer.Option(..., "--config-file", "-c", help="Customization config file"),
):
    """Validate a config file and show what it changes."""
    _run_cli_command(show_config, config_file=config_file)


# Blob storage subcommands
blob_app = typer.Typer(help="Blob storage commands")
app.add_typer(blob_app, name="blob")


@blob_app.command("upload")
def blob_upload_command(
    local_path: str = typer.Argument(..., help="File to upload"),
    storage_account: str = typer.Option(..., "--account", "-a", help="Storage account name"),
    container: str = typer.Option(..., "--container", help="Container name"),
    blob_name: str = typer.Option(..., "--blob", help="Blob name"),
    tenant_id: Optional[str] = typer.Option(None, "--tenant-id", envvar="AZURE_TENANT_ID"),
    client_id: Optional[str] = typer.Option(None, "--client-id", envvar="AZURE_CLIENT_ID"),
    client_secret: Optional[str] = typer.Option(None, "--client-secret", envvar="AZURE_CLIENT_SECRET"),
):
    """Upload a file to blob storage."""
    _run_cli_command(
        upload_blob,
        storage_account=storage_account,
        container=container,
        blob_name=blob_name,
        local_path=local_path,
        tenant_id=tenant_id,
        client_id=client_id,
        client_secret=client_secret,
    )


@blob_app.command("download")
def blob_download_command(
    local_path: str = typer.Argument(..., help="Destination file"),
    storage_account: str = typer.Option(..., "--account", "-a", help="Storage account name"),
    container: str = typer.Option(..., "--container", help="Container name"),
    blob_name: str = typer.Option(..., "--blob", help="Blob name"),
    tenant_id: Optional[str] = typer.Option(None, "--tenant-id", envvar="AZURE_TENANT_ID"),
    client_id: Optional[str] = typer.Option(None, "--client-id", envvar="AZURE_CLIENT_ID"),
    client_secret: Optional[str] = typer.Option(None, "--client-secret", envvar="AZURE_CLIENT_SECRET"),
):
    """Download a blob to a local file."""
    _run_cli_command(
        download_blob,
        storage_account=storage_account,
        container=container,
        blob_name=blob_name,
        local_path=local_path,
        tenant_id=tenant_id,
        client_id=client_id,
        client_secret=client_secret,
    )


def main():
    """Main entry point for CLI."""
    app()
