"""Command implementations for CLI."""

import logging
from typing import Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from imagecustomizer.config import ConfigLoader, validate_config
from imagecustomizer.customize.pipeline import CustomizationPipeline
from imagecustomizer.errors import ConfigError
from imagecustomizer.models.config import CustomizeOptions
from imagecustomizer.sandbox.chroot import Chroot
from imagecustomizer.storage.azure_blob import AccessType, AzureBlobStorage


logger = logging.getLogger(__name__)

console = Console()


def _load_config(config_file: str) -> ConfigLoader:
    """Load a config and fail if it refers to missing files."""
    loader = ConfigLoader(config_file)
    config = loader.load()

    problems = validate_config(config, loader.base_config_path)
    if problems:
        raise ConfigError("; ".join(problems))
    return loader


def customize_image(options: CustomizeOptions) -> CustomizationPipeline:
    """Apply a config to an image root."""
    loader = _load_config(options.config_file)
    try:
        chroot = Chroot(options.image_root)
    except ValueError as e:
        raise ConfigError(str(e)) from e

    kwargs = {}
    if options.host_resolv_conf:
        kwargs["host_resolv_conf"] = options.host_resolv_conf

    pipeline = CustomizationPipeline(
        build_dir=options.build_dir,
        base_config_path=loader.base_config_path,
        config=loader.config.system_config,
        chroot=chroot,
        rpm_sources=options.rpm_sources,
        use_base_image_rpm_repos=options.use_base_image_rpm_repos,
        **kwargs,
    )
    pipeline.run()

    console.print(f"[green]✓[/green] Customized image at {chroot.root_dir}")
    return pipeline


def show_config(config_file: str) -> None:
    """Validate a config and print a summary of what it changes."""
    loader = _load_config(config_file)
    system_config = loader.config.system_config

    table = Table(title="System config")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Hostname", system_config.hostname or "[dim]unchanged[/dim]")
    table.add_row("Packages to install", ", ".join(system_config.packages_install) or "-")
    table.add_row("Packages to remove", ", ".join(system_config.packages_remove) or "-")
    table.add_row("Packages to update", ", ".join(system_config.packages_update) or "-")
    table.add_row("Update base image packages", "yes" if system_config.update_base_image_packages else "no")
    for source, destinations in system_config.additional_files.items():
        for destination in destinations:
            mode = oct(destination.permissions) if destination.permissions is not None else "source mode"
            table.add_row("Additional file", f"{source} → {destination.path} ({mode})")
    for script in system_config.post_install_scripts:
        table.add_row("Post-install script", f"{script.path} {script.args}".rstrip())
    for script in system_config.finalize_image_scripts:
        table.add_row("Finalize script", f"{script.path} {script.args}".rstrip())

    console.print(table)
    console.print("[green]✓[/green] Configuration is valid")


def _blob_client(
    storage_account: str,
    tenant_id: Optional[str],
    client_id: Optional[str],
    client_secret: Optional[str],
) -> AzureBlobStorage:
    """Create a blob client, authenticated when credentials are given."""
    if tenant_id or client_id or client_secret:
        return AzureBlobStorage.create(
            storage_account,
            AccessType.AUTHENTICATED,
            tenant_id=tenant_id,
            client_id=client_id,
            client_secret=client_secret,
        )
    return AzureBlobStorage.create(storage_account, AccessType.ANONYMOUS)


def upload_blob(
    storage_account: str,
    container: str,
    blob_name: str,
    local_path: str,
    tenant_id: Optional[str] = None,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
):
    """Upload a file to blob storage."""
    client = _blob_client(storage_account, tenant_id, client_id, client_secret)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task(f"Uploading {local_path}...", total=None)
        client.upload(local_path, container, blob_name)
        progress.update(task, completed=True)

    console.print(f"[green]✓[/green] Uploaded {local_path} to {container}/{blob_name}")


def download_blob(
    storage_account: str,
    container: str,
    blob_name: str,
    local_path: str,
    tenant_id: Optional[str] = None,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
):
    """Download a blob to a local file."""
    client = _blob_client(storage_account, tenant_id, client_id, client_secret)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task(f"Downloading {container}/{blob_name}...", total=None)
        client.download(container, blob_name, local_path)
        progress.update(task, completed=True)

    console.print(f"[green]✓[/green] Downloaded {container}/{blob_name} to {local_path}")
