"""Command-line interface for the prompt hub."""

import sys
import time
from pathlib import Path
from typing import Optional, Tuple

import click
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from . import __version__
from .collaborators import ConsoleCollaborators, UnattendedCollaborators
from .config.settings import DEFAULT_DATA_DIR, AppSettings, Provider
from .errors import ConfigurationError
from .hub import PromptHub
from .storage.models import Prompt
from .sync.results import SyncResult
from .utils.file_utils import FileHelper
from .utils.logging import setup_logging

console = Console()

DEFAULT_CONFIG_PATH = DEFAULT_DATA_DIR / "config.yaml"


def _load_settings(ctx: click.Context) -> AppSettings:
    settings = AppSettings.from_yaml(ctx.obj['config_path'])
    if ctx.obj.get('log_level'):
        settings = settings.model_copy(update={'log_level': ctx.obj['log_level'].upper()})
    setup_logging(settings.log_level, settings.log_file, log_to_console=ctx.obj.get('verbose', False))
    return settings


def _get_hub(ctx: click.Context, interactive: bool = True) -> PromptHub:
    """Build the hub once per invocation."""
    if 'hub' not in ctx.obj:
        ui = ConsoleCollaborators(console) if interactive else UnattendedCollaborators()
        hub = PromptHub(_load_settings(ctx), ui=ui)
        ctx.obj['hub'] = hub
        ctx.call_on_close(hub.shutdown)
    return ctx.obj['hub']


def _exit_on_failure(result: SyncResult) -> None:
    # The hub already printed the message through the notifier
    if not result.success:
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option('--config', '-c', 'config_path',
              type=click.Path(path_type=Path),
              default=DEFAULT_CONFIG_PATH,
              help='Path to the YAML settings file')
@click.option('--log-level',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Override the configured log level')
@click.option('--verbose', '-v', is_flag=True, help='Print log messages to stderr')
@click.pass_context
def cli(ctx: click.Context, config_path: Path, log_level: Optional[str], verbose: bool):
    """Prompt Hub

    Keep a collection of reusable prompts with local backups and
    optional sync to a GitHub or Gitee repository.
    """
    ctx.ensure_object(dict)
    ctx.obj.update(config_path=config_path, log_level=log_level, verbose=verbose)


@cli.command()
@click.pass_context
def init(ctx: click.Context):
    """Write a settings file with the default values."""
    config_path = Path(ctx.obj['config_path']).expanduser()
    if config_path.exists():
        if not click.confirm(f"Settings file {config_path} already exists. Overwrite?"):
            return

    settings = AppSettings()
    settings.to_yaml(config_path)

    console.print(f"✅ Settings saved to {config_path}", style="green")
    console.print("\n📝 Next steps:")
    console.print("1. Edit the settings file if the defaults do not suit you")
    console.print("2. Run 'prompt-hub prompts add' to store your first prompt")
    console.print("3. Run 'prompt-hub sync configure --provider github' to enable cloud sync")


@cli.command()
@click.pass_context
def status(ctx: click.Context):
    """Show dataset, backup and sync status."""
    try:
        hub = _get_hub(ctx)
        stats = hub.get_data_stats()
        backup_summary = hub.backups.get_backup_summary()
        sync_status = hub.get_sync_status()

        console.print("📁 [bold]Data:[/bold]")
        rprint(f"   • Prompts: {stats['prompt_count']}")
        rprint(f"   • Categories: {stats['category_count']}")
        rprint(f"   • Tags: {stats['tag_count']}")
        rprint(f"   • Size: {FileHelper.format_file_size(stats['data_size'])}")
        rprint(f"   • Last saved: {stats['last_backup_time'] or 'never'}")

        console.print("\n💾 [bold]Backups:[/bold]")
        rprint(f"   • Count: {backup_summary['backup_count']}")
        rprint(f"   • Latest: {backup_summary['latest_backup'] or 'none'}")
        rprint(f"   • Directory: {backup_summary['backup_dir']}")

        console.print("\n☁️ [bold]Cloud sync:[/bold]")
        if sync_status['is_configured']:
            rprint(f"   • Provider: {sync_status['provider']}")
            rprint(f"   • Last sync: {sync_status['last_sync_time'] or 'never'}")
            auto = "[green]on[/green]" if sync_status['auto_sync_enabled'] else "[yellow]off[/yellow]"
            rprint(f"   • Auto sync: {auto}")
        else:
            rprint("   • [yellow]Not configured[/yellow]")

    except Exception as e:
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)


# Prompts

@cli.group()
def prompts():
    """Manage prompts."""
    pass


@prompts.command('list')
@click.option('--category', help='Only show prompts in this category')
@click.option('--tag', help='Only show prompts carrying this tag')
@click.pass_context
def list_prompts(ctx: click.Context, category: Optional[str], tag: Optional[str]):
    """List stored prompts."""
    try:
        items = _get_hub(ctx).get_prompts()
        if category:
            items = [p for p in items if p.category == category]
        if tag:
            items = [p for p in items if tag in p.tags]

        if not items:
            console.print("No prompts found", style="yellow")
            return

        table = Table(title=f"Prompts ({len(items)})")
        table.add_column("ID", style="dim")
        table.add_column("Title", style="cyan")
        table.add_column("Category", style="magenta")
        table.add_column("Tags")
        table.add_column("Status")
        table.add_column("Updated")

        for prompt in items:
            state = "[green]enabled[/green]" if prompt.enabled else "[red]disabled[/red]"
            table.add_row(str(prompt.id), prompt.title, prompt.category,
                          ", ".join(prompt.tags), state, prompt.updated_at)

        console.print(table)

    except Exception as e:
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)


@prompts.command('add')
@click.option('--title', '-t', prompt=True, help='Prompt title')
@click.option('--content', prompt=True, help='Prompt text')
@click.option('--category', default=None, help='Category name')
@click.option('--tag', 'tags', multiple=True, help='Tag (repeatable)')
@click.pass_context
def add_prompt(ctx: click.Context, title: str, content: str, category: Optional[str], tags: Tuple[str, ...]):
    """Add a new prompt."""
    try:
        fields = {'title': title, 'content': content, 'tags': list(tags)}
        if category:
            fields['category'] = category
        prompt = _get_hub(ctx).save_prompt(Prompt(**fields))
        console.print(f"✅ Prompt saved: {prompt.id} ({prompt.category})", style="green")

    except Exception as e:
        console.print(f"❌ Error: {e}", style="red bold")
        sys.exit(1)


@prompts.command('delete')
@click.argument('prompt_id')
@click.pass_context
def delete_prompt(ctx: click.Context, prompt_id: str):
    """Delete a prompt by id."""
    if not _get_hub(ctx).delete_prompt(prompt_id):
        console.print(f"❌ Prompt not found: {prompt_id}", style="red bold")
        sys.exit(1)
    console.print(f"🗑️ Prompt deleted: {prompt_id}", style="green")


@prompts.command('enable')
@click.argument('prompt_id')
@click.option('--off', is_flag=True, help='Disable the prompt instead')
@click.pass_context
def enable_prompt(ctx: click.Context, prompt_id: str, off: bool):
    """Enable (or with --off disable) a prompt."""
    try:
        prompt = _get_hub(ctx).store.set_prompt_enabled(prompt_id, not off)
    except KeyError as e:
        console.print(f"❌ {e.args[0]}", style="red bold")
        sys.exit(1)
    console.print(f"✅ {prompt.title} is now {'enabled' if prompt.enabled else 'disabled'}", style="green")


# Categories

@cli.group()
def categories():
    """Manage categories."""
    pass


@categories.command('list')
@click.pass_context
def list_categories(ctx: click.Context):
    """List categories with their prompt counts."""
    hub = _get_hub(ctx)
    dataset = hub.get_data()

    table = Table(title="Categories")
    table.add_column("Name", style="cyan")
    table.add_column("Prompts", justify="right")
    for name in dataset.categories:
        table.add_row(name, str(sum(1 for p in dataset.prompts if p.category == name)))
    console.print(table)


@categories.command('add')
@click.argument('name')
@click.pass_context
def add_category(ctx: click.Context, name: str):
    """Add a category."""
    try:
        _get_hub(ctx).store.add_category(name)
    except ValueError as e:
        console.print(f"❌ {e}", style="red bold")
        sys.exit(1)
    console.print(f"✅ Category added: {name}", style="green")


@categories.command('rename')
@click.argument('old_name')
@click.argument('new_name')
@click.pass_context
def rename_category(ctx: click.Context, old_name: str, new_name: str):
    """Rename a category and move its prompts along."""
    try:
        _get_hub(ctx).store.rename_category(old_name, new_name)
    except (KeyError, ValueError) as e:
        console.print(f"❌ {e.args[0]}", style="red bold")
        sys.exit(1)
    console.print(f"✅ Category renamed: {old_name} -> {new_name}", style="green")


@categories.command('delete')
@click.argument('name')
@click.pass_context
def delete_category(ctx: click.Context, name: str):
    """Delete a category; its prompts become uncategorized."""
    try:
        moved = _get_hub(ctx).store.delete_category(name)
    except (KeyError, ValueError) as e:
        console.print(f"❌ {e.args[0]}", style="red bold")
        sys.exit(1)
    console.print(f"🗑️ Category deleted: {name} ({moved} prompt(s) moved)", style="green")


# Backups

@cli.group()
def backup():
    """Create, list and restore local backups."""
    pass


@backup.command('create')
@click.pass_context
def create_backup(ctx: click.Context):
    """Snapshot the current data."""
    _exit_on_failure(_get_hub(ctx).create_backup())


@backup.command('list')
@click.pass_context
def list_backups(ctx: click.Context):
    """List backups, newest first."""
    backups = _get_hub(ctx).get_available_backups()
    if not backups:
        console.print("No backups yet", style="yellow")
        return

    table = Table(title=f"Backups ({len(backups)})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("File", style="cyan")
    table.add_column("Created")
    table.add_column("Size", justify="right")
    for number, info in enumerate(backups, start=1):
        table.add_row(str(number), info.path.name, info.timestamp, FileHelper.format_file_size(info.size))
    console.print(table)


@backup.command('restore')
@click.argument('path', required=False, type=click.Path(path_type=Path))
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def restore_backup(ctx: click.Context, path: Optional[Path], yes: bool):
    """Replace all data with a backup (prompts for a file if none is given)."""
    _exit_on_failure(_get_hub(ctx).restore_from_backup(path, confirm=not yes))


@cli.command('export')
@click.argument('path', required=False, type=click.Path(path_type=Path))
@click.pass_context
def export_data(ctx: click.Context, path: Optional[Path]):
    """Export all data to a JSON file."""
    _exit_on_failure(_get_hub(ctx).export_data(path))


@cli.command('import')
@click.argument('path', required=False, type=click.Path(path_type=Path))
@click.pass_context
def import_data(ctx: click.Context, path: Optional[Path]):
    """Replace all data with the content of a JSON file."""
    _exit_on_failure(_get_hub(ctx).import_data(path))


@cli.command()
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def reset(ctx: click.Context, yes: bool):
    """Delete all prompts and restore the default settings."""
    _exit_on_failure(_get_hub(ctx).clear_all_data(confirm=not yes))


# Cloud sync

@cli.group()
def sync():
    """Synchronize with a GitHub or Gitee repository."""
    pass


@sync.command('configure')
@click.option('--provider', '-p',
              type=click.Choice([p.value for p in Provider]),
              default=Provider.GITHUB.value,
              help='Repository hosting provider')
@click.pass_context
def configure_sync(ctx: click.Context, provider: str):
    """Store credentials for cloud sync after testing them."""
    _exit_on_failure(_get_hub(ctx).configure_provider_sync(provider))


@sync.command('test')
@click.pass_context
def test_sync(ctx: click.Context):
    """Test the connection to the configured repository."""
    _exit_on_failure(_get_hub(ctx).test_connection())


@sync.command('push')
@click.pass_context
def push(ctx: click.Context):
    """Upload local data (merged with the cloud copy)."""
    _exit_on_failure(_get_hub(ctx).upload_to_cloud())


@sync.command('pull')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.pass_context
def pull(ctx: click.Context, yes: bool):
    """Replace local data with the cloud copy."""
    _exit_on_failure(_get_hub(ctx).download_from_cloud(confirm=not yes))


@sync.command('run')
@click.pass_context
def run_sync(ctx: click.Context):
    """Two-way sync with the cloud copy."""
    _exit_on_failure(_get_hub(ctx).sync_with_cloud())


@sync.command('status')
@click.pass_context
def sync_status(ctx: click.Context):
    """Show the cloud sync configuration state."""
    info = _get_hub(ctx).get_sync_status()

    table = Table(title="Cloud Sync")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Configured", "✅ Yes" if info['is_configured'] else "❌ No")
    table.add_row("Provider", info['provider'] or "-")
    table.add_row("Last sync", info['last_sync_time'] or "never")
    table.add_row("Auto sync", "on" if info['auto_sync_enabled'] else "off")
    console.print(table)


@sync.command('remove')
@click.pass_context
def remove_sync(ctx: click.Context):
    """Forget the cloud sync configuration."""
    _exit_on_failure(_get_hub(ctx).remove_cloud_config())


@sync.command('watch')
@click.pass_context
def watch(ctx: click.Context):
    """Run auto sync and automatic backups in the foreground until interrupted."""
    hub = _get_hub(ctx, interactive=False)
    try:
        hub.sync.require_cloud_config()
    except ConfigurationError as e:
        console.print(f"❌ {e}", style="red bold")
        sys.exit(1)

    hub.sync_with_cloud()
    hub.start_auto_sync()
    hub.start_auto_backup()
    if not hub.sync.is_armed:
        console.print("⚠️ Auto sync is disabled in the sync configuration", style="yellow")
        if not hub.backups.is_armed:
            return

    console.print("⏰ Running in the background, press Ctrl+C to stop", style="green")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\n👋 Stopping auto sync")
    finally:
        hub.shutdown()


if __name__ == '__main__':
    cli()
