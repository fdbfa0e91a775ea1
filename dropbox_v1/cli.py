"""
Command-line interface for the Dropbox v1 SDK.

This module provides the ``dropbox-v1`` tool: store app credentials, run
the OAuth authorization steps, and work with files from the shell.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from .auth import Credentials
from .client import DropboxClient
from .config import AccessRoot, CredentialManager
from .exceptions import ConfigurationError, DropboxError
from .models import Metadata
from .session import Session
from .utils import format_file_size

console = Console()

DEFAULT_CONFIG_FILE = Path.home() / ".dropbox_v1" / "config.json"


class CLIContext:
    """CLI context object to share state between commands."""

    def __init__(self):
        self.client: Optional[DropboxClient] = None
        self.session: Optional[Session] = None
        self.config: Dict[str, Any] = {}
        self.config_file = DEFAULT_CONFIG_FILE
        self.credentials = CredentialManager()

    def load_config(self, config_file: Optional[Path] = None):
        """Load configuration from file."""
        if config_file is not None:
            self.config_file = Path(config_file)
        self.config = {}
        self.client = None
        self.session = None
        if self.config_file.exists():
            try:
                with open(self.config_file, "r") as f:
                    self.config = json.load(f)
            except (json.JSONDecodeError, IOError):
                self.config = {}

    def save_config(self):
        """Save configuration to file."""
        self.config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
            json.dump(self.config, f, indent=2)
        self.config_file.chmod(0o600)

    def get_session(self) -> Session:
        """Build a session from the stored app credentials and tokens."""
        if self.session is None:
            app_key = self.config.get("app_key") or self.credentials.get_credential("app_key")
            app_secret = self.config.get("app_secret") or self.credentials.get_credential("app_secret")
            if not app_key or not app_secret:
                raise ConfigurationError(
                    "App key not configured. Use 'dropbox-v1 config' or set DROPBOX_APP_KEY and DROPBOX_APP_SECRET."
                )

            access_token = None
            token = self.config.get("access_token") or self.credentials.get_credential("access_token")
            secret = self.config.get("access_secret") or self.credentials.get_credential("access_secret")
            if token and secret:
                access_token = Credentials(token, secret)

            self.session = Session(app_key, app_secret, access_token=access_token, locale=self.config.get("locale"))
            if self.config.get("request_token") and self.config.get("request_secret"):
                self.session.request_token = Credentials(self.config["request_token"], self.config["request_secret"])

        return self.session

    def get_client(self) -> DropboxClient:
        """Get authorized client."""
        if self.client is None:
            session = self.get_session()
            if not session.is_authorized():
                raise ConfigurationError("Not authorized. Run 'dropbox-v1 authorize' and 'dropbox-v1 verify' first.")
            self.client = DropboxClient(session, self.config.get("root", AccessRoot.DROPBOX.value))
        return self.client


cli_context = CLIContext()


def fail(action: str, error: Exception):
    console.print(f"❌ {action} failed: {error}")
    sys.exit(1)


def metadata_table(title: str, entries) -> Table:
    table = Table(title=title)
    table.add_column("Path", style="cyan")
    table.add_column("Size", style="yellow")
    table.add_column("Modified", style="magenta")
    table.add_column("Rev", style="green")

    for meta in entries:
        table.add_row(
            meta.path + ("/" if meta.is_dir else ""),
            "" if meta.is_dir else meta.size,
            meta.modified.strftime("%Y-%m-%d %H:%M") if meta.modified else "",
            meta.rev,
        )
    return table


def print_metadata(meta: Metadata):
    console.print(f"✅ {meta.path} ({'folder' if meta.is_dir else meta.size})")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_file", type=click.Path(dir_okay=False), envvar="DROPBOX_V1_CONFIG",
              default=str(DEFAULT_CONFIG_FILE), show_default=True, help="Configuration file")
@click.pass_context
def cli(ctx, debug, config_file):
    """Dropbox v1 CLI - manage files in a Dropbox account."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug

    cli_context.load_config(Path(config_file))

    if debug:
        logging.basicConfig(level=logging.DEBUG)
        console.print("[dim]Debug mode enabled[/dim]")


@cli.command()
@click.option("--app-key", prompt=True, help="Application key")
@click.option("--app-secret", prompt=True, hide_input=True, help="Application secret")
@click.option("--root", type=click.Choice([r.value for r in AccessRoot]), default=AccessRoot.DROPBOX.value,
              help="Storage root the app works under")
@click.option("--locale", help="Locale for server messages")
def config(app_key, app_secret, root, locale):
    """Configure app credentials and settings."""
    if cli_context.config.get("app_key") not in (None, app_key):
        # tokens belong to the previous app
        for key in ("request_token", "request_secret", "access_token", "access_secret"):
            cli_context.config.pop(key, None)

    cli_context.config.update({
        "app_key": app_key,
        "app_secret": app_secret,
        "root": root,
    })
    if locale:
        cli_context.config["locale"] = locale

    cli_context.save_config()
    console.print("✅ Configuration saved successfully!")


@cli.command()
@click.option("--callback", help="URL to return the user to after authorizing")
def authorize(callback):
    """Obtain a request token and print the URL where it must be authorized."""
    try:
        session = cli_context.get_session()
        session.reset()
        url = session.build_authorize_url(callback)
    except DropboxError as e:
        fail("Authorization", e)

    cli_context.config["request_token"] = session.request_token.token
    cli_context.config["request_secret"] = session.request_token.secret
    for key in ("access_token", "access_secret"):
        cli_context.config.pop(key, None)
    cli_context.save_config()

    console.print(Panel(
        f"Open this URL and allow access:\n\n{url}\n\n"
        f"Then run: dropbox-v1 verify",
        title="Authorize",
        border_style="green",
    ))


@cli.command()
@click.option("--verifier", help="Verifier code returned to the callback URL")
def verify(verifier):
    """Exchange the authorized request token for an access token."""
    try:
        session = cli_context.get_session()
        if verifier:
            if session.request_token is None:
                raise ConfigurationError("No request token stored. Run 'dropbox-v1 authorize' first.")
            access = session.exchange_for_access_token(session.request_token, verifier)
        else:
            access = session.complete_access_token()
    except DropboxError as e:
        fail("Verification", e)

    cli_context.config["access_token"] = access.token
    cli_context.config["access_secret"] = access.secret
    for key in ("request_token", "request_secret"):
        cli_context.config.pop(key, None)
    cli_context.save_config()

    console.print("✅ Access token stored.")


@cli.command()
def account():
    """Show account information."""
    try:
        info = cli_context.get_client().account_info()
    except DropboxError as e:
        fail("Account lookup", e)

    quota = info.quota_info
    table = Table(title="Dropbox Account")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Name", info.display_name)
    table.add_row("UID", str(info.uid))
    table.add_row("Country", info.country)
    table.add_row("Used", f"{format_file_size(quota.used)} of {format_file_size(quota.quota)}")
    if quota.usage_percentage is not None:
        table.add_row("Usage", f"{quota.usage_percentage:.1f}%")

    console.print(table)


@cli.command(name="ls")
@click.argument("path", default="/")
@click.option("--deleted", is_flag=True, help="Include deleted entries")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def list_folder(path, deleted, output_json):
    """List a folder."""
    try:
        meta, _ = cli_context.get_client().metadata(path, include_deleted=deleted)
    except DropboxError as e:
        fail("Listing", e)

    if output_json:
        console.print(json.dumps(meta.to_dict(), indent=2))
        return

    entries = meta.contents if meta.is_dir else [meta]
    if not entries:
        console.print("Folder is empty.")
        return
    console.print(metadata_table(meta.path or "/", entries))


@cli.command()
@click.argument("path")
@click.argument("query")
@click.option("--limit", "-l", default=0, help="Maximum number of results")
def search(path, query, limit):
    """Search a folder for names containing QUERY."""
    try:
        results = cli_context.get_client().search(path, query, file_limit=limit)
    except DropboxError as e:
        fail("Search", e)

    if not results:
        console.print("No files found matching the search criteria.")
        return
    console.print(metadata_table(f"Search Results for '{query}'", results))


@cli.command()
@click.argument("path")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file path")
@click.option("--rev", help="Revision to download")
def get(path, output, rev):
    """Download a file."""
    try:
        stream = cli_context.get_client().get_file(path, rev=rev)
    except DropboxError as e:
        fail("Download", e)

    local_path = Path(output) if output else Path(path.rstrip("/").rsplit("/", 1)[-1])
    total = stream.metadata.bytes if stream.metadata else None

    with stream, open(local_path, "wb") as f, Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(f"Downloading {local_path.name}", total=total)
        for chunk in stream.iter_content():
            f.write(chunk)
            progress.advance(task, len(chunk))

    console.print(f"✅ Downloaded: {local_path}")


@cli.command()
@click.argument("local_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("path")
@click.option("--overwrite", is_flag=True, help="Replace an existing file")
@click.option("--chunked", is_flag=True, help="Upload in chunks")
@click.option("--chunk-size", default=4 * 1024 * 1024, show_default=True, help="Chunk size in bytes")
def put(local_file, path, overwrite, chunked, chunk_size):
    """Upload LOCAL_FILE to PATH."""
    local_file = Path(local_file)
    try:
        client = cli_context.get_client()
        with open(local_file, "rb") as f:
            if chunked:
                meta = client.upload_chunked(path, f, chunk_size=chunk_size, overwrite=overwrite)
            else:
                meta = client.put_file(path, f, size=local_file.stat().st_size, overwrite=overwrite)
    except DropboxError as e:
        fail("Upload", e)

    console.print(f"✅ Uploaded: {meta.path} ({meta.size}, rev {meta.rev})")


@cli.command()
@click.argument("path")
def mkdir(path):
    """Create a folder."""
    try:
        meta = cli_context.get_client().create_folder(path)
    except DropboxError as e:
        fail("Create folder", e)
    print_metadata(meta)


@cli.command(name="rm")
@click.argument("path")
@click.confirmation_option(prompt="Are you sure you want to delete this path?")
def remove(path):
    """Delete a file or folder."""
    try:
        meta = cli_context.get_client().delete(path)
    except DropboxError as e:
        fail("Delete", e)
    console.print(f"✅ Deleted: {meta.path}")


@cli.command(name="mv")
@click.argument("from_path")
@click.argument("to_path")
def move(from_path, to_path):
    """Move or rename a file or folder."""
    try:
        meta = cli_context.get_client().move(from_path, to_path)
    except DropboxError as e:
        fail("Move", e)
    print_metadata(meta)


@cli.command(name="cp")
@click.argument("source")
@click.argument("to_path")
@click.option("--ref", is_flag=True, help="SOURCE is a copy reference, not a path")
def copy(source, to_path, ref):
    """Copy SOURCE to TO_PATH."""
    try:
        if ref:
            meta = cli_context.get_client().copy(to_path, from_copy_ref=source)
        else:
            meta = cli_context.get_client().copy(to_path, from_path=source)
    except DropboxError as e:
        fail("Copy", e)
    print_metadata(meta)


@cli.command()
@click.argument("path")
@click.option("--short", is_flag=True, help="Return a shortened URL")
def share(path, short):
    """Create a share link."""
    try:
        link = cli_context.get_client().shares(path, short_url=short)
    except DropboxError as e:
        fail("Share", e)

    console.print(Panel(
        f"URL: {link.url}\n"
        f"Expires: {link.expires.strftime('%Y-%m-%d %H:%M:%S %z') if link.expires else 'never'}",
        title="Share Link",
        border_style="green",
    ))


@cli.command()
@click.argument("path")
def media(path):
    """Create a short-lived streaming link."""
    try:
        link = cli_context.get_client().media(path)
    except DropboxError as e:
        fail("Media link", e)
    console.print(link.url)


@cli.command(name="copy-ref")
@click.argument("path")
def copy_ref(path):
    """Create a copy reference for another account."""
    try:
        ref = cli_context.get_client().copy_ref(path)
    except DropboxError as e:
        fail("Copy reference", e)
    console.print(ref.copy_ref)


@cli.command()
@click.argument("path")
@click.option("--limit", "-l", default=0, help="Maximum number of revisions")
def revisions(path, limit):
    """List revisions of a file."""
    try:
        revs = cli_context.get_client().revisions(path, rev_limit=limit)
    except DropboxError as e:
        fail("Revisions", e)
    console.print(metadata_table(f"Revisions of {path}", revs))


@cli.command()
@click.argument("path")
@click.argument("rev")
def restore(path, rev):
    """Restore a file to revision REV."""
    try:
        meta = cli_context.get_client().restore(path, rev)
    except DropboxError as e:
        fail("Restore", e)
    print_metadata(meta)


@cli.command()
@click.option("--cursor", help="Cursor from a previous delta")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def delta(cursor, output_json):
    """Show changes since CURSOR."""
    try:
        page = cli_context.get_client().delta(cursor)
    except DropboxError as e:
        fail("Delta", e)

    if output_json:
        console.print(json.dumps(page.to_dict(), indent=2))
        return

    table = Table(title="Changes" + (" (reset)" if page.reset else ""))
    table.add_column("Path", style="cyan")
    table.add_column("Change", style="green")
    for entry in page.entries:
        table.add_row(entry.path, "deleted" if entry.is_deleted else ("folder" if entry.metadata.is_dir else "file"))
    console.print(table)
    console.print(f"Cursor: {page.cursor}" + (" (more available)" if page.has_more else ""))


if __name__ == "__main__":
    cli()
