from __future__ import annotations

import logging
from pathlib import Path

import typer

from bitcache_core import BitcacheConfig, load_config
from bitcache_core.digest import md5_file
from bitcache_core.errors import BitcacheError
from bitcache_core.gateway import GitGateway, RepositoryGateway
from bitcache_core.workflow import publish_bitstream, retrieve_bitstream

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = typer.Typer(help="Binary file cache manager using git and MD5 hashing")


def build_gateway(config: BitcacheConfig) -> RepositoryGateway:
    return GitGateway(executable=config.git_executable, ssh_key=config.ssh_key)


@app.command("publish")
def publish(
    repo: str = typer.Option(..., "--repo", help="Git repository URL."),
    source: Path = typer.Option(..., "--source", help="Source file path (digest key)."),
    bitstream: Path = typer.Option(..., "--bitstream", help="Binary file (bitstream) path."),
    path: Path = typer.Option(
        ...,
        "--path",
        help="Target directory inside the repository.",
    ),
    ssh_key: Path | None = typer.Option(
        None,
        "--ssh-key",
        help="SSH private key used by git for this invocation.",
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Optional JSON/YAML config file.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Publish a binary file to the repository keyed by the source MD5."""
    typer.echo("Publishing bitstream...")
    typer.echo(f"Computing MD5 of source file: {source}")
    try:
        config = _resolve_config(config_path, ssh_key)
        gateway = build_gateway(config)
        typer.echo(f"Cloning repository: {repo}")
        result = publish_bitstream(
            repo_url=repo,
            source=source,
            bitstream=bitstream,
            target_path=path,
            gateway=gateway,
            config=config,
        )
    except BitcacheError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if result.replaced is not None:
        typer.echo(f"Replaced previous entry at {result.replaced.binary_path}")
    if not result.committed:
        typer.echo("No changes to commit")
    typer.echo(f"binary_path = {result.entry.binary_path}")
    typer.echo(f"md5 = {result.md5}")
    typer.echo(f"Successfully published bitstream with MD5: {result.md5}")


@app.command("get")
def get(
    repo: str = typer.Option(..., "--repo", help="Git repository URL."),
    md5: str = typer.Option(..., "--md5", help="MD5 hash of the source file."),
    ssh_key: Path | None = typer.Option(
        None,
        "--ssh-key",
        help="SSH private key used by git for this invocation.",
    ),
    config_path: Path | None = typer.Option(
        None,
        "--config",
        help="Optional JSON/YAML config file.",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Copy the binary stored for an MD5 into the current directory."""
    typer.echo(f"Retrieving bitstream for MD5: {md5}")
    try:
        config = _resolve_config(config_path, ssh_key)
        gateway = build_gateway(config)
        typer.echo(f"Cloning repository: {repo}")
        result = retrieve_bitstream(
            repo_url=repo,
            md5=md5,
            gateway=gateway,
            destination_dir=Path.cwd(),
            config=config,
        )
    except BitcacheError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo("Successfully retrieved bitstream:")
    typer.echo(f"saved_to = {result.saved_to}")
    typer.echo(f"source_file = {result.entry.source_file}")
    typer.echo(f"md5 = {result.entry.md5}")
    typer.echo(f"timestamp = {result.entry.timestamp}")


@app.command("hash")
def hash_file(
    path: Path = typer.Argument(..., help="File to digest."),
) -> None:
    """Print the MD5 used as the lookup key for a source file."""
    try:
        digest = md5_file(path)
    except BitcacheError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(digest)


def _resolve_config(config_path: Path | None, ssh_key: Path | None) -> BitcacheConfig:
    config = load_config(config_path)
    if ssh_key is not None:
        config = config.model_copy(update={"ssh_key": str(ssh_key)})
    return config


def main() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
