from __future__ import annotations
import os, logging
from datetime import timedelta
from typing import List, Optional
import requests
import typer
from .cache import ArtifactCache
from .config import CacheConfig, build_cache
from .errors import CacheError
from .models import PublishOptions
from .storage import storage_name

app = typer.Typer(add_completion=False, help="VCS artifact cache CLI")
state = {"config": "vcscache.toml"}
# anything here is a hard failure (exit 2), never a miss (exit 1)
HARD_ERRORS = (CacheError, requests.RequestException, OSError, ValueError)


@app.callback()
def main(config: str = typer.Option("vcscache.toml", "--config", "-c"),
         verbose: bool = typer.Option(False, "--verbose", "-v")):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    state["config"] = config


def _cache() -> ArtifactCache:
    path = state["config"]
    cfg = CacheConfig.from_file(path) if os.path.exists(path) else CacheConfig.from_mapping({})
    cfg.validate()
    return build_cache(cfg)


def _fail(e: Exception) -> None:
    typer.echo(f"error: {e}", err=True)
    raise typer.Exit(code=2)


@app.command("local-path")
def local_path(name: str):
    typer.echo(_cache().local_path(name))


@app.command()
def package(name: str, cwd: str, files: List[str]):
    try:
        typer.echo(_cache().package(name, cwd, files))
    except HARD_ERRORS as e:
        _fail(e)


@app.command()
def publish(name: str, namespace: str,
            task_id: Optional[str] = typer.Option(None, "--task-id"),
            run_id: Optional[str] = typer.Option(None, "--run-id"),
            expires_days: Optional[int] = typer.Option(None, "--expires-days"),
            rank: Optional[int] = typer.Option(None, "--rank")):
    c = _cache()
    opts = PublishOptions(task_id=task_id, run_id=run_id, rank=rank)
    if expires_days is not None:
        opts.expires = c.clock() + timedelta(days=expires_days)
    try:
        c.publish(name, namespace, opts)
    except HARD_ERRORS as e:
        _fail(e)
    typer.echo(f"Published {name} under {namespace}")


@app.command()
def resolve(name: str, namespace: str, dest: str):
    try:
        found = _cache().resolve(name, namespace, dest)
    except HARD_ERRORS as e:
        _fail(e)
    if not found:
        typer.echo(f"No cached artifact for {name} in {namespace}")
        raise typer.Exit(code=1)
    typer.echo(f"Extracted {name} into {dest}")


@app.command()
def lookup(namespace: str, name: str):
    try:
        url = _cache().lookup_remote(namespace, storage_name(name))
    except HARD_ERRORS as e:
        _fail(e)
    if not url:
        raise typer.Exit(code=1)
    typer.echo(url)


if __name__ == "__main__":
    app()
