"""CLI entrypoint for the retrieval service."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import requests
import typer

app = typer.Typer(name="rdr", help="Reader retrieval command-line interface")
cache_app = typer.Typer(name="cache", help="Inspect or clear the in-process caches")
documents_app = typer.Typer(name="documents", help="Add or remove documents")
app.add_typer(cache_app, name="cache")
app.add_typer(documents_app, name="documents")

DEFAULT_HOST = "http://127.0.0.1:8000"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("RDR_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _resolve_owner(override: Optional[str]) -> str:
    owner = override or os.environ.get("RDR_OWNER_ID")
    if not owner:
        typer.echo("An owner id is required (--owner or RDR_OWNER_ID)", err=True)
        raise typer.Exit(code=2)
    return owner


def _request(
    method: str,
    path: str,
    host: Optional[str] = None,
    owner: Optional[str] = None,
    **kwargs,
) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    headers = kwargs.pop("headers", {})
    if owner:
        headers["X-Owner-Id"] = owner
    resp = requests.request(method, url, timeout=60, headers=headers, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def retrieve(
    q: str = typer.Argument(..., help="Query text"),
    top_k: int = typer.Option(5, "--top-k", help="Number of sources to return"),
    mode: str = typer.Option("fast", "--mode", help="fast or comprehensive"),
    article: list[str] = typer.Option([], "--article", help="Restrict to an article id (repeatable)"),
    collection: Optional[str] = typer.Option(None, "--collection", help="Restrict to a collection"),
    domain: Optional[str] = typer.Option(None, "--domain", help="Restrict to a domain"),
    raw: bool = typer.Option(False, "--raw", help="Print only the prompt block"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Fetch grounding context for a query."""
    payload: dict[str, object] = {"query": q, "top_k": top_k, "mode": mode}
    if article or collection or domain:
        payload["filter"] = {
            "article_ids": article or None,
            "collection_id": collection,
            "domain": domain,
        }
    resp = _request("POST", "/retrieve", host=host, owner=_resolve_owner(owner), json=payload)
    data = resp.json()
    if raw:
        typer.echo(data["documents"])
    else:
        typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


@app.command()
def search(
    q: str = typer.Argument(..., help="Query text"),
    type: str = typer.Option("all", "--type", help="all, concepts or articles"),
    limit: int = typer.Option(20, "--limit", help="Maximum results per entity type"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Hybrid keyword and vector search."""
    resp = _request(
        "GET",
        "/search",
        host=host,
        owner=_resolve_owner(owner),
        params={"q": q, "type": type, "limit": limit},
    )
    typer.echo(json.dumps(resp.json(), indent=2, ensure_ascii=False))


@documents_app.command("add")
def add_document(
    path: Path = typer.Argument(..., help="Text or markdown file to index"),
    title: Optional[str] = typer.Option(None, "--title", help="Document title (defaults to the file name)"),
    domain: Optional[str] = typer.Option(None, "--domain", help="Domain label"),
    collection: Optional[str] = typer.Option(None, "--collection", help="Collection id"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Store and index a local file."""
    source = path.expanduser()
    payload = {
        "title": title or source.stem,
        "body": source.read_text(encoding="utf-8"),
        "domain": domain,
        "collection_id": collection,
    }
    resp = _request("POST", "/documents", host=host, owner=_resolve_owner(owner), json=payload)
    typer.echo(json.dumps(resp.json(), indent=2))


@documents_app.command("remove")
def remove_document(
    document_id: str = typer.Argument(..., help="Document identifier"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Owner id"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Soft delete a document."""
    resp = _request("DELETE", f"/documents/{document_id}", host=host, owner=_resolve_owner(owner))
    typer.echo(json.dumps(resp.json(), indent=2))


@cache_app.command("stats")
def cache_stats(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show cache sizes and hit counts."""
    resp = _request("GET", "/cache/stats", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


@cache_app.command("clear")
def cache_clear(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Drop every cached embedding and result."""
    resp = _request("DELETE", "/cache", host=host)
    typer.echo(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    app()
