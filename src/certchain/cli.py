"""Typer CLI for Certchain."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

app = typer.Typer(name="certchain", help="Certchain: blockchain-anchored document certification")
console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(3001, help="Bind port"),
):
    """Start the Certchain API server."""
    import uvicorn
    from certchain.app import create_app

    console.print(f"[bold green]Starting Certchain on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def keygen():
    """Generate a secp256k1 server signing key pair (PEM)."""
    from certchain.crypto.signing import generate_key_pair

    private_pem, public_pem = generate_key_pair()
    console.print("[bold]CERTCHAIN_SERVER_PRIVATE_KEY[/bold]")
    console.print(private_pem, markup=False, highlight=False)
    console.print("[bold]CERTCHAIN_SERVER_PUBLIC_KEY[/bold]")
    console.print(public_pem, markup=False, highlight=False)


@app.command("hash")
def hash_file(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to digest"),
):
    """Print the SHA-256 digest a file would be certified under."""
    from certchain.crypto.hashing import sha256_hex

    console.print(sha256_hex(path.read_bytes()))


@app.command("show-hash")
def show_hash(
    address: Optional[str] = typer.Argument(None, help="Address to read (default: signer)"),
):
    """Read the hash registered on-chain for an address."""
    from certchain.chain.client import ChainClient
    from certchain.common.config import get_settings

    client = ChainClient.from_settings(get_settings())

    async def _read() -> str:
        try:
            return await client.get_hash(address)
        finally:
            await client.close()

    try:
        stored = asyncio.run(_read())
    except Exception as e:
        console.print(f"[bold red]Error reading hash:[/bold red] {e}")
        raise typer.Exit(1)

    empty = not stored.removeprefix("0x").strip("0")
    console.print(
        f"Hash registered for {address or 'default signer'}: "
        f"{'0x (empty)' if empty else stored}"
    )


@app.command()
def health(
    url: str = typer.Option("http://localhost:3001", help="Server URL"),
):
    """Check Certchain server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
