from __future__ import annotations
import os
import json
import pathlib
from typing import List
import typer
from rich import print

from cairn_api.bitmap import heights_bitmap
from cairn_api.crypto import ed25519_generate, B64
from cairn_api.errors import CapacityExceeded, InvalidLeafValue, LeafNotFound, MalformedSnapshot
from cairn_api.ledger import MountainLog
from cairn_api.settings import settings

app = typer.Typer(add_completion=False, no_args_is_help=True)

SNAPSHOT_OPTION = typer.Option(
    settings.snapshot_path, "--snapshot", help="MMR snapshot JSON file"
)


def _open(snapshot: str) -> MountainLog:
    try:
        return MountainLog.open(snapshot)
    except MalformedSnapshot as e:
        print(f"[red]Bad snapshot {snapshot}: {e}[/red]")
        raise typer.Exit(code=2)


@app.command()
def gen_keys(out_dir: str = typer.Option("./keys", help="Directory to write keypair")):
    os.makedirs(out_dir, exist_ok=True)
    sk, pk = ed25519_generate()
    (pathlib.Path(out_dir) / "ed25519_private.key").write_bytes(sk)
    (pathlib.Path(out_dir) / "ed25519_public.key").write_bytes(pk)
    print(f"[green]Wrote keys to {out_dir}[/green]")


@app.command()
def append(
    values: List[str] = typer.Argument(..., help="Leaf values (UTF-8 text)"),
    snapshot: str = SNAPSHOT_OPTION,
):
    """Append leaves and rewrite the snapshot."""
    log = _open(snapshot)
    for value in values:
        try:
            result = log.append(value.encode("utf-8"))
        except (InvalidLeafValue, CapacityExceeded) as e:
            print(f"[red]Rejected {value!r}: {e}[/red]")
            raise typer.Exit(code=1)
        print(f"leaf {result.leaf_index} -> flat {result.flat_index}")
    log.save(snapshot)
    print(f"[green]size={log.acc.size} root={B64(log.root())}[/green]")


@app.command()
def root(snapshot: str = SNAPSHOT_OPTION):
    """Print the bagged root, size and peaks."""
    log = _open(snapshot)
    peaks = log.peaks()
    print(
        {
            "size": peaks.size,
            "leaf_count": peaks.leaf_count,
            "root_b64": B64(log.root()),
            "peaks_b64": peaks.peaks_b64,
        }
    )


@app.command()
def prove(
    index: int = typer.Option(..., help="Normal (insertion-order) leaf index"),
    snapshot: str = SNAPSHOT_OPTION,
    out: str = typer.Option(None, help="Write the envelope here instead of stdout"),
):
    """Emit a membership proof envelope for one leaf."""
    log = _open(snapshot)
    try:
        env = log.prove(index)
    except LeafNotFound as e:
        print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    text = json.dumps(env.model_dump(), indent=2)
    if out:
        pathlib.Path(out).write_text(text)
        print(f"[green]Wrote proof to {out}[/green]")
    else:
        typer.echo(text)


@app.command()
def verify(path: str):
    """Verify a proof envelope file; exit 1 when it does not hold."""
    from cairn_sdk.verify import verify_envelope

    try:
        obj = json.loads(pathlib.Path(path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        print(f"[red]Cannot read envelope {path}: {e}[/red]")
        raise typer.Exit(code=1)
    ok = verify_envelope(obj)
    print({"valid": ok})
    if not ok:
        raise typer.Exit(code=1)


@app.command()
def bitmap(size: int):
    """Show which heights hold a peak for a flat element count."""
    try:
        bits, remainder = heights_bitmap(size)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    print({"size": size, "bitmap": bin(bits), "remainder": remainder})


@app.command()
def sign_root(
    snapshot: str = SNAPSHOT_OPTION,
    out: str = typer.Option(None, help="Output path (default: next to the snapshot)"),
    keys_dir: str = typer.Option(None, help="Directory written by gen-keys"),
):
    """Sign the current root and write a root head."""
    if keys_dir:
        sk_path = pathlib.Path(keys_dir) / "ed25519_private.key"
        pk_path = pathlib.Path(keys_dir) / "ed25519_public.key"
    else:
        sk_path = pathlib.Path(settings.signing_key_path)
        pk_path = pathlib.Path(settings.signing_pubkey_path)
    if not sk_path.exists() or not pk_path.exists():
        print(f"[red]Signing keys missing under {sk_path.parent}; run gen-keys[/red]")
        raise typer.Exit(code=1)
    log = _open(snapshot)
    head = log.root_head(sk_path.read_bytes(), pk_path.read_bytes())
    target = pathlib.Path(out) if out else pathlib.Path(snapshot).with_name("root_head.json")
    target.write_text(json.dumps(head.model_dump(), indent=2))
    print(f"[green]Wrote root head to {target}[/green]")


if __name__ == "__main__":
    app()
