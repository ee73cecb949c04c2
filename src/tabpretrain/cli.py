import json
import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer

from .config import dump_config, load_config
from .training import pretrain
from .training.checkpoint import model_to_raw
from .training.loggers import setup_logging
from .training.utils import ensure_dir, write_json

app = typer.Typer(no_args_is_help=True, help="tabpretrain: masked-reconstruction pretraining for tabular data.")

logger = logging.getLogger("tabpretrain.cli")


@app.command("pretrain")
def pretrain_cmd(
    data: Path = typer.Argument(..., exists=True, dir_okay=False, help="CSV file with one row per sample"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML/JSON config file"),
    overrides: Optional[List[str]] = typer.Option(None, "--set", "-s", help="Config override key=value"),
    outdir: Path = typer.Option(Path("runs/pretrain"), "--out", "-o", help="Directory for run artifacts"),
):
    """Pretrain on DATA and write network, metrics, importances and checkpoints to --out."""
    outdir = ensure_dir(outdir)
    setup_logging(outdir / "logs")
    try:
        cfg = load_config(config, overrides or [])
    except (ValueError, FileNotFoundError) as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(2)

    frame = pd.read_csv(data)
    logger.info("Loaded %s: %d rows x %d columns", data, frame.shape[0], frame.shape[1])
    result = pretrain(frame, cfg)

    (outdir / "network.pt").write_bytes(model_to_raw(result.network))
    for i, raw in enumerate(result.checkpoints, start=1):
        (outdir / f"checkpoint_{i:03d}.pt").write_bytes(raw)
    write_json(outdir / "metrics.json", {"epochs": [m.to_dict() for m in result.metrics]})
    result.importances.to_csv(outdir / "importances.csv", index=False)
    (outdir / "config.yaml").write_text(dump_config(cfg), encoding="utf-8")

    summary = {
        "epochs_run": result.epochs_run,
        "stopped_early": result.stopped_early,
        "checkpoints": len(result.checkpoints),
        "outdir": str(outdir),
    }
    typer.echo(json.dumps(summary, indent=2))


@app.command("show-config")
def show_config(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML/JSON config file"),
    overrides: Optional[List[str]] = typer.Option(None, "--set", "-s", help="Config override key=value"),
):
    """Print the merged, validated configuration as YAML."""
    try:
        cfg = load_config(config, overrides or [])
    except (ValueError, FileNotFoundError) as e:
        typer.echo(f"Invalid configuration: {e}", err=True)
        raise typer.Exit(2)
    typer.echo(dump_config(cfg))


if __name__ == "__main__":
    app()
