"""CLI interface for mvsplit."""

import sys
from pathlib import Path

import click
import numpy as np
from loguru import logger

from mvsplit.config import load_config, split_parameters
from mvsplit.dataset import dataset_from_metadata
from mvsplit.loader import VolumeLoader
from mvsplit.models import Interval, ViewId
from mvsplit.partition import distribute_intervals_fixed_overlap
from mvsplit.readers import BioioPlaneReader, probe_metadata
from mvsplit.splitting import split_images
from mvsplit.utils import configure_logging


def _int_list(value):
    """Parse '10,10,5' into [10, 10, 5]."""
    if value is None:
        return None
    try:
        return [int(v) for v in str(value).split(",") if v.strip()]
    except ValueError:
        raise click.BadParameter(f"expected comma-separated integers, got {value!r}") from None


def _reader_factory(cfg):
    little_endian = cfg.get("reader", {}).get("little_endian")
    return lambda: BioioPlaneReader(little_endian=little_endian)


def _probe(input_path, cfg):
    meta = probe_metadata(
        input_path,
        _reader_factory(cfg),
        int(cfg.get("acquisition", {}).get("illuminations", 1)),
    )
    if meta is None:
        click.echo(f"✗ Could not analyze {input_path}", err=True)
        sys.exit(1)
    return meta


@click.group()
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    help="YAML config file or directory holding config.yaml",
)
@click.option("--log-level", help="Log level (default: from config, INFO)")
@click.pass_context
def cli(ctx, config_path, log_level):
    """mvsplit - Multiview volume loading and tile splitting."""
    cfg = load_config(config_path)
    configure_logging(log_level or cfg.get("logging", {}).get("level", "INFO"))
    ctx.obj = cfg


@cli.command()
@click.argument("input", type=click.Path(exists=True, path_type=Path))
@click.pass_obj
def info(cfg, input):
    """
    Show the metadata of a multi-series source file.
    """
    meta = _probe(input, cfg)
    try:
        click.echo(f"✓ {input.name}")
        click.echo(f"  series:        {meta.series_count}")
        click.echo(f"  channels:      {meta.num_channels}")
        click.echo(f"  illuminations: {meta.num_illuminations}")
        click.echo(f"  timepoints:    {meta.num_timepoints}")
        click.echo(f"  pixel type:    {meta.pixel_encoding.name}")
        click.echo(f"  little endian: {meta.little_endian}")
        for angle, size in sorted(meta.image_sizes.items()):
            click.echo(f"  angle {angle}: {size[0]}x{size[1]}x{size[2]}")
    finally:
        if meta.reader is not None:
            meta.reader.close()


@cli.command()
@click.option("--min", "min_", default=None, help="Interval min per dimension (default: zeros)")
@click.option("--max", "max_", required=True, help="Interval max per dimension, e.g. 1914,1023")
@click.option("--overlap", "-o", help="Overlap per dimension (default: from config)")
@click.option("--target", "-t", help="Target block size per dimension (default: from config)")
@click.pass_obj
def partition(cfg, min_, max_, overlap, target):
    """
    Print the overlapping blocks covering an interval.
    """
    max_values = _int_list(max_)
    min_values = _int_list(min_) or [0] * len(max_values)
    cfg_overlap, cfg_target = split_parameters(cfg)
    overlap = _int_list(overlap) or cfg_overlap[: len(max_values)]
    target = _int_list(target) or cfg_target[: len(max_values)]

    try:
        intervals = distribute_intervals_fixed_overlap(
            Interval(min_values, max_values), overlap, target
        )
    except Exception as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    for interval in intervals:
        click.echo(str(interval))
    click.echo(f"✓ {len(intervals)} block(s)")


@cli.command()
@click.argument("input", type=click.Path(exists=True, path_type=Path))
@click.option("--output", "-o", required=True, type=click.Path(path_type=Path), help="Output .npy file")
@click.option("--timepoint", default=0, type=int, help="Timepoint id (default: 0)")
@click.option("--tile", default=0, type=int, help="Tile (series) id (default: 0)")
@click.option("--channel", default=0, type=int, help="Channel id (default: 0)")
@click.option("--illumination", default=0, type=int, help="Illumination id (default: 0)")
@click.pass_obj
def load(cfg, input, output, timepoint, tile, channel, illumination):
    """
    Load one view of a source file as a (z, y, x) volume and save it as .npy.
    """
    meta = _probe(input, cfg)
    dataset = dataset_from_metadata(meta)

    matches = [
        s
        for s in dataset.ordered_setups()
        if s.tile.id == tile and s.channel.id == channel and s.illumination.id == illumination
    ]
    if not matches:
        click.echo(
            f"✗ No view with tile={tile} channel={channel} illumination={illumination}",
            err=True,
        )
        if meta.reader is not None:
            meta.reader.close()
        sys.exit(1)

    view = ViewId(timepoint, matches[0].id)
    with VolumeLoader(
        input,
        dataset.setups,
        reader_factory=_reader_factory(cfg),
        metadata=meta,
        num_illuminations=meta.num_illuminations,
        order=cfg.get("volume", {}).get("order", "C"),
    ) as loader:
        try:
            volume = loader.load_volume(view)
        except Exception as e:
            click.echo(f"✗ Error loading {input}: {e}", err=True)
            logger.exception("Volume loading failed")
            sys.exit(1)

    np.save(output, volume)
    click.echo(f"✓ Saved {volume.shape} {volume.dtype} volume to {output}")


@cli.command()
@click.argument("input", type=click.Path(exists=True, path_type=Path))
@click.option("--overlap", "-o", help="Overlap per dimension (default: from config)")
@click.option("--target", "-t", help="Target block size per dimension (default: from config)")
@click.pass_obj
def split(cfg, input, overlap, target):
    """
    Split every view of a source file into overlapping blocks and list them.
    """
    cfg_overlap, cfg_target = split_parameters(cfg)
    overlap = _int_list(overlap) or cfg_overlap
    target = _int_list(target) or cfg_target

    meta = _probe(input, cfg)
    try:
        dataset = dataset_from_metadata(meta)
        new_dataset = split_images(dataset, overlap, target)
    except Exception as e:
        click.echo(f"✗ Error splitting {input}: {e}", err=True)
        sys.exit(1)
    finally:
        if meta.reader is not None:
            meta.reader.close()

    mapping = new_dataset.image_loader.mapping
    for setup in new_dataset.ordered_setups():
        click.echo(
            f"  setup {setup.id:4d} <- {mapping.old_setup(setup.id):4d}  "
            f"{mapping.interval(setup.id)}"
        )
    click.echo(
        f"✓ {len(dataset.setups)} setup(s) -> {len(new_dataset.setups)} setup(s), "
        f"{len(new_dataset.view_ids())} view(s)"
    )


if __name__ == "__main__":
    cli()
