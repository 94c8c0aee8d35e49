"""Credence command line.

A thin front end over the calibration engine for inspecting labeled
prediction files from a shell:

\b
    credence calibrate curve samples.json --buckets 5
    credence calibrate isotonic predictions.json --json
    credence calibrate smooth-ece predictions.json --kernel epanechnikov
    credence calibrate samples --epsilon 0.05 --confidence 0.95 --have 400
    credence calibrate tier 120
    credence calibrate adjust samples.json 0.85
    credence config show
"""

import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, NoReturn

import click
import numpy as np
import yaml
from rich.console import Console
from rich.table import Table

from credence import __version__
from credence.calibration import (
    adjust_confidence_score,
    bootstrap_calibration,
    build_calibration_report,
    check_calibration_requirements,
    coerce_predictions,
    compute_calibration_curve,
    compute_min_samples_for_calibration,
    compute_smooth_ece,
    format_bucket_range,
    isotonic_calibration,
    report_to_dict,
    silverman_bandwidth,
)
from credence.foundation.config import get_config, load_config, save_default_config
from credence.foundation.errors import CredenceError, ErrorCode, validation_error
from credence.foundation.logging import configure_logging

console = Console()


# =============================================================================
# Error handling
# =============================================================================


def handle_error(error: CredenceError, json_output: bool = False) -> NoReturn:
    """Print a CredenceError for humans (or as JSON) and exit with status 1."""
    if json_output:
        click.echo(json.dumps(error.to_dict()), err=True)
        sys.exit(1)

    err_console = Console(stderr=True)
    err_console.print(f"[bold red]{error.error_id}[/] {error.message}", highlight=False)
    hints = error.recovery_hints
    if hints:
        err_console.print("\n[bold]What you can do:[/]")
        for i, hint in enumerate(hints, 1):
            err_console.print(f"  {i}. {hint}", highlight=False)
    sys.exit(1)


class CredenceGroup(click.Group):
    """Root group that renders CredenceError instead of a traceback."""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except CredenceError as e:
            handle_error(e, json_output=bool(ctx.meta.get("credence.json_errors")))


def _load_json_list(path: str) -> list[Any]:
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field="FILE", detail=f"{path} is not valid JSON: {e}", cause=e,
        ) from e
    if isinstance(data, dict):
        # Accept {"samples": [...]} / {"predictions": [...]} wrappers
        for key in ("samples", "predictions"):
            if isinstance(data.get(key), list):
                return data[key]
    if not isinstance(data, list):
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field="FILE", detail=f"{path} must contain a JSON list",
        )
    return data


def _emit_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


# =============================================================================
# Root
# =============================================================================


@click.group(cls=CredenceGroup)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="Config file (default: .credence/config.yaml, then ~/.credence/config.yaml)")
@click.option("--json-errors", is_flag=True, hidden=True, help="Report errors as JSON on stderr")
@click.version_option(version=__version__, prog_name="credence")
@click.pass_context
def main(ctx: click.Context, debug: bool, config_path: str | None, json_errors: bool) -> None:
    """Credence: calibrated confidence tooling.

    \b
    Examples:
        credence calibrate curve samples.json
        credence calibrate samples --epsilon 0.05 --have 400
        credence config show
    """
    ctx.meta["credence.json_errors"] = json_errors
    if config_path:
        load_config(config_path)
    configure_logging(debug=debug)


# =============================================================================
# calibrate
# =============================================================================


@main.group()
def calibrate() -> None:
    """Measure and correct calibration of labeled predictions."""


@calibrate.command("curve")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--buckets", "-b", type=int, default=None, help="Number of equal-width buckets")
@click.option("--dataset", default=None, help="Dataset id for the report (default: file stem)")
@click.option("--json", "json_output", is_flag=True, help="Output the full report as JSON")
def calibrate_curve(file: str, buckets: int | None, dataset: str | None, json_output: bool) -> None:
    """Calibration curve of {confidence, outcome} samples.

    \b
    Examples:
        credence calibrate curve samples.json
        credence calibrate curve samples.json --buckets 5 --json
    """
    samples = _load_json_list(file)
    bucket_count = buckets if buckets is not None else get_config().calibration.bucket_count
    curve = compute_calibration_curve(samples, bucket_count=bucket_count)
    report = build_calibration_report(dataset or Path(file).stem, curve)

    if json_output:
        _emit_json(report_to_dict(report))
        return

    table = Table(title=f"Calibration curve ({curve.sample_size} samples)", show_header=True, header_style="bold")
    table.add_column("Bucket", style="dim")
    table.add_column("Stated", justify="right")
    table.add_column("Observed", justify="right")
    table.add_column("Gap", justify="right")
    table.add_column("n", justify="right")
    table.add_column("SE", justify="right", style="dim")
    for b in curve.buckets:
        gap_style = "red" if b.stated_mean > b.empirical_accuracy else "green"
        table.add_row(
            format_bucket_range(b.range),
            f"{b.stated_mean:.3f}",
            f"{b.empirical_accuracy:.3f}",
            f"[{gap_style}]{b.calibration_error:.3f}[/]",
            str(b.sample_size),
            f"{b.standard_error:.3f}",
        )
    console.print(table)
    console.print(f"ECE: {curve.ece:.4f}")
    console.print(f"MCE: {curve.mce:.4f}")
    console.print(f"Overconfidence ratio: {curve.overconfidence_ratio:.2%}")


@calibrate.command("adjust")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("raw", type=float)
@click.option("--buckets", "-b", type=int, default=None, help="Number of equal-width buckets")
def calibrate_adjust(file: str, raw: float, buckets: int | None) -> None:
    """Adjust a RAW score using the calibration curve of FILE."""
    defaults = get_config().calibration
    curve = compute_calibration_curve(
        _load_json_list(file), bucket_count=buckets if buckets is not None else defaults.bucket_count,
    )
    report = build_calibration_report(Path(file).stem, curve)
    adjustment = adjust_confidence_score(
        raw,
        report,
        min_samples_for_adjustment=defaults.min_samples_for_adjustment,
        min_samples_for_full_weight=defaults.min_samples_for_full_weight,
    )

    if adjustment.bucket is not None:
        b = adjustment.bucket
        console.print(
            f"Bucket {format_bucket_range(b.range)}: {b.sample_size} samples, "
            f"observed accuracy {b.empirical_accuracy:.3f}",
            highlight=False,
        )
    if adjustment.weight == 0:
        console.print("[yellow]Too few samples in this bucket; score left unadjusted.[/yellow]")
    console.print(f"Adjusted: {adjustment.raw:.3f} -> {adjustment.calibrated:.3f} (weight {adjustment.weight:.2f})")


@calibrate.command("isotonic")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "json_output", is_flag=True, help="Output the mapping as JSON")
def calibrate_isotonic(file: str, json_output: bool) -> None:
    """Fit a monotone mapping to {predicted, actual} pairs (PAV)."""
    mapping = isotonic_calibration(_load_json_list(file))

    if json_output:
        _emit_json(mapping.to_dict())
        return

    table = Table(title=f"Isotonic mapping ({mapping.sample_size} samples)", show_header=True, header_style="bold")
    table.add_column("Raw", justify="right")
    table.add_column("Calibrated", justify="right")
    for point in mapping.points:
        table.add_row(f"{point.raw:.3f}", f"{point.calibrated:.3f}")
    console.print(table)
    if not mapping.is_strictly_monotonic:
        console.print("[dim]Mapping has flat segments (pooled blocks).[/dim]")


@calibrate.command("smooth-ece")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--bandwidth", type=float, default=None, help="Kernel bandwidth (default: Silverman's rule)")
@click.option("--kernel", type=click.Choice(["gaussian", "epanechnikov"]), default=None,
              help="Smoothing kernel")
@click.option("--points", type=int, default=None, help="Evaluation intervals on [0, 1]")
def calibrate_smooth_ece(file: str, bandwidth: float | None, kernel: str | None, points: int | None) -> None:
    """Kernel-smoothed ECE of {predicted, actual} pairs."""
    defaults = get_config().calibration
    predictions = _load_json_list(file)
    ece = compute_smooth_ece(
        predictions,
        bandwidth=bandwidth,
        kernel_type=kernel or defaults.kernel_type,
        num_eval_points=points if points is not None else defaults.num_eval_points,
    )
    if bandwidth is None and len(predictions) > 1:
        scores = np.array([p for p, _ in coerce_predictions(predictions, clamp_scores=True)], dtype=float)
        console.print(f"[dim]Bandwidth (Silverman): {silverman_bandwidth(scores):.4f}[/dim]")
    console.print(f"Smooth ECE: {ece:.4f}")


@calibrate.command("samples")
@click.option("--epsilon", "-e", type=float, default=None, help="Target accuracy (e.g. 0.05)")
@click.option("--confidence", "-c", type=float, default=None, help="Target confidence (e.g. 0.95)")
@click.option("--bins", "-k", type=int, default=None, help="Number of calibration bins (union bound)")
@click.option("--have", type=int, default=None, help="Samples you already have")
def calibrate_samples(epsilon: float | None, confidence: float | None, bins: int | None, have: int | None) -> None:
    """Samples needed for a PAC calibration guarantee (Hoeffding bound)."""
    defaults = get_config().calibration
    eps = epsilon if epsilon is not None else defaults.pac_epsilon
    conf = confidence if confidence is not None else defaults.pac_confidence

    threshold = compute_min_samples_for_calibration(eps, conf, bins)
    console.print(f"Required samples: [bold]{threshold.min_samples}[/bold]")
    if threshold.num_bins > 1:
        console.print(f"Per bin: {threshold.samples_per_bin} x {threshold.num_bins} bins")
    console.print(f"[dim]{threshold.rationale}[/dim]", highlight=False)

    if have is not None:
        req = check_calibration_requirements(have, eps, conf, bins)
        if req.meets:
            console.print(f"[green]You have {req.actual} samples: requirement met.[/green]")
        else:
            console.print(f"[yellow]You have {req.actual} samples: {req.deficit} short.[/yellow]")
        console.print(f"Achievable accuracy with {req.actual} samples: +/-{req.achievable_accuracy:.3f}")


@calibrate.command("tier")
@click.argument("sample_size", type=int)
@click.option("--json", "json_output", is_flag=True, help="Output the tier as JSON")
def calibrate_tier(sample_size: int, json_output: bool) -> None:
    """Bootstrap calibration settings for SAMPLE_SIZE labeled samples."""
    config = bootstrap_calibration(sample_size)
    if json_output:
        _emit_json(config.to_dict())
        return

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Buckets", str(config.bucket_count))
    table.add_row("Min samples / bucket", str(config.min_samples_per_bucket))
    table.add_row("Isotonic", "yes" if config.use_isotonic else "no")
    table.add_row("Calibration weight", f"{config.calibration_weight:.1f}")
    table.add_row("Prior", f"Beta({config.prior.alpha:g}, {config.prior.beta:g})")
    console.print(table)
    console.print(f"[dim]{config.rationale}[/dim]", highlight=False)


# =============================================================================
# config
# =============================================================================


@main.group("config")
def config_group() -> None:
    """Show or create the Credence configuration file."""


@config_group.command("show")
def config_show() -> None:
    """Print the effective configuration as YAML."""
    click.echo(yaml.safe_dump(asdict(get_config()), default_flow_style=False, sort_keys=False), nl=False)


@config_group.command("init")
@click.argument("path", type=click.Path(dir_okay=False), default=".credence/config.yaml")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def config_init(path: str, force: bool) -> None:
    """Write the default configuration to PATH."""
    if Path(path).exists() and not force:
        console.print(f"[yellow]{path} already exists (use --force to overwrite)[/yellow]")
        return
    target = save_default_config(path)
    console.print(f"[green]Wrote default config to {target}[/green]")


if __name__ == "__main__":
    main()
