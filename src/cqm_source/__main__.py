"""
Command-line interface for cqm-source.
Resolves measure identifiers, lists the measures a bundle or workbook
provides, and runs a compiled measure's generate() with the given options.
"""

import click
import json
import logging
import pandas as pd
import sys
import typing

from .bundle import BundleSource
from .compiler import GenerateOptions, MeasureCompileError
from .download import DEFAULT_BUNDLE_URL, BundleDownloadError, download_bundle
from .identifier import get_measure_and_sub_id
from .source import IndexedSource
from .workbook import WorkbookSource

LIST_COLUMNS = ["hqmf_id", "cms_id", "sub_id", "continuous_variable", "aggregator"]


@click.group()
@click.option(
    "--verbose-logging",
    is_flag=True,
    help="Also emit debug logs to stderr",
)
@click.option(
    "--log-file-path",
    type=click.Path(dir_okay=False, writable=True),
    help="Append timestamped logs to this file",
)
def main(verbose_logging: bool, log_file_path: typing.Optional[str]):
    """cqms: resolve, compile and run clinical quality measure definitions."""
    # — configure logging —
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
        )


def _source_options(f):
    f = click.option(
        "-w",
        "--workbook-path",
        "workbook_path",
        envvar="CQMS_WORKBOOK_PATH",
        type=click.Path(exists=True, dir_okay=False),
        help="Excel workbook of measure definitions",
    )(f)
    f = click.option(
        "-b",
        "--bundle-path",
        "bundle_path",
        envvar="CQMS_BUNDLE_PATH",
        type=click.Path(exists=True),
        help="measure bundle directory or .zip archive",
    )(f)
    return f


def _open_source(bundle_path: typing.Optional[str], workbook_path: typing.Optional[str]) -> IndexedSource:
    if bool(bundle_path) == bool(workbook_path):
        raise click.UsageError("Give exactly one of --bundle-path or --workbook-path.")
    if bundle_path:
        source = BundleSource(bundle_path)
    else:
        source = WorkbookSource(workbook_path)
    _report_issues(source.notepad)
    return source


def _report_issues(notepad):
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in measure definitions:", err=True)
        for err in notepad.errors():
            click.echo(f"- {err}", err=True)
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in measure definitions:", err=True)
        for w in notepad.warnings():
            click.echo(f"- {w}", err=True)


@main.command(name="resolve")
@click.argument("measure_id")
@click.option("-s", "--sub-id", default=None, help="explicit population set sub id")
@click.option("-r", "--raw", is_flag=True, help="print JSON instead of text")
def resolve(measure_id: str, sub_id: typing.Optional[str], raw: bool):
    """
    Show the canonical id and sub id for MEASURE_ID, e.g. CMS182v5a or HQMF_ID:SUB_ID.
    """
    canonical_id = get_measure_and_sub_id(measure_id, sub_id)
    if raw:
        click.echo(json.dumps(canonical_id._asdict()))
        return
    click.echo(f"id:     {canonical_id.id}")
    click.echo(f"sub_id: {canonical_id.sub_id if canonical_id.sub_id is not None else '-'}")


@main.command(name="list-measures")
@_source_options
@click.option("-r", "--raw", is_flag=True, help="print JSON instead of a table")
def list_measures(bundle_path: typing.Optional[str], workbook_path: typing.Optional[str], raw: bool):
    """
    List the measures available from a bundle or workbook.
    """
    source = _open_source(bundle_path, workbook_path)
    rows = [{column: getattr(d, column) for column in LIST_COLUMNS} for d in source.definitions]

    if raw:
        click.echo(json.dumps(rows, indent=2))
        return
    if not rows:
        click.echo("No measures found.")
        return
    click.echo(pd.DataFrame(rows, columns=LIST_COLUMNS).fillna("-").to_string(index=False))


@main.command(name="generate")
@_source_options
@click.option("-m", "--measure-id", required=True, help="CMS id, HQMF id, CMS182v5a or HQMF_ID:SUB_ID")
@click.option("-s", "--sub-id", default=None, help="explicit population set sub id")
@click.option("--effective-date", default=None, help="effective date passed to the measure logic")
@click.option("--enable-logging", is_flag=True, help="ask the measure logic to log its execution")
@click.option("--enable-rationale", is_flag=True, help="ask the measure logic to record rationale")
@click.option("--short-circuit", is_flag=True, help="allow the measure logic to stop early")
def generate(
    bundle_path: typing.Optional[str],
    workbook_path: typing.Optional[str],
    measure_id: str,
    sub_id: typing.Optional[str],
    effective_date: typing.Optional[str],
    enable_logging: bool,
    enable_rationale: bool,
    short_circuit: bool,
):
    """
    Compile a measure and print the result of its generate() as JSON.
    """
    source = _open_source(bundle_path, workbook_path)
    try:
        measure = source.get_measure(measure_id, sub_id)
    except MeasureCompileError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if measure is None:
        canonical_id = source.get_measure_and_sub_id(measure_id, sub_id)
        click.echo(f"Error: no measure {canonical_id.id!r} (sub_id {canonical_id.sub_id!r}) in source", err=True)
        sys.exit(1)

    options = GenerateOptions(
        effective_date=effective_date,
        enable_logging=enable_logging,
        enable_rationale=enable_rationale,
        short_circuit=short_circuit,
    )
    result = measure.generate(options)
    click.echo(json.dumps(result, indent=2, default=str))


@main.command(name="download")
@click.option(
    "-u",
    "--url",
    default=DEFAULT_BUNDLE_URL,
    show_default=True,
    help="bundle archive URL (default: $CQMS_BUNDLE_URL)",
)
@click.option(
    "-d",
    "--data-path",
    "data_dir",
    default=".",
    type=click.Path(file_okay=False),
    help="where to save the bundle (default: current directory)",
)
def download(url: str, data_dir: str):
    """
    Download a measure bundle archive.
    """
    click.echo(f"Downloading measure bundle {url} …")
    try:
        out = download_bundle(url, data_dir)
    except BundleDownloadError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Saved measure bundle to {out}")


if __name__ == "__main__":
    main()
