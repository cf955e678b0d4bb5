"""
Posture Scanner CLI Interface
Command-line interface for the posture scanning engine
"""

import sys
import logging
from typing import Dict, List

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .core.collector import AWSCollector, StaticCollector
from .core.engine import ScanEngine
from .core.exceptions import CollectorError, RemediationError
from .core.output import (CollectionOutput, ConsoleOutput, CsvOutput, JsonOutput,
                          MultiOutput)
from .core.provider import AWSProvider
from .core.registry import CheckRegistry
from .core.remediation import RemediationCoordinator, TransactionLog
from .core.settings import DEFAULT_CHECK_TIMEOUT, DEFAULT_MAX_WORKERS, ScanSettings
from .core.snapshot import Snapshot

# Exit status for scans that could not run at all (verdicts use 0-3)
SCAN_FAILED = 4

console = Console()


def parse_remediation_inputs(values: List[str]) -> Dict[str, Dict[str, str]]:
    """Turn ``check_id.name=value`` options into per-check input maps"""
    inputs: Dict[str, Dict[str, str]] = {}
    for value in values:
        key, sep, setting = value.partition('=')
        check_id, dot, name = key.partition('.')
        if not sep or not dot or not check_id or not name:
            raise click.BadParameter(f"Expected check_id.name=value, got {value!r}",
                                     param_hint='--remediation-input')
        inputs.setdefault(check_id, {})[name] = setting
    return inputs


def _provider(profile, access_key_id, secret_access_key, session_token, region) -> AWSProvider:
    return AWSProvider(
        access_key=access_key_id,
        secret_key=secret_access_key,
        session_token=session_token,
        region=region,
        profile=profile,
    )


def credential_options(func):
    """Options shared by every command that talks to AWS"""
    options = [
        click.option('--profile', help='AWS profile to use'),
        click.option('--access-key-id', help='AWS access key ID'),
        click.option('--secret-access-key', help='AWS secret access key'),
        click.option('--session-token', help='AWS session token'),
        click.option('--region', default='us-east-1', show_default=True,
                     help='Default region, also used for global services'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, verbose):
    """Cloud security posture scanner"""
    ctx.ensure_object(dict)

    # Configure logging
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Reduce noise from boto3
    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


@cli.command()
@credential_options
@click.option('--regions', '-r', multiple=True, help='AWS regions to scan (default: common regions)')
@click.option('--plugin', '-p', help='Run a single check by ID')
@click.option('--compliance', '-c', multiple=True, help='Only run checks mapped to these compliance programs')
@click.option('--account-type', help='Account topology the scan targets (e.g. organization)')
@click.option('--suppress', multiple=True, help='Suppress results matching check:region:resource (supports *)')
@click.option('--remediate', multiple=True, help='Remediate failing results of these checks')
@click.option('--remediation-input', multiple=True, help='Remediation parameter as check_id.name=value')
@click.option('--remediation-file', type=click.Path(dir_okay=False),
              help='Transaction log to load and update with remediation records')
@click.option('--wait-remediation/--no-wait-remediation', default=True,
              help='Wait for remediation to finish before exiting')
@click.option('--run-asl', is_flag=True, help='Evaluate checks through their ASL definition when present')
@click.option('--ignore-ok', is_flag=True, help='Do not report passing results')
@click.option('--exit-code', is_flag=True, help='Exit with the worst result status')
@click.option('--skip-paginate', is_flag=True, help='Only collect the first page of each API call')
@click.option('--govcloud', is_flag=True, help='Use AWS GovCloud mode')
@click.option('--china', is_flag=True, help='Use AWS China mode')
@click.option('--max-workers', type=int, default=DEFAULT_MAX_WORKERS, show_default=True,
              help='Maximum checks running in parallel')
@click.option('--timeout', type=float, default=DEFAULT_CHECK_TIMEOUT, show_default=True,
              help='Per-check timeout in seconds')
@click.option('--json', 'json_file', type=click.Path(dir_okay=False), help='Write a JSON report')
@click.option('--csv', 'csv_file', type=click.Path(dir_okay=False), help='Write a CSV report')
@click.option('--collection', 'collection_file', type=click.Path(dir_okay=False),
              help='Save the collected metadata')
@click.option('--from-collection', type=click.Path(exists=True, dir_okay=False),
              help='Scan previously saved metadata instead of calling AWS')
@click.option('--quiet', '-q', is_flag=True, help='Do not print results to the console')
def scan(profile, access_key_id, secret_access_key, session_token, region,
         regions, plugin, compliance, account_type, suppress, remediate,
         remediation_input, remediation_file, wait_remediation, run_asl,
         ignore_ok, exit_code, skip_paginate, govcloud, china, max_workers,
         timeout, json_file, csv_file, collection_file, from_collection, quiet):
    """Execute a security scan"""

    settings_kwargs = dict(
        plugin=plugin,
        compliance=list(compliance),
        account_type=account_type,
        suppress=list(suppress),
        remediate=list(remediate),
        run_asl=run_asl,
        ignore_ok=ignore_ok,
        exit_code=exit_code,
        skip_paginate=skip_paginate,
        govcloud=govcloud,
        china=china,
        default_region=region,
        max_workers=max_workers,
        check_timeout=timeout,
        remediation_inputs=parse_remediation_inputs(remediation_input),
    )
    if regions:
        settings_kwargs['regions'] = list(regions)
    try:
        settings = ScanSettings(**settings_kwargs)
    except ValueError as e:
        raise click.BadParameter(str(e))

    registry = CheckRegistry()

    provider = None
    account_id = None
    if from_collection:
        try:
            collector = StaticCollector.from_file(from_collection)
        except CollectorError as e:
            console.print(f"[red]ERROR: {e}[/red]")
            sys.exit(SCAN_FAILED)
    else:
        provider = _provider(profile, access_key_id, secret_access_key, session_token,
                             settings.default_region)
        collector = AWSCollector(provider, max_workers=max_workers)
        if json_file:
            account_id = provider.account_id

    if remediate and provider is None:
        provider = _provider(profile, access_key_id, secret_access_key, session_token,
                             settings.default_region)

    handlers = []
    if not quiet:
        handlers.append(ConsoleOutput(console))
    if json_file:
        handlers.append(JsonOutput(json_file, account_id=account_id,
                                   metadata={'regions': settings.regions}))
    if csv_file:
        handlers.append(CsvOutput(csv_file))
    if collection_file:
        handlers.append(CollectionOutput(collection_file))

    transaction_log = TransactionLog.load(remediation_file) if remediation_file else None
    engine = ScanEngine(
        collector,
        registry=registry,
        output=MultiOutput(handlers),
        remediation_config=provider,
        transaction_log=transaction_log,
    )

    try:
        report = engine.run_scan(settings)
    except CollectorError as e:
        console.print(f"[red]ERROR: {e}[/red]")
        sys.exit(SCAN_FAILED)

    if report.nothing_to_scan:
        console.print("[yellow]Nothing to scan with the selected plugin, compliance and account filters[/yellow]")

    if report.remediation is not None:
        if wait_remediation:
            outcomes = report.remediation.wait()
            failed = [o for o in outcomes if not o.succeeded]
            if not quiet:
                console.print(f"Remediation attempts: {len(outcomes)} ({len(failed)} failed)")
        elif not quiet:
            console.print(f"[dim]{report.remediation.pending()} remediation attempts still running[/dim]")
        if remediation_file:
            report.transaction_log.save(remediation_file)
        report.remediation.shutdown(wait=wait_remediation)

    for check_id in report.failed_checks:
        console.print(f"[red]Check {check_id} could not be evaluated[/red]")

    if settings.exit_code:
        console.print(f"INFO: Exiting with exit code: {report.verdict}")
        sys.exit(report.verdict)


@cli.command()
@credential_options
@click.option('--check', 'check_id', required=True, help='Check whose remediation to undo')
@click.option('--resource', required=True, help='Resource the remediation was applied to')
@click.option('--remediation-file', required=True, type=click.Path(exists=True, dir_okay=False),
              help='Transaction log written by the remediation')
@click.option('--resource-region', help='Region of the resource (default: --region)')
@click.option('--from-collection', type=click.Path(exists=True, dir_okay=False),
              help='Metadata to hand to the rollback')
def rollback(profile, access_key_id, secret_access_key, session_token, region,
             check_id, resource, remediation_file, resource_region, from_collection):
    """Undo a recorded remediation"""
    registry = CheckRegistry()
    check = registry.get_check(check_id)
    if check is None:
        console.print(f"[red]ERROR: Invalid plugin: {check_id}[/red]")
        sys.exit(SCAN_FAILED)

    snapshot = Snapshot()
    if from_collection:
        try:
            snapshot = StaticCollector.from_file(from_collection).collect([], None)
        except CollectorError as e:
            console.print(f"[red]ERROR: {e}[/red]")
            sys.exit(SCAN_FAILED)
    log = TransactionLog.load(remediation_file)
    settings = ScanSettings(default_region=region)
    coordinator = RemediationCoordinator(
        _provider(profile, access_key_id, secret_access_key, session_token, region),
        remediate_ids=[check_id], log=log, settings=settings, max_workers=1,
    )

    try:
        rolled_back = coordinator.rollback(check, resource, snapshot, region=resource_region)
    except RemediationError as e:
        console.print(f"[red]ERROR: {e}[/red]")
        log.save(remediation_file)
        sys.exit(SCAN_FAILED)
    finally:
        coordinator.shutdown()

    log.save(remediation_file)
    if rolled_back:
        console.print(f"[green]Rolled back {check_id} on {resource}[/green]")
    else:
        console.print(f"[yellow]Rollback for {check_id} is not implemented[/yellow]")


@cli.command()
@click.option('--compliance', '-c', multiple=True, help='Only list checks mapped to these programs')
def list_checks(compliance):
    """List all available security checks"""
    registry = CheckRegistry()

    table = Table(title="Available Security Checks", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Category", style="green")
    table.add_column("Title")
    table.add_column("Compliance", style="dim")
    table.add_column("Remediation", style="dim")

    for check in registry:
        if compliance and not any(program in check.compliance for program in compliance):
            continue
        capabilities = sorted(c.value for c in check.capabilities if c.value != 'run')
        table.add_row(check.check_id, check.category, check.title,
                      ', '.join(sorted(check.compliance)), ', '.join(capabilities))

    console.print(table)


def main():
    """Main CLI entry point"""
    try:
        cli(auto_envvar_prefix='POSTURE_SCANNER')
    except KeyboardInterrupt:
        console.print("\n[yellow]Scan interrupted by user[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    main()
