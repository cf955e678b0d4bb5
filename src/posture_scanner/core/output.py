"""
Output formatting and report generation
"""

import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .. import __version__
from .framework import Result, SecurityCheck, Status
from .snapshot import Snapshot

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    Status.OK: "green",
    Status.WARN: "yellow",
    Status.FAIL: "bold red",
    Status.ERROR: "magenta",
}


class OutputHandler:
    """Receives every reported result; subclasses decide where it goes"""

    def write_collection(self, snapshot: Snapshot, cloud: str = 'aws'):
        pass

    def write_result(self, result: Result, check: SecurityCheck,
                     compliance: Optional[str] = None):
        raise NotImplementedError

    def close(self):
        pass


def finding_row(result: Result, check: SecurityCheck,
                compliance: Optional[str] = None) -> Dict[str, Any]:
    row = result.to_dict()
    row.update({
        "check_id": check.check_id,
        "check_title": check.title,
        "category": check.category,
        "severity": check.severity,
        "compliance": compliance,
    })
    return row


class ConsoleOutput(OutputHandler):
    """Prints results as they arrive and a summary table on close"""

    def __init__(self, console: Console = None):
        self.console = console or Console()
        self.counts = {status: 0 for status in Status}

    def write_result(self, result, check, compliance=None):
        status = Status(result.status)
        self.counts[status] += 1
        style = STATUS_STYLES[status]
        line = (f"[{style}]{status.name:<5}[/{style}] {check.category} | {check.title} | "
                f"{result.region} | {result.resource} | {result.message}")
        if compliance:
            line += f" [dim]({compliance})[/dim]"
        self.console.print(line, highlight=False)

    def close(self):
        table = Table(title="Scan Summary", show_header=True, header_style="bold magenta")
        table.add_column("Status", style="cyan")
        table.add_column("Results", justify="right")
        for status in Status:
            table.add_row(status.name, str(self.counts[status]))
        self.console.print(table)


class JsonOutput(OutputHandler):
    """Collects results and saves a JSON report on close"""

    def __init__(self, output_file: str, account_id: str = None,
                 metadata: Dict[str, Any] = None):
        self.output_file = output_file
        self.account_id = account_id
        self.metadata = metadata or {}
        self.findings: List[Dict[str, Any]] = []

    def write_result(self, result, check, compliance=None):
        self.findings.append(finding_row(result, check, compliance))

    @staticmethod
    def format_report(findings: List[Dict[str, Any]], account_id: str = None,
                      metadata: Dict[str, Any] = None) -> Dict[str, Any]:
        """Format findings as JSON report"""

        if metadata is None:
            metadata = {}

        # Calculate summary statistics
        by_status = {}
        by_category = {}

        for finding in findings:
            status = finding["status_name"]
            by_status[status] = by_status.get(status, 0) + 1

            category = finding["category"] or 'unknown'
            by_category[category] = by_category.get(category, 0) + 1

        return {
            "metadata": {
                "tool": "posture-scanner",
                "version": __version__,
                "scan_timestamp": datetime.now(timezone.utc).isoformat(),
                "account_id": account_id,
                **metadata
            },
            "summary": {
                "total_results": len(findings),
                "by_status": by_status,
                "by_category": by_category,
                "max_status": max((f["status"] for f in findings), default=0),
            },
            "findings": findings,
        }

    @staticmethod
    def save_report(report: Dict[str, Any], output_file: str):
        """Save JSON report to file"""
        output_path = Path(output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, sort_keys=True, default=str)

        logger.info(f"Report saved to: {output_path}")

    def close(self):
        report = self.format_report(self.findings, self.account_id, self.metadata)
        self.save_report(report, self.output_file)


class CsvOutput(OutputHandler):
    """Writes one CSV row per result"""

    FIELDS = ["check_id", "check_title", "category", "severity", "region",
              "resource", "status_name", "message", "compliance"]

    def __init__(self, output_file: str):
        self.output_file = output_file
        self.rows: List[Dict[str, Any]] = []

    def write_result(self, result, check, compliance=None):
        row = finding_row(result, check, compliance)
        self.rows.append({field: row.get(field) for field in self.FIELDS})

    def close(self):
        output_path = Path(self.output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=self.FIELDS)
            writer.writeheader()
            writer.writerows(self.rows)
        logger.info(f"CSV report saved to: {output_path}")


class CollectionOutput(OutputHandler):
    """Saves the raw collected metadata for offline re-scans"""

    def __init__(self, output_file: str):
        self.output_file = output_file

    def write_collection(self, snapshot, cloud='aws'):
        output_path = Path(self.output_file)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(snapshot.to_dict(), f, indent=2, default=str)
        logger.info(f"{cloud} collection saved to: {output_path}")

    def write_result(self, result, check, compliance=None):
        pass


class MultiOutput(OutputHandler):
    """Fans every call out to several handlers"""

    def __init__(self, handlers: List[OutputHandler] = None):
        self.handlers = list(handlers or [])

    def write_collection(self, snapshot, cloud='aws'):
        for handler in self.handlers:
            handler.write_collection(snapshot, cloud)

    def write_result(self, result, check, compliance=None):
        for handler in self.handlers:
            handler.write_result(result, check, compliance)

    def close(self):
        for handler in self.handlers:
            handler.close()
