"""Host diagnostics: required tools, cluster reachability, and the HTML dashboard."""

from __future__ import annotations

import logging
import shutil
import subprocess
import webbrowser
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("docker",)
OPTIONAL_TOOLS = ("kubectl", "kind")
CHECK_TIMEOUT_SECONDS = 15


@dataclass(frozen=True)
class ToolStatus:
    """Availability of one command-line tool."""

    name: str
    required: bool
    found: bool


def check_prerequisites() -> list[ToolStatus]:
    """Return availability of the tools the course relies on."""
    statuses = [ToolStatus(name=name, required=True, found=shutil.which(name) is not None) for name in REQUIRED_TOOLS]
    statuses.extend(
        ToolStatus(name=name, required=False, found=shutil.which(name) is not None) for name in OPTIONAL_TOOLS
    )
    return statuses


def missing_required(statuses: list[ToolStatus]) -> list[str]:
    return [status.name for status in statuses if status.required and not status.found]


def _capture(command: list[str]) -> subprocess.CompletedProcess[str] | None:
    """Run a short diagnostic command, returning None when it cannot run."""
    try:
        return subprocess.run(command, capture_output=True, text=True, timeout=CHECK_TIMEOUT_SECONDS, check=False)
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.info("Diagnostic %s failed: %s", command[0], exc)
        return None


def run_cluster_checks() -> list[str]:
    """Return human-readable results of cluster validation checks."""
    lines: list[str] = []
    if shutil.which("kind") is None:
        lines.append("⚠ kind is not installed")
    else:
        result = _capture(["kind", "get", "clusters"])
        clusters = [line.strip() for line in result.stdout.splitlines() if line.strip()] if result else []
        if clusters:
            lines.append(f"✓ kind clusters running: {', '.join(clusters)}")
        else:
            lines.append("⚠ No kind cluster found")

    if shutil.which("kubectl") is None:
        lines.append("⚠ kubectl is not installed")
    else:
        result = _capture(["kubectl", "cluster-info"])
        if result is not None and result.returncode == 0:
            lines.append("✓ kubectl can reach the cluster")
        else:
            lines.append("⚠ kubectl cannot reach a cluster")
    return lines


def open_dashboard(path: Path) -> bool:
    """Open the HTML dashboard in a browser; return False when the file is missing."""
    if not path.is_file():
        return False
    opened = webbrowser.open(path.resolve().as_uri())
    if not opened:
        logger.info("No browser available to open %s", path)
    return opened
