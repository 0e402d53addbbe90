import subprocess
from pathlib import Path

import k8slab.environment as environment


def test_check_prerequisites_reports_required_and_optional(monkeypatch) -> None:
    available = {"docker", "kind"}
    monkeypatch.setattr(environment.shutil, "which", lambda name: f"/usr/bin/{name}" if name in available else None)
    statuses = {status.name: status for status in environment.check_prerequisites()}
    assert statuses["docker"].required is True
    assert statuses["docker"].found is True
    assert statuses["kubectl"].required is False
    assert statuses["kubectl"].found is False
    assert environment.missing_required(list(statuses.values())) == []


def test_missing_docker_is_reported(monkeypatch) -> None:
    monkeypatch.setattr(environment.shutil, "which", lambda name: None)
    assert environment.missing_required(environment.check_prerequisites()) == ["docker"]


def test_cluster_checks_without_tools(monkeypatch) -> None:
    monkeypatch.setattr(environment.shutil, "which", lambda name: None)
    lines = environment.run_cluster_checks()
    assert lines == ["⚠ kind is not installed", "⚠ kubectl is not installed"]


def test_cluster_checks_with_running_cluster(monkeypatch) -> None:
    monkeypatch.setattr(environment.shutil, "which", lambda name: f"/usr/bin/{name}")

    def fake_run(command, **kwargs):
        if command[0] == "kind":
            return subprocess.CompletedProcess(command, 0, stdout="k8s-learning\n", stderr="")
        return subprocess.CompletedProcess(command, 1, stdout="", stderr="refused")

    monkeypatch.setattr(environment.subprocess, "run", fake_run)
    lines = environment.run_cluster_checks()
    assert lines == ["✓ kind clusters running: k8s-learning", "⚠ kubectl cannot reach a cluster"]


def test_cluster_checks_survive_timeouts(monkeypatch) -> None:
    monkeypatch.setattr(environment.shutil, "which", lambda name: f"/usr/bin/{name}")

    def slow_run(command, **kwargs):
        raise subprocess.TimeoutExpired(command, kwargs.get("timeout", 1))

    monkeypatch.setattr(environment.subprocess, "run", slow_run)
    lines = environment.run_cluster_checks()
    assert lines == ["⚠ No kind cluster found", "⚠ kubectl cannot reach a cluster"]


def test_open_dashboard(tmp_path: Path, monkeypatch) -> None:
    opened: list[str] = []
    monkeypatch.setattr(environment.webbrowser, "open", lambda url: opened.append(url) or True)
    assert environment.open_dashboard(tmp_path / "missing.html") is False
    page = tmp_path / "index.html"
    page.write_text("<html></html>", encoding="utf-8")
    assert environment.open_dashboard(page) is True
    assert opened == [page.resolve().as_uri()]
