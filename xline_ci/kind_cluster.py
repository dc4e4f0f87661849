"""
Script: xline_ci/kind_cluster.py
What: Installs `kind` and brings up the local Kubernetes cluster used by xline's CI tests.
Doing: Downloads a pinned kind binary, renders `ci/artifact/kind.yaml`, runs `kind create cluster`, then waits for node readiness.
Why: Operator and e2e jobs need a real cluster, created the same way on every runner.
Goal: Return only once every node in the new cluster reports Ready.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Mapping

import httpx

from xline_ci.common import CiToolError, optional_env, render_template, run_cmd


KIND_VERSION = "v0.22.0"
KIND_ASSET = "kind-linux-amd64"
KIND_INSTALL_PATH = Path("/usr/local/bin/kind")
DEFAULT_K8S_VERSION = "v1.27.3"
CLUSTER_TEMPLATE = Path("ci/artifact/kind.yaml")
CLUSTER_CREATE_WAIT = "4m"
DOWNLOAD_TIMEOUT = 60.0


def kind_download_url(version: str = KIND_VERSION, asset: str = KIND_ASSET) -> str:
    return f"https://github.com/kubernetes-sigs/kind/releases/download/{version}/{asset}"


def download_file(url: str, destination: Path, *, timeout: float = DOWNLOAD_TIMEOUT) -> None:
    """
    Stream `url` into `destination`.

    `timeout` applies to connecting and to each read, so a server that stops
    sending fails the step instead of hanging the job.
    """
    try:
        with httpx.Client(follow_redirects=True, timeout=timeout) as client:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                with destination.open("wb") as handle:
                    for chunk in response.iter_bytes():
                        handle.write(chunk)
    except httpx.HTTPError as exc:
        raise CiToolError(f"Download failed: {url}\n{exc}") from exc


def install_kind(
    *,
    version: str = KIND_VERSION,
    destination: Path = KIND_INSTALL_PATH,
    fetch: Callable[[str, Path], None] | None = None,
) -> Path:
    """
    Download the kind binary and install it as an executable.

    The file is written next to `destination` first and moved into place
    afterwards, so an interrupted download never leaves a broken `kind` on PATH.
    """
    fetch = fetch or download_file
    url = kind_download_url(version)
    destination.parent.mkdir(parents=True, exist_ok=True)
    partial = destination.with_name(f".{destination.name}.download")
    try:
        fetch(url, partial)
        partial.chmod(0o755)
        os.replace(partial, destination)
    finally:
        partial.unlink(missing_ok=True)
    return destination


def template_values(environ: Mapping[str, str], cwd: Path) -> dict[str, str]:
    """
    Build the variables available to the cluster template.

    `K8SVERSION` falls back to the pinned default when unset or empty.
    `WORKSPACE` falls back to the current checkout directory.
    """
    values = dict(environ)
    if not values.get("K8SVERSION"):
        values["K8SVERSION"] = DEFAULT_K8S_VERSION
    if not values.get("WORKSPACE"):
        values["WORKSPACE"] = str(cwd)
    return values


def render_cluster_config(template_path: Path, values: Mapping[str, str]) -> str:
    if not template_path.exists():
        raise CiToolError(f"Expected kind cluster template at {template_path}")
    return render_template(template_path.read_text(encoding="utf-8"), values)


def build_create_cluster_command(*, name: str = "", wait: str = CLUSTER_CREATE_WAIT) -> list[str]:
    # `--config -` reads the rendered config from stdin.
    # `--retain` keeps failed node containers around for log collection.
    command = ["kind", "create", "cluster", "-v7", "--retain", "--wait", wait]
    if name:
        command.extend(["--name", name])
    command.extend(["--config", "-"])
    return command


def build_wait_nodes_command(timeout: str = "") -> list[str]:
    command = ["kubectl", "wait", "node", "--all", "--for", "condition=ready"]
    if timeout:
        command.append(f"--timeout={timeout}")
    return command


def create_cluster(
    config_text: str,
    *,
    name: str = "",
    ready_timeout: str = "",
    runner: Callable[..., str] = run_cmd,
) -> None:
    """
    Create the cluster and block until all nodes are Ready.

    `runner` is passed in to keep this function easy to test. Any error it
    raises stops the sequence, so the readiness wait never runs against a
    cluster that failed to create.
    """
    runner(build_create_cluster_command(name=name), capture_output=False, input_text=config_text)
    runner(build_wait_nodes_command(ready_timeout), capture_output=False)


def install_main() -> None:
    version = optional_env("KIND_VERSION", KIND_VERSION)
    destination = Path(optional_env("KIND_INSTALL_PATH", str(KIND_INSTALL_PATH)))
    installed = install_kind(version=version, destination=destination)
    print(f"Installed kind {version} to {installed}")


def main() -> None:
    values = template_values(os.environ, Path.cwd())
    template_path = Path(optional_env("KIND_CONFIG_TEMPLATE", str(CLUSTER_TEMPLATE)))
    cluster_name = optional_env("KIND_CLUSTER_NAME")
    ready_timeout = optional_env("KIND_NODE_READY_TIMEOUT")

    # Render before touching the cluster so a missing variable fails fast.
    config_text = render_cluster_config(template_path, values)
    print(f"Rendered {template_path} (K8SVERSION={values['K8SVERSION']}):")
    print(config_text)

    create_cluster(config_text, name=cluster_name, ready_timeout=ready_timeout)
    print("All cluster nodes report Ready")


if __name__ == "__main__":
    main()
