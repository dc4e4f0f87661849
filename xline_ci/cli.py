from __future__ import annotations

import argparse
import sys
from collections.abc import Callable, Mapping

from xline_ci.common import CiToolError


def command_map() -> dict[str, Callable[[], None]]:
    """
    Map CLI command names to Python entry functions.

    Each value is a `main()`-style function from one workflow helper module.
    """
    from xline_ci.image_manifest import inspect_main as inspect_image_manifest
    from xline_ci.image_manifest import main as merge_image_manifests
    from xline_ci.kind_cluster import install_main as kind_install
    from xline_ci.kind_cluster import main as kind_create_cluster
    from xline_ci.registry_login import main as registry_login

    return {
        "registry-login": registry_login,
        "merge-image-manifests": merge_image_manifests,
        "inspect-image-manifest": inspect_image_manifest,
        "kind-install": kind_install,
        "kind-create-cluster": kind_create_cluster,
    }


def build_parser(commands: Mapping[str, Callable[[], None]]) -> argparse.ArgumentParser:
    """Build argument parser with one positional command choice."""
    parser = argparse.ArgumentParser(
        prog="python3 -m xline_ci.cli",
        description="Run one xline CI helper command.",
    )
    parser.add_argument("command", choices=sorted(commands.keys()))
    return parser


def run_command(command: str, commands: Mapping[str, Callable[[], None]]) -> None:
    """
    Run one registered command.

    `commands` is passed in to keep this function easy to test.
    """
    commands[command]()


def main(argv: list[str] | None = None) -> None:
    # Build command registry once so parser and dispatcher use the same keys.
    commands = command_map()
    parser = build_parser(commands)
    args = parser.parse_args(argv)

    try:
        run_command(args.command, commands)
    except CiToolError as exc:
        # Keep failures short and readable in workflow logs.
        print(str(exc), file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
