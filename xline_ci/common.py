"""
Script: xline_ci/common.py
What: Shared helper functions used by all `xline_ci` modules.
Doing: Wraps env reads, command execution, template rendering, and step-output writes.
Why: Avoids duplicated helper code.
Goal: Keep behavior consistent across all helper modules.
"""

from __future__ import annotations

import os
import re
import subprocess
from typing import Mapping, Sequence


class CiToolError(RuntimeError):
    """Raised when a workflow helper script hits a known error condition."""


# Same names envsubst understands: `$NAME` and `${NAME}`.
TEMPLATE_VAR_RE = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))")


def require_env(name: str) -> str:
    """Return a required environment variable or raise a clear error."""
    value = os.environ.get(name)
    if value is None or value == "":
        raise CiToolError(f"Missing required environment variable: {name}")
    return value


def optional_env(name: str, default: str = "") -> str:
    """Return an environment variable with a fallback default."""
    return os.environ.get(name, default)


def run_cmd(
    args: Sequence[str],
    *,
    capture_output: bool = True,
    cwd: str | None = None,
    input_text: str | None = None,
) -> str:
    """
    Run a command and return stdout, raising a readable error on failure.

    `input_text` is written to the command's stdin. It is never included in
    error messages, so secrets such as registry tokens can be passed this way.
    """
    try:
        result = subprocess.run(
            list(args),
            check=True,
            text=True,
            capture_output=capture_output,
            cwd=cwd,
            input=input_text,
        )
    except FileNotFoundError as exc:
        raise CiToolError(f"Command not found: {args[0]}") from exc
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        stdout = (exc.stdout or "").strip()
        details = stderr or stdout or str(exc)
        raise CiToolError(f"Command failed: {' '.join(args)}\n{details}") from exc

    if not capture_output:
        return ""
    return result.stdout


def write_github_outputs(values: Mapping[str, str]) -> None:
    """
    Write step outputs for GitHub Actions.

    GitHub provides a file path in `GITHUB_OUTPUT`; writing `name=value` lines
    there makes that value available to later steps in the same job.
    """
    output_file = require_env("GITHUB_OUTPUT")
    with open(output_file, "a", encoding="utf-8") as handle:
        for key, value in values.items():
            handle.write(f"{key}={value}\n")


def render_template(text: str, values: Mapping[str, str]) -> str:
    """
    Substitute `$NAME` and `${NAME}` references, like `envsubst`.

    Unlike plain `envsubst`, a reference to a name that is not in `values`
    is an error instead of an empty string. All missing names are reported
    together so one run shows everything that needs to be set.
    """
    missing: list[str] = []

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1) or match.group(2)
        if name not in values:
            if name not in missing:
                missing.append(name)
            return match.group(0)
        return values[name]

    rendered = TEMPLATE_VAR_RE.sub(_replace, text)
    if missing:
        raise CiToolError(f"Template references unset variables: {', '.join(missing)}")
    return rendered
