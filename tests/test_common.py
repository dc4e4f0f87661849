"""
Script: tests/test_common.py
What: Tests shared helpers in `xline_ci/common.py`.
Doing: Checks env reads, command error wrapping, step-output writes, and strict template rendering.
Why: Every workflow helper goes through these functions.
Goal: Keep failure messages and substitution rules stable.
"""

from __future__ import annotations

import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from xline_ci.common import (
    CiToolError,
    optional_env,
    render_template,
    require_env,
    run_cmd,
    write_github_outputs,
)


class EnvTests(unittest.TestCase):
    def test_require_env_rejects_empty_value(self) -> None:
        with mock.patch.dict(os.environ, {"APP_VERSION": ""}):
            with self.assertRaises(CiToolError) as ctx:
                require_env("APP_VERSION")
        self.assertIn("APP_VERSION", str(ctx.exception))

    def test_optional_env_uses_default(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(optional_env("IMAGE_ID", "ghcr.io/xline-kv/xline"), "ghcr.io/xline-kv/xline")


class RunCmdTests(unittest.TestCase):
    def test_returns_stdout(self) -> None:
        output = run_cmd([sys.executable, "-c", "print('ok')"])
        self.assertEqual(output.strip(), "ok")

    def test_feeds_input_text_on_stdin(self) -> None:
        output = run_cmd(
            [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"],
            input_text="token",
        )
        self.assertEqual(output.strip(), "TOKEN")

    def test_wraps_non_zero_exit(self) -> None:
        with self.assertRaises(CiToolError) as ctx:
            run_cmd([sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"])
        self.assertIn("Command failed", str(ctx.exception))
        self.assertIn("boom", str(ctx.exception))

    def test_error_does_not_include_stdin(self) -> None:
        with self.assertRaises(CiToolError) as ctx:
            run_cmd([sys.executable, "-c", "import sys; sys.exit(1)"], input_text="s3cret")
        self.assertNotIn("s3cret", str(ctx.exception))

    def test_missing_binary_is_a_tool_error(self) -> None:
        with self.assertRaises(CiToolError) as ctx:
            run_cmd(["xline-ci-no-such-binary"])
        self.assertIn("Command not found", str(ctx.exception))


class GithubOutputTests(unittest.TestCase):
    def test_appends_name_value_lines(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            output_path = Path(tmp) / "output"
            output_path.write_text("existing=1\n", encoding="utf-8")
            with mock.patch.dict(os.environ, {"GITHUB_OUTPUT": str(output_path)}):
                write_github_outputs({"image_ref": "ghcr.io/xline-kv/xline:1.2.3"})
            self.assertEqual(
                output_path.read_text(encoding="utf-8"),
                "existing=1\nimage_ref=ghcr.io/xline-kv/xline:1.2.3\n",
            )


class RenderTemplateTests(unittest.TestCase):
    def test_substitutes_both_reference_forms(self) -> None:
        rendered = render_template(
            "image: kindest/node:${K8SVERSION}\npath: $WORKSPACE/ci\n",
            {"K8SVERSION": "v1.27.3", "WORKSPACE": "/src/xline"},
        )
        self.assertEqual(rendered, "image: kindest/node:v1.27.3\npath: /src/xline/ci\n")

    def test_reports_every_unset_variable_once(self) -> None:
        with self.assertRaises(CiToolError) as ctx:
            render_template("${K8SVERSION} $WORKSPACE ${K8SVERSION}", {})
        self.assertEqual(
            str(ctx.exception),
            "Template references unset variables: K8SVERSION, WORKSPACE",
        )

    def test_leaves_non_variable_dollars_alone(self) -> None:
        self.assertEqual(render_template("cost: $5 and $", {}), "cost: $5 and $")

    def test_empty_value_counts_as_set(self) -> None:
        self.assertEqual(render_template("a${X}b", {"X": ""}), "ab")


if __name__ == "__main__":
    unittest.main()
