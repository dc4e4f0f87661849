"""
Script: xline_ci package
What: Holds the Python helpers behind xline's image-publish workflow and test-cluster setup.
Doing: Groups CLI entrypoints and shared utility code in one importable package.
Why: Keeps manifest merging and kind provisioning readable and testable instead of inline shell.
Goal: One place to look when a CI step that talks to the registry or the cluster fails.
"""
