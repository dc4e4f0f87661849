"""
Script: xline_ci/image_manifest.py
What: Merges per-platform xline image digests into one multi-platform manifest list.
Doing: Reads digest files, builds `docker buildx imagetools create` arguments, runs them, and inspects the published tag on request.
Why: Each platform build job pushes by digest only; one tag has to point at all of them.
Goal: Publish `ghcr.io/xline-kv/xline:latest` and `:<app_version>` as manifest lists.
"""

from __future__ import annotations

import re
from pathlib import Path

from xline_ci.common import CiToolError, optional_env, require_env, run_cmd, write_github_outputs


DEFAULT_IMAGE_ID = "ghcr.io/xline-kv/xline"
DEFAULT_DIGESTS_DIR = "/tmp/digests"
LATEST_TAG = "latest"

# Length is not checked; buildx rejects a truncated digest when it resolves the ref.
DIGEST_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
# OCI tag grammar: 128 chars max, no leading dot or dash.
TAG_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")


def normalize_image_id(image_id: str) -> str:
    """
    Return a clean `registry/namespace/name` repository address.

    The value must not already carry a tag or digest, because tags and
    digest refs are appended to it below.
    """
    value = image_id.strip().rstrip("/").lower()
    if not value:
        raise CiToolError("Image id is empty")
    last_part = value.rsplit("/", 1)[-1]
    if "@" in value or ":" in last_part:
        raise CiToolError(f"Image id must not include a tag or digest: {image_id}")
    return value


def read_digests(digests_dir: Path) -> list[str]:
    """
    List digest hashes from the files in `digests_dir`.

    Each platform build job uploads an empty file named after the hash part of
    its pushed digest (`sha256:<hash>` without the prefix). Hidden files are
    skipped and names are sorted, which is what the shell `*` glob did.
    """
    if not digests_dir.is_dir():
        raise CiToolError(f"Digests directory not found: {digests_dir}")

    digests: list[str] = []
    for entry in sorted(digests_dir.iterdir(), key=lambda path: path.name):
        if entry.name.startswith("."):
            continue
        digest = entry.name
        if digest.startswith("sha256:"):
            digest = digest[len("sha256:"):]
        if not DIGEST_HEX_RE.match(digest):
            raise CiToolError(f"Unexpected digest file name in {digests_dir}: {entry.name}")
        digests.append(digest.lower())

    if not digests:
        raise CiToolError(f"No digest files found in {digests_dir}")
    return digests


def manifest_tags(image_id: str, app_version: str) -> list[str]:
    """Return the tags the merged manifest is published under."""
    if not TAG_RE.match(app_version):
        raise CiToolError(f"App version is not a valid image tag: {app_version}")
    return [f"{image_id}:{LATEST_TAG}", f"{image_id}:{app_version}"]


def digest_refs(image_id: str, digests: list[str]) -> list[str]:
    """Turn digest hashes into pinned `<image>@sha256:<hash>` references."""
    return [f"{image_id}@sha256:{digest}" for digest in digests]


def build_imagetools_create_command(
    *,
    image_id: str,
    app_version: str,
    digests: list[str],
) -> list[str]:
    command = ["docker", "buildx", "imagetools", "create"]
    for tag in manifest_tags(image_id, app_version):
        command.extend(["-t", tag])
    command.extend(digest_refs(image_id, digests))
    return command


def build_imagetools_inspect_command(image_ref: str) -> list[str]:
    return ["docker", "buildx", "imagetools", "inspect", image_ref]


def main() -> None:
    # Workflow input `app_version` arrives as APP_VERSION.
    app_version = require_env("APP_VERSION").strip()
    image_id = normalize_image_id(optional_env("IMAGE_ID", DEFAULT_IMAGE_ID))
    digests_dir = Path(optional_env("DIGESTS_DIR", DEFAULT_DIGESTS_DIR))

    digests = read_digests(digests_dir)
    command = build_imagetools_create_command(
        image_id=image_id,
        app_version=app_version,
        digests=digests,
    )

    print(f"Merging {len(digests)} platform digest(s) into {image_id}")
    for ref in digest_refs(image_id, digests):
        print(f"  {ref}")
    run_cmd(command, capture_output=False)

    tags = manifest_tags(image_id, app_version)
    write_github_outputs(
        {
            "image_ref": f"{image_id}:{app_version}",
            "tags": ",".join(tags),
        }
    )
    print(f"Published manifest list: {' '.join(tags)}")


def inspect_main() -> None:
    app_version = require_env("APP_VERSION").strip()
    image_id = normalize_image_id(optional_env("IMAGE_ID", DEFAULT_IMAGE_ID))

    # Printing the inspect output shows every platform the tag now resolves to.
    image_ref = manifest_tags(image_id, app_version)[1]
    run_cmd(build_imagetools_inspect_command(image_ref), capture_output=False)


if __name__ == "__main__":
    main()
