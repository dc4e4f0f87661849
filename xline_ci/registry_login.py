"""
Script: xline_ci/registry_login.py
What: Logs the Docker CLI into the registry that hosts the xline image.
Doing: Derives the registry host from the image id and runs `docker login --password-stdin`.
Why: `imagetools create` pushes the merged manifest, which needs registry credentials.
Goal: Authenticate without ever putting the token on a command line.
"""

from __future__ import annotations

from xline_ci.common import CiToolError, optional_env, require_env, run_cmd
from xline_ci.image_manifest import DEFAULT_IMAGE_ID, normalize_image_id


DEFAULT_REGISTRY_USERNAME = "xline-kv"


def registry_host(image_id: str) -> str:
    """Return the registry part of an image id, for example `ghcr.io`."""
    host, _, rest = image_id.partition("/")
    # Docker treats the first part as a registry only if it looks like a host.
    if not rest or not ("." in host or ":" in host or host == "localhost"):
        raise CiToolError(f"Image id does not name a registry host: {image_id}")
    return host


def build_login_command(registry: str, username: str) -> list[str]:
    return ["docker", "login", registry, "--username", username, "--password-stdin"]


def main() -> None:
    image_id = normalize_image_id(optional_env("IMAGE_ID", DEFAULT_IMAGE_ID))
    username = optional_env("REGISTRY_USERNAME", DEFAULT_REGISTRY_USERNAME)
    # Workflow maps secrets.GITHUB_TOKEN to this name.
    token = require_env("REGISTRY_TOKEN")

    registry = registry_host(image_id)
    run_cmd(build_login_command(registry, username), input_text=token)
    print(f"Logged in to {registry} as {username}")


if __name__ == "__main__":
    main()
