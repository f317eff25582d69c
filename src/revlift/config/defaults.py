"""Default configuration values and paths."""

from __future__ import annotations

from pathlib import Path

CONFIG_ENV_VAR = "REVLIFT_CONFIG"

CONFIG_FILE_NAMES = [
    "revlift.yaml",
    "revlift.yml",
    ".revlift.yaml",
    ".revlift.yml",
]

CONFIG_SEARCH_PATHS = [
    Path.cwd(),
    Path.home() / ".config" / "revlift",
    Path.home(),
]

# Initial allocation of the per-driver decoder output buffer, in bytes.
DEFAULT_OUTPUT_BUFFER_SIZE = 64
