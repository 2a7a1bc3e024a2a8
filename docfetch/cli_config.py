"""Configuration loading helpers for CLI entrypoints."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

DEFAULT_EXAMPLE_FILE = Path(__file__).resolve().parent.parent / ".env.example"


def _seed_from_example(
    example_file: Path,
    config_dir: Path,
    config_env_file: Path,
    copy_file: Callable[[Path, Path], object],
) -> bool:
    if not example_file.is_file():
        return False
    try:
        config_dir.mkdir(parents=True, exist_ok=True)
        copy_file(example_file, config_env_file)
    except OSError as exc:
        logging.debug("Could not create %s: %s", config_env_file, exc)
        return False
    logging.info(
        "Created %s from %s; set DOCFETCH_PROXY_TEMPLATE or DOCFETCH_TIMEOUT there.",
        config_env_file,
        example_file.name,
    )
    return True


def load_config(
    *,
    config_dir: Path,
    config_env_file: Path,
    cwd: Path,
    load_env: Callable[[Path], bool],
    copy_file: Callable[[Path, Path], object],
    example_file: Optional[Path] = None,
) -> Optional[Path]:
    """Load the first ``.env`` found and return its path.

    Looks in *cwd*, then at *config_env_file*. When neither exists the
    project's ``.env.example`` seeds *config_env_file*.
    """
    for candidate in (cwd / ".env", config_env_file):
        if candidate.is_file():
            load_env(candidate)
            return candidate

    example = example_file if example_file is not None else DEFAULT_EXAMPLE_FILE
    if _seed_from_example(example, config_dir, config_env_file, copy_file):
        load_env(config_env_file)
        return config_env_file
    return None
