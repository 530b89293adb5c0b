"""Locating and fetching Piper voice files (the .onnx model and its .onnx.json)."""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from huggingface_hub import hf_hub_download
from huggingface_hub.utils import (
    EntryNotFoundError,
    HfHubHTTPError,
    RepositoryNotFoundError,
)

from .config import TTSConfig
from .errors import InitializationError


def ensure_voice_assets(
    config: TTSConfig,
    logger: Optional[logging.Logger] = None,
) -> tuple[Path, Path]:
    """Return the (model, model config) paths, downloading whichever is missing."""
    logger = logger or logging.getLogger(__name__)
    wanted = {
        config.hf_filename: config.model_file,
        f"{config.hf_filename}.json": config.model_config_file,
    }
    missing = {remote: local for remote, local in wanted.items() if not local.is_file()}
    if not missing:
        return config.model_file, config.model_config_file

    voice_dir = config.model_file.parent
    names = ", ".join(local.name for local in missing.values())
    if not config.hf_repo_id:
        raise InitializationError(
            f"Piper voice files missing from {voice_dir}: {names}. "
            "Put them there or set tts.hf_repo_id to download them."
        )

    try:
        voice_dir.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise InitializationError(
            f"Failed to create voice directory {voice_dir}: {error}"
        ) from error

    logger.info(
        "Fetching Piper voice files (%s) from %s@%s",
        names,
        config.hf_repo_id,
        config.hf_revision,
    )
    for remote_name, local_path in missing.items():
        _install(_download(config, remote_name), local_path)
        logger.info("Installed voice file %s", local_path)

    return config.model_file, config.model_config_file


def _download(config: TTSConfig, remote_name: str) -> Path:
    where = f"{config.hf_repo_id}@{config.hf_revision}"
    try:
        cached = Path(
            hf_hub_download(
                repo_id=config.hf_repo_id,
                filename=remote_name,
                revision=config.hf_revision,
            )
        )
    except RepositoryNotFoundError as error:
        raise InitializationError(f"Hugging Face repository not found: {where}") from error
    except EntryNotFoundError as error:
        raise InitializationError(f"{remote_name} does not exist in {where}") from error
    except HfHubHTTPError as error:
        raise InitializationError(
            f"HTTP error fetching {remote_name} from {where}: {error}"
        ) from error
    except Exception as error:
        raise InitializationError(
            f"Failed to fetch {remote_name} from {where}: {error}"
        ) from error

    if not cached.is_file():
        raise InitializationError(f"Hugging Face cache entry is not a file: {cached}")
    return cached


def _install(source: Path, target: Path) -> None:
    # Copy next to the target first so an interrupted copy never looks complete.
    partial = target.with_name(f"{target.name}.partial")
    try:
        shutil.copyfile(source, partial)
        os.replace(partial, target)
    except OSError as error:
        partial.unlink(missing_ok=True)
        raise InitializationError(f"Failed to install {target.name}: {error}") from error
