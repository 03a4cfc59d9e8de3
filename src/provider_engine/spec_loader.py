"""Desired-config file loading with validation.

Every file holds one resource. Two layouts are accepted:

Flat::

    kind: gateway
    gw_name: spoke-1
    cloud_type: 1
    ...

Wrapped::

    apiVersion: provider-engine/v1
    kind: gateway
    metadata: {name: spoke-1}
    spec:
      gw_name: spoke-1
      ...

File sizes are checked before reading.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES, MAX_SPEC_FILES_PER_DIR
from .models import BaseSpec, get_spec_class

logger = logging.getLogger(__name__)

SPEC_SUFFIXES = (".yaml", ".yml")


class SpecLoadError(Exception):
    """Raised when spec loading or validation fails."""

    pass


def load_spec(spec_path: Path) -> BaseSpec:
    """Load and type-check one desired configuration from YAML.

    Cross-field rules are not evaluated here; see the validator.

    Args:
        spec_path: Path to the YAML file.

    Returns:
        Typed desired configuration.

    Raises:
        SpecLoadError: If the file cannot be read or does not parse into a
            known resource kind.
    """
    if not spec_path.exists():
        raise SpecLoadError(f"Spec file not found: {spec_path}")

    try:
        file_size = spec_path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat spec file {spec_path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Spec file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {spec_path}"
        )

    try:
        content = spec_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read spec file {spec_path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {spec_path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Spec file must contain a YAML mapping: {spec_path}")

    kind = raw_data.get("kind")
    if not kind:
        raise SpecLoadError(f"Spec file must declare a 'kind': {spec_path}")

    if "apiVersion" in raw_data and "spec" in raw_data:
        spec_data = raw_data.get("spec") or {}
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {spec_path}")
    else:
        spec_data = {k: v for k, v in raw_data.items() if k != "kind"}

    try:
        spec_class = get_spec_class(str(kind))
    except ValueError as e:
        raise SpecLoadError(f"{spec_path}: {e}") from e

    try:
        spec = spec_class.model_validate(spec_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {spec_path}:\n{error_list}") from e

    logger.info(
        "Loaded spec",
        extra={"kind": spec.kind, "key": spec.resource_key, "path": str(spec_path)},
    )
    return spec


def load_specs(path: Path) -> list[tuple[Path, BaseSpec]]:
    """Load one file, or every YAML file of a directory in name order.

    Raises:
        SpecLoadError: If any file fails to load, or the directory holds
            more than MAX_SPEC_FILES_PER_DIR files.
    """
    if path.is_file():
        return [(path, load_spec(path))]
    if not path.is_dir():
        raise SpecLoadError(f"Spec path not found: {path}")

    files = sorted(p for p in path.iterdir() if p.is_file() and p.suffix in SPEC_SUFFIXES)
    if len(files) > MAX_SPEC_FILES_PER_DIR:
        raise SpecLoadError(
            f"Spec directory holds {len(files)} files, maximum is {MAX_SPEC_FILES_PER_DIR}: {path}"
        )
    return [(p, load_spec(p)) for p in files]
