"""Manifest loader — parse and validate edgegate.yaml."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from contracts.manifest import Manifest

MANIFEST_ENV = "EDGEGATE_MANIFEST"
CREDENTIAL_ENV = "EDGEGATE_CREDENTIAL"
DEFAULT_MANIFEST = "edgegate.yaml"


def load_manifest(path: str) -> Manifest:
    """Load an edgegate.yaml file and return a validated Manifest.

    ``EDGEGATE_CREDENTIAL`` overrides ``gate.credential_value`` so the secret
    can stay out of the file.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Manifest not found: {path}")

    raw = p.read_text(encoding="utf-8")
    data = yaml.safe_load(raw)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Manifest must be a YAML mapping, got {type(data).__name__}")

    manifest = Manifest(**data)

    secret = os.environ.get(CREDENTIAL_ENV)
    if secret:
        manifest.gate.credential_value = secret
    return manifest


def manifest_path_from_env() -> str:
    return os.environ.get(MANIFEST_ENV, DEFAULT_MANIFEST)
