"""Kubernetes manifest discovery and loading.

Mirrors what `kubectl apply -f` accepts: a single file with one or more
YAML documents, a JSON file, or a directory whose manifest files are applied
in name order (non-recursive).
"""

import json
import logging
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

MANIFEST_SUFFIXES = ('.yaml', '.yml', '.json')


class ManifestError(Exception):
    """Manifest missing or malformed."""


def list_manifest_files(directory: Path) -> list[Path]:
    """Return manifest files directly inside a directory, sorted by name."""
    if not directory.is_dir():
        raise ManifestError(f"Manifest directory {directory} does not exist")
    files = sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() in MANIFEST_SUFFIXES
    )
    if not files:
        raise ManifestError(f"No manifests (*.yaml, *.yml, *.json) found in {directory}")
    return files


def _expand(doc: dict, path: Path) -> list[dict]:
    """Validate a document and expand `kind: List` wrappers."""
    if not isinstance(doc, dict):
        raise ManifestError(f"{path}: expected a mapping, got {type(doc).__name__}")

    if str(doc.get('kind') or '').endswith('List') and 'items' in doc:
        objects = []
        for item in doc.get('items') or []:
            objects.extend(_expand(item, path))
        return objects

    missing = [key for key in ('apiVersion', 'kind') if not doc.get(key)]
    if not (doc.get('metadata') or {}).get('name'):
        missing.append('metadata.name')
    if missing:
        raise ManifestError(f"{path}: object missing {', '.join(missing)}")
    return [doc]


def load_manifest_file(path: Path) -> list[dict]:
    """Load every object from a manifest file."""
    if not path.is_file():
        raise ManifestError(f"Manifest file {path} does not exist")

    try:
        text = path.read_text(encoding='utf-8')
        if path.suffix.lower() == '.json':
            docs = [json.loads(text)]
        else:
            docs = list(yaml.safe_load_all(text))
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestError(f"Cannot read {path}: {e}") from e
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ManifestError(f"Cannot parse {path}: {e}") from e

    objects = []
    for doc in docs:
        if doc is None:
            continue
        objects.extend(_expand(doc, path))
    logger.debug(f"Loaded {len(objects)} object(s) from {path}")
    return objects


def load_manifest_dir(directory: Path) -> list[tuple[Path, list[dict]]]:
    """Load every manifest file in a directory as (file, objects) pairs."""
    return [(path, load_manifest_file(path)) for path in list_manifest_files(directory)]


def describe(obj: dict) -> str:
    """Short kubectl-style identifier, e.g. deployment.apps/grafana."""
    kind = obj['kind'].lower()
    api_version = obj['apiVersion']
    group = api_version.split('/')[0] if '/' in api_version else ''
    qualified = f"{kind}.{group}" if group else kind
    return f"{qualified}/{obj['metadata']['name']}"
