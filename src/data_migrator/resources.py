"""Resolve logical resource refs against a serverless service manifest.

The manifest is the JSON produced by `serverless print --format json`:

    {
      "service": "posts",
      "provider": {"stage": "dev", "region": "us-east-1"},
      "functions": {"upload": {"handler": "...", "name": "posts-dev-upload"}},
      "resources": {"Resources": {
        "PostsBucket": {"Type": "AWS::S3::Bucket", "Properties": {"BucketName": "posts-raw"}},
        "PostsTable": {"Type": "AWS::DynamoDB::Table", "Properties": {"TableName": "posts"}}
      }}
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigError
from .models import ResolvedResources, RunOptions

logger = logging.getLogger(__name__)


def load_manifest(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(
            f"Service manifest not found at {path}. Generate it with: serverless print --format json > {path}"
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Service manifest {path} is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Service manifest {path} must be a JSON object.")
    return raw


def _resource_properties(manifest: Mapping[str, Any], ref: str) -> Mapping[str, Any]:
    resources = (manifest.get("resources") or {}).get("Resources") or {}
    resource = resources.get(ref)
    if not isinstance(resource, Mapping):
        raise ConfigError(f"Resource '{ref}' not found in service manifest (known: {sorted(resources)}).")
    props = resource.get("Properties")
    if not isinstance(props, Mapping):
        raise ConfigError(f"Resource '{ref}' has no Properties in service manifest.")
    return props


def resolve_function_name(manifest: Mapping[str, Any], ref: str) -> str:
    functions = manifest.get("functions") or {}
    func = functions.get(ref)
    if not isinstance(func, Mapping):
        raise ConfigError(f"Function '{ref}' not found in service manifest (known: {sorted(functions)}).")
    name = func.get("name")
    if isinstance(name, str) and name.strip():
        return name
    # serverless default naming: <service>-<stage>-<function>
    service = manifest.get("service")
    if isinstance(service, Mapping):
        service = service.get("name")
    stage = (manifest.get("provider") or {}).get("stage")
    if not service or not stage:
        raise ConfigError(f"Function '{ref}' has no name and service/stage are not set in the manifest.")
    return f"{service}-{stage}-{ref}"


def resolve_bucket_name(manifest: Mapping[str, Any], ref: str) -> str:
    props = _resource_properties(manifest, ref)
    name = props.get("BucketName") or props.get("TableName")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"Resource '{ref}' has no BucketName property.")
    return name


def resolve_table_name(manifest: Mapping[str, Any], ref: str) -> str:
    props = _resource_properties(manifest, ref)
    name = props.get("TableName")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"Resource '{ref}' has no TableName property.")
    return name


def resolve_resources(manifest: Mapping[str, Any], options: RunOptions) -> ResolvedResources:
    """Resolve all three refs of a run. Called once per run, before any stage."""
    resolved = ResolvedResources(
        function_name=resolve_function_name(manifest, options.function_ref),
        bucket_name=resolve_bucket_name(manifest, options.bucket_ref),
        table_name=resolve_table_name(manifest, options.table_ref),
    )
    logger.info(
        "resolved function=%s bucket=%s table=%s",
        resolved.function_name,
        resolved.bucket_name,
        resolved.table_name,
    )
    return resolved
