"""
Utility script to generate and write the OpenAPI schema for the FastAPI app.

This script builds the FastAPI application and serializes its OpenAPI schema
to interfaces/openapi.json so that API clients and documentation tools can
consume a stable contract without running the server.

Usage:
    python -m tasks_api.generate_openapi [output_path]

Notes:
- The script ensures the 'health' and 'tasks' tags are present in the OpenAPI tags metadata.
- The default output path is relative to the repository root: interfaces/openapi.json
"""
from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from .main import create_app, openapi_tags
from .settings import Settings

logger = logging.getLogger(__name__)


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Ensure the OpenAPI schema contains the expected tags metadata. Existing
    tag definitions are left untouched.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


def default_output_path() -> str:
    # <repo_root>/interfaces/openapi.json, with this file at <repo_root>/src/tasks_api/
    package_dir = os.path.dirname(os.path.abspath(__file__))
    repo_root = os.path.dirname(os.path.dirname(package_dir))
    return os.path.join(repo_root, "interfaces", "openapi.json")


# PUBLIC_INTERFACE
def generate_openapi(out_path: Optional[str] = None) -> str:
    """Generate the OpenAPI schema of the full CRUD app, write it, and return the written file path."""
    # The schema does not depend on the storage backend; memory avoids touching disk
    app = create_app(Settings(app_mode="full", persistence_backend="memory"))
    schema = app.openapi()
    _ensure_tags(schema)

    path = out_path or default_output_path()
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    logger.info("Wrote OpenAPI schema to %s", path)
    return path


def main() -> None:
    path = generate_openapi(sys.argv[1] if len(sys.argv) > 1 else None)
    print(f"Wrote OpenAPI schema to: {path}")


if __name__ == "__main__":
    main()
