"""
Registry version resolver.

Looks up the latest published version of each declared npm dependency
so the reviewer can comment on freshness from facts. Lookups are
best-effort: any failure maps that dependency to UNKNOWN_VERSION.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

UNKNOWN_VERSION = "unknown"
DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"


def read_declared_dependencies(project_path: Path) -> dict[str, str]:
    """
    Read dependencies and devDependencies from package.json.

    Returns:
        dict: name -> declared version range; empty if the manifest is
        missing or malformed
    """
    manifest = project_path / "package.json"
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as e:
        logger.warning(f"Could not parse {manifest}: {e}")
        return {}

    if not isinstance(data, dict):
        return {}

    declared: dict[str, str] = {}
    for section in ("dependencies", "devDependencies"):
        entries = data.get(section) or {}
        if isinstance(entries, dict):
            declared.update(
                {str(name): str(spec) for name, spec in entries.items()}
            )
    return declared


async def _lookup_latest(
    client: httpx.AsyncClient,
    registry_url: str,
    name: str,
) -> str:
    # Scoped packages keep the "@" but need the slash encoded
    url = f"{registry_url.rstrip('/')}/{quote(name, safe='@')}"
    try:
        response = await client.get(url)
        response.raise_for_status()
        latest = response.json().get("dist-tags", {}).get("latest")
    except (httpx.HTTPError, ValueError, AttributeError) as e:
        logger.debug(f"Registry lookup failed for {name}: {e}")
        return UNKNOWN_VERSION
    return str(latest) if latest else UNKNOWN_VERSION


async def resolve_latest_versions(
    dependencies: dict[str, str],
    registry_url: str = DEFAULT_REGISTRY_URL,
    timeout: float = 10.0,
    client: Optional[httpx.AsyncClient] = None,
) -> dict[str, str]:
    """
    Resolve the latest version of every dependency concurrently.

    Args:
        dependencies: name -> declared range (only names are used)
        registry_url: Registry base URL
        timeout: Per-request timeout in seconds
        client: Optional client to reuse (tests pass a mocked one)

    Returns:
        dict: name -> latest version, or UNKNOWN_VERSION
    """
    if not dependencies:
        return {}

    names = list(dependencies)
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    try:
        versions = await asyncio.gather(
            *(_lookup_latest(client, registry_url, name) for name in names)
        )
    finally:
        if owns_client:
            await client.aclose()

    resolved = dict(zip(names, versions))
    unknown = sum(1 for v in versions if v == UNKNOWN_VERSION)
    if unknown:
        logger.warning(
            f"Registry lookup degraded for {unknown}/{len(names)} "
            f"dependencies"
        )
    return resolved
