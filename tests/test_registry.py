import asyncio
import json

import httpx

from grading.registry import (
    UNKNOWN_VERSION,
    read_declared_dependencies,
    resolve_latest_versions,
)


def _registry(request: httpx.Request) -> httpx.Response:
    packages = {
        "/express": {"dist-tags": {"latest": "4.19.2"}},
        "/@types/node": {"dist-tags": {"latest": "20.11.0"}},
    }
    body = packages.get(request.url.path)
    if body is None:
        return httpx.Response(404, json={"error": "Not found"})
    return httpx.Response(200, json=body)


def _resolve(dependencies):
    async def run():
        async with httpx.AsyncClient(
            transport=httpx.MockTransport(_registry)
        ) as client:
            return await resolve_latest_versions(
                dependencies,
                registry_url="https://registry.test",
                client=client,
            )

    return asyncio.run(run())


def test_resolves_latest_versions():
    resolved = _resolve({"express": "^4.18.0", "@types/node": "^20.0.0"})

    assert resolved == {"express": "4.19.2", "@types/node": "20.11.0"}


def test_unknown_package_maps_to_unknown():
    resolved = _resolve({"express": "^4.0.0", "no-such-pkg": "1.0.0"})

    assert resolved["express"] == "4.19.2"
    assert resolved["no-such-pkg"] == UNKNOWN_VERSION


def test_no_dependencies_makes_no_requests():
    assert _resolve({}) == {}


def test_read_declared_dependencies(tmp_path):
    (tmp_path / "package.json").write_text(json.dumps({
        "dependencies": {"express": "^4.18.0"},
        "devDependencies": {"mocha": "^10.0.0"},
    }))

    assert read_declared_dependencies(tmp_path) == {
        "express": "^4.18.0",
        "mocha": "^10.0.0",
    }


def test_missing_or_malformed_manifest(tmp_path):
    assert read_declared_dependencies(tmp_path) == {}

    (tmp_path / "package.json").write_text("{not json")
    assert read_declared_dependencies(tmp_path) == {}
