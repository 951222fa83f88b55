"""Shared fixtures: a local file server and helpers for building manifests."""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
from pathlib import Path

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from packwright.models import ModDescriptor
from packwright.services.catalog import CatalogClient
from packwright.models import CatalogMod, ResolvedFile

PAYLOADS = {
    "alpha.jar": b"alpha-mod-content" * 2048,
    "beta.jar": b"beta-mod-content" * 512,
    "gamma.jar": b"gamma",
}


def md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def write_file(path, data: bytes) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


class FileServer:
    """Wraps the aiohttp TestServer and records which files were requested."""

    def __init__(self, server: TestServer, app: web.Application):
        self.server = server
        self.app = app

    @property
    def hits(self) -> list[str]:
        return self.app["hits"]

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    def file_url(self, name: str) -> str:
        return self.url(f"/files/{name}")

    def descriptor(self, name: str, with_hash: bool = True) -> ModDescriptor:
        data = PAYLOADS.get(name)
        return ModDescriptor(
            filename=name,
            url=self.file_url(name),
            hash=md5(data) if (with_hash and data is not None) else None,
        )


def _build_app() -> web.Application:
    app = web.Application()
    app["hits"] = []
    app["release"] = asyncio.Event()

    async def serve_file(request: web.Request):
        name = request.match_info["name"]
        request.app["hits"].append(name)
        if name not in PAYLOADS:
            raise web.HTTPNotFound()
        return web.Response(body=PAYLOADS[name])

    async def redirect(request: web.Request):
        raise web.HTTPFound(f"/files/{request.match_info['name']}")

    async def permanent(request: web.Request):
        raise web.HTTPMovedPermanently(f"/redirect/{request.match_info['name']}")

    async def loop(request: web.Request):
        step = int(request.match_info["step"])
        request.app["hits"].append(f"loop-{step}")
        raise web.HTTPFound(f"/loop/{step + 1}")

    async def chunked(request: web.Request):
        response = web.StreamResponse()
        response.enable_chunked_encoding()
        await response.prepare(request)
        for _ in range(4):
            await response.write(b"x" * 1024)
        await response.write_eof()
        return response

    async def stall(request: web.Request):
        response = web.StreamResponse()
        response.content_length = 1024 * 1024
        await response.prepare(request)
        await response.write(b"s" * 1024)
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(request.app["release"].wait(), 2)
        return response

    async def truncated(request: web.Request):
        response = web.StreamResponse()
        response.content_length = 4096
        await response.prepare(request)
        await response.write(b"t" * 1024)
        request.transport.close()
        return response

    async def error(request: web.Request):
        return web.Response(status=int(request.match_info["status"]))

    app.router.add_get("/files/{name}", serve_file)
    app.router.add_get("/redirect/{name}", redirect)
    app.router.add_get("/permanent/{name}", permanent)
    app.router.add_get("/loop/{step}", loop)
    app.router.add_get("/chunked", chunked)
    app.router.add_get("/stall/{name}", stall)
    app.router.add_get("/truncated/{name}", truncated)
    app.router.add_get("/status/{status}", error)
    return app


@pytest_asyncio.fixture
async def file_server():
    app = _build_app()
    server = TestServer(app)
    await server.start_server()
    try:
        yield FileServer(server, app)
    finally:
        app["release"].set()
        await server.close()


class FakeCatalog(CatalogClient):
    """In-memory catalog that resolves ids to URLs on the file server."""

    def __init__(self, files: dict[int, ResolvedFile]):
        self.files = files
        self.calls: list[tuple] = []

    async def search(self, query, platform_version=None):
        self.calls.append(("search", query, platform_version))
        return [
            CatalogMod(id=mod_id, name=f.filename, authors=["someone"])
            for mod_id, f in self.files.items()
            if query.lower() in f.filename.lower()
        ]

    async def resolve_download(self, mod_id, platform_version=None, file_id=None):
        self.calls.append(("resolve", mod_id, platform_version, file_id))
        if mod_id not in self.files:
            from packwright.exceptions import APINotFoundError

            raise APINotFoundError(f"mod {mod_id} not found")
        return self.files[mod_id]


@pytest.fixture
def fake_catalog_factory():
    def factory(server: FileServer) -> FakeCatalog:
        return FakeCatalog(
            {
                101: ResolvedFile(
                    filename="alpha.jar",
                    url=server.file_url("alpha.jar"),
                    hash=md5(PAYLOADS["alpha.jar"]),
                    version="1.0.0",
                    remote_id=101,
                    file_id=5001,
                ),
                102: ResolvedFile(
                    filename="beta.jar",
                    url=server.file_url("beta.jar"),
                    hash=md5(PAYLOADS["beta.jar"]),
                    version="2.0.0",
                    remote_id=102,
                    file_id=5002,
                ),
                103: ResolvedFile(
                    filename="broken.jar",
                    url=server.file_url("broken.jar"),
                    remote_id=103,
                    file_id=5003,
                ),
            }
        )

    return factory
