import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer as HTTPServer

from packwright.exceptions import APIError, APINotFoundError, APIRateLimitError, APIServerError
from packwright.models import CatalogFile
from packwright.services.catalog import CurseForgeClient

MOD = {
    "id": 238222,
    "name": "Just Enough Items",
    "slug": "jei",
    "summary": "View items and recipes",
    "authors": [{"name": "mezz"}],
}

FILES = [
    {
        "id": 1,
        "fileName": "jei-1.20.1-15.0.0.jar",
        "displayName": "jei 15.0.0",
        "fileDate": "2023-06-01T00:00:00Z",
        "downloadUrl": "https://edge.example/jei-15.0.0.jar",
        "hashes": [{"algo": 1, "value": "sha1-old"}, {"algo": 2, "value": "md5-old"}],
        "fileLength": 100,
    },
    {
        "id": 2,
        "fileName": "jei-1.20.1-15.2.0.jar",
        "displayName": "jei 15.2.0",
        "fileDate": "2023-09-01T00:00:00Z",
        "downloadUrl": None,
        "hashes": [{"algo": 1, "value": "sha1-new"}, {"algo": 2, "value": "md5-new"}],
        "fileLength": 200,
    },
]


@pytest_asyncio.fixture
async def curseforge():
    app = web.Application()
    app["requests"] = []

    async def record(request):
        request.app["requests"].append((request.path, dict(request.query)))
        if request.headers.get("x-api-key") != "secret":
            raise web.HTTPForbidden()

    async def search(request):
        await record(request)
        return web.json_response({"data": [MOD]})

    async def get_mod(request):
        await record(request)
        mod_id = int(request.match_info["mod_id"])
        if mod_id == 429:
            raise web.HTTPTooManyRequests()
        if mod_id == 500:
            raise web.HTTPInternalServerError()
        if mod_id != MOD["id"]:
            raise web.HTTPNotFound()
        return web.json_response({"data": MOD})

    async def get_files(request):
        await record(request)
        if request.query.get("gameVersion") == "1.7.10":
            return web.json_response({"data": []})
        return web.json_response({"data": FILES})

    async def get_file(request):
        await record(request)
        file_id = int(request.match_info["file_id"])
        for item in FILES:
            if item["id"] == file_id:
                return web.json_response({"data": item})
        raise web.HTTPNotFound()

    async def download_url(request):
        await record(request)
        return web.json_response(
            {"data": f"https://edge.example/{request.match_info['file_id']}.jar"}
        )

    app.router.add_get("/v1/mods/search", search)
    app.router.add_get("/v1/mods/{mod_id}", get_mod)
    app.router.add_get("/v1/mods/{mod_id}/files", get_files)
    app.router.add_get("/v1/mods/{mod_id}/files/{file_id}", get_file)
    app.router.add_get("/v1/mods/{mod_id}/files/{file_id}/download-url", download_url)

    server = HTTPServer(app)
    await server.start_server()
    client = CurseForgeClient("secret", base_url=str(server.make_url("/")))
    try:
        yield client, app["requests"]
    finally:
        await client.close()
        await server.close()


@pytest.mark.asyncio
async def test_search_sends_filters(curseforge):
    client, requests = curseforge

    mods = await client.search("jei", "1.20.1")

    assert [m.name for m in mods] == ["Just Enough Items"]
    assert mods[0].authors == ["mezz"]
    query = requests[-1][1]
    assert query["gameId"] == "432"
    assert query["searchFilter"] == "jei"
    assert query["gameVersion"] == "1.20.1"


@pytest.mark.asyncio
async def test_resolve_latest_file_uses_md5_and_download_url(curseforge):
    client, requests = curseforge

    resolved = await client.resolve_download(MOD["id"], "1.20.1")

    assert resolved.filename == "jei-1.20.1-15.2.0.jar"
    assert resolved.hash == "md5-new"
    assert resolved.url == "https://edge.example/2.jar"
    assert resolved.file_id == 2
    assert resolved.remote_id == MOD["id"]
    assert resolved.size == 200
    assert resolved.description == MOD["summary"]
    assert requests[-1][0].endswith("/download-url")


@pytest.mark.asyncio
async def test_resolve_pinned_file(curseforge):
    client, _ = curseforge

    resolved = await client.resolve_download(MOD["id"], file_id=1)

    assert resolved.filename == "jei-1.20.1-15.0.0.jar"
    assert resolved.url == "https://edge.example/jei-15.0.0.jar"
    assert resolved.hash == "md5-old"
    descriptor = resolved.to_descriptor()
    assert descriptor.to_dict()["curseForgeId"] == MOD["id"]
    assert descriptor.to_dict()["fileId"] == 1


@pytest.mark.asyncio
async def test_no_compatible_files(curseforge):
    client, _ = curseforge

    with pytest.raises(APINotFoundError):
        await client.resolve_download(MOD["id"], "1.7.10")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "mod_id, error",
    [(1, APINotFoundError), (429, APIRateLimitError), (500, APIServerError)],
)
async def test_status_codes_map_to_errors(curseforge, mod_id, error):
    client, _ = curseforge

    with pytest.raises(error) as exc_info:
        await client.get_mod(mod_id)

    assert isinstance(exc_info.value, APIError)


@pytest.mark.asyncio
async def test_missing_api_key_is_rejected(curseforge):
    client, _ = curseforge
    client.api_key = None

    with pytest.raises(APIError) as exc_info:
        await client.get_mod(MOD["id"])

    assert exc_info.value.context["status_code"] == 403


def test_catalog_file_hash_algorithms():
    catalog_file = CatalogFile.from_curseforge(FILES[0])

    assert catalog_file.md5 == "md5-old"
    assert catalog_file.hashes[1] == "sha1-old"
