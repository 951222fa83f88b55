import asyncio
import os

import pytest

from packwright.download.transfer import PART_SUFFIX, TransferEngine
from packwright.exceptions import (
    DownloadError,
    DownloadFileError,
    DownloadNetworkError,
    IntegrityMismatch,
    TooManyRedirects,
    TransferCancelled,
    TransferFailed,
    TransferTimeout,
)

from conftest import PAYLOADS, md5, write_file


def leftovers(directory):
    return sorted(os.listdir(directory)) if os.path.isdir(directory) else []


@pytest.mark.asyncio
async def test_fetch_writes_file_and_reports_digest(file_server, tmp_path):
    dest = tmp_path / "mods" / "alpha.jar"

    async with TransferEngine() as engine:
        result = await engine.fetch(file_server.file_url("alpha.jar"), str(dest))

    assert dest.read_bytes() == PAYLOADS["alpha.jar"]
    assert result.filename == "alpha.jar"
    assert result.size == len(PAYLOADS["alpha.jar"])
    assert result.hash == md5(PAYLOADS["alpha.jar"])
    assert leftovers(dest.parent) == ["alpha.jar"]


@pytest.mark.asyncio
async def test_fetch_with_matching_hash_any_case(file_server, tmp_path):
    dest = tmp_path / "beta.jar"
    expected = md5(PAYLOADS["beta.jar"]).upper()

    async with TransferEngine() as engine:
        await engine.fetch(file_server.file_url("beta.jar"), str(dest), expected)

    assert dest.exists()


@pytest.mark.asyncio
async def test_fetch_follows_relative_redirects(file_server, tmp_path):
    dest = tmp_path / "alpha.jar"

    async with TransferEngine() as engine:
        result = await engine.fetch(file_server.url("/permanent/alpha.jar"), str(dest))

    assert dest.read_bytes() == PAYLOADS["alpha.jar"]
    assert result.url == file_server.file_url("alpha.jar")
    assert file_server.hits == ["alpha.jar"]


@pytest.mark.asyncio
async def test_redirect_loop_is_capped(file_server, tmp_path):
    dest = tmp_path / "loop.jar"

    async with TransferEngine(max_redirects=3) as engine:
        with pytest.raises(TooManyRedirects):
            await engine.fetch(file_server.url("/loop/0"), str(dest))

    assert file_server.hits == ["loop-0", "loop-1", "loop-2", "loop-3"]
    assert leftovers(tmp_path) == []


@pytest.mark.asyncio
async def test_not_found_raises_transfer_failed(file_server, tmp_path):
    dest = tmp_path / "missing.jar"

    async with TransferEngine() as engine:
        with pytest.raises(TransferFailed) as exc_info:
            await engine.fetch(file_server.file_url("missing.jar"), str(dest))

    assert exc_info.value.status == 404
    assert leftovers(tmp_path) == []


@pytest.mark.asyncio
async def test_server_error_raises_transfer_failed(file_server, tmp_path):
    async with TransferEngine() as engine:
        with pytest.raises(TransferFailed) as exc_info:
            await engine.fetch(file_server.url("/status/503"), str(tmp_path / "x.jar"))

    assert exc_info.value.status == 503


@pytest.mark.asyncio
async def test_integrity_mismatch_leaves_nothing_behind(file_server, tmp_path):
    dest = tmp_path / "alpha.jar"
    dest.write_bytes(b"stale copy")

    async with TransferEngine() as engine:
        with pytest.raises(IntegrityMismatch) as exc_info:
            await engine.fetch(file_server.file_url("alpha.jar"), str(dest), "0" * 32)

    assert exc_info.value.expected == "0" * 32
    assert exc_info.value.actual == md5(PAYLOADS["alpha.jar"])
    assert leftovers(tmp_path) == []


@pytest.mark.asyncio
async def test_progress_is_monotonic_and_reaches_total(file_server, tmp_path):
    calls = []

    async with TransferEngine(chunk_size=1024) as engine:
        await engine.fetch(
            file_server.file_url("alpha.jar"),
            str(tmp_path / "alpha.jar"),
            on_progress=lambda d, t, p: calls.append((d, t, p)),
        )

    total = len(PAYLOADS["alpha.jar"])
    assert calls
    downloaded = [c[0] for c in calls]
    assert downloaded == sorted(downloaded)
    assert calls[-1][0] == total
    assert all(c[1] == total for c in calls)
    assert calls[-1][2] == pytest.approx(100.0)


@pytest.mark.asyncio
async def test_unknown_length_reports_zero_percent(file_server, tmp_path):
    calls = []

    async with TransferEngine() as engine:
        result = await engine.fetch(
            file_server.url("/chunked"),
            str(tmp_path / "chunked.jar"),
            on_progress=lambda d, t, p: calls.append((d, t, p)),
        )

    assert result.size == 4096
    assert all(t is None and p == 0.0 for _, t, p in calls)


@pytest.mark.asyncio
async def test_stalled_transfer_times_out(file_server, tmp_path):
    async with TransferEngine(timeout=0.2) as engine:
        with pytest.raises(TransferTimeout):
            await engine.fetch(file_server.url("/stall/slow.jar"), str(tmp_path / "slow.jar"))

    assert leftovers(tmp_path) == []


@pytest.mark.asyncio
async def test_cancel_in_flight_transfer(file_server, tmp_path):
    started = asyncio.Event()

    async with TransferEngine() as engine:
        task = asyncio.ensure_future(
            engine.fetch(
                file_server.url("/stall/slow.jar"),
                str(tmp_path / "slow.jar"),
                on_progress=lambda *a: started.set(),
            )
        )
        await asyncio.wait_for(started.wait(), 5)

        key = str(tmp_path / "slow.jar")
        assert engine.active == [key]
        assert engine.cancel(key) is True

        with pytest.raises(TransferCancelled):
            await task

        assert engine.active == []
        assert engine.cancel(key) is False

    assert leftovers(tmp_path) == []


@pytest.mark.asyncio
async def test_duplicate_key_is_rejected(file_server, tmp_path):
    started = asyncio.Event()

    async with TransferEngine() as engine:
        task = asyncio.ensure_future(
            engine.fetch(
                file_server.url("/stall/slow.jar"),
                str(tmp_path / "slow.jar"),
                on_progress=lambda *a: started.set(),
            )
        )
        await asyncio.wait_for(started.wait(), 5)

        with pytest.raises(DownloadError):
            await engine.fetch(file_server.file_url("alpha.jar"), str(tmp_path / "slow.jar"))

        assert engine.cancel_all() == 1
        with pytest.raises(TransferCancelled):
            await task


@pytest.mark.asyncio
async def test_same_filename_in_other_directory_does_not_collide(file_server, tmp_path):
    started = asyncio.Event()

    async with TransferEngine() as engine:
        task = asyncio.ensure_future(
            engine.fetch(
                file_server.url("/stall/alpha.jar"),
                str(tmp_path / "a" / "alpha.jar"),
                on_progress=lambda *a: started.set(),
            )
        )
        await asyncio.wait_for(started.wait(), 5)

        result = await engine.fetch(
            file_server.file_url("alpha.jar"), str(tmp_path / "b" / "alpha.jar")
        )

        assert result.size == len(PAYLOADS["alpha.jar"])
        assert engine.active == [str(tmp_path / "a" / "alpha.jar")]
        engine.cancel_all()
        with pytest.raises(TransferCancelled):
            await task


@pytest.mark.asyncio
async def test_destination_with_parent_segments_is_normalized(file_server, tmp_path):
    dest = os.path.join(str(tmp_path), "missing", "..", "new", "gamma.jar")

    async with TransferEngine() as engine:
        result = await engine.fetch(file_server.file_url("gamma.jar"), dest)

    assert result.path == str(tmp_path / "new" / "gamma.jar")
    assert (tmp_path / "new" / "gamma.jar").read_bytes() == PAYLOADS["gamma.jar"]


@pytest.mark.asyncio
async def test_truncated_body_leaves_nothing_behind(file_server, tmp_path):
    async with TransferEngine() as engine:
        with pytest.raises(DownloadNetworkError):
            await engine.fetch(
                file_server.url("/truncated/cut.jar"), str(tmp_path / "cut.jar")
            )

    assert leftovers(tmp_path) == []


@pytest.mark.asyncio
async def test_file_url_is_copied(tmp_path):
    source = write_file(tmp_path / "src" / "local.jar", b"local bytes")
    dest = tmp_path / "mods" / "local.jar"

    async with TransferEngine() as engine:
        result = await engine.fetch(source.as_uri(), str(dest), md5(b"local bytes"))

    assert dest.read_bytes() == b"local bytes"
    assert result.hash == md5(b"local bytes")


@pytest.mark.asyncio
async def test_missing_local_file(tmp_path):
    async with TransferEngine() as engine:
        with pytest.raises(DownloadFileError):
            await engine.fetch((tmp_path / "none.jar").as_uri(), str(tmp_path / "out.jar"))


@pytest.mark.asyncio
async def test_unsupported_scheme(tmp_path):
    async with TransferEngine() as engine:
        with pytest.raises(DownloadError):
            await engine.fetch("ftp://example.com/a.jar", str(tmp_path / "a.jar"))

    assert not (tmp_path / ("a.jar" + PART_SUFFIX)).exists()
