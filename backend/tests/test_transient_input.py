"""
Tests for the transient input store
"""
import asyncio

import pytest

from app.services.transient_input import TransientInputHandle, TransientInputStore


@pytest.mark.asyncio
async def test_acquire_writes_payload_verbatim(transient_dir):
    store = TransientInputStore(transient_dir)
    payload = '{"name": "café",\r\n "n": 1}'

    handle = await store.acquire(payload, request_id="abc123")

    assert handle.request_id == "abc123"
    assert handle.path.parent == transient_dir
    assert "abc123" in handle.path.name
    assert handle.path.read_bytes() == payload.encode("utf-8")


@pytest.mark.asyncio
async def test_acquire_generates_unique_paths(transient_dir):
    store = TransientInputStore(transient_dir)

    handles = await asyncio.gather(*(store.acquire(f'{{"i": {i}}}') for i in range(10)))

    assert len({h.path for h in handles}) == 10
    for i, handle in enumerate(handles):
        assert handle.path.read_text(encoding="utf-8") == f'{{"i": {i}}}'


@pytest.mark.asyncio
async def test_acquire_creates_missing_directory(tmp_path):
    store = TransientInputStore(tmp_path / "nested" / "dir")

    handle = await store.acquire("{}")

    assert handle.path.exists()


@pytest.mark.asyncio
async def test_release_removes_file_and_is_idempotent(transient_dir):
    store = TransientInputStore(transient_dir)
    handle = await store.acquire("[]")

    assert await store.release(handle) is True
    assert not handle.path.exists()
    assert await store.release(handle) is True
    assert await store.release(None) is True


@pytest.mark.asyncio
async def test_release_of_never_created_resource(transient_dir):
    store = TransientInputStore(transient_dir)
    handle = TransientInputHandle(request_id="ghost", path=store.path_for("ghost"))

    assert await store.release(handle) is True


@pytest.mark.asyncio
async def test_release_failure_is_reported_not_raised(transient_dir, monkeypatch):
    store = TransientInputStore(transient_dir)
    handle = await store.acquire("{}")

    def _deny(path):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr("app.services.transient_input.os.unlink", _deny)

    assert await store.release(handle) is False
    assert handle.path.exists()


@pytest.mark.asyncio
async def test_scoped_releases_on_success(transient_dir):
    store = TransientInputStore(transient_dir)

    async with store.scoped('{"a": 1}') as handle:
        assert handle.path.exists()

    assert not handle.path.exists()
    assert list(transient_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_scoped_releases_on_exception(transient_dir):
    store = TransientInputStore(transient_dir)
    seen = []

    with pytest.raises(RuntimeError):
        async with store.scoped('{"a": 1}') as handle:
            seen.append(handle)
            raise RuntimeError("engine blew up")

    assert not seen[0].path.exists()


@pytest.mark.asyncio
async def test_failed_write_leaves_nothing_behind(transient_dir):
    store = TransientInputStore(transient_dir)

    # Lone surrogates cannot be encoded as UTF-8
    with pytest.raises(UnicodeEncodeError):
        await store.acquire("\ud800", request_id="bad")

    assert not store.path_for("bad").exists()
