"""Unit tests for ResilientExtractor credential rotation."""

import asyncio

import pytest

from conftest import SIGN_IN_ERROR, UNAVAILABLE_ERROR
from models.media import EngineResult
from services.extraction import ExtractionInvoker
from services.format_profiles import AUDIO_ONLY, MERGED
from services.orchestrator import ResilientExtractor
from utils.errors import CredentialsExhausted, ExtractionFatalFailure

URL = "https://youtube.com/watch?v=abc123"


@pytest.fixture
def extractor_for(pool, store):
    def _make(engine):
        return ResilientExtractor(pool, ExtractionInvoker(engine, cleanup=store.discard))
    return _make


@pytest.mark.unit
@pytest.mark.asyncio
async def test_rotates_past_failed_credentials(make_engine, extractor_for, pool, cookies_dir, store, profiles):
    """#1 and #2 fail authorization, #3 succeeds: first two invalidated, artifact returned once."""
    engine = make_engine({"a.txt": SIGN_IN_ERROR, "b.txt": SIGN_IN_ERROR})
    extractor = extractor_for(engine)
    destination = store.allocate("video", "mp4")

    path = await extractor.extract(URL, profiles.get(MERGED), destination)

    assert path == destination
    assert path.read_bytes().startswith(b"media:")
    assert engine.credentials_tried == ["a.txt", "b.txt", "c.txt"]
    assert [c.id for c in pool.list()] == ["c.txt"]
    assert not (cookies_dir / "a.txt").exists()
    assert not (cookies_dir / "b.txt").exists()
    # Only the finished artifact remains, no partials from failed attempts
    assert [p.name for p in store.root.iterdir()] == [destination.name]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_success_stops_rotation(make_engine, extractor_for, pool, store, profiles):
    engine = make_engine()
    extractor = extractor_for(engine)

    await extractor.extract(URL, profiles.get(MERGED), store.allocate("video", "mp4"))

    assert engine.credentials_tried == ["a.txt"]
    assert len(pool) == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_all_credentials_fail(make_engine, extractor_for, pool, store, profiles):
    engine = make_engine({name: SIGN_IN_ERROR for name in ("a.txt", "b.txt", "c.txt")})
    extractor = extractor_for(engine)

    with pytest.raises(CredentialsExhausted) as exc_info:
        await extractor.extract(URL, profiles.get(MERGED), store.allocate("video", "mp4"))

    assert exc_info.value.code == "credentials_exhausted"
    assert exc_info.value.details["attempted"] == 3
    assert engine.credentials_tried == ["a.txt", "b.txt", "c.txt"]
    assert pool.is_empty()
    assert list(store.root.iterdir()) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fatal_failure_stops_immediately(make_engine, extractor_for, pool, store, profiles):
    engine = make_engine({"a.txt": UNAVAILABLE_ERROR})
    extractor = extractor_for(engine)

    with pytest.raises(ExtractionFatalFailure) as exc_info:
        await extractor.extract(URL, profiles.get(AUDIO_ONLY), store.allocate("audio", "mp3"))

    assert "unavailable" in exc_info.value.message
    assert exc_info.value.details == {"source_url": URL, "profile": "audio-only"}
    assert engine.credentials_tried == ["a.txt"]
    # A fatal failure is not blamed on the credential
    assert len(pool) == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fatal_after_credential_failure(make_engine, extractor_for, pool, store, profiles):
    engine = make_engine({"a.txt": SIGN_IN_ERROR, "b.txt": UNAVAILABLE_ERROR})
    extractor = extractor_for(engine)

    with pytest.raises(ExtractionFatalFailure):
        await extractor.extract(URL, profiles.get(MERGED), store.allocate("video", "mp4"))

    assert engine.credentials_tried == ["a.txt", "b.txt"]
    assert [c.id for c in pool.list()] == ["b.txt", "c.txt"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_empty_pool_is_exhausted_without_engine_call(make_engine, extractor_for, pool, store, profiles):
    for credential in pool.list():
        pool.invalidate(credential.id)
    engine = make_engine()

    with pytest.raises(CredentialsExhausted) as exc_info:
        await extractor_for(engine).extract(URL, profiles.get(MERGED), store.allocate("video", "mp4"))

    assert exc_info.value.details["attempted"] == 0
    assert engine.calls == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_skips_credential_invalidated_mid_run(make_engine, extractor_for, pool, store, profiles):
    """A credential invalidated by another request after enumeration is never tried."""

    def fail_and_poison_b(source_url, options, credential_path, time_range, output_path):
        pool.invalidate("b.txt")
        return EngineResult(exit_status=1, stderr=SIGN_IN_ERROR)

    engine = make_engine({"a.txt": fail_and_poison_b})

    await extractor_for(engine).extract(URL, profiles.get(MERGED), store.allocate("video", "mp4"))

    assert engine.credentials_tried == ["a.txt", "c.txt"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_requests_share_invalidation(make_engine, extractor_for, pool, store, profiles):
    """Two requests failing on the same credential both recover on the next one."""
    engine = make_engine({"a.txt": SIGN_IN_ERROR})
    extractor = extractor_for(engine)

    paths = await asyncio.gather(
        extractor.extract(URL, profiles.get(MERGED), store.allocate("video", "mp4")),
        extractor.extract(URL, profiles.get(AUDIO_ONLY), store.allocate("audio", "mp3")),
    )

    assert len(set(paths)) == 2
    assert all(p.is_file() for p in paths)
    assert "a.txt" not in [c.id for c in pool.list()]
    assert engine.credentials_tried.count("a.txt") <= 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fatal_error_after_retried_403_keeps_pool(make_engine, extractor_for, pool, cookies_dir, store, profiles):
    """A 403 seen only in retry warnings never costs a credential."""

    def disk_full(source_url, options, credential_path, time_range, output_path):
        return EngineResult(
            exit_status=1,
            stderr="ERROR: unable to write data: [Errno 28] No space left on device",
            warnings="[download] Got error: HTTP Error 403: Forbidden. Retrying fragment 3 (1/10)...",
        )

    engine = make_engine({"a.txt": disk_full})

    with pytest.raises(ExtractionFatalFailure):
        await extractor_for(engine).extract(URL, profiles.get(MERGED), store.allocate("video", "mp4"))

    assert engine.credentials_tried == ["a.txt"]
    assert len(pool) == 3
    assert (cookies_dir / "a.txt").exists()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_tls_transport_error_is_fatal(make_engine, extractor_for, pool, store, profiles):
    engine = make_engine({
        "a.txt": "ERROR: unable to download video data: <urlopen error "
                 "[SSL: UNEXPECTED_EOF_WHILE_READING] EOF occurred in violation of protocol>",
    })

    with pytest.raises(ExtractionFatalFailure):
        await extractor_for(engine).extract(URL, profiles.get(MERGED), store.allocate("video", "mp4"))

    assert engine.credentials_tried == ["a.txt"]
    assert len(pool) == 3
