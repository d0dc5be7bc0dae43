import asyncio
import os
import time

import pytest

from tubegate.core.errors import MissingFile
from tubegate.models.internal import MediaKind
from tubegate.services.storage import EphemeralFileStore, Sweeper

from conftest import VIDEO_URL


@pytest.fixture
def store(dirs):
    return EphemeralFileStore(dirs.download_dir, dirs.temp_dir, "http://test/", ttl=30, settle_delay=0)


def touch(path, age=0.0):
    with open(path, "wb") as f:
        f.write(b"data")
    if age:
        stamp = time.time() - age
        os.utime(path, (stamp, stamp))
    return path


def test_stage_names_files_by_kind_and_timestamp(store):
    audio = store.stage(MediaKind.AUDIO, VIDEO_URL)
    video = store.stage(MediaKind.VIDEO, VIDEO_URL)

    assert audio.filename.startswith("audio_") and audio.filename.endswith(".mp3")
    assert video.filename.startswith("video_") and video.filename.endswith(".mp4")
    assert audio.filename[len("audio_"):-len(".mp3")].isdigit()
    assert os.path.dirname(audio.output_path) == store.download_dir
    assert audio.output_template == audio.output_path[:-len("mp3")] + "%(ext)s"


def test_public_url_uses_download_route(store):
    assert store.public_url("audio_1.mp3") == "http://test/download/audio_1.mp3"


@pytest.mark.asyncio
async def test_finalize_reports_size(store):
    job = store.stage(MediaKind.AUDIO, VIDEO_URL)
    touch(job.output_path)

    size = await store.finalize(job.output_path)
    stored = store.describe(job, size, expires_at=1234.0)

    assert size == 4
    assert stored.expires_at == 1234.0


@pytest.mark.asyncio
async def test_expiry_counts_from_scheduling_time(store):
    job = store.stage(MediaKind.AUDIO, VIDEO_URL)
    job.created_at -= 600

    before = time.time()
    expires_at = store.schedule_cleanup(job.output_path)

    assert before + 30 <= expires_at <= time.time() + 30
    store.shutdown()


@pytest.mark.asyncio
async def test_finalize_without_file_raises(store):
    job = store.stage(MediaKind.VIDEO, VIDEO_URL)

    with pytest.raises(MissingFile):
        await store.finalize(job.output_path)


@pytest.mark.asyncio
async def test_scheduled_cleanup_deletes_file(store):
    path = touch(os.path.join(store.download_dir, "audio_1.mp3"))

    store.schedule_cleanup(path, ttl=0.05)
    assert os.path.exists(path)
    await asyncio.sleep(0.2)

    assert not os.path.exists(path)


@pytest.mark.asyncio
async def test_cleanup_of_missing_file_is_harmless(store):
    path = os.path.join(store.download_dir, "never_written.mp3")

    store.schedule_cleanup(path, ttl=0.01)
    await asyncio.sleep(0.05)

    assert store.remove(path) is False


@pytest.mark.asyncio
async def test_cleanup_takes_intermediates_along(store):
    job = store.stage(MediaKind.AUDIO, VIDEO_URL)
    stem = job.output_path[:-len(".mp3")]
    leftovers = [touch(stem + ".webm"), touch(stem + ".m4a.part"), touch(job.output_path)]
    neighbour = touch(os.path.join(store.download_dir, os.path.basename(stem) + "0.mp3"))

    store.schedule_cleanup(job.output_path, ttl=0.05)
    await asyncio.sleep(0.2)

    assert not any(os.path.exists(p) for p in leftovers)
    assert os.path.exists(neighbour)


def test_discard_without_output_file(store):
    job = store.stage(MediaKind.VIDEO, VIDEO_URL)
    touch(job.output_path[:-len(".mp4")] + ".f137.webm")

    assert store.discard(job.output_path) == 1
    assert os.listdir(store.download_dir) == []


def test_double_remove(store):
    path = touch(os.path.join(store.download_dir, "video_1.mp4"))

    assert store.remove(path) is True
    assert store.remove(path) is False


def test_sweep_removes_only_expired_files(store):
    old = touch(os.path.join(store.download_dir, "audio_old.mp3"), age=120)
    fresh = touch(os.path.join(store.download_dir, "audio_new.mp3"))

    assert store.sweep() == 1
    assert not os.path.exists(old)
    assert os.path.exists(fresh)


def test_sweep_without_directory(tmp_path):
    store = EphemeralFileStore(str(tmp_path / "missing"), str(tmp_path / "temp"), "http://test")
    assert store.sweep() == 0


@pytest.mark.parametrize("name", ["", "../secret", ".hidden", "sub/file.mp3", "nope.mp3"])
def test_resolve_download_rejects_unknown_or_unsafe_names(store, name):
    assert store.resolve_download(name) is None


def test_resolve_download_finds_stored_file(store):
    path = touch(os.path.join(store.download_dir, "audio_1.mp3"))
    assert store.resolve_download("audio_1.mp3") == path


@pytest.mark.asyncio
async def test_shutdown_flushes_pending_files(store):
    path = touch(os.path.join(store.download_dir, "audio_2.mp3"))
    store.schedule_cleanup(path)

    store.shutdown()

    assert not os.path.exists(path)


@pytest.mark.asyncio
async def test_sweeper_runs_periodically(store):
    old = touch(os.path.join(store.download_dir, "video_old.mp4"), age=120)
    sweeper = Sweeper(store, interval=0.05)

    sweeper.start()
    await asyncio.sleep(0.2)
    await sweeper.stop()

    assert not os.path.exists(old)
