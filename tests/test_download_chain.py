import os

import pytest

from tubegate.core.errors import AuthRequired, DownloadFailed
from tubegate.models.internal import MediaKind
from tubegate.services.download import FormatFallbackChain
from tubegate.services.format import AUDIO_FORMATS, VIDEO_FORMAT
from tubegate.services.storage import EphemeralFileStore
from tubegate.services.ytdlp import FFmpegCommandBuilder, YTDLPCommandBuilder

from conftest import (
    AUTH_STDERR,
    VIDEO_URL,
    FakeExecutor,
    fail,
    is_download,
    is_ffmpeg,
    is_raw_audio,
    ok,
    option,
    write_output,
)


def make_chain(config, script):
    executor = FakeExecutor(script)
    chain = FormatFallbackChain(
        YTDLPCommandBuilder(config.ytdlp),
        FFmpegCommandBuilder(config.ytdlp),
        config.storage.temp_dir,
        executor,
    )
    store = EphemeralFileStore(config.storage.download_dir, config.storage.temp_dir, "http://test")
    return chain, store, executor


@pytest.mark.asyncio
async def test_first_working_format_stops_the_chain(test_config, dirs):
    def script(cmd):
        if option(cmd, "-f") == AUDIO_FORMATS[2]:
            return write_output(cmd)
        return fail()

    chain, store, executor = make_chain(test_config, script)
    job = store.stage(MediaKind.AUDIO, VIDEO_URL)

    await chain.fetch(job)

    assert [option(c, "-f") for c in executor.calls] == list(AUDIO_FORMATS[:3])
    assert os.path.isfile(job.output_path)
    assert job.output_path.endswith(".mp3")


@pytest.mark.asyncio
async def test_audio_download_extracts_mp3(test_config, dirs):
    chain, store, executor = make_chain(test_config, write_output)
    job = store.stage(MediaKind.AUDIO, VIDEO_URL)

    await chain.fetch(job)

    (cmd,) = executor.calls
    assert option(cmd, "--audio-format") == "mp3"
    assert option(cmd, "-o") == job.output_template
    assert cmd[-1] == VIDEO_URL


@pytest.mark.asyncio
async def test_exhausted_formats_fall_back_to_raw_audio_once(test_config, dirs):
    """Raw audio is fetched to the temp dir and transcoded locally"""
    def script(cmd):
        if is_download(cmd):
            return fail()
        return write_output(cmd)

    chain, store, executor = make_chain(test_config, script)
    job = store.stage(MediaKind.AUDIO, VIDEO_URL)

    await chain.fetch(job)

    assert len(executor.matching(is_download)) == len(AUDIO_FORMATS)
    (raw_cmd,) = executor.matching(is_raw_audio)
    assert option(raw_cmd, "-o").startswith(test_config.storage.temp_dir)
    (ffmpeg_cmd,) = executor.matching(is_ffmpeg)
    assert ffmpeg_cmd[-1] == job.output_path
    assert option(ffmpeg_cmd, "-acodec") == "libmp3lame"
    assert option(ffmpeg_cmd, "-b:a") == "128k"
    assert os.path.isfile(job.output_path)
    assert os.listdir(test_config.storage.temp_dir) == []


@pytest.mark.asyncio
async def test_transcode_failure_removes_raw_file(test_config, dirs):
    def script(cmd):
        if is_raw_audio(cmd):
            return write_output(cmd)
        return fail(b"ERROR: conversion failed")

    chain, store, _ = make_chain(test_config, script)
    job = store.stage(MediaKind.AUDIO, VIDEO_URL)

    with pytest.raises(DownloadFailed) as excinfo:
        await chain.fetch(job)

    assert excinfo.value.render() == "Download failed: ERROR: conversion failed"
    assert os.listdir(test_config.storage.temp_dir) == []


@pytest.mark.asyncio
async def test_missing_raw_file_is_a_download_failure(test_config, dirs):
    def script(cmd):
        # raw audio "succeeds" without writing anything
        return ok() if is_raw_audio(cmd) else fail()

    chain, store, executor = make_chain(test_config, script)
    job = store.stage(MediaKind.AUDIO, VIDEO_URL)

    with pytest.raises(DownloadFailed) as excinfo:
        await chain.fetch(job)

    assert "raw audio file not found" in excinfo.value.render()
    assert executor.matching(is_ffmpeg) == []


@pytest.mark.asyncio
async def test_auth_failure_in_format_chain_wins(test_config, dirs):
    """An auth failure anywhere in the primary chain beats the alternate's error"""
    def script(cmd):
        if option(cmd, "-f") == AUDIO_FORMATS[1]:
            return fail(AUTH_STDERR)
        return fail(b"ERROR: something else")

    chain, store, executor = make_chain(test_config, script)
    job = store.stage(MediaKind.AUDIO, VIDEO_URL)

    with pytest.raises(AuthRequired):
        await chain.fetch(job)

    assert len(executor.matching(is_raw_audio)) == 1


@pytest.mark.asyncio
async def test_auth_failure_in_alternate_pathway(test_config, dirs):
    chain, store, _ = make_chain(test_config, lambda cmd: fail(AUTH_STDERR) if is_raw_audio(cmd) else fail())
    job = store.stage(MediaKind.AUDIO, VIDEO_URL)

    with pytest.raises(AuthRequired):
        await chain.fetch(job)


@pytest.mark.asyncio
async def test_video_uses_a_single_attempt(test_config, dirs):
    chain, store, executor = make_chain(test_config, lambda cmd: fail(b"ERROR: Video unavailable"))
    job = store.stage(MediaKind.VIDEO, VIDEO_URL)

    with pytest.raises(DownloadFailed) as excinfo:
        await chain.fetch(job)

    (cmd,) = executor.calls
    assert option(cmd, "-f") == VIDEO_FORMAT
    assert option(cmd, "--remux-video") == "mp4"
    assert excinfo.value.render() == "Download failed: ERROR: Video unavailable"


@pytest.mark.asyncio
async def test_video_auth_failure(test_config, dirs):
    chain, store, _ = make_chain(test_config, lambda cmd: fail(AUTH_STDERR))
    job = store.stage(MediaKind.VIDEO, VIDEO_URL)

    with pytest.raises(AuthRequired):
        await chain.fetch(job)
