import asyncio

from cell.core import BandWorker, CellClient, CellResponse


async def _ok(request):
    return CellResponse.text("ok")


def _client() -> CellClient:
    return CellClient(
        _ok,
        mounts=[],
        config={
            "queen_host": "127.0.0.1",
            "hive_port": 1,
            "mounts": "",
            "initial_bands": 0,
            "reconnect_backoff": 0,
            "max_reconnect_backoff": 0,
            "max_reconnect_retries": 0,
            "body_chunk_size": 16,
            "max_frame_size": 1024,
        },
    )


def test_failed_band_does_not_stop_the_others(monkeypatch):
    attempts = []

    async def flaky_open(self):
        attempts.append(self)
        if len(attempts) == 1:
            raise ConnectionRefusedError("queen went away")

    async def idle_run(self):
        await asyncio.Event().wait()

    monkeypatch.setattr(BandWorker, "open", flaky_open)
    monkeypatch.setattr(BandWorker, "run", idle_run)

    async def scenario():
        client = _client()
        await client.open_bands(2)
        assert len(attempts) == 2
        assert client.band_count == 1
        await client.close()

    asyncio.run(scenario())


def test_close_waits_for_band_cleanup(monkeypatch):
    cleaned = []

    async def noop_open(self):
        return None

    async def idle_run(self):
        try:
            await asyncio.Event().wait()
        finally:
            cleaned.append(self)

    monkeypatch.setattr(BandWorker, "open", noop_open)
    monkeypatch.setattr(BandWorker, "run", idle_run)

    async def scenario():
        client = _client()
        await client.open_bands(2)
        await asyncio.sleep(0)
        await client.close()
        assert len(cleaned) == 2

    asyncio.run(scenario())
