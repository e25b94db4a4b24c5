import pytest

from app.workers import asyncio_runner


def test_run_async_job_disposes_pool_around_the_job(monkeypatch) -> None:
    calls: list[str] = []

    async def fake_dispose() -> None:
        calls.append("dispose")

    async def job() -> dict[str, int]:
        calls.append("job")
        return {"examined": 1}

    monkeypatch.setattr(asyncio_runner, "dispose_engine", fake_dispose)

    assert asyncio_runner.run_async_job(job(), job_name="referral-completion") == {"examined": 1}
    assert calls == ["dispose", "job", "dispose"]


def test_run_async_job_reraises_job_failure(monkeypatch) -> None:
    async def fake_dispose() -> None:
        return None

    async def job() -> None:
        raise RuntimeError("db down")

    monkeypatch.setattr(asyncio_runner, "dispose_engine", fake_dispose)

    with pytest.raises(RuntimeError, match="db down"):
        asyncio_runner.run_async_job(job(), job_name="referral-completion")
