import asyncio

from app.workers import arq_worker
from conftest import InMemoryStore, ev


def test_batch_job_returns_report(monkeypatch) -> None:
    store = InMemoryStore({"u1": [ev("save", "r1"), ev("search", "r2")], "u2": [ev("save", "r3")]})
    store.write_failures.add("u2")
    monkeypatch.setattr(arq_worker, "_store", lambda: store)

    result = asyncio.run(arq_worker.recompute_all_recommendations_job({}))

    assert result["succeeded"] == 1
    assert result["failed"] == 1
    assert set(result["failures"]) == {"u2"}
    assert result["started_at"]
    assert result["finished_at"]
    assert store.pairs("u1") == [("r1", 3), ("r2", 2)]


def test_user_job_recomputes_one_user(monkeypatch) -> None:
    store = InMemoryStore({"u1": [ev("save", "r1"), ev("save", "r1")], "u2": [ev("save", "r2")]})
    monkeypatch.setattr(arq_worker, "_store", lambda: store)

    result = asyncio.run(arq_worker.recompute_user_recommendations_job({}, "u1"))

    assert result == {"user_id": "u1", "recommendations": 1}
    assert store.pairs("u1") == [("r1", 6)]
    assert "u2" not in store.saved


def test_worker_schedules_nightly_batch() -> None:
    names = [job.name for job in arq_worker.WorkerSettings.cron_jobs]
    assert names == ["cron:recompute_all_recommendations_job"]
    assert arq_worker.recompute_user_recommendations_job in arq_worker.WorkerSettings.functions
