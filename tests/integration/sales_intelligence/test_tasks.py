import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.business_automations.sales_intelligence import tasks
from app.features.business_automations.sales_intelligence.models import ScanLog
from app.features.core.config import get_settings


@pytest.fixture
def task_sessions(test_db_engine, monkeypatch):
    """Point the tasks at the test database."""
    sessions = async_sessionmaker(test_db_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(tasks, "async_session", sessions)
    return sessions


@pytest.mark.integration
@pytest.mark.asyncio
async def test_full_scan_task_reports_and_logs_failure(task_sessions, tenant_id, monkeypatch):
    monkeypatch.setattr(get_settings(), "NEWSAPI_KEY", None)

    result = await tasks._run_full_scan_async(tenant_id)

    assert result["success"] is False
    assert "newsapi" in result["error"]

    async with task_sessions() as db:
        logs = (await db.execute(select(ScanLog))).scalars().all()
    assert [log.status for log in logs] == ["failed"]
    assert logs[0].tenant_id == tenant_id


@pytest.mark.integration
@pytest.mark.asyncio
async def test_pappers_queries_task_without_key(task_sessions, tenant_id, monkeypatch):
    monkeypatch.setattr(get_settings(), "PAPPERS_API_KEY", None)

    result = await tasks._run_pappers_queries_async(tenant_id)

    assert result == {"success": False, "error": "pappers API key is not configured"}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_enrichment_polling_with_nothing_pending(task_sessions):
    totals = await tasks._check_pending_enrichments_async()
    assert totals == {"tenants": 0, "checked": 0, "completed": 0, "failed": 0, "errors": 0}
