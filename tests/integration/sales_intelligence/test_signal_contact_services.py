import pytest
from datetime import datetime, timedelta

from app.features.core.sqlalchemy_imports import utcnow
from app.features.business_automations.sales_intelligence.exceptions import NotFoundError
from app.features.business_automations.sales_intelligence.models import CompanyEnrichment
from app.features.business_automations.sales_intelligence.services.contacts import ContactCrudService
from app.features.business_automations.sales_intelligence.services.signals import SignalCrudService


def _signal(**overrides):
    data = {"company_name": "Maison Dupont", "signal_type": "anniversaire", "score": 4}
    data.update(overrides)
    return data


@pytest.mark.integration
@pytest.mark.asyncio
async def test_list_signals_filters_and_order(test_db_session, tenant_id, user):
    service = SignalCrudService(test_db_session, tenant_id)
    now = utcnow()

    await service.create_signal(_signal(company_name="Old Co", detected_at=now - timedelta(days=40)), user)
    await service.create_signal(_signal(company_name="Fresh Co", score=5, detected_at=now), user)
    await service.create_signal(_signal(company_name="Low Co", score=2, signal_type="levee",
                                        source_name="Pappers", detected_at=now - timedelta(days=1)), user)

    signals, total = await service.list_signals()
    assert total == 3
    assert [s.company_name for s in signals] == ["Fresh Co", "Low Co", "Old Co"]

    signals, total = await service.list_signals(min_score=4)
    assert {s.company_name for s in signals} == {"Fresh Co", "Old Co"}

    signals, total = await service.list_signals(period="30d")
    assert total == 2

    signals, total = await service.list_signals(exclude_types=["levee"])
    assert "Low Co" not in {s.company_name for s in signals}

    signals, total = await service.list_signals(exclude_source_names=["Pappers"])
    assert total == 2

    signals, total = await service.list_signals(search="fresh")
    assert [s.company_name for s in signals] == ["Fresh Co"]

    signals, total = await service.list_signals(limit=1, offset=1)
    assert total == 3
    assert [s.company_name for s in signals] == ["Low Co"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_signals_are_tenant_scoped(test_db_session, user):
    await SignalCrudService(test_db_session, "tenant-a").create_signal(_signal(), user)
    await SignalCrudService(test_db_session, "tenant-b").create_signal(_signal(company_name="Other"), user)

    _, total_a = await SignalCrudService(test_db_session, "tenant-a").list_signals()
    _, total_global = await SignalCrudService(test_db_session, "global").list_signals()
    assert total_a == 1
    assert total_global == 2


@pytest.mark.integration
@pytest.mark.asyncio
async def test_status_change_stamps_contacted_at_and_logs_timeline(test_db_session, tenant_id, user):
    service = SignalCrudService(test_db_session, tenant_id)
    signal = await service.create_signal(_signal(), user)
    assert signal.status == "new"
    assert signal.contacted_at is None

    await service.update_signal(signal.id, {"status": "contacted", "notes": "Called the assistant"}, user)
    updated = await service.get_signal(signal.id)
    first_contact = updated.contacted_at
    assert first_contact is not None

    await service.update_signal(signal.id, {"status": "meeting"}, user)
    await service.update_signal(signal.id, {"status": "contacted"}, user)
    assert (await service.get_signal(signal.id)).contacted_at == first_contact

    interactions = await service.list_interactions(signal.id)
    action_types = sorted(i.action_type for i in interactions)
    assert action_types == ["note_added", "status_change", "status_change", "status_change"]
    assert signal.id in await service.intervened_signal_ids()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unchanged_update_writes_nothing(test_db_session, tenant_id, user):
    service = SignalCrudService(test_db_session, tenant_id)
    signal = await service.create_signal(_signal(), user)

    await service.update_signal(signal.id, {"status": "new", "score": 4}, user)
    assert await service.list_interactions(signal.id) == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_signal_stats(test_db_session, tenant_id, user):
    service = SignalCrudService(test_db_session, tenant_id)
    now = utcnow()

    won = await service.create_signal(_signal(detected_at=now), user)
    await service.update_signal(won.id, {"status": "won"}, user)
    lost = await service.create_signal(_signal(detected_at=now - timedelta(days=20)), user)
    await service.update_signal(lost.id, {"status": "lost"}, user)
    meeting = await service.create_signal(_signal(detected_at=now), user)
    await service.update_signal(meeting.id, {"status": "meeting"}, user)
    await service.create_signal(_signal(detected_at=now), user)
    enriching = await service.create_signal(_signal(detected_at=now), user)
    enriching.enrichment_status = "manus_processing"

    test_db_session.add(CompanyEnrichment(
        tenant_id=tenant_id, signal_id=won.id, company_name="Maison Dupont", status="completed"
    ))
    await test_db_session.flush()

    stats = await service.signal_stats()
    assert stats["total"] == 5
    assert stats["thisWeek"] == 4
    assert stats["new"] == 2
    assert stats["inProgress"] == 1
    # 1 won out of 3 processed (won, lost, meeting)
    assert stats["conversionRate"] == 33
    assert stats["enriched"] == 1
    assert stats["enriching"] == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_signal_stats_without_processed_signals(test_db_session, tenant_id, user):
    service = SignalCrudService(test_db_session, tenant_id)
    await service.create_signal(_signal(), user)

    stats = await service.signal_stats()
    assert stats["conversionRate"] == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_signal_detaches_contacts(test_db_session, tenant_id, user):
    signals = SignalCrudService(test_db_session, tenant_id)
    contacts = ContactCrudService(test_db_session, tenant_id)

    signal = await signals.create_signal(_signal(), user)
    contact = await contacts.create_contact({"signal_id": signal.id, "first_name": "Anne", "last_name": "Martin"}, user)
    assert contact.full_name == "Anne Martin"

    await signals.delete_signal(signal.id)

    with pytest.raises(NotFoundError):
        await signals.get_signal(signal.id)
    await test_db_session.refresh(contact)
    assert contact.signal_id is None


@pytest.mark.integration
@pytest.mark.asyncio
async def test_manual_contact_logs_on_signal_timeline(test_db_session, tenant_id, user):
    signals = SignalCrudService(test_db_session, tenant_id)
    contacts = ContactCrudService(test_db_session, tenant_id)
    signal = await signals.create_signal(_signal(), user)

    await contacts.create_contact({"signal_id": signal.id, "full_name": "Paul Durand"}, user)
    await contacts.create_contact({"signal_id": signal.id, "full_name": "Bot Import", "source": "linkedin"}, user)

    interactions = await signals.list_interactions(signal.id)
    assert [i.action_type for i in interactions] == ["contact_created"]
    assert interactions[0].new_value == "Paul Durand"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_contact_requires_existing_signal(test_db_session, tenant_id, user):
    contacts = ContactCrudService(test_db_session, tenant_id)
    with pytest.raises(NotFoundError):
        await contacts.create_contact({"signal_id": "missing", "full_name": "Nobody"}, user)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_contact_filters_and_status_counts(test_db_session, tenant_id, user):
    contacts = ContactCrudService(test_db_session, tenant_id)
    first = await contacts.create_contact({"full_name": "Claire Petit", "job_title": "Office Manager",
                                           "is_priority_target": True}, user)
    await contacts.create_contact({"full_name": "Marc Roux", "source": "linkedin"}, user)

    await contacts.update_contact(first.id, {"outreach_status": "email_sent"}, user)

    items, total = await contacts.list_contacts(priority_only=True)
    assert [c.full_name for c in items] == ["Claire Petit"]
    items, total = await contacts.list_contacts(source="linkedin")
    assert total == 1
    items, total = await contacts.list_contacts(search="office")
    assert total == 1

    assert await contacts.count_by_status() == {"email_sent": 1, "new": 1}

    interactions = await contacts.list_interactions(first.id)
    assert interactions[0].old_value == "new"
    assert interactions[0].new_value == "email_sent"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_contact_next_action(test_db_session, tenant_id, user):
    contacts = ContactCrudService(test_db_session, tenant_id)
    contact = await contacts.create_contact({"full_name": "Claire Petit"}, user)
    when = datetime(2026, 3, 2, 9, 30)

    updated = await contacts.set_next_action(contact.id, when, "Relancer", user)
    assert updated.next_action_at == when
    interactions = await contacts.list_interactions(contact.id)
    assert interactions[0].action_type == "next_action_set"
    assert interactions[0].details == {"scheduled_at": "2026-03-02T09:30:00"}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_conversion_rate_rounds_half_up(test_db_session, tenant_id, user):
    service = SignalCrudService(test_db_session, tenant_id)
    for status in ("won",) + ("lost",) * 7:
        signal = await service.create_signal(_signal(), user)
        await service.update_signal(signal.id, {"status": status}, user)

    stats = await service.signal_stats()
    # 1 / 8 = 12.5%
    assert stats["conversionRate"] == 13
