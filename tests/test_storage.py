"""
Record store tests.
"""

from dataclasses import replace

import pytest

from certengine import (
    AiSystemRecord,
    RecordNotFoundError,
    SerialCollisionError,
    SqliteRecordStore,
)


def test_ai_system_gets_id(store):
    created = store.create_ai_system("user-1", AiSystemRecord(id=None, name="HR screener", sector="employment"))
    assert created.id
    assert store.get_ai_system(created.id) == created


def test_missing_records_raise(store):
    with pytest.raises(RecordNotFoundError):
        store.get_ai_system("nope")
    with pytest.raises(RecordNotFoundError):
        store.get_risk_assessment("nope")
    with pytest.raises(RecordNotFoundError):
        store.get_maturity_assessment("nope")
    with pytest.raises(RecordNotFoundError) as e:
        store.get_certificate("MA-2025-NOPENOPE")
    assert e.value.kind == "certificate"


def test_assessments_round_trip(store, engine):
    risk = engine.classify_risk({
        "sensitiveData": "yes",
        "discriminationRisk": "high",
        "humanOversight": "minimal",
        "safetyImpact": "critical",
    })
    rid = store.create_risk_assessment("user-1", risk)
    assert store.get_risk_assessment(rid) == risk


def test_certificate_round_trip_keeps_hash(store, engine):
    outcome = engine.submit_risk_assessment("user-1", "Acme SAS", {
        "sensitiveData": "no",
        "discriminationRisk": "low",
        "humanOversight": "full",
        "safetyImpact": "minimal",
    })
    number = outcome.certificate.certificate_number
    stored = store.get_certificate(number)
    assert stored == outcome.certificate
    assert engine.verify_stored(number).is_valid()
    assert store.get_certificate_json(number) == outcome.certificate.to_dict()


def test_serial_collision_raises_and_keeps_original(store, engine):
    record = engine.composer.compose(engine.build_request("user-1", "Acme SAS"))
    store.create_certificate("user-1", record)

    clash = replace(record, organization_name="Someone Else")
    with pytest.raises(SerialCollisionError) as e:
        store.create_certificate("user-2", clash)
    assert e.value.retryable is True
    assert e.value.certificate_number == record.certificate_number
    assert store.get_certificate(record.certificate_number).organization_name == "Acme SAS"


def test_list_certificates_per_user(store, engine):
    engine.issue_certificate(engine.build_request("user-1", "Acme SAS"))
    engine.issue_certificate(engine.build_request("user-1", "Acme SAS"))
    engine.issue_certificate(engine.build_request("user-2", "Other Org"))
    assert len(store.list_certificates("user-1")) == 2
    assert [c.organization_name for c in store.list_certificates("user-2")] == ["Other Org"]


def test_reset_clears_records(store, engine):
    engine.issue_certificate(engine.build_request("user-1", "Acme SAS"))
    store.reset()
    assert store.list_certificates("user-1") == []


def test_init_is_idempotent(tmp_path):
    path = str(tmp_path / "twice.db")
    first = SqliteRecordStore(path)
    first.create_ai_system("u", AiSystemRecord(id="s1", name="x"))
    second = SqliteRecordStore(path)
    assert second.get_ai_system("s1").name == "x"
    first.close()
    second.close()
