"""
Unit Tests for Reconciler

Normalization, intra-batch dedup and retirement diff.
"""

import pytest

from dealerfinder.errors import InvalidRecord
from dealerfinder.models import DealerKey, RawDealer
from dealerfinder.services import Reconciler, normalize_raw


# ============================================
# normalize_raw
# ============================================

def test_normalize_splits_postal_city(sample_raw_dealer):
    record = normalize_raw("kia", sample_raw_dealer)

    assert record.source == "kia"
    assert record.name == "Musterhändler"
    assert record.street == "Hauptstr. 1"
    assert record.postal_code == "66111"
    assert record.city == "Saarbrücken"
    assert record.inactive is False


def test_normalize_trims_but_keeps_case():
    raw = RawDealer(name="  Autohaus MEIER ", street=" Ringstr. 3 ", postal_code=" 10115 ", city=" Berlin ")

    record = normalize_raw("opel", raw)

    assert record.name == "Autohaus MEIER"
    assert record.street == "Ringstr. 3"
    assert record.postal_code == "10115"
    assert record.key == DealerKey("autohaus meier", "ringstr. 3", "10115")


def test_normalize_prefers_explicit_postal_code():
    raw = RawDealer(name="A", postal_code="12345", postal_city="99999 Elsewhere")

    record = normalize_raw("kia", raw)

    assert record.postal_code == "12345"
    assert record.city == "Elsewhere"


@pytest.mark.parametrize("raw", [
    RawDealer(name="", postal_code="10115"),
    RawDealer(name="Autohaus", street="Weg 1"),
    RawDealer(name="   ", postal_city="10115 Berlin"),
])
def test_normalize_rejects_missing_identity(raw):
    with pytest.raises(InvalidRecord):
        normalize_raw("kia", raw)


def test_normalize_drops_half_coordinates():
    raw = RawDealer(name="A", postal_code="10115", latitude=52.5)

    record = normalize_raw("kia", raw)

    assert record.latitude is None
    assert record.longitude is None
    assert record.location is None


def test_normalize_cleans_services():
    raw = RawDealer(name="A", postal_code="10115", services=[" Service ", "Verkauf", "Service", ""])

    record = normalize_raw("kia", raw)

    assert record.services == ["Service", "Verkauf"]


def test_normalize_empty_services_become_none():
    record = normalize_raw("kia", RawDealer(name="A", postal_code="10115", services=[" "]))
    assert record.services is None


# ============================================
# Reconciler
# ============================================

def test_reconcile_scenario_single_dealer(sample_raw_dealer):
    result = Reconciler().reconcile("kia", [sample_raw_dealer], previously_active=set())

    assert len(result.to_upsert) == 1
    assert result.to_retire == []
    assert result.to_upsert[0].postal_code == "66111"
    assert result.to_upsert[0].city == "Saarbrücken"


def test_reconcile_first_occurrence_wins(sample_batch):
    result = Reconciler().reconcile("kia", sample_batch)

    assert len(result.to_upsert) == 2
    assert result.duplicates == 1
    nord = result.to_upsert[0]
    assert nord.name == "Autohaus Nord"
    assert nord.phone == "030 123456"


def test_reconcile_counts_rejected():
    batch = [
        RawDealer(name="A", postal_code="10115"),
        RawDealer(street="Nur Strasse 1"),
    ]

    result = Reconciler().reconcile("kia", batch)

    assert len(result.to_upsert) == 1
    assert result.rejected == 1


def test_reconcile_retires_unobserved_keys():
    a = DealerKey("a", "weg 1", "10115")
    b = DealerKey("b", "weg 2", "10115")
    c = DealerKey("c", "weg 3", "10115")
    batch = [
        RawDealer(name="A", street="Weg 1", postal_code="10115"),
        RawDealer(name="C", street="Weg 3", postal_code="10115"),
    ]

    result = Reconciler().reconcile("kia", batch, previously_active={a, b, c})

    assert result.to_retire == [b]
    assert {record.key for record in result.to_upsert} == {a, c}


def test_reconcile_empty_batch_retires_everything():
    a = DealerKey("a", "weg 1", "10115")

    result = Reconciler().reconcile("kia", [], previously_active={a})

    assert result.to_upsert == []
    assert result.to_retire == [a]
