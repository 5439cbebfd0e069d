"""
Unit Tests for data models
"""

from dealerfinder.models import DealerKey, DealerRecord, PipelineConfig, RawDealer, SourceConfig


def test_location_present_only_with_both_coordinates():
    with_coords = DealerRecord(source="kia", name="A", postal_code="10115", latitude=52.5, longitude=13.4)
    without = DealerRecord(source="kia", name="A", postal_code="10115", latitude=52.5)

    assert with_coords.location.type == "Point"
    assert with_coords.location.coordinates == [13.4, 52.5]
    assert without.location is None


def test_to_document_uses_stored_names():
    record = DealerRecord(source="kia", name="Autohaus A", street="Weg 1", postal_code="10115",
                          city="Berlin", latitude=52.5, longitude=13.4)

    document = record.to_document()

    assert document["postalCode"] == "10115"
    assert document["nameKey"] == "autohaus a"
    assert document["streetKey"] == "weg 1"
    assert document["postalCodeKey"] == "10115"
    assert document["location"] == {"type": "Point", "coordinates": [13.4, 52.5]}
    assert "phone" not in document
    assert "postal_code" not in document


def test_from_document_round_trips_fields():
    record = DealerRecord(source="seat", name="B", postal_code="80331", city="München",
                          services=["Service"], inactive=True)
    document = record.to_document()
    document["_id"] = "abc"

    restored = DealerRecord.from_document(document)

    assert restored == record


def test_dealer_key_from_document():
    key = DealerKey("a", "weg 1", "10115")
    assert DealerKey.from_document(key.as_document()) == key


def test_raw_dealer_has_content():
    assert not RawDealer().has_content()
    assert not RawDealer(name="  ", services=["Service"]).has_content()
    assert RawDealer(phone="030 1").has_content()


def test_raw_dealer_accepts_stored_aliases():
    raw = RawDealer.model_validate({"name": "A", "postalCode": "10115", "postalCodeCity": "10115 Berlin"})
    assert raw.postal_code == "10115"
    assert raw.postal_city == "10115 Berlin"


def test_source_config_normalizes_name():
    source = SourceConfig(name=" KIA ")
    assert source.name == "kia"
    assert source.adapter_name == "kia"
    assert SourceConfig(name="kia-north", adapter="Kia").adapter_name == "kia"


def test_pipeline_config_get_source():
    config = PipelineConfig(sources=[SourceConfig(name="kia"), SourceConfig(name="opel")])
    assert config.get_source("OPEL").name == "opel"
    assert config.get_source("seat") is None
