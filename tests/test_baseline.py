import json

import pytest

from phonebox.recognition.baseline import (
    BaselineImportError,
    BaselineStoreError,
    JsonBaselineStore,
    MemoryBaselineStore,
    learn_baselines,
    merge_imported_baselines,
    profiles_to_records,
)
from phonebox.types import DeviceColorProfile, ReconciledRow

STAMP = "2026-10-17T08:00:00+00:00"


def make_row(identifier: str, status: str, present: bool = True, color: str = "black", name="Ada") -> ReconciledRow:
    return ReconciledRow(
        slot=1,
        identifier=identifier,
        phone_present=present,
        presence_score=0.7,
        saturation_score=0.1,
        confidence=0.9,
        color_label=color,
        status=status,
        full_name=name,
    )


def test_learns_baseline_for_assigned_present_rows():
    rows = [
        make_row("9A1", "TURNED_IN", color="red"),
        make_row("9A2", "MISSING", present=False),
        make_row("9A3", "UNASSIGNED", name=None),
    ]
    outcome = learn_baselines(rows, {}, now=STAMP)

    assert outcome.learned == ["9A1"]
    assert outcome.baselines == {"9A1": DeviceColorProfile("9A1", "red", STAMP)}
    assert outcome.rows[0].expected_color == "red"
    assert outcome.rows[0].status == "TURNED_IN"
    assert outcome.rows[1].expected_color is None
    assert outcome.rows[2].expected_color is None


def test_existing_baseline_is_never_overwritten_by_learning():
    existing = {"9A1": DeviceColorProfile("9A1", "black", "2026-01-01T00:00:00+00:00")}
    rows = [make_row("9A1", "SUSPICIOUS", color="blue")]
    outcome = learn_baselines(rows, existing, now=STAMP)

    assert outcome.learned == []
    assert outcome.baselines["9A1"].color == "black"
    assert outcome.rows[0].status == "SUSPICIOUS"


def test_learning_does_not_mutate_input_map():
    existing = {}
    learn_baselines([make_row("9A1", "TURNED_IN")], existing, now=STAMP)
    assert existing == {}


def test_import_overwrites_existing_entries():
    existing = {"9A1": DeviceColorProfile("9A1", "black", "2026-01-01T00:00:00+00:00")}
    records = [
        {"securityNumber": "9a1", "color": "blue", "lastUpdated": STAMP},
        {"securityNumber": "SM2-4", "color": "red"},
    ]
    merged = merge_imported_baselines(existing, records, now="2026-10-18T00:00:00+00:00")

    assert merged["9A1"] == DeviceColorProfile("9A1", "blue", STAMP)
    assert merged["SM2-4"].last_updated == "2026-10-18T00:00:00+00:00"
    assert existing["9A1"].color == "black"


@pytest.mark.parametrize(
    "payload",
    [
        {"securityNumber": "9A1", "color": "blue"},
        [{"securityNumber": "9A1", "color": "blue"}, "not-a-record"],
        [{"securityNumber": "9A1", "color": "blue"}, {"color": "red"}],
        [{"securityNumber": "9A1", "color": "teal"}],
        [{"securityNumber": "9A1", "color": "blue", "lastUpdated": 12}],
    ],
)
def test_invalid_import_rejected_without_partial_merge(payload):
    existing = {"9A1": DeviceColorProfile("9A1", "black", "2026-01-01T00:00:00+00:00")}
    with pytest.raises(BaselineImportError):
        merge_imported_baselines(existing, payload)
    assert existing["9A1"].color == "black"


def test_json_store_round_trip(tmp_path):
    path = tmp_path / "state" / "baselines.json"
    store = JsonBaselineStore(path)
    assert store.load() == {}

    baselines = {
        "9A2": DeviceColorProfile("9A2", "red", STAMP),
        "9A1": DeviceColorProfile("9A1", "black", STAMP),
    }
    store.save(baselines)

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload == [
        {"securityNumber": "9A1", "color": "black", "lastUpdated": STAMP},
        {"securityNumber": "9A2", "color": "red", "lastUpdated": STAMP},
    ]
    assert store.load() == baselines


def test_json_store_normalizes_keys_on_load(tmp_path):
    path = tmp_path / "baselines.json"
    path.write_text(json.dumps([{"securityNumber": " 9a7 ", "color": "green", "lastUpdated": STAMP}]))
    assert list(JsonBaselineStore(path).load()) == ["9A7"]


def test_json_store_rejects_corrupt_file(tmp_path):
    path = tmp_path / "baselines.json"
    path.write_text("{not json")
    with pytest.raises(BaselineStoreError):
        JsonBaselineStore(path).load()

    path.write_text(json.dumps({"9A1": "black"}))
    with pytest.raises(BaselineStoreError):
        JsonBaselineStore(path).load()


def test_json_store_failed_save_keeps_previous_file(tmp_path):
    path = tmp_path / "baselines.json"
    store = JsonBaselineStore(path)
    store.save({"9A1": DeviceColorProfile("9A1", "black", STAMP)})

    with pytest.raises(TypeError):
        store.save({"9A1": DeviceColorProfile("9A1", object(), STAMP)})

    assert store.load() == {"9A1": DeviceColorProfile("9A1", "black", STAMP)}
    assert [p.name for p in tmp_path.iterdir()] == ["baselines.json"]


def test_json_store_unreadable_path_raises_store_error(tmp_path):
    path = tmp_path / "baselines.json"
    path.mkdir()
    with pytest.raises(BaselineStoreError):
        JsonBaselineStore(path).load()
    with pytest.raises(BaselineStoreError):
        JsonBaselineStore(path).save({"9A1": DeviceColorProfile("9A1", "black", STAMP)})


def test_memory_store_counts_saves():
    store = MemoryBaselineStore()
    store.save({"9A1": DeviceColorProfile("9A1", "black", STAMP)})
    assert store.saves == 1
    assert profiles_to_records(store.load()) == [
        {"securityNumber": "9A1", "color": "black", "lastUpdated": STAMP}
    ]
