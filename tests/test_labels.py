"""
Tests for the ClickHouse-backed relay label store — no ClickHouse required.
"""

from unittest.mock import MagicMock

from relaypanel.db.labels import LabelStore, RelayLabel


def _mock_client(rows: list[tuple]) -> MagicMock:
    result = MagicMock()
    result.result_rows = rows
    client = MagicMock()
    client.query.return_value = result
    return client


def test_ensure_schema_seeds_missing_relays():
    client = _mock_client([(1,), (2,), (5,)])
    store = LabelStore(client_factory=lambda: client)

    store.ensure_schema()

    assert "CREATE TABLE IF NOT EXISTS relay_labels" in client.command.call_args.args[0]
    table, rows = client.insert.call_args.args
    assert table == "relay_labels"
    assert [row[:2] for row in rows] == [
        [3, "relay-3"],
        [4, "relay-4"],
        [6, "relay-6"],
        [7, "relay-7"],
        [8, "relay-8"],
    ]
    assert client.insert.call_args.kwargs["column_names"] == [
        "relay_index",
        "label",
        "updated_at",
    ]


def test_ensure_schema_skips_insert_when_complete():
    client = _mock_client([(i,) for i in range(1, 9)])
    LabelStore(client_factory=lambda: client).ensure_schema()
    client.insert.assert_not_called()


def test_list_labels_reads_final_rows_in_order():
    client = _mock_client([(1, "lamp"), (2, "fan")])
    labels = LabelStore(client_factory=lambda: client).list_labels()

    query = client.query.call_args.args[0]
    assert "FINAL" in query
    assert "ORDER BY relay_index" in query
    assert labels == [RelayLabel(1, "lamp"), RelayLabel(2, "fan")]


def test_update_label_inserts_new_version():
    client = _mock_client([])
    LabelStore(client_factory=lambda: client).update_label(4, "heater")

    table, rows = client.insert.call_args.args
    assert table == "relay_labels"
    assert rows[0][:2] == [4, "heater"]
