"""
Tests for the pandas-backed CSV reader and writers.
"""

import os

import pytest

from csv_reconcile.errors import MissingFileError, ReconciliationCancelled
from csv_reconcile.models.data_models import Record
from csv_reconcile.utils.cancellation import CancellationToken
from csv_reconcile.utils.csv_io import PandasCsvReader, PandasCsvWriter, normalize_headers, detect_encoding


@pytest.fixture
def reader():
    return PandasCsvReader()


@pytest.fixture
def writer():
    return PandasCsvWriter()


def write_text(path, text):
    path.write_text(text, encoding="utf-8")
    return str(path)


def first_line(path):
    with open(path, "r", encoding="utf-8") as f:
        return f.readline().strip()


def test_normalize_headers():
    assert normalize_headers(["Id", "", "Name", "Name", " ", "Name"]) == [
        "Id", "Column2", "Name", "Name_2", "Column5", "Name_3"
    ]


def test_read_all_keeps_values_as_text(tmp_path, reader):
    path = write_text(tmp_path / "data.csv", 'Id,Name,Code\n1,Alice,007\n2,"Smith, J", 0010\n')

    records = reader.read_all(path)

    assert [r.fields for r in records] == [
        {"Id": "1", "Name": "Alice", "Code": "007"},
        {"Id": "2", "Name": "Smith, J", "Code": " 0010"},
    ]
    assert [r.line_number for r in records] == [2, 3]
    assert all(r.source_file == "data.csv" for r in records)


def test_read_stream_normalizes_duplicate_headers(tmp_path, reader):
    path = write_text(tmp_path / "dup.csv", "Id,Name,Name,\n1,a,b,c\n")
    record = reader.read_all(path)[0]
    assert record.fields == {"Id": "1", "Name": "a", "Name_2": "b", "Column4": "c"}


def test_rows_with_extra_fields_are_skipped(tmp_path, reader):
    path = write_text(tmp_path / "bad.csv", "Id,Name\n1,Alice\n2,Bob\n3,Carol,Extra\n4,Dan\n")
    records = reader.read_all(path)
    assert [r.get_field("Id") for r in records] == ["1", "2", "4"]


def test_short_rows_are_padded(tmp_path, reader):
    path = write_text(tmp_path / "short.csv", "Id,Name,City\n1,Alice,Paris\n2,Bob\n")
    records = reader.read_all(path)
    assert records[1].fields == {"Id": "2", "Name": "Bob", "City": ""}


def test_custom_delimiter(tmp_path, reader):
    path = write_text(tmp_path / "semi.csv", "Id;Name\n1;Alice\n")
    assert reader.read_all(path, delimiter=";")[0].fields == {"Id": "1", "Name": "Alice"}


def test_no_header_row(tmp_path, reader):
    path = write_text(tmp_path / "raw.csv", "1,Alice\n2,Bob\n")
    records = reader.read_all(path, has_header=False)
    assert records[0].fields == {"Column1": "1", "Column2": "Alice"}
    assert [r.line_number for r in records] == [1, 2]


def test_empty_and_header_only_files(tmp_path, reader):
    assert reader.read_all(write_text(tmp_path / "empty.csv", "")) == []
    assert reader.read_all(write_text(tmp_path / "header.csv", "Id,Name\n")) == []


def test_missing_file_raises(tmp_path, reader):
    with pytest.raises(MissingFileError):
        reader.read_all(str(tmp_path / "missing.csv"))


def test_cancelled_token_stops_reading(tmp_path, reader):
    path = write_text(tmp_path / "data.csv", "Id\n1\n2\n")
    token = CancellationToken()
    token.cancel()
    with pytest.raises(ReconciliationCancelled):
        reader.read_all(path, cancel_token=token)


def test_stream_can_be_closed_early(tmp_path, reader):
    path = write_text(tmp_path / "data.csv", "Id\n" + "".join(f"{i}\n" for i in range(100)))
    stream = reader.read_stream(path)
    assert next(stream).get_field("Id") == "0"
    stream.close()


def test_write_all_uses_sorted_header_union(tmp_path, reader, writer):
    path = str(tmp_path / "out" / "result.csv")
    records = [Record({"B": "2", "A": "1"}), Record({"C": "3"})]

    assert writer.write_all(path, records) == path

    assert first_line(path) == "A,B,C"
    assert [r.fields for r in reader.read_all(path)] == [
        {"A": "1", "B": "2", "C": ""},
        {"A": "", "B": "", "C": "3"},
    ]


def test_write_all_skips_empty_record_lists(tmp_path, writer):
    path = str(tmp_path / "nothing.csv")
    assert writer.write_all(path, []) is None
    assert not os.path.exists(path)


def test_incremental_writer(tmp_path, reader, writer):
    path = str(tmp_path / "inc.csv")
    with writer.open_incremental(path) as handle:
        handle.write_one(Record({"Name": "Alice", "Id": "1"}))
        handle.write_many([Record({"Id": "2", "City": "Oslo"}), Record({"Id": "3"})])

    assert handle.count == 3
    assert first_line(path) == "City,Id,Name"
    assert [r.get_field("Id") for r in reader.read_all(path)] == ["1", "2", "3"]
    assert not os.path.exists(path + ".spool")


def test_incremental_writer_batches(tmp_path, reader):
    from csv_reconcile.utils.csv_io import IncrementalCsvWriter

    path = str(tmp_path / "batched.csv")
    with IncrementalCsvWriter(path, batch_rows=2) as handle:
        handle.write_many(Record({"Id": str(i)}) for i in range(5))

    assert [r.get_field("Id") for r in reader.read_all(path)] == ["0", "1", "2", "3", "4"]


def test_incremental_writer_without_records_creates_no_file(tmp_path, writer):
    path = str(tmp_path / "empty.csv")
    handle = writer.open_incremental(path)
    assert handle.close() is None
    assert not os.path.exists(path)
    assert not os.path.exists(path + ".spool")


def test_incremental_writer_aborts_on_error(tmp_path, writer):
    path = str(tmp_path / "broken.csv")
    with pytest.raises(RuntimeError):
        with writer.open_incremental(path) as handle:
            handle.write_one(Record({"Id": "1"}))
            raise RuntimeError("boom")

    assert not os.path.exists(path)
    assert not os.path.exists(path + ".spool")


LATIN1_ROWS = (
    "Id,Name,City\n"
    "1,café,Orléans\n"
    "2,naïve crème brûlée,Besançon\n"
    "3,Hélène Müller,Genève\n"
)


def write_bytes(path, data):
    path.write_bytes(data)
    return str(path)


def test_detect_encoding_recognises_utf8(tmp_path):
    plain = write_bytes(tmp_path / "plain.csv", "Id,Name\n1,café\n".encode("utf-8"))
    bom = write_bytes(tmp_path / "bom.csv", "\ufeffId\n1\n".encode("utf-8"))
    assert detect_encoding(plain) == "utf-8-sig"
    assert detect_encoding(bom) == "utf-8-sig"


def test_detect_encoding_tolerates_sample_cut_inside_a_character(tmp_path):
    path = write_bytes(tmp_path / "cut.csv", ("Id\n" + "é" * 10).encode("utf-8"))
    assert detect_encoding(path, sample_bytes=4) == "utf-8-sig"


def test_latin1_file_is_read(tmp_path, reader):
    path = write_bytes(tmp_path / "latin1.csv", LATIN1_ROWS.encode("latin-1"))

    records = reader.read_all(path)

    assert detect_encoding(path) != "utf-8-sig"
    assert [r.get_field("Id") for r in records] == ["1", "2", "3"]
    assert records[0].get_field("Name").startswith("caf")
    assert len(records[0].get_field("Name")) == 4


def test_undecodable_bytes_are_replaced_with_fixed_encoding(tmp_path):
    path = write_bytes(tmp_path / "mixed.csv", b"Id,Name\n1,caf\xe9\n2,ok\n")

    records = PandasCsvReader(encoding="utf-8").read_all(path)

    assert [r.fields for r in records] == [
        {"Id": "1", "Name": "caf\ufffd"},
        {"Id": "2", "Name": "ok"},
    ]
