import errno
import io
import os
import random
import struct

import pytest

import File_Compression
from container import MODE_HUFFMAN, MODE_STORED, deserialize_container, serialize_container
from errors import CompressionError, ErrorKind
from File_Compression import (STORED_WARNING, compress, compress_file, decompress,
                              decompress_file, main, restored_path, suffix_of)
from huffman import build_huffman_tree, calculate_frequencies

TEXT = b"It was the best of times, it was the worst of times. " * 20


def _payload_offset(blob):
    # payload field, then a 7-byte END field, then the 8-byte size
    return len(blob) - 15 - len(deserialize_container(blob).payload)


def test_aaabbc_scenario():
    result = compress(b"aaabbc", "txt")
    assert result.success
    assert result.error is None
    assert result.warning is None
    assert deserialize_container(result.data).payload == b"\x1f\x00"

    restored = decompress(result.data)
    assert restored.success
    assert restored.data == b"aaabbc"
    assert restored.suffix == "txt"


@pytest.mark.parametrize("data", [
    TEXT,
    b"ab",
    b"abc",
    bytes(range(256)) * 3 + b"\x00" * 500,
    bytes(random.Random(7).getrandbits(8) for _ in range(10 * 1024)),
])
def test_round_trip(data):
    result = compress(data, "bin")
    assert result.success
    restored = decompress(result.data)
    assert restored.success
    assert (restored.data, restored.suffix) == (data, "bin")


def test_compressible_input_uses_huffman_mode():
    result = compress(TEXT, "txt")
    assert deserialize_container(result.data).mode == MODE_HUFFMAN
    assert len(result.data) < len(TEXT)


def test_incompressible_input_is_stored():
    data = bytes(range(256))
    result = compress(data, "bin")
    assert result.success
    assert result.warning == STORED_WARNING

    container = deserialize_container(result.data)
    assert container.mode == MODE_STORED
    assert container.payload == data
    assert decompress(result.data).data == data


def test_empty_input():
    result = compress(b"", "txt")
    assert not result.success
    assert result.data is None
    assert result.error.kind is ErrorKind.EMPTY_INPUT


def test_single_repeated_byte():
    result = compress(b"A" * 1024, "txt")
    assert result.error.kind is ErrorKind.DEGENERATE_INPUT


def test_missing_suffix():
    result = compress(TEXT, "")
    assert result.error.kind is ErrorKind.MISSING_SUFFIX


def test_every_payload_bit_flip_is_caught():
    blob = compress(b"hello huffman world", "txt").data
    start = _payload_offset(blob)
    end = len(blob) - 15
    assert end > start

    for i in range(start, end):
        for bit in range(8):
            corrupted = bytearray(blob)
            corrupted[i] ^= 1 << bit
            result = decompress(bytes(corrupted))
            assert not result.success
            assert result.error.kind is ErrorKind.CHECKSUM_MISMATCH


def test_header_corruption_is_malformed():
    corrupted = bytearray(compress(TEXT, "txt").data)
    corrupted[0] ^= 0xFF
    assert decompress(bytes(corrupted)).error.kind is ErrorKind.MALFORMED_CONTAINER


def test_corrupted_tree_is_decode_overflow():
    nodes = build_huffman_tree(calculate_frequencies(b"aaabbc"))
    nodes[-1].left = 42
    blob = serialize_container("txt", MODE_HUFFMAN, nodes, b"abc", b"\x1f\x00")
    assert decompress(blob).error.kind is ErrorKind.DECODE_OVERFLOW


def test_short_stored_payload_is_malformed():
    nodes = build_huffman_tree(calculate_frequencies(b"aaabbc"))
    blob = serialize_container("txt", MODE_STORED, nodes, b"abc", b"aaab")
    assert decompress(blob).error.kind is ErrorKind.MALFORMED_CONTAINER


def test_errors_carry_a_message():
    error = compress(b"", "txt").error
    assert isinstance(error, CompressionError)
    assert error.message == "Input file is empty"
    assert str(error) == "EmptyInput: Input file is empty"


def test_path_helpers():
    assert suffix_of("/tmp/report.pdf") == "pdf"
    assert suffix_of("archive.tar.gz") == "gz"
    assert suffix_of("Makefile") == ""
    assert restored_path("/tmp/out/report.bin", "pdf") == "/tmp/out/report.pdf"
    assert restored_path("restored", "txt") == "restored.txt"


def test_file_round_trip(tmp_path):
    src = tmp_path / "notes.txt"
    src.write_bytes(TEXT)
    huff = tmp_path / "notes.huff"

    result = compress_file(str(src), str(huff))
    assert result.success
    assert result.path == str(huff)
    assert huff.read_bytes() == result.data

    restored = decompress_file(str(huff), str(tmp_path / "restored.bin"))
    assert restored.success
    assert restored.path == str(tmp_path / "restored.txt")
    assert (tmp_path / "restored.txt").read_bytes() == TEXT
    assert not (tmp_path / "restored.bin").exists()


def test_long_suffix_is_truncated_on_disk(tmp_path):
    src = tmp_path / "photo.jpeg2000"
    src.write_bytes(TEXT)
    compress_file(str(src), str(tmp_path / "photo.huff"))

    restored = decompress_file(str(tmp_path / "photo.huff"), str(tmp_path / "photo"))
    assert restored.suffix == "jpeg"
    assert restored.path == str(tmp_path / "photo.jpeg")


def test_empty_file_writes_nothing(tmp_path):
    src = tmp_path / "empty.txt"
    src.write_bytes(b"")
    out = tmp_path / "empty.huff"

    result = compress_file(str(src), str(out))
    assert result.error.kind is ErrorKind.EMPTY_INPUT
    assert not out.exists()


def test_file_without_suffix(tmp_path):
    src = tmp_path / "Makefile"
    src.write_bytes(TEXT)
    out = tmp_path / "Makefile.huff"

    assert compress_file(str(src), str(out)).error.kind is ErrorKind.MISSING_SUFFIX
    assert not out.exists()


def test_missing_input_is_io_failure(tmp_path):
    result = compress_file(str(tmp_path / "nope.txt"), str(tmp_path / "nope.huff"))
    assert result.error.kind is ErrorKind.IO_FAILURE

    result = decompress_file(str(tmp_path / "nope.huff"), str(tmp_path / "nope"))
    assert result.error.kind is ErrorKind.IO_FAILURE


def test_unwritable_output_is_io_failure(tmp_path):
    src = tmp_path / "notes.txt"
    src.write_bytes(TEXT)
    out = tmp_path / "missing-dir" / "notes.huff"

    assert compress_file(str(src), str(out)).error.kind is ErrorKind.IO_FAILURE
    assert not out.exists()


def test_failed_write_removes_partial_output(tmp_path, monkeypatch):
    class FailingFile(io.FileIO):
        def write(self, data):
            super().write(data[:len(data) // 2])
            raise OSError(errno.ENOSPC, "No space left on device")

    def fake_open(path, mode="r", *args, **kwargs):
        if "w" in mode:
            return FailingFile(path, "w")
        return io.open(path, mode, *args, **kwargs)

    src = tmp_path / "notes.txt"
    src.write_bytes(TEXT)
    out = tmp_path / "notes.huff"
    monkeypatch.setattr(File_Compression, "open", fake_open, raising=False)

    result = compress_file(str(src), str(out))
    assert result.error.kind is ErrorKind.IO_FAILURE
    assert "write error" in result.error.message
    assert not out.exists()


def test_cli_round_trip(tmp_path, capsys):
    src = tmp_path / "notes.txt"
    src.write_bytes(TEXT)
    huff = tmp_path / "notes.huff"

    assert main(["c", str(src), str(huff)]) == 0
    assert main(["d", str(huff), str(tmp_path / "back")]) == 0
    assert (tmp_path / "back.txt").read_bytes() == TEXT
    assert "back.txt" in capsys.readouterr().out


def test_cli_reports_failure(tmp_path, capsys):
    src = tmp_path / "one.txt"
    src.write_bytes(b"zzzz")

    assert main(["c", str(src), str(tmp_path / "one.huff")]) == 1
    assert "DegenerateInput" in capsys.readouterr().err
    assert not os.path.exists(tmp_path / "one.huff")


def test_cli_prints_stored_warning(tmp_path, capsys):
    src = tmp_path / "all.bin"
    src.write_bytes(bytes(range(256)))

    assert main(["c", str(src), str(tmp_path / "all.huff")]) == 0
    assert "Warning" in capsys.readouterr().out


def test_input_above_the_weight_range(monkeypatch):
    monkeypatch.setattr(File_Compression, "MAX_INPUT_SIZE", 4)
    result = compress(b"abcde", "txt")
    assert not result.success
    assert result.error.kind is ErrorKind.INPUT_TOO_LARGE
    assert compress(b"abcd", "txt").success


def test_flipped_mode_byte_is_malformed():
    # mode byte sits right after the magic and a three-letter suffix
    huffman_blob = bytearray(compress(TEXT, "txt").data)
    huffman_blob[18] = MODE_STORED
    assert decompress(bytes(huffman_blob)).error.kind is ErrorKind.MALFORMED_CONTAINER

    stored_blob = bytearray(compress(bytes(range(256)), "bin").data)
    assert stored_blob[18] == MODE_STORED
    stored_blob[18] = MODE_HUFFMAN
    assert decompress(bytes(stored_blob)).error.kind is ErrorKind.MALFORMED_CONTAINER


def test_suffix_cannot_escape_the_output_directory(tmp_path):
    blob = compress(b"aaabbc", "txt").data
    field = struct.pack(">I", 3) + b"txt"
    crafted = blob.replace(field, struct.pack(">I", 15) + b"d/../../escaped", 1)
    crafted = crafted[:-8] + struct.pack(">q", len(crafted))

    work = tmp_path / "work"
    (work / "out.d").mkdir(parents=True)
    src = tmp_path / "crafted.huff"
    src.write_bytes(crafted)

    result = decompress_file(str(src), str(work / "out"))
    assert result.error.kind is ErrorKind.MALFORMED_CONTAINER
    assert not (tmp_path / "escaped").exists()
    assert list((work / "out.d").iterdir()) == []
