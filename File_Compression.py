import argparse
import logging
import os
import sys
from collections import namedtuple

from container import (MODE_HUFFMAN, MODE_STORED, deserialize_container,
                       normalize_suffix, serialize_container, verify_checksum)
from errors import CompressionError, ErrorKind
from huffman import (build_huffman_tree, calculate_frequencies, encode_bits,
                     encoded_bit_count, generate_codes, huffman_decoding,
                     pack_bits, unpack_bits)

logger = logging.getLogger(__name__)

# Node weights are written as signed 32-bit integers
MAX_INPUT_SIZE = 2 ** 31 - 1

STORED_WARNING = ("Compression ratio is greater than or equal to 1. "
                  "The input was stored without compression.")

Result = namedtuple("Result", "success data suffix error warning path",
                    defaults=(None, None, None, None, None))


def _failure(error):
    logger.warning("%s failed: %s", error.kind.value, error.message)
    return Result(False, error=error)


### COMPRESS ###
def _compress(data, suffix):
    if not data:
        raise CompressionError(ErrorKind.EMPTY_INPUT, "Input file is empty")
    if len(data) > MAX_INPUT_SIZE:
        raise CompressionError(ErrorKind.INPUT_TOO_LARGE,
                               f"Input of {len(data)} bytes exceeds {MAX_INPUT_SIZE} bytes")

    frequency = calculate_frequencies(data)
    if len(frequency) == 1:
        raise CompressionError(ErrorKind.DEGENERATE_INPUT, "Input file has only one character")
    suffix = normalize_suffix(suffix)

    nodes = build_huffman_tree(frequency)
    codes = generate_codes(nodes)
    symbols = bytes(frequency)
    payload = pack_bits(encode_bits(data, symbols, codes))

    mode, warning = MODE_HUFFMAN, None
    if len(payload) >= len(data):
        logger.warning(STORED_WARNING)
        mode, warning, payload = MODE_STORED, STORED_WARNING, bytes(data)

    blob = serialize_container(suffix, mode, nodes, symbols, payload)
    logger.info("Input size: %d bytes, output size: %d bytes, ratio: %.3f",
                len(data), len(blob), len(blob) / len(data))
    return Result(True, blob, suffix, warning=warning)


def compress(data, suffix):
    """
    Compress raw bytes into a container.

    Never raises: the outcome is a Result whose `data` holds the container
    on success and whose `error` holds a CompressionError on failure.
    """
    try:
        return _compress(data, suffix)
    except CompressionError as e:
        return _failure(e)


### DECOMPRESS ###
def _decompress(blob):
    container = deserialize_container(blob)
    verify_checksum(container)

    total = container.nodes[-1].weight
    if container.mode == MODE_STORED:
        if len(container.payload) != total:
            raise CompressionError(ErrorKind.MALFORMED_CONTAINER,
                                   f"Stored payload holds {len(container.payload)} of {total} bytes")
        data = container.payload
    else:
        # Huffman payloads are always shorter than the input, stored ones never are
        expected = (encoded_bit_count(container.nodes) + 7) // 8
        if len(container.payload) != expected or expected >= total:
            raise CompressionError(ErrorKind.MALFORMED_CONTAINER,
                                   f"Huffman payload holds {len(container.payload)} bytes, "
                                   f"tree implies {expected}")
        data = huffman_decoding(unpack_bits(container.payload), container.nodes, container.symbols)

    logger.info("Restored %d bytes with suffix '%s'", len(data), container.suffix)
    return Result(True, data, container.suffix)


def decompress(blob):
    """Restore the original bytes and suffix from a container, as a Result."""
    try:
        return _decompress(blob)
    except CompressionError as e:
        return _failure(e)


### FILE HELPERS ###
def suffix_of(path):
    """Text after the last dot of the file name, '' when there is none."""
    return os.path.splitext(os.path.basename(path))[1][1:]


def restored_path(output_path, suffix):
    return os.path.splitext(output_path)[0] + "." + suffix


def _read_file(path):
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as e:
        raise CompressionError(ErrorKind.IO_FAILURE, f"Cannot open input file: {e}")


def _discard(path):
    try:
        os.remove(path)
    except OSError as e:
        logger.warning("Could not remove partial output %s: %s", path, e)


def _write_file(path, data):
    try:
        f = open(path, "wb")
    except OSError as e:
        raise CompressionError(ErrorKind.IO_FAILURE, f"Cannot open output file: {e}")

    # A half-written container is worse than none
    try:
        with f:
            f.write(data)
    except OSError as e:
        _discard(path)
        raise CompressionError(ErrorKind.IO_FAILURE, f"Output file write error: {e}")


def compress_file(input_path, output_path):
    """Compress input_path into a container at output_path."""
    try:
        data = _read_file(input_path)
        result = _compress(data, suffix_of(input_path))
        _write_file(output_path, result.data)
    except CompressionError as e:
        return _failure(e)

    logger.info("Compressed '%s' -> '%s'", input_path, output_path)
    return result._replace(path=output_path)


def decompress_file(input_path, output_path):
    """
    Restore a container into output_path.

    The extension of output_path is replaced by the stored suffix; the
    path actually written is returned in Result.path.
    """
    try:
        result = _decompress(_read_file(input_path))
        path = restored_path(output_path, result.suffix)
        _write_file(path, result.data)
    except CompressionError as e:
        return _failure(e)

    logger.info("Decompressed '%s' -> '%s'", input_path, path)
    return result._replace(path=path)


### COMMAND LINE ###
def main(argv=None):
    parser = argparse.ArgumentParser(description="Huffman file compressor")
    parser.add_argument("mode", choices=["c", "d"], help="'c' to compress, 'd' to decompress")
    parser.add_argument("input", help="file to read")
    parser.add_argument("output", help="file to write")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if args.mode == "c":
        result = compress_file(args.input, args.output)
    else:
        result = decompress_file(args.input, args.output)

    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1
    if result.warning:
        print(f"Warning: {result.warning}")
    print(f"'{args.input}' -> '{result.path}'")
    return 0


if __name__ == "__main__":
    sys.exit(main())
