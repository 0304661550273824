import hashlib
import io
import os
import struct
from collections import namedtuple

from errors import CompressionError, ErrorKind
from huffman import Node

# --- CONSTANTS ---
MAGIC = b"HUFFMAN"
TRAILER = b"END"
MAX_SUFFIX_LENGTH = 4
# The suffix ends up in a file name on restore
SUFFIX_FORBIDDEN = {"/", "\\", os.sep, "\0"}
MAX_NODES = 2 * 256 - 1

# Storage mode byte
MODE_HUFFMAN = 0
MODE_STORED = 1

# All integers are big-endian; byte fields carry a 32-bit length prefix
LENGTH = struct.Struct(">I")
MODE = struct.Struct(">B")
COUNT = struct.Struct(">i")
NODE = struct.Struct(">4i")
SIZE = struct.Struct(">q")

Container = namedtuple("Container", "suffix mode nodes symbols checksum payload")


### CHECKSUM ###
def checksum(payload):
    return hashlib.md5(payload).digest()


def verify_checksum(container):
    """Recompute the payload digest and compare it to the stored one."""
    if checksum(container.payload) != container.checksum:
        raise CompressionError(ErrorKind.CHECKSUM_MISMATCH,
                               "Decompression error: checksum mismatch")


def normalize_suffix(suffix):
    """Strip the leading dot and keep at most four characters."""
    suffix = (suffix or "").lstrip(".")
    if not suffix:
        raise CompressionError(ErrorKind.MISSING_SUFFIX, "Input file has no suffix")
    if any(sep in suffix for sep in SUFFIX_FORBIDDEN):
        raise CompressionError(ErrorKind.MISSING_SUFFIX, f"Unusable file suffix {suffix!r}")
    return suffix[:MAX_SUFFIX_LENGTH]


### SERIALIZE ###
def _write_field(buf, data):
    buf.write(LENGTH.pack(len(data)))
    buf.write(data)


def serialize_container(suffix, mode, nodes, symbols, payload):
    """
    Lays out a complete container:

        magic | suffix | mode | node count | nodes | symbols
        | checksum | payload | trailer | total size

    The total size is written last and counts its own eight bytes.
    """
    buf = io.BytesIO()
    _write_field(buf, MAGIC)
    _write_field(buf, normalize_suffix(suffix).encode("utf-8"))
    buf.write(MODE.pack(mode))

    buf.write(COUNT.pack(len(nodes)))
    for node in nodes:
        buf.write(NODE.pack(*node.as_tuple()))
    _write_field(buf, bytes(symbols))

    _write_field(buf, checksum(payload))
    _write_field(buf, payload)
    _write_field(buf, TRAILER)

    buf.write(SIZE.pack(buf.tell() + SIZE.size))
    return buf.getvalue()


### DESERIALIZE ###
def _malformed(message):
    return CompressionError(ErrorKind.MALFORMED_CONTAINER, message)


def _read_exact(stream, size, what):
    data = stream.read(size)
    if len(data) < size:
        raise _malformed(f"Container truncated while reading {what}")
    return data


def _read_struct(stream, fmt, what):
    return fmt.unpack(_read_exact(stream, fmt.size, what))[0]


def _read_field(stream, what):
    length = _read_struct(stream, LENGTH, what + " length")
    return _read_exact(stream, length, what)


def _read_nodes(stream):
    node_count = _read_struct(stream, COUNT, "node count")
    if node_count < 3 or node_count > MAX_NODES or node_count % 2 == 0:
        raise _malformed(f"Invalid node count {node_count}")

    nodes = []
    for _ in range(node_count):
        weight, parent, left, right = NODE.unpack(_read_exact(stream, NODE.size, "tree"))
        if weight < 0:
            raise _malformed(f"Negative node weight {weight}")
        nodes.append(Node(weight, parent, left, right))
    return nodes


def deserialize_container(blob):
    """Parse and validate a container, raising MalformedContainer on any defect."""
    stream = io.BytesIO(blob)

    if _read_field(stream, "magic tag") != MAGIC:
        raise _malformed("Invalid file format: not a Huffman compressed file")

    try:
        suffix = _read_field(stream, "suffix").decode("utf-8")
    except UnicodeDecodeError:
        raise _malformed("Suffix is not valid UTF-8")
    if not suffix:
        raise _malformed("Container holds an empty suffix")
    if len(suffix) > MAX_SUFFIX_LENGTH or any(sep in suffix for sep in SUFFIX_FORBIDDEN):
        raise _malformed(f"Invalid suffix {suffix!r}")

    mode = _read_struct(stream, MODE, "storage mode")
    if mode not in (MODE_HUFFMAN, MODE_STORED):
        raise _malformed(f"Unknown storage mode {mode}")

    nodes = _read_nodes(stream)
    symbols = _read_field(stream, "symbol table")
    if 2 * len(symbols) - 1 != len(nodes):
        raise _malformed(f"{len(symbols)} symbols do not fit a tree of {len(nodes)} nodes")
    if list(symbols) != sorted(set(symbols)):
        raise _malformed("Symbol table is not strictly ascending")

    digest = _read_field(stream, "checksum")
    payload = _read_field(stream, "payload")

    if _read_field(stream, "trailer") != TRAILER:
        raise _malformed("Decompression error: file tail not found")

    size = _read_struct(stream, SIZE, "container size")
    if size != len(blob):
        raise _malformed(f"Decompression error: file size mismatch ({size} != {len(blob)})")
    if stream.read(1):
        raise _malformed("Trailing bytes after the container size")

    return Container(suffix, mode, nodes, symbols, digest, payload)
