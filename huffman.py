from errors import CompressionError, ErrorKind

# Sentinel for a missing parent/child link, also written as-is into containers
NO_LINK = -1


### HUFFMAN NODE CLASS ###
class Node:
    """One slot of the array-based Huffman tree.

    Links are indices into the same node list, NO_LINK when absent.
    Leaves have no children, internal nodes always have both.
    """
    __slots__ = ("weight", "parent", "left", "right")

    def __init__(self, weight=0, parent=NO_LINK, left=NO_LINK, right=NO_LINK):
        self.weight = weight
        self.parent = parent
        self.left = left
        self.right = right

    def is_leaf(self):
        return self.left == NO_LINK and self.right == NO_LINK

    def as_tuple(self):
        return (self.weight, self.parent, self.left, self.right)

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    def __repr__(self):
        return "Node(weight=%d, parent=%d, left=%d, right=%d)" % self.as_tuple()


### FREQUENCY COUNTING ###
def calculate_frequencies(data):
    """Count each byte value, returned ordered by byte value."""
    freq = {}
    for byte in data:
        freq[byte] = freq.get(byte, 0) + 1
    return dict(sorted(freq.items()))


### TREE AND CODE GENERATION ###
def select_two_smallest(nodes, limit):
    """Return the two parentless nodes below `limit` with the smallest weights.

    Only a strictly smaller weight replaces a current minimum, so on ties
    the node with the lower index wins.
    """
    s1 = s2 = NO_LINK
    for j in range(limit):
        node = nodes[j]
        if node.parent != NO_LINK:
            continue
        if s1 == NO_LINK or node.weight < nodes[s1].weight:
            s2 = s1
            s1 = j
        elif s2 == NO_LINK or node.weight < nodes[s2].weight:
            s2 = j
    return s1, s2


def build_huffman_tree(frequency):
    """
    Builds the node array for a frequency table of n >= 2 symbols.

    Slots [0, n) are the leaves in ascending byte order, slots [n, 2n - 1)
    the internal nodes, and the last slot is the root.
    """
    n = len(frequency)
    if n < 2:
        raise CompressionError(ErrorKind.DEGENERATE_INPUT,
                               "A Huffman tree needs at least two distinct bytes")

    nodes = [Node(weight) for _, weight in sorted(frequency.items())]
    nodes.extend(Node() for _ in range(n - 1))

    # Merge the two lightest orphans into each new internal node
    for k in range(n, 2 * n - 1):
        s1, s2 = select_two_smallest(nodes, k)
        nodes[s1].parent = k
        nodes[s2].parent = k
        nodes[k].weight = nodes[s1].weight + nodes[s2].weight
        nodes[k].left = s1
        nodes[k].right = s2

    return nodes


def generate_codes(nodes):
    """Walk from every leaf up to the root; left edges are '0', right edges '1'."""
    n = len(nodes) // 2 + 1
    codes = []
    for i in range(n):
        code = ""
        cur = i
        parent = nodes[cur].parent
        while parent != NO_LINK:
            code = ("0" if nodes[parent].left == cur else "1") + code
            cur = parent
            parent = nodes[cur].parent
        codes.append(code)
    return codes


def encode_bits(data, symbols, codes):
    """Concatenate the code of every byte of data, in input order."""
    table = [""] * 256
    for symbol, code in zip(symbols, codes):
        table[symbol] = code
    return "".join(table[byte] for byte in data)


def encoded_bit_count(nodes):
    """Number of code bits the tree's weights imply: sum of weight * depth over leaves."""
    node_count = len(nodes)
    total = 0
    for i in range(node_count // 2 + 1):
        depth = 0
        cur = i
        while nodes[cur].parent != NO_LINK:
            cur = nodes[cur].parent
            depth += 1
            if not 0 <= cur < node_count or depth >= node_count:
                raise CompressionError(ErrorKind.DECODE_OVERFLOW,
                                       f"Leaf {i} has no path to the root")
        total += nodes[i].weight * depth
    return total


### BIT PACKING ###
def pack_bits(bits):
    """Pack a '0'/'1' string MSB-first, zero padding the last byte."""
    b = bytearray()
    for i in range(0, len(bits), 8):
        b.append(int(bits[i:i + 8].ljust(8, "0"), 2))
    return bytes(b)


def unpack_bits(data):
    return "".join(format(byte, "08b") for byte in data)


### DECODING ###
def huffman_decoding(bits, nodes, symbols):
    """
    Walk the tree once per emitted byte, 0 going left and 1 going right.

    The root weight is the number of bytes that were encoded, so decoding
    stops there and the padding bits of the last byte are never read.
    """
    node_count = len(nodes)
    root = node_count - 1
    total = nodes[root].weight
    out = bytearray()
    cur = root

    for bit in bits:
        if len(out) >= total:
            break
        cur = nodes[cur].left if bit == "0" else nodes[cur].right
        if not 0 <= cur < node_count:
            raise CompressionError(ErrorKind.DECODE_OVERFLOW,
                                   f"Tree walk left the node range at index {cur}")
        if nodes[cur].is_leaf():
            if cur >= len(symbols):
                raise CompressionError(ErrorKind.DECODE_OVERFLOW,
                                       f"Node {cur} is a leaf without a symbol")
            out.append(symbols[cur])
            cur = root

    if len(out) < total:
        raise CompressionError(ErrorKind.DECODE_OVERFLOW,
                               f"Payload ran out after {len(out)} of {total} bytes")
    return bytes(out)
