"""
Построение кода Хаффмана: таблица частот, дерево кодов, карта кодирования.
Частые байты получают более короткие коды.
"""

import heapq
import itertools
from typing import BinaryIO, Dict, Iterator, List, Optional, Tuple
from collections import Counter


CHUNK_SIZE = 64 * 1024
NO_CHILD = -1


class CodeTree:
    """Арена узлов дерева кодов, узлы адресуются целочисленными индексами."""

    def __init__(self):
        self.root: Optional[int] = None
        self.symbols: List[Optional[int]] = []
        self.zero: List[int] = []
        self.one: List[int] = []

    def add_leaf(self, symbol: int) -> int:
        if not 0 <= symbol <= 0xFF:
            raise ValueError(f"Symbol out of range: {symbol}")
        self.symbols.append(symbol)
        self.zero.append(NO_CHILD)
        self.one.append(NO_CHILD)
        return len(self.symbols) - 1

    def add_internal(self, zero: int, one: int) -> int:
        self.symbols.append(None)
        self.zero.append(zero)
        self.one.append(one)
        return len(self.symbols) - 1

    def is_leaf(self, node: int) -> bool:
        return self.symbols[node] is not None

    def is_empty(self) -> bool:
        return self.root is None

    def __len__(self):
        return len(self.symbols)

    def leaves(self) -> Iterator[Tuple[int, int]]:
        """Листья в прямом порядке обхода: (символ, глубина)."""
        if self.root is None:
            return
        stack = [(self.root, 0)]
        while stack:
            node, depth = stack.pop()
            if self.is_leaf(node):
                yield self.symbols[node], depth
            else:
                stack.append((self.one[node], depth + 1))
                stack.append((self.zero[node], depth + 1))

    def __eq__(self, other):
        if not isinstance(other, CodeTree):
            return NotImplemented
        if self.root is None or other.root is None:
            return self.root is None and other.root is None

        stack = [(self.root, other.root)]
        while stack:
            a, b = stack.pop()
            if self.symbols[a] != other.symbols[b]:
                return False
            if not self.is_leaf(a):
                stack.append((self.one[a], other.one[b]))
                stack.append((self.zero[a], other.zero[b]))
        return True

    def __repr__(self):
        return f"CodeTree(nodes={len(self)}, root={self.root})"


def build_frequency_table(source: BinaryIO) -> Counter:
    table: Counter = Counter()
    for chunk in iter(lambda: source.read(CHUNK_SIZE), b''):
        table.update(chunk)
    return table


def build_encoding_tree(frequencies: Dict[int, int]) -> CodeTree:
    tree = CodeTree()
    if not frequencies:
        return tree

    # равные веса извлекаются в порядке добавления (FIFO)
    sequence = itertools.count()
    forest: List[Tuple[int, int, int]] = []
    for symbol in sorted(frequencies):
        leaf = tree.add_leaf(symbol)
        heapq.heappush(forest, (frequencies[symbol], next(sequence), leaf))

    while len(forest) > 1:
        zero_weight, _, zero = heapq.heappop(forest)
        one_weight, _, one = heapq.heappop(forest)

        parent = tree.add_internal(zero, one)
        heapq.heappush(forest, (zero_weight + one_weight, next(sequence), parent))

    tree.root = forest[0][2]
    return tree


def build_encoding_map(tree: CodeTree) -> Dict[int, str]:
    codes: Dict[int, str] = {}
    if tree.root is None:
        return codes

    stack = [(tree.root, '')]
    while stack:
        node, code = stack.pop()
        if tree.is_leaf(node):
            codes[tree.symbols[node]] = code
            continue
        stack.append((tree.one[node], code + '1'))
        stack.append((tree.zero[node], code + '0'))

    return codes


def free_tree(tree: CodeTree):
    tree.root = None
    tree.symbols.clear()
    tree.zero.clear()
    tree.one.clear()


def weighted_code_length(frequencies: Dict[int, int], codes: Dict[int, str]) -> int:
    """Сумма (длина кода * частота) по всем символам, т.е. размер полезной нагрузки в битах."""
    return sum(len(codes[symbol]) * count for symbol, count in frequencies.items())
