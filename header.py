"""
Текстовый заголовок: сериализация дерева кодов и его восстановление.

Грамматика:
    лист       -> '.' + символ
    внутренний -> '(' + поддерево-0 + поддерево-1 + ')'

Между соседними поддеревьями нет разделителей, поэтому границы находятся
подсчётом глубины скобок. Символ после '.' всегда данные, даже если это
'(' , ')' или '.'.
"""

from typing import Set, Tuple

from errors import HeaderError
from huffman import CodeTree


LEAF = '.'
OPEN = '('
CLOSE = ')'

# 256 различных листьев дают глубину не больше 255
MAX_DEPTH = 255


def flatten_tree_to_header(tree: CodeTree) -> str:
    if tree.root is None:
        return ''

    parts = []
    stack = [tree.root]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            parts.append(item)
        elif tree.is_leaf(item):
            parts.append(LEAF + chr(tree.symbols[item]))
        else:
            parts.append(OPEN)
            stack.append(CLOSE)
            stack.append(tree.one[item])
            stack.append(tree.zero[item])

    return ''.join(parts)


def recreate_tree_from_header(header: str) -> CodeTree:
    tree = CodeTree()
    if not header:
        return tree

    root, end = _parse_subtree(tree, header, 0, 0, set())
    if end != len(header):
        raise HeaderError(f"Unexpected data after tree at offset {end}")

    tree.root = root
    return tree


def _parse_subtree(tree: CodeTree, header: str, start: int,
                   depth: int, seen: Set[int]) -> Tuple[int, int]:
    """Разбирает поддерево с позиции start, возвращает (узел, позиция за ним)."""
    if depth > MAX_DEPTH:
        raise HeaderError(f"Header nested deeper than {MAX_DEPTH} levels at offset {start}")

    end = _subtree_end(header, start)

    if header[start] == LEAF:
        symbol = ord(header[start + 1])
        if symbol > 0xFF:
            raise HeaderError(f"Leaf symbol at offset {start + 1} is not a byte")
        if symbol in seen:
            raise HeaderError(f"Duplicate leaf symbol {symbol} at offset {start + 1}")
        seen.add(symbol)
        return tree.add_leaf(symbol), end

    zero, zero_end = _parse_subtree(tree, header, start + 1, depth + 1, seen)
    one, one_end = _parse_subtree(tree, header, zero_end, depth + 1, seen)
    if one_end != end - 1:
        raise HeaderError(f"Node at offset {start} must have exactly two children")

    return tree.add_internal(zero, one), end


def _subtree_end(header: str, start: int) -> int:
    if start >= len(header):
        raise HeaderError(f"Header truncated: subtree expected at offset {start}")

    marker = header[start]
    if marker == LEAF:
        if start + 1 >= len(header):
            raise HeaderError(f"Leaf marker at offset {start} has no symbol")
        return start + 2
    if marker != OPEN:
        raise HeaderError(f"Unexpected {marker!r} at offset {start}, subtree expected")

    depth = 0
    pos = start
    while pos < len(header):
        ch = header[pos]
        if ch == LEAF:
            if pos + 1 >= len(header):
                raise HeaderError(f"Leaf marker at offset {pos} has no symbol")
            pos += 2
            continue

        if ch == OPEN:
            depth += 1
        elif ch == CLOSE:
            depth -= 1
            if depth == 0:
                return pos + 1
        else:
            raise HeaderError(f"Unexpected {ch!r} at offset {pos}")
        pos += 1

    raise HeaderError(f"Unbalanced header: '(' at offset {start} is never closed")
