"""
Сжатие и разжатие потока байтов кодом Хаффмана.

compress:   таблица частот -> дерево -> заголовок -> карта кодов -> биты
decompress: заголовок -> дерево -> спуск по битам от корня к листьям
"""

import io
from typing import BinaryIO, Dict

from bitio import END_OF_STREAM, HuffmanInputFile, HuffmanOutputFile
from errors import CorruptStreamError
from header import flatten_tree_to_header, recreate_tree_from_header
from huffman import (CHUNK_SIZE, NO_CHILD, build_encoding_map, build_encoding_tree,
                     build_frequency_table, free_tree, weighted_code_length)


OUTPUT_FLUSH_SIZE = 64 * 1024


def compress(source: BinaryIO, output: HuffmanOutputFile) -> 'CompressionStats':
    frequencies = build_frequency_table(source)
    source.seek(0)

    tree = build_encoding_tree(frequencies)
    header = flatten_tree_to_header(tree)
    symbol_count = sum(frequencies.values())
    output.write_header(header, symbol_count)

    codes = build_encoding_map(tree)
    free_tree(tree)

    for chunk in iter(lambda: source.read(CHUNK_SIZE), b''):
        for byte in chunk:
            output.write_bits(codes[byte])

    return CompressionStats(frequencies, codes, len(header))


def decompress(bits: HuffmanInputFile, output: BinaryIO) -> int:
    tree = recreate_tree_from_header(bits.read_header())
    expected = bits.symbol_count

    if tree.is_empty():
        if expected != 0 or bits.read_bit() != END_OF_STREAM:
            raise CorruptStreamError("Payload present for an empty code tree")
        return 0

    root = tree.root
    if tree.is_leaf(root):
        # вырожденный код длины 0: количество берётся из заголовка файла
        if expected == 0:
            raise CorruptStreamError("Single-symbol tree with a zero symbol count")
        symbol = bytes((tree.symbols[root],))
        for start in range(0, expected, OUTPUT_FLUSH_SIZE):
            output.write(symbol * min(OUTPUT_FLUSH_SIZE, expected - start))
        if bits.read_bit() != END_OF_STREAM:
            raise CorruptStreamError("Unexpected payload bits for a single-symbol tree")
        free_tree(tree)
        return expected

    written = 0
    buffer = bytearray()
    node = root
    try:
        while True:
            bit = bits.read_bit()
            if bit == END_OF_STREAM:
                break

            node = tree.one[node] if bit else tree.zero[node]
            if node == NO_CHILD:
                raise CorruptStreamError(f"Invalid code after {written} symbols: no branch for bit {bit}")

            if tree.is_leaf(node):
                buffer.append(tree.symbols[node])
                written += 1
                node = root
                if len(buffer) >= OUTPUT_FLUSH_SIZE:
                    output.write(bytes(buffer))
                    buffer.clear()
    finally:
        if buffer:
            output.write(bytes(buffer))
        free_tree(tree)

    if node != root:
        raise CorruptStreamError(f"Bitstream ends in the middle of a code after {written} symbols")
    if written != expected:
        raise CorruptStreamError(f"Decoded {written} symbols, expected {expected}")

    return written


def compress_bytes(data: bytes) -> bytes:
    output = io.BytesIO()
    with HuffmanOutputFile(output) as bits:
        compress(io.BytesIO(data), bits)
    return output.getvalue()


def decompress_bytes(data: bytes) -> bytes:
    output = io.BytesIO()
    decompress(HuffmanInputFile(io.BytesIO(data)), output)
    return output.getvalue()


class CompressionStats:
    def __init__(self, frequencies: Dict[int, int], codes: Dict[int, str], header_size: int):
        self.original_size = sum(frequencies.values())
        self.distinct_symbols = len(frequencies)
        self.header_size = header_size
        self.payload_bits = weighted_code_length(frequencies, codes)

        # <I длина заголовка + <Q счётчик + трейлер
        self.compressed_size = 4 + header_size + 8 + (self.payload_bits + 7) // 8 + 1

        self.average_code_length = (
            self.payload_bits / self.original_size
            if self.original_size > 0 else 0
        )

        self.compression_ratio = (
            self.compressed_size / self.original_size * 100
            if self.original_size > 0 else 0
        )

    def print_stats(self, file=None):
        print(f"Huffman Compression Statistics:", file=file)
        print(f"  Original size:       {self.original_size} bytes", file=file)
        print(f"  Distinct symbols:    {self.distinct_symbols}", file=file)
        print(f"  Header size:         {self.header_size} bytes", file=file)
        print(f"  Payload:             {self.payload_bits} bits", file=file)
        print(f"  Avg code length:     {self.average_code_length:.3f} bits/symbol", file=file)
        print(f"  Compressed size:     {self.compressed_size} bytes", file=file)
        print(f"  Compression ratio:   {self.compression_ratio:.1f}%", file=file)
