import unittest
import tempfile
import io
import os
import random
import shutil
import sys
from contextlib import redirect_stderr, redirect_stdout

from huffman import (CodeTree, build_frequency_table, build_encoding_tree,
                     build_encoding_map, free_tree, weighted_code_length)
from header import flatten_tree_to_header, recreate_tree_from_header
from bitio import END_OF_STREAM, HuffmanInputFile, HuffmanOutputFile
from codec import CompressionStats, compress, decompress, compress_bytes, decompress_bytes
from errors import CorruptStreamError, HeaderError, HuffmanError
from format import ArchiveEntry, checksum, pack_archive, read_archive, unpack_archive
from archiver import Archiver
import main


def tree_for(data: bytes) -> CodeTree:
    return build_encoding_tree(build_frequency_table(io.BytesIO(data)))


def bit_file(header: str, symbol_count: int, bits: str) -> bytes:
    output = io.BytesIO()
    with HuffmanOutputFile(output) as out:
        out.write_header(header, symbol_count)
        out.write_bits(bits)
    return output.getvalue()


class TestFrequencyTable(unittest.TestCase):
    def test_counts(self):
        source = io.BytesIO(b"abracadabra")
        table = build_frequency_table(source)
        self.assertEqual(table, {97: 5, 98: 2, 114: 2, 99: 1, 100: 1})
        self.assertEqual(sum(table.values()), 11)
        self.assertEqual(source.read(), b"")

    def test_empty_input(self):
        self.assertEqual(build_frequency_table(io.BytesIO(b"")), {})

    def test_all_byte_values(self):
        table = build_frequency_table(io.BytesIO(bytes(range(256)) * 3))
        self.assertEqual(len(table), 256)
        self.assertTrue(all(count == 3 for count in table.values()))


class TestTreeBuilder(unittest.TestCase):
    def test_empty_table(self):
        tree = build_encoding_tree({})
        self.assertTrue(tree.is_empty())
        self.assertEqual(len(tree), 0)

    def test_single_symbol_is_leaf(self):
        tree = build_encoding_tree({ord('a'): 4})
        self.assertTrue(tree.is_leaf(tree.root))
        self.assertEqual(tree.symbols[tree.root], ord('a'))

    def test_first_dequeued_is_zero_branch(self):
        tree = build_encoding_tree({ord('a'): 3, ord('b'): 2, ord('c'): 1})
        self.assertEqual(flatten_tree_to_header(tree), "(.a(.c.b))")

    def test_equal_weights_fifo(self):
        tree = tree_for(b"abc")
        self.assertEqual(flatten_tree_to_header(tree), "(.c(.a.b))")

        tree = tree_for(b"abcd")
        self.assertEqual(flatten_tree_to_header(tree), "((.a.b)(.c.d))")

    def test_insertion_order_independent(self):
        forward = {ord(ch): n for ch, n in zip("abcdef", [5, 9, 12, 13, 16, 45])}
        backward = dict(reversed(list(forward.items())))
        self.assertEqual(flatten_tree_to_header(build_encoding_tree(forward)),
                         flatten_tree_to_header(build_encoding_tree(backward)))

    def test_optimal_cost(self):
        frequencies = {ord(ch): n for ch, n in zip("abcdef", [45, 13, 12, 16, 9, 5])}
        codes = build_encoding_map(build_encoding_tree(frequencies))
        self.assertEqual(weighted_code_length(frequencies, codes), 224)

    def test_optimal_cost_random(self):
        rng = random.Random(7)
        for _ in range(20):
            frequencies = {s: rng.randint(1, 100) for s in rng.sample(range(256), rng.randint(2, 40))}
            codes = build_encoding_map(build_encoding_tree(frequencies))

            weights = sorted(frequencies.values())
            expected = 0
            while len(weights) > 1:
                merged = weights[0] + weights[1]
                expected += merged
                weights = sorted(weights[2:] + [merged])

            self.assertEqual(weighted_code_length(frequencies, codes), expected)

    def test_free_tree(self):
        tree = tree_for(b"hello world")
        free_tree(tree)
        self.assertTrue(tree.is_empty())
        self.assertEqual(len(tree), 0)


class TestHeaderCodec(unittest.TestCase):
    def test_empty_tree(self):
        self.assertEqual(flatten_tree_to_header(CodeTree()), "")
        self.assertTrue(recreate_tree_from_header("").is_empty())

    def test_single_leaf(self):
        tree = tree_for(b"aaaa")
        self.assertEqual(flatten_tree_to_header(tree), ".a")
        self.assertEqual(recreate_tree_from_header(".a"), tree)

    def test_round_trip(self):
        tree = tree_for(b"The quick brown fox jumps over the lazy dog")
        header = flatten_tree_to_header(tree)
        self.assertEqual(recreate_tree_from_header(header), tree)

    def test_round_trip_all_bytes(self):
        rng = random.Random(42)
        data = bytes(rng.randint(0, 255) for _ in range(5000))
        tree = tree_for(data)
        header = flatten_tree_to_header(tree)
        self.assertEqual(recreate_tree_from_header(header), tree)

    def test_deep_tree(self):
        frequencies = {s: 2 ** s for s in range(40)}
        tree = build_encoding_tree(frequencies)
        codes = build_encoding_map(tree)
        self.assertEqual(max(len(code) for code in codes.values()), 39)
        self.assertEqual(recreate_tree_from_header(flatten_tree_to_header(tree)), tree)

    def test_structural_characters_as_symbols(self):
        tree = tree_for(b"((.)")
        header = flatten_tree_to_header(tree)
        self.assertEqual(header, "(.((.)..))")

        rebuilt = recreate_tree_from_header(header)
        self.assertEqual(rebuilt, tree)
        self.assertEqual(build_encoding_map(rebuilt), {ord('('): "0", ord(')'): "10", ord('.'): "11"})

    def test_manual_tree(self):
        tree = CodeTree()
        a = tree.add_leaf(ord('a'))
        b = tree.add_leaf(ord('b'))
        c = tree.add_leaf(ord('c'))
        tree.root = tree.add_internal(tree.add_internal(a, b), c)

        self.assertEqual(flatten_tree_to_header(tree), "((.a.b).c)")
        self.assertEqual(recreate_tree_from_header("((.a.b).c)"), tree)
        self.assertNotEqual(recreate_tree_from_header("(.c(.a.b))"), tree)

    def test_malformed_headers(self):
        for header in ["(", "(.a", "(.a.b", ".", "(.a.", ")", "()", "(.a)",
                       "(.a.b.c)", ".a.b", "x", "(.a.b))", "((.a.b)",
                       "(.a.a)", "((.a.b)(.c.a))"]:
            with self.subTest(header=header):
                with self.assertRaises(HeaderError):
                    recreate_tree_from_header(header)

    def test_nesting_limit(self):
        header = "(" * 3000 + ".a" + ".b)" * 3000
        with self.assertRaises(HeaderError):
            recreate_tree_from_header(header)

    def test_deepest_tree(self):
        tree = build_encoding_tree({s: 2 ** s for s in range(256)})
        codes = build_encoding_map(tree)
        self.assertEqual(max(len(code) for code in codes.values()), 255)
        self.assertEqual(recreate_tree_from_header(flatten_tree_to_header(tree)), tree)

    def test_non_byte_symbol(self):
        with self.assertRaises(HeaderError):
            recreate_tree_from_header("." + chr(300))

    def test_header_error_is_value_error(self):
        with self.assertRaises(ValueError):
            recreate_tree_from_header("(")


class TestEncodingMap(unittest.TestCase):
    def test_abc_codes(self):
        codes = build_encoding_map(tree_for(b"abc"))
        self.assertEqual(codes, {ord('c'): "0", ord('a'): "10", ord('b'): "11"})

    def test_single_leaf_code_is_empty(self):
        self.assertEqual(build_encoding_map(tree_for(b"aaaa")), {ord('a'): ""})

    def test_empty_tree(self):
        self.assertEqual(build_encoding_map(CodeTree()), {})

    def test_prefix_free(self):
        rng = random.Random(3)
        for _ in range(10):
            frequencies = {s: rng.randint(1, 1000) for s in rng.sample(range(256), rng.randint(2, 256))}
            codes = list(build_encoding_map(build_encoding_tree(frequencies)).values())
            self.assertEqual(len(codes), len(frequencies))

            for i, first in enumerate(codes):
                for second in codes[i + 1:]:
                    self.assertFalse(first.startswith(second) or second.startswith(first))

    def test_code_length_is_depth(self):
        tree = tree_for(b"mississippi river")
        codes = build_encoding_map(tree)
        for symbol, depth in tree.leaves():
            self.assertEqual(len(codes[symbol]), depth)


class TestBitFile(unittest.TestCase):
    def test_layout(self):
        data = bit_file("xy", 7, "101")
        self.assertEqual(data, b"\x02\x00\x00\x00xy\x07" + b"\x00" * 7 + b"\xa0\x03")

    def test_read_back(self):
        source = HuffmanInputFile(io.BytesIO(bit_file("xy", 7, "101")))
        self.assertEqual(source.read_header(), "xy")
        self.assertEqual(source.symbol_count, 7)
        self.assertEqual([source.read_bit() for _ in range(5)], [1, 0, 1, END_OF_STREAM, END_OF_STREAM])

    def test_full_bytes(self):
        bits = "1100101001110001"
        data = bit_file("", 0, bits)
        self.assertEqual(data[-1], 8)

        source = HuffmanInputFile(io.BytesIO(data))
        source.read_header()
        read = [source.read_bit() for _ in range(len(bits) + 1)]
        self.assertEqual(read, [int(b) for b in bits] + [END_OF_STREAM])

    def test_empty_payload(self):
        data = bit_file(".a", 4, "")
        self.assertEqual(data[-1], 0)

        source = HuffmanInputFile(io.BytesIO(data))
        self.assertEqual(source.read_header(), ".a")
        self.assertEqual(source.read_bit(), END_OF_STREAM)

    def test_header_all_byte_values(self):
        header = ''.join(chr(i) for i in range(256))
        source = HuffmanInputFile(io.BytesIO(bit_file(header, 0, "")))
        self.assertEqual(source.read_header(), header)

    def test_invalid_bit(self):
        out = HuffmanOutputFile(io.BytesIO())
        out.write_header("", 0)
        with self.assertRaises(ValueError):
            out.write_bit(2)

    def test_bits_before_header(self):
        with self.assertRaises(ValueError):
            HuffmanOutputFile(io.BytesIO()).write_bit(1)
        with self.assertRaises(ValueError):
            HuffmanInputFile(io.BytesIO(bit_file("", 0, ""))).read_bit()

    def test_header_twice(self):
        out = HuffmanOutputFile(io.BytesIO())
        out.write_header(".a", 1)
        with self.assertRaises(ValueError):
            out.write_header(".a", 1)

    def test_truncated_header(self):
        for data in [b"", b"\x05\x00", b"\x05\x00\x00\x00ab", b"\x00\x00\x00\x00\x01\x00"]:
            with self.subTest(data=data):
                with self.assertRaises(HeaderError):
                    HuffmanInputFile(io.BytesIO(data)).read_header()

    def test_missing_trailer(self):
        source = HuffmanInputFile(io.BytesIO(bit_file("", 0, "")[:-1]))
        source.read_header()
        with self.assertRaises(CorruptStreamError):
            source.read_bit()

    def test_invalid_trailer(self):
        data = bit_file("", 0, "1")[:-1] + b"\x09"
        source = HuffmanInputFile(io.BytesIO(data))
        source.read_header()
        with self.assertRaises(CorruptStreamError):
            source.read_bit()


class TestCompression(unittest.TestCase):
    def assertRoundTrip(self, data: bytes):
        self.assertEqual(decompress_bytes(compress_bytes(data)), data)

    def test_simple(self):
        self.assertRoundTrip(b"aaabbc")
        self.assertRoundTrip(b"The quick brown fox jumps over the lazy dog")

    def test_single_symbol(self):
        compressed = compress_bytes(b"aaaa")
        self.assertEqual(compressed, b"\x02\x00\x00\x00.a\x04" + b"\x00" * 7 + b"\x00")
        self.assertEqual(decompress_bytes(compressed), b"aaaa")

    def test_single_byte(self):
        self.assertRoundTrip(b"A")

    def test_empty(self):
        compressed = compress_bytes(b"")
        self.assertEqual(compressed, b"\x00" * 13)
        self.assertEqual(decompress_bytes(compressed), b"")

    def test_abc(self):
        compressed = compress_bytes(b"abc")
        expected = (b"\x0a\x00\x00\x00(.c(.a.b))\x03" + b"\x00" * 7 + b"\xb0\x05")
        self.assertEqual(compressed, expected)
        self.assertEqual(decompress_bytes(compressed), b"abc")

    def test_structural_bytes_in_data(self):
        self.assertRoundTrip(b"(((...)))(.)..((")
        self.assertRoundTrip(b"f(x) = (a.b) + (c.d)")

    def test_all_byte_values(self):
        self.assertRoundTrip(bytes(range(256)) * 10)

    def test_random_data(self):
        rng = random.Random(42)
        self.assertRoundTrip(bytes(rng.randint(0, 255) for _ in range(20000)))

    def test_large_data(self):
        data = b"Lorem ipsum dolor sit amet " * 5000
        compressed = compress_bytes(data)
        self.assertLess(len(compressed), len(data))
        self.assertEqual(decompress_bytes(compressed), data)

    def test_deterministic(self):
        data = b"abracadabra, abracadabra!"
        self.assertEqual(compress_bytes(data), compress_bytes(data))

    def test_stats(self):
        output = io.BytesIO()
        with HuffmanOutputFile(output) as bits:
            stats = compress(io.BytesIO(b"abc"), bits)

        self.assertIsInstance(stats, CompressionStats)
        self.assertEqual(stats.original_size, 3)
        self.assertEqual(stats.header_size, 10)
        self.assertEqual(stats.payload_bits, 5)
        self.assertEqual(stats.compressed_size, len(output.getvalue()))

        text = io.StringIO()
        stats.print_stats(file=text)
        self.assertIn("Payload:             5 bits", text.getvalue())

    def test_decompress_returns_count(self):
        compressed = compress_bytes(b"mississippi")
        output = io.BytesIO()
        count = decompress(HuffmanInputFile(io.BytesIO(compressed)), output)
        self.assertEqual(count, 11)


class TestCorruptStreams(unittest.TestCase):
    def test_ends_mid_code(self):
        output = io.BytesIO()
        with self.assertRaises(CorruptStreamError):
            decompress(HuffmanInputFile(io.BytesIO(bit_file("(.a(.b.c))", 3, "001"))), output)
        self.assertEqual(output.getvalue(), b"aa")

    def test_symbol_count_mismatch(self):
        compressed = bytearray(compress_bytes(b"aaabbc"))
        compressed[-1] = 8
        with self.assertRaises(CorruptStreamError):
            decompress_bytes(bytes(compressed))

    def test_payload_for_empty_tree(self):
        with self.assertRaises(CorruptStreamError):
            decompress_bytes(bit_file("", 0, "1"))
        with self.assertRaises(CorruptStreamError):
            decompress_bytes(bit_file("", 5, ""))

    def test_payload_for_single_leaf(self):
        with self.assertRaises(CorruptStreamError):
            decompress_bytes(bit_file(".a", 2, "00"))

    def test_single_leaf_without_symbols(self):
        with self.assertRaises(CorruptStreamError):
            decompress_bytes(bit_file(".a", 0, ""))

    def test_malformed_header(self):
        with self.assertRaises(HeaderError):
            decompress_bytes(bit_file("(.a.b", 2, "01"))

    def test_garbage(self):
        with self.assertRaises(HuffmanError):
            decompress_bytes(b"xyz")


class TestArchiveFormat(unittest.TestCase):
    def test_write_and_read_archive(self):
        entries = [
            ArchiveEntry.pack("test1.txt", b"x" * 100, compress_bytes(b"x" * 100)),
            ArchiveEntry.pack("тест2.txt", b"y" * 200, compress_bytes(b"y" * 200)),
        ]

        read_entries = unpack_archive(pack_archive(entries))

        self.assertEqual(read_entries, entries)
        self.assertEqual(read_entries[0].original_size, 100)
        self.assertEqual(decompress_bytes(read_entries[1].payload), b"y" * 200)

    def test_empty_archive(self):
        data = pack_archive([])
        self.assertEqual(len(data), 20)
        self.assertEqual(unpack_archive(data), [])

    def test_invalid_magic(self):
        data = bytearray(pack_archive([]))
        data[:4] = b"NOPE"
        with self.assertRaises(ValueError):
            unpack_archive(bytes(data))

    def test_unsupported_version(self):
        data = bytearray(pack_archive([]))
        data[4] = 9
        with self.assertRaises(ValueError):
            unpack_archive(bytes(data))

    def test_truncated_archive(self):
        entry = ArchiveEntry.pack("a.txt", b"hello", compress_bytes(b"hello"))
        data = pack_archive([entry])

        for cut in (10, 18, 30, 45, len(data) - 3):
            with self.subTest(cut=cut):
                with self.assertRaises(ValueError):
                    unpack_archive(data[:cut])

    def test_trailing_data(self):
        with self.assertRaises(ValueError):
            unpack_archive(pack_archive([]) + b"!")

    def test_integrity_check(self):
        entry = ArchiveEntry.pack("test.txt", b"Test data", b"")

        self.assertEqual(entry.crc32, checksum(b"Test data"))
        self.assertEqual(entry.compressed_size, 0)
        self.assertTrue(entry.matches(b"Test data"))
        self.assertFalse(entry.matches(b"Wrong data"))
        self.assertFalse(entry.matches(b"Test dat"))


class ArchiverTestCase(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.archiver = Archiver()
        self.quiet = redirect_stdout(io.StringIO())
        self.quiet.__enter__()

    def tearDown(self):
        self.quiet.__exit__(None, None, None)
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def path(self, name: str) -> str:
        return os.path.join(self.temp_dir, name)

    def write(self, name: str, data: bytes) -> str:
        with open(self.path(name), 'wb') as f:
            f.write(data)
        return self.path(name)

    def read(self, name: str) -> bytes:
        with open(self.path(name), 'rb') as f:
            return f.read()


class TestArchiver(ArchiverTestCase):
    def test_compress_decompress_path(self):
        original = self.write("test.txt", b"Hello World! " * 100)
        stats = self.archiver.compress_path(original, self.path("test.huf"))
        self.assertEqual(stats.compressed_size, os.path.getsize(self.path("test.huf")))

        count = self.archiver.decompress_path(self.path("test.huf"), self.path("out.txt"))
        self.assertEqual(count, 1300)
        self.assertEqual(self.read("out.txt"), b"Hello World! " * 100)

    def test_pack_file(self):
        entry = self.archiver.pack_file(self.write("test.txt", b"Hello World! " * 100))
        self.assertEqual(entry.name, "test.txt")
        self.assertEqual(entry.original_size, 1300)
        self.assertLess(entry.compressed_size, entry.original_size)
        self.assertEqual(decompress_bytes(entry.payload), b"Hello World! " * 100)

    def test_create_and_extract_archive(self):
        file1 = self.write("file1.txt", b"Content of file 1\n" * 50)
        file2 = self.write("file2.txt", b"")
        archive_path = self.path("test.hufa")
        extract_dir = self.path("extracted")

        count = self.archiver.create_archive([file1, file2, self.path("missing.txt")], archive_path)
        self.assertEqual(count, 2)
        self.assertTrue(os.path.isfile(archive_path))

        self.assertTrue(self.archiver.extract_archive(archive_path, extract_dir))
        self.assertEqual(self.read("extracted/file1.txt"), b"Content of file 1\n" * 50)
        self.assertEqual(self.read("extracted/file2.txt"), b"")

    def test_create_without_files(self):
        self.assertEqual(self.archiver.create_archive([self.path("missing.txt")], self.path("a.hufa")), 0)
        self.assertFalse(os.path.exists(self.path("a.hufa")))

    def test_add_files_to_archive(self):
        archive_path = self.path("test.hufa")
        self.archiver.create_archive([self.write("file1.txt", b"File 1 content\n" * 30)], archive_path)
        self.assertTrue(self.archiver.add_files(archive_path, [self.write("file2.txt", b"File 2 content\n" * 30)]))
        self.assertTrue(self.archiver.add_files(archive_path, [self.write("file1.txt", b"replaced")]))

        with open(archive_path, 'rb') as f:
            entries = read_archive(f)
        self.assertEqual(sorted(e.name for e in entries), ["file1.txt", "file2.txt"])

        extract_dir = self.path("extracted")
        self.assertTrue(self.archiver.extract_archive(archive_path, extract_dir))
        self.assertEqual(self.read("extracted/file1.txt"), b"replaced")

    def test_list_archive(self):
        archive_path = self.path("test.hufa")
        self.archiver.create_archive([self.write("file1.txt", b"abcabc")], archive_path)
        self.assertTrue(self.archiver.list_archive(archive_path))
        self.assertFalse(self.archiver.list_archive(self.path("nothing.hufa")))

    def test_crc_mismatch(self):
        entry = ArchiveEntry("a.txt", 5, checksum(b"world"), compress_bytes(b"hello"))
        self.assertFalse(self.archiver.unpack_entry(entry, self.temp_dir))
        self.assertFalse(os.path.exists(self.path("a.txt")))

    def test_corrupted_entry(self):
        entry = ArchiveEntry("a.txt", 5, 0, b"xyz")
        self.assertFalse(self.archiver.unpack_entry(entry, self.temp_dir))

    def test_missing_archive(self):
        self.assertFalse(self.archiver.extract_archive(self.path("nothing.hufa"), self.temp_dir))


class TestCommandLine(ArchiverTestCase):
    def test_compress_and_decompress(self):
        source = self.write("book.txt", b"to be or not to be, that is the question" * 20)
        self.assertEqual(main.main(['compress', source, self.path("book.huf"), '--stats']), 0)
        self.assertEqual(main.main(['decompress', self.path("book.huf"), self.path("copy.txt")]), 0)
        self.assertEqual(self.read("copy.txt"), self.read("book.txt"))

    def test_decompress_garbage(self):
        self.write("bad.huf", b"(((")
        with redirect_stderr(io.StringIO()):
            self.assertEqual(main.main(['decompress', self.path("bad.huf"), self.path("out")]), 1)

    def test_decompress_deeply_nested_header(self):
        self.write("deep.huf", bit_file("(" * 3000 + ".a" + ".b)" * 3000, 1, "0"))
        with redirect_stderr(io.StringIO()):
            self.assertEqual(main.main(['decompress', self.path("deep.huf"), self.path("out")]), 1)

    def test_missing_input(self):
        with redirect_stderr(io.StringIO()):
            self.assertEqual(main.main(['compress', self.path("nope"), self.path("out")]), 1)

    def test_archive_commands(self):
        archive_path = self.path("a.hufa")
        source = self.write("one.txt", b"one one one")
        self.assertEqual(main.main(['create', '-o', archive_path, source]), 0)
        self.assertEqual(main.main(['list', archive_path]), 0)
        self.assertEqual(main.main(['extract', archive_path, '-d', self.path("out")]), 0)
        self.assertEqual(self.read("out/one.txt"), b"one one one")


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    for case in (TestFrequencyTable, TestTreeBuilder, TestHeaderCodec, TestEncodingMap,
                 TestBitFile, TestCompression, TestCorruptStreams, TestArchiveFormat,
                 TestArchiver, TestCommandLine):
        suite.addTests(loader.loadTestsFromTestCase(case))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(run_tests())
