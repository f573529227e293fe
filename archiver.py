"""
Сжатие отдельных файлов и работа с архивами.
"""

import io
import os
from pathlib import Path
from typing import BinaryIO, List, Optional
from bitio import HuffmanInputFile, HuffmanOutputFile
from codec import CompressionStats, compress, decompress
from errors import HuffmanError
from format import ArchiveEntry, read_archive, write_archive


class Archiver:
    def compress_stream(self, source: BinaryIO, target: BinaryIO) -> CompressionStats:
        with HuffmanOutputFile(target) as bits:
            return compress(source, bits)

    def decompress_stream(self, source: BinaryIO, target: BinaryIO) -> int:
        return decompress(HuffmanInputFile(source), target)

    def compress_path(self, input_path: str, output_path: str) -> CompressionStats:
        with open(input_path, 'rb') as src, open(output_path, 'wb') as dst:
            return self.compress_stream(src, dst)

    def decompress_path(self, input_path: str, output_path: str) -> int:
        with open(input_path, 'rb') as src, open(output_path, 'wb') as dst:
            return self.decompress_stream(src, dst)

    def pack_file(self, path: str) -> ArchiveEntry:
        data = Path(path).read_bytes()
        payload = io.BytesIO()
        self.compress_stream(io.BytesIO(data), payload)
        return ArchiveEntry.pack(Path(path).name, data, payload.getvalue())

    def unpack_entry(self, entry: ArchiveEntry, output_dir: str = '.') -> bool:
        """Распаковывает запись; файл пишется только после проверки размера и CRC32."""
        restored = io.BytesIO()
        try:
            self.decompress_stream(io.BytesIO(entry.payload), restored)
        except HuffmanError as e:
            print(f"  {entry.name}: corrupted data ({e})")
            return False

        data = restored.getvalue()
        if not entry.matches(data):
            print(f"  {entry.name}: size or CRC32 mismatch")
            return False

        os.makedirs(output_dir, exist_ok=True)
        Path(output_dir, entry.name).write_bytes(data)
        print(f"  {entry.name}: {len(data)} bytes")
        return True

    def create_archive(self, file_paths: List[str], archive_path: str) -> int:
        entries = self._pack_files(file_paths)
        if not entries:
            print("Nothing to archive")
            return 0

        self._save(archive_path, entries)

        packed = sum(e.compressed_size for e in entries)
        original = sum(e.original_size for e in entries)
        print(f"{archive_path}: {len(entries)} files, {original} -> {packed} bytes "
              f"({_percent(packed, original):.1f}%)")
        return len(entries)

    def extract_archive(self, archive_path: str, output_dir: str = '.') -> bool:
        entries = self._load(archive_path)
        if entries is None:
            return False

        print(f"{archive_path}: extracting {len(entries)} files to {output_dir}")
        failed = [e.name for e in entries if not self.unpack_entry(e, output_dir)]

        if failed:
            print(f"Failed: {', '.join(failed)}")
        return not failed

    def list_archive(self, archive_path: str) -> bool:
        entries = self._load(archive_path)
        if entries is None:
            return False

        row = "{:<36} {:>12} {:>12} {:>7} {:>10}"
        print(row.format("Name", "Size", "Packed", "Ratio", "CRC32"))
        for e in entries:
            print(row.format(e.name, e.original_size, e.compressed_size,
                             f"{_percent(e.compressed_size, e.original_size):.1f}%",
                             f"{e.crc32:08x}"))

        packed = sum(e.compressed_size for e in entries)
        original = sum(e.original_size for e in entries)
        print(row.format(f"{len(entries)} files", original, packed,
                         f"{_percent(packed, original):.1f}%", ""))
        return True

    def add_files(self, archive_path: str, file_paths: List[str]) -> bool:
        entries = self._load(archive_path)
        if entries is None:
            return False

        added = self._pack_files(file_paths)
        replaced = {e.name for e in added}
        entries = [e for e in entries if e.name not in replaced] + added

        self._save(archive_path, entries)
        print(f"{archive_path}: {len(added)} added, {len(entries)} files total")
        return True

    def _pack_files(self, file_paths: List[str]) -> List[ArchiveEntry]:
        entries = []
        for path in file_paths:
            if not os.path.isfile(path):
                print(f"  {path}: not found, skipped")
                continue

            entry = self.pack_file(path)
            entries.append(entry)
            print(f"  {entry.name}: {entry.original_size} -> {entry.compressed_size} bytes "
                  f"({_percent(entry.compressed_size, entry.original_size):.1f}%)")
        return entries

    def _load(self, archive_path: str) -> Optional[List[ArchiveEntry]]:
        try:
            with open(archive_path, 'rb') as f:
                return read_archive(f)
        except FileNotFoundError:
            print(f"{archive_path}: archive not found")
        except ValueError as e:
            print(f"{archive_path}: {e}")
        return None

    def _save(self, archive_path: str, entries: List[ArchiveEntry]):
        with open(archive_path, 'wb') as f:
            write_archive(f, entries)


def _percent(part: int, whole: int) -> float:
    return part / whole * 100 if whole > 0 else 0
