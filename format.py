"""
Контейнер архива: именованные битовые файлы Хаффмана с контрольными суммами.

    <4sB11x  magic, версия
    <I       число записей
    запись:  <HQIQ (длина имени, исходный размер, crc32, длина данных),
             имя в utf-8, битовый файл Хаффмана
"""

import io
import struct
import zlib
from dataclasses import dataclass
from typing import BinaryIO, List


ARCHIVE_MAGIC = b'HUFA'
ARCHIVE_VERSION = 1

ARCHIVE_HEADER = struct.Struct('<4sB11x')
ENTRY_COUNT = struct.Struct('<I')
ENTRY_RECORD = struct.Struct('<HQIQ')


def checksum(data: bytes) -> int:
    return zlib.crc32(data) & 0xffffffff


@dataclass
class ArchiveEntry:
    name: str
    original_size: int
    crc32: int
    payload: bytes

    @classmethod
    def pack(cls, name: str, data: bytes, payload: bytes) -> 'ArchiveEntry':
        return cls(name, len(data), checksum(data), payload)

    @property
    def compressed_size(self) -> int:
        return len(self.payload)

    def matches(self, data: bytes) -> bool:
        return len(data) == self.original_size and checksum(data) == self.crc32


def write_archive(stream: BinaryIO, entries: List[ArchiveEntry]):
    stream.write(ARCHIVE_HEADER.pack(ARCHIVE_MAGIC, ARCHIVE_VERSION))
    stream.write(ENTRY_COUNT.pack(len(entries)))

    for entry in entries:
        name = entry.name.encode('utf-8')
        stream.write(ENTRY_RECORD.pack(len(name), entry.original_size,
                                       entry.crc32, len(entry.payload)))
        stream.write(name)
        stream.write(entry.payload)


def read_archive(stream: BinaryIO) -> List[ArchiveEntry]:
    magic, version = ARCHIVE_HEADER.unpack(_take(stream, ARCHIVE_HEADER.size, "archive header"))
    if magic != ARCHIVE_MAGIC:
        raise ValueError("Not a Huffman archive")
    if version != ARCHIVE_VERSION:
        raise ValueError(f"Unsupported archive version: {version}")

    count, = ENTRY_COUNT.unpack(_take(stream, ENTRY_COUNT.size, "entry count"))
    entries = [_read_entry(stream, index) for index in range(count)]

    if stream.read(1):
        raise ValueError("Unexpected data after the last archive entry")
    return entries


def pack_archive(entries: List[ArchiveEntry]) -> bytes:
    buffer = io.BytesIO()
    write_archive(buffer, entries)
    return buffer.getvalue()


def unpack_archive(data: bytes) -> List[ArchiveEntry]:
    return read_archive(io.BytesIO(data))


def _read_entry(stream: BinaryIO, index: int) -> ArchiveEntry:
    name_len, original_size, crc32, payload_len = ENTRY_RECORD.unpack(
        _take(stream, ENTRY_RECORD.size, f"record of entry {index}"))

    name = _take(stream, name_len, f"name of entry {index}").decode('utf-8')
    payload = _take(stream, payload_len, f"data of {name}")
    return ArchiveEntry(name, original_size, crc32, payload)


def _take(stream: BinaryIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise ValueError(f"Truncated archive: cannot read {what}")
    return data
