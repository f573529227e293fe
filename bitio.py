"""
Побитовый вывод/ввод поверх байтового потока.

Формат файла:
    <I длина заголовка, заголовок (latin-1)
    <Q количество символов исходных данных
    биты полезной нагрузки, старший бит байта первым, последний байт дополнен нулями
    1 байт: число значащих битов в последнем байте (0, если битов нет)
"""

import struct
from typing import BinaryIO, Optional

from errors import CorruptStreamError, HeaderError


END_OF_STREAM = -1
HEADER_ENCODING = 'latin-1'
READ_CHUNK = 64 * 1024


class HuffmanOutputFile:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.header_written = False
        self.bits_written = 0
        self._byte = 0
        self._nbits = 0
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()

    def write_header(self, header: str, symbol_count: int = 0):
        if self.header_written:
            raise ValueError("Header already written")

        header_bytes = header.encode(HEADER_ENCODING)
        self.stream.write(struct.pack('<I', len(header_bytes)))
        self.stream.write(header_bytes)
        self.stream.write(struct.pack('<Q', symbol_count))
        self.header_written = True

    def write_bit(self, bit: int):
        if not self.header_written:
            raise ValueError("Header must be written before payload bits")
        if bit not in (0, 1):
            raise ValueError(f"Invalid bit value: {bit!r}")

        self._byte = (self._byte << 1) | bit
        self._nbits += 1
        self.bits_written += 1

        if self._nbits == 8:
            self.stream.write(struct.pack('B', self._byte))
            self._byte = 0
            self._nbits = 0

    def write_bits(self, code: str):
        for bit in code:
            self.write_bit(int(bit))

    def close(self):
        if self._closed:
            return
        if not self.header_written:
            raise ValueError("Closing bit file without a header")

        if self._nbits > 0:
            last_bits = self._nbits
            self.stream.write(struct.pack('B', self._byte << (8 - self._nbits)))
        elif self.bits_written > 0:
            last_bits = 8
        else:
            last_bits = 0

        self.stream.write(struct.pack('B', last_bits))
        self._byte = 0
        self._nbits = 0
        self._closed = True


class HuffmanInputFile:
    def __init__(self, stream: BinaryIO):
        self.stream = stream
        self.header: Optional[str] = None
        self.symbol_count = 0

        self._buffer = b''
        self._pos = 0
        self._eof = False

        self._byte = 0
        self._bit_index = 0
        self._valid_bits = 0
        self._trailer_read = False

    def read_header(self) -> str:
        if self.header is not None:
            raise ValueError("Header already read")

        header_len = struct.unpack('<I', self._read_exact(4, "header length"))[0]
        raw = self._read_exact(header_len, "header")
        self.symbol_count = struct.unpack('<Q', self._read_exact(8, "symbol count"))[0]

        self.header = raw.decode(HEADER_ENCODING)
        return self.header

    def read_bit(self) -> int:
        if self.header is None:
            raise ValueError("Header must be read before payload bits")

        if self._bit_index >= self._valid_bits:
            if self._trailer_read or not self._load_byte():
                return END_OF_STREAM

        bit = (self._byte >> (7 - self._bit_index)) & 1
        self._bit_index += 1
        return bit

    def _load_byte(self) -> bool:
        # три байта впереди: данные, следующий байт данных и трейлер
        self._fill(3)
        available = len(self._buffer) - self._pos

        if available == 0:
            raise CorruptStreamError("Bitstream trailer is missing")

        if available == 1:
            trailer = self._buffer[self._pos]
            self._pos += 1
            self._trailer_read = True
            if trailer != 0:
                raise CorruptStreamError(f"Trailer claims {trailer} bits but payload is empty")
            return False

        self._byte = self._buffer[self._pos]
        self._pos += 1
        self._bit_index = 0
        self._valid_bits = 8

        if available == 2:
            self._valid_bits = self._buffer[self._pos]
            self._pos += 1
            self._trailer_read = True
            if not 1 <= self._valid_bits <= 8:
                raise CorruptStreamError(f"Invalid bitstream trailer: {self._valid_bits}")

        return True

    def _fill(self, needed: int):
        while not self._eof and len(self._buffer) - self._pos < needed:
            chunk = self.stream.read(READ_CHUNK)
            if not chunk:
                self._eof = True
                break
            self._buffer = self._buffer[self._pos:] + chunk
            self._pos = 0

    def _read_exact(self, size: int, what: str) -> bytes:
        self._fill(size)
        data = self._buffer[self._pos:self._pos + size]
        if len(data) < size:
            raise HeaderError(f"Header too short: cannot read {what}")
        self._pos += size
        return data
