from __future__ import annotations

import struct
from typing import BinaryIO

import numpy as np

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")
_F64 = struct.Struct("<d")


class ForestFormatError(ValueError):
    """Raised when a serialized forest is truncated or malformed."""


def _read_exact(source: BinaryIO, size: int) -> bytes:
    data = source.read(size)
    if len(data) != size:
        raise ForestFormatError(
            f"Unexpected end of stream: wanted {size} bytes, got {len(data)}"
        )
    return data


def write_u8(sink: BinaryIO, value: int) -> None:
    sink.write(_U8.pack(value))


def write_u32(sink: BinaryIO, value: int) -> None:
    sink.write(_U32.pack(value))


def write_f64(sink: BinaryIO, value: float) -> None:
    sink.write(_F64.pack(value))


def write_u32_array(sink: BinaryIO, values: np.ndarray) -> None:
    sink.write(np.asarray(values, dtype="<u4").tobytes())


def write_f64_array(sink: BinaryIO, values: np.ndarray) -> None:
    sink.write(np.asarray(values, dtype="<f8").tobytes())


def read_u8(source: BinaryIO) -> int:
    return _U8.unpack(_read_exact(source, _U8.size))[0]


def read_u32(source: BinaryIO) -> int:
    return _U32.unpack(_read_exact(source, _U32.size))[0]


def read_f64(source: BinaryIO) -> float:
    return _F64.unpack(_read_exact(source, _F64.size))[0]


def read_u32_array(source: BinaryIO, count: int) -> np.ndarray:
    raw = _read_exact(source, 4 * count)
    return np.frombuffer(raw, dtype="<u4").astype(np.int64)


def read_f64_array(source: BinaryIO, count: int) -> np.ndarray:
    raw = _read_exact(source, 8 * count)
    return np.frombuffer(raw, dtype="<f8").astype(np.float64)
