import io
import struct

import pytest

from pt2dump.io.pt2io.decoder import encode_record, SPECIAL_CHANNEL
from pt2dump.processing.logger import ProgressLogger


def overflow():
    return encode_record(0, SPECIAL_CHANNEL)


def marker(bits, time=0):
    return encode_record((time & ~0xF) | bits, SPECIAL_CHANNEL)


def photon(channel, time):
    return encode_record(time, channel)


def pack_records(records):
    return b"".join(struct.pack('<I', r) for r in records)


def build_header(routing_channels=4, records=0, meas_mode=2, ident=b"PicoHarp 300",
                 version=b"2.0", img_hdr_size=0, router_model=0, comment=b"synthetic"):
    txt = struct.pack('<16s6s18s12s18s2s256s', ident, version, b"PicoHarp Software",
                      b"2.3", b"19/10/26 10:00:00", b"\r\n", comment)
    ints = [1, 32, routing_channels, 1, 0, meas_mode, 0, 0, 0, 1000,
            0, 0, 0, 0, 0, 0, 0, 0]
    curves = [0] * 16
    params = [0.0] * 9
    binhdr = struct.pack('<18i16i9f4i20s', *ints, *curves, *params, 0, 0, 0, 0, b"")
    board = struct.pack('<16s8s6if2i24i', b"PicoHarp 300", b"2.0", 1001, 1,
                        0, 0, 0, 0, 0.004, router_model, 1 if router_model else 0,
                        *range(24))
    tttr = struct.pack('<9i', 0, 0, 0, 50000, 40000, 0, 0, records, img_hdr_size)
    return txt + binhdr + board + tttr + b"\x00" * (4 * img_hdr_size)


@pytest.fixture
def quiet_logger():
    return ProgressLogger(mode='quiet')


@pytest.fixture
def record_stream():
    def _make(records):
        return io.BytesIO(pack_records(records))
    return _make


@pytest.fixture
def make_pt2(tmp_path):
    """Writes a synthetic .pt2 file and returns its path."""
    def _make(records, record_count=None, name="test.pt2", trailing=b"", **header_kwargs):
        if record_count is None:
            record_count = len(records)
        path = tmp_path / name
        path.write_bytes(build_header(records=record_count, **header_kwargs)
                         + pack_records(records) + trailing)
        return path
    return _make
