import numpy as np
import pytest

from pt2dump.io.pt2io.decoder import (
    WRAPAROUND, EventKind, OverflowTracker, T2OverflowCorrector,
    decode_record, encode_record, classify, decode_t2, get_photons, get_markers,
)
from conftest import overflow, marker, photon


@pytest.mark.parametrize("time", [0, 1, 0xF, 123456, 210698239, 2**28 - 1])
@pytest.mark.parametrize("channel", [0, 1, 4, 14, 15])
def test_decode_record_inverts_encode(time, channel):
    assert decode_record(encode_record(time, channel)) == (time, channel)


def test_decode_record_bit_layout():
    assert decode_record(0xF0000000) == (0, 15)
    assert decode_record(0x0FFFFFFF) == (0x0FFFFFFF, 0)
    assert decode_record(0x1000002A) == (42, 1)


@pytest.mark.parametrize("upper", [0, 1, 0xABCDE, 0xFFFFFF])
def test_special_record_with_zero_marker_bits_is_overflow(upper):
    kind, payload = classify(upper << 4, 0xF, routing_channels=4)
    assert kind is EventKind.OVERFLOW
    assert payload == 0


@pytest.mark.parametrize("bits", range(1, 16))
def test_special_record_with_marker_bits_is_sync_marker(bits):
    kind, payload = classify((0x1234 << 4) | bits, 0xF, routing_channels=4)
    assert kind is EventKind.MARKER
    assert payload == bits


def test_channel_above_routing_channels_is_invalid():
    assert classify(42, 5, routing_channels=2) == (EventKind.INVALID, 5)


def test_routing_channels_boundary_is_inclusive():
    assert classify(42, 2, routing_channels=2) == (EventKind.CHANNEL, 2)
    assert classify(42, 3, routing_channels=2) == (EventKind.INVALID, 3)


def test_special_channel_is_never_invalid():
    kind, _ = classify(3, 0xF, routing_channels=0)
    assert kind is EventKind.MARKER


def test_overflow_tracker_accumulates():
    tracker = OverflowTracker()
    assert tracker.global_time(100) == 100
    for _ in range(7):
        tracker.on_overflow()
    assert tracker.offset == 7 * WRAPAROUND
    assert tracker.overflows == 7
    assert tracker.global_time(100) == 7 * WRAPAROUND + 100


def test_decode_t2_fields():
    raw = np.array([photon(1, 500), overflow(), marker(4, time=0x100), photon(9, 7)],
                   dtype=np.uint32)
    decoded = decode_t2(raw, routing_channels=4)

    assert list(decoded['channel']) == [1, 15, 15, 9]
    assert list(decoded['time']) == [500, 0, 0x104, 7]
    assert list(decoded['markers']) == [0, 0, 4, 0]
    assert list(decoded['kind']) == [EventKind.CHANNEL, EventKind.OVERFLOW,
                                     EventKind.MARKER, EventKind.INVALID]


def test_corrector_unwraps_overflows():
    raw = np.array([overflow(), overflow(), photon(0, 100)], dtype=np.uint32)
    corrected = T2OverflowCorrector(routing_channels=4).correct(raw)
    assert corrected['timetag'][2] == 2 * WRAPAROUND + 100 == 421396580
    # overflow records carry no timestamp
    assert corrected['timetag'][0] == 0


def test_corrector_carries_offset_across_chunks():
    records = [photon(0, 10), overflow(), marker(2, 0x40), photon(1, 20),
               overflow(), overflow(), photon(0, 30), photon(7, 1)]
    raw = np.array(records, dtype=np.uint32)

    single = T2OverflowCorrector(routing_channels=4).correct(raw)

    corrector = T2OverflowCorrector(routing_channels=4)
    chunked = np.concatenate([corrector.correct(raw[:3]),
                              corrector.correct(raw[3:5]),
                              corrector.correct(raw[5:])])

    np.testing.assert_array_equal(single, chunked)
    assert corrector.overflow_carry == 3 * WRAPAROUND
    assert single['timetag'][6] == 3 * WRAPAROUND + 30
    assert single['timetag'][7] == 0  # channel 7 > 4


def test_corrector_empty_chunk_keeps_carry():
    corrector = T2OverflowCorrector(routing_channels=4)
    corrector.correct(np.array([overflow()], dtype=np.uint32))
    out = corrector.correct(np.empty(0, dtype=np.uint32))
    assert out.shape == (0,)
    assert corrector.overflow_carry == WRAPAROUND


def test_photon_and_marker_filters():
    raw = np.array([photon(0, 1), marker(1), marker(4), overflow(), photon(2, 5)],
                   dtype=np.uint32)
    events = T2OverflowCorrector(routing_channels=4).correct(raw)

    assert len(get_photons(events)) == 2
    assert len(get_markers(events)) == 2
    assert list(get_markers(events, codes=[4])['markers']) == [4]
