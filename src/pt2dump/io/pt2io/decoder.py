import numpy as np
from enum import IntEnum
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

WRAPAROUND = 210698240
RESOLUTION = 4e-12  # seconds per tick (4 ps)
MEASMODE_T2 = 2
SPECIAL_CHANNEL = 0xF

TIME_MASK = 0x0FFFFFFF
MARKER_MASK = 0xF


class EventKind(IntEnum):
    CHANNEL = 0
    OVERFLOW = 1
    MARKER = 2
    INVALID = 3


event_dtype = np.dtype([
    ("timetag", np.uint64),
    ("time",    np.uint32),
    ("channel", np.uint8),
    ("kind",    np.uint8),
    ("markers", np.uint8),
])


# --- Single record path ---

def decode_record(value: int) -> Tuple[int, int]:
    """Split a raw 32-bit T2 record into (time, channel)."""
    return value & TIME_MASK, (value >> 28) & 0xF


def encode_record(time: int, channel: int) -> int:
    return ((channel & 0xF) << 28) | (time & TIME_MASK)


@dataclass(frozen=True)
class ChannelEvent:
    index: int
    record: int
    channel: int
    local_time: int
    global_time: int
    kind = EventKind.CHANNEL

    @property
    def seconds(self) -> float:
        return self.global_time * RESOLUTION


@dataclass(frozen=True)
class OverflowMarker:
    index: int
    record: int
    kind = EventKind.OVERFLOW


@dataclass(frozen=True)
class SyncMarker:
    index: int
    record: int
    marker_bits: int
    local_time: int
    global_time: int
    kind = EventKind.MARKER

    @property
    def seconds(self) -> float:
        return self.global_time * RESOLUTION


@dataclass(frozen=True)
class InvalidChannel:
    index: int
    record: int
    channel: int
    kind = EventKind.INVALID


DecodedEvent = Union[ChannelEvent, OverflowMarker, SyncMarker, InvalidChannel]


def classify(time: int, channel: int, routing_channels: int) -> Tuple[EventKind, int]:
    """
    Classify a decoded record.

    Returns the event kind and its payload: the marker bits for a sync marker,
    the channel number for channel and invalid-channel records, 0 for overflows.

    In a special record the low 4 bits of `time` carry the marker bits, so
    markers have a coarser time resolution than photon events and may appear
    slightly out of order with respect to them. They are not reordered.
    """
    if channel == SPECIAL_CHANNEL:
        markers = time & MARKER_MASK
        if markers == 0:
            return EventKind.OVERFLOW, 0
        return EventKind.MARKER, markers

    # strict comparison, RoutingChannels is treated as the highest valid channel
    if channel > routing_channels:
        return EventKind.INVALID, channel
    return EventKind.CHANNEL, channel


class OverflowTracker:
    def __init__(self, wraparound: int = WRAPAROUND):
        self.wraparound = wraparound
        self.offset = 0
        self.overflows = 0

    def on_overflow(self):
        self.offset += self.wraparound
        self.overflows += 1

    def global_time(self, local_time: int) -> int:
        return self.offset + local_time


# --- Vectorised path ---

def get_photons(events: np.ndarray):
    return events[events["kind"] == EventKind.CHANNEL]


def get_markers(events: np.ndarray, codes: Optional[Sequence[int]] = None):
    markers = events[events["kind"] == EventKind.MARKER]
    if codes is None:
        return markers
    return markers[np.isin(markers["markers"], codes)]


def decode_t2(records, routing_channels: int = 15):
    records = np.asarray(records, dtype=np.uint32)
    out = np.zeros(records.shape[0], dtype=event_dtype)

    out['time'] = records & TIME_MASK  # first 28 bits
    out['channel'] = ((records >> 28) & 0xF).astype(np.uint8)  # last 4 bits

    special = out['channel'] == SPECIAL_CHANNEL
    markers = (out['time'] & MARKER_MASK).astype(np.uint8)
    out['markers'] = np.where(special, markers, 0)

    kind = np.full(records.shape[0], EventKind.CHANNEL, dtype=np.uint8)
    kind[~special & (out['channel'] > routing_channels)] = EventKind.INVALID
    kind[special & (markers == 0)] = EventKind.OVERFLOW
    kind[special & (markers != 0)] = EventKind.MARKER
    out['kind'] = kind

    return out


class T2OverflowCorrector:
    def __init__(self, routing_channels: int, wraparound: int = WRAPAROUND):
        self.routing_channels = routing_channels
        self.wraparound = wraparound
        self.overflow_carry = 0  # Total offset from earlier chunks, in ticks

    def correct(self, records: np.ndarray) -> np.ndarray:
        decoded = decode_t2(records, self.routing_channels)

        is_overflow = decoded['kind'] == EventKind.OVERFLOW
        overflow_total = (np.cumsum(is_overflow, dtype=np.uint64) * np.uint64(self.wraparound)
                          + np.uint64(self.overflow_carry))

        timed = (decoded['kind'] == EventKind.CHANNEL) | (decoded['kind'] == EventKind.MARKER)
        decoded['timetag'] = np.where(timed, overflow_total + decoded['time'], 0)

        # Update carry for next chunk
        if len(overflow_total) > 0:
            self.overflow_carry = int(overflow_total[-1])

        return decoded
