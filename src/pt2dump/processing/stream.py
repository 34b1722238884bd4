# pt2dump/processing/stream.py

from enum import Enum
from typing import BinaryIO, Iterator, List, Optional

from pt2dump.io.pt2io.decoder import (
    WRAPAROUND, RESOLUTION, EventKind, DecodedEvent, OverflowTracker,
    ChannelEvent, OverflowMarker, SyncMarker, InvalidChannel,
    decode_record, classify,
)
from pt2dump.processing.logger import ProgressLogger

RECORD_SIZE = 4


class RunStatus(Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    TRUNCATED = "truncated"


class StreamConfig:
    def __init__(
        self,
        routing_channels: int,
        record_count: int,
        wraparound: int = WRAPAROUND,
        resolution: float = RESOLUTION,
    ):
        if record_count < 0:
            raise ValueError(f"record_count must be >= 0, got {record_count}")
        self.routing_channels = routing_channels
        self.record_count = record_count
        self.wraparound = wraparound
        self.resolution = resolution

    def to_dict(self):
        return {
            "routing_channels": self.routing_channels,
            "record_count": self.record_count,
            "wraparound": self.wraparound,
            "resolution": self.resolution,
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            routing_channels=d["routing_channels"],
            record_count=d["record_count"],
            wraparound=d.get("wraparound", WRAPAROUND),
            resolution=d.get("resolution", RESOLUTION),
        )

    @classmethod
    def from_header(cls, header):
        return cls(
            routing_channels=header.routing_channels,
            record_count=max(header.record_count, 0),
        )

    def __repr__(self):
        return f"StreamConfig({self.to_dict()})"


class RunStatistics:
    def __init__(self, resolution: float = RESOLUTION):
        self.resolution = resolution
        self.count_channel0 = 0
        self.count_channel1plus = 0
        self.last_global_time = 0

    def update(self, event: ChannelEvent):
        if event.channel == 0:
            self.count_channel0 += 1
        else:
            self.count_channel1plus += 1
        self.last_global_time = event.global_time

    @property
    def measurement_time(self) -> float:
        """Seconds up to the last channel event."""
        return self.last_global_time * self.resolution

    def _rate_khz(self, count: int) -> Optional[float]:
        if self.measurement_time == 0:
            return None
        return count / (self.measurement_time * 1e3)

    @property
    def count_rate0_khz(self) -> Optional[float]:
        return self._rate_khz(self.count_channel0)

    @property
    def count_rate1_khz(self) -> Optional[float]:
        return self._rate_khz(self.count_channel1plus)

    def to_dict(self):
        return {
            "count_channel0": self.count_channel0,
            "count_channel1plus": self.count_channel1plus,
            "last_global_time": self.last_global_time,
            "measurement_time": self.measurement_time,
            "count_rate0_khz": self.count_rate0_khz,
            "count_rate1_khz": self.count_rate1_khz,
        }

    def __repr__(self):
        return (f"RunStatistics(cnt_0={self.count_channel0}, cnt_1={self.count_channel1plus}, "
                f"last_tag={self.last_global_time})")


class RunResult:
    def __init__(self, events: List[DecodedEvent], statistics: RunStatistics,
                 status: RunStatus, records_read: int):
        self.events = events
        self.statistics = statistics
        self.status = status
        self.records_read = records_read

    @property
    def truncated(self) -> bool:
        return self.status is RunStatus.TRUNCATED


class StreamProcessor:
    """
    Sequential decoder for the record stream of one T2 file.

    Reads `config.record_count` little-endian 32-bit records from a binary
    source, unwraps the overflow counter and classifies each record. The
    overflow offset and the statistics belong to this instance and live for
    exactly one run; a finished processor cannot be restarted.

    Parameters
    ----------
    config : StreamConfig
        Routing channel bound and number of records to read.
    logger : ProgressLogger, optional
        Receives progress and warnings. Defaults to a print logger.
    progress_every : int
        Log a progress line every this many records, 0 disables it.
    """

    def __init__(self, config: StreamConfig, logger: Optional[ProgressLogger] = None,
                 progress_every: int = 0):
        if not isinstance(config, StreamConfig):
            raise TypeError("StreamProcessor requires a StreamConfig object")
        self.config = config
        self.logger = logger if logger is not None else ProgressLogger(mode='print')
        self.progress_every = progress_every

        self.tracker = OverflowTracker(wraparound=config.wraparound)
        self.statistics = RunStatistics(resolution=config.resolution)
        self.status = RunStatus.RUNNING
        self.records_read = 0
        self._started = False

    @property
    def truncated(self) -> bool:
        return self.status is RunStatus.TRUNCATED

    def _decode(self, index: int, record: int) -> DecodedEvent:
        time, channel = decode_record(record)
        kind, payload = classify(time, channel, self.config.routing_channels)

        if kind is EventKind.OVERFLOW:
            self.tracker.on_overflow()
            return OverflowMarker(index, record)

        if kind is EventKind.MARKER:
            return SyncMarker(index, record, payload, time, self.tracker.global_time(time))

        if kind is EventKind.INVALID:
            # should not occur with correctly working hardware
            self.logger.warn(f"Illegal Chan: #{index} {channel}")
            return InvalidChannel(index, record, channel)

        event = ChannelEvent(index, record, channel, time, self.tracker.global_time(time))
        self.statistics.update(event)
        return event

    def iter_events(self, source: BinaryIO) -> Iterator[DecodedEvent]:
        if self._started:
            raise RuntimeError(f"StreamProcessor already used (status: {self.status.value})")
        self._started = True

        for i in range(self.config.record_count):
            chunk = source.read(RECORD_SIZE)
            if len(chunk) != RECORD_SIZE:
                self.status = RunStatus.TRUNCATED
                self.logger.warn(f"Unexpected end of input file after {i} of "
                                 f"{self.config.record_count} records!")
                return

            self.records_read += 1
            yield self._decode(i, int.from_bytes(chunk, 'little'))

            if self.progress_every and self.records_read % self.progress_every == 0:
                self.logger.log(f"Processed {self.records_read}/{self.config.record_count} records")

        self.status = RunStatus.COMPLETED

    def run(self, source: BinaryIO) -> RunResult:
        events = list(self.iter_events(source))
        return RunResult(events, self.statistics, self.status, self.records_read)
