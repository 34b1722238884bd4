from .pt2io.reader import PT2Reader
from .pt2io.decoder import (
    WRAPAROUND, RESOLUTION, EventKind, T2OverflowCorrector,
    ChannelEvent, OverflowMarker, SyncMarker, InvalidChannel,
)
from pt2dump.processing.logger import ProgressLogger
from pt2dump.processing.stream import StreamConfig, StreamProcessor, RunStatistics

import numpy as np
import xarray as xr
import json
from typing import Iterable, Optional

SEPARATOR = "---------------------"


def format_pt2_header(header_tags):
    """
    Generates the text dump of a PT2 header, one `Name : value` line per field.
    The router block is only written when a router is fitted.
    """
    t = header_tags
    lines = [
        f"Ident            : {t['Ident']}",
        f"Format Version   : {t['FormatVersion']}",
        f"Creator Name     : {t['CreatorName']}",
        f"Creator Version  : {t['CreatorVersion']}",
        f"Time of Creation : {t['FileTime']}",
        f"File Comment     : {t['CommentField']}",
        f"No of Curves     : {t['Curves']}",
        f"Bits per Record  : {t['BitsPerRecord']}",
        f"RoutingChannels  : {t['RoutingChannels']}",
        f"No of Boards     : {t['NumberOfBoards']}",
        f"Active Curve     : {t['ActiveCurve']}",
        f"Measurement Mode : {t['MeasMode']}",
        f"Sub-Mode         : {t['SubMode']}",
        f"Range No         : {t['RangeNo']}",
        f"Offset           : {t['Offset']}",
        f"AcquisitionTime  : {t['Tacq']}",
        f"Stop at          : {t['StopAt']}",
        f"Stop on Ovfl.    : {t['StopOnOvfl']}",
        f"Restart          : {t['Restart']}",
        f"DispLinLog       : {t['DispLinLog']}",
        f"DispTimeAxisFrom : {t['DispTimeFrom']}",
        f"DispTimeAxisTo   : {t['DispTimeTo']}",
        f"DispCountAxisFrom: {t['DispCountsFrom']}",
        f"DispCountAxisTo  : {t['DispCountsTo']}",
        SEPARATOR,
        f" HardwareIdent   : {t['HardwareIdent']}",
        f" HardwareVersion : {t['HardwareVersion']}",
        f" HardwareSerial  : {t['HardwareSerial']}",
        f" SyncDivider     : {t['SyncDivider']}",
        f" CFDZeroCross0   : {t['CFDZeroCross0']}",
        f" CFDLevel0       : {t['CFDLevel0']}",
        f" CFDZeroCross1   : {t['CFDZeroCross1']}",
        f" CFDLevel1       : {t['CFDLevel1']}",
        f" Resolution      : {t['Resolution']:f}",
    ]

    if t['RouterModelCode'] > 0:  # otherwise this information is meaningless
        lines.append(f" RouterModelCode       : {t['RouterModelCode']}")
        lines.append(f" RouterEnabled         : {t['RouterEnabled']}")
        for chan in range(1, 5):
            for field in ("InputType", "InputLevel", "InputEdge",
                          "CFDPresent", "CFDLevel", "CFDZeroCross"):
                name = f"RtChan{chan}_{field}"
                lines.append(f" {name:<22}: {t[name]}")

    lines += [
        SEPARATOR,
        f"ExtDevices      : {t['ExtDevices']}",
        f"CntRate0        : {t['CntRate0']}",
        f"CntRate1        : {t['CntRate1']}",
        f"StopAfter       : {t['StopAfter']}",
        f"StopReason      : {t['StopReason']}",
        f"Records         : {t['Records']}",
        f"ImgHdrSize      : {t['ImgHdrSize']}",
    ]
    return "\n".join(lines)


def format_event(event) -> str:
    prefix = f"{event.index:7d} {event.record:08x} "
    match event:
        case OverflowMarker():
            return prefix + " ofl"
        case SyncMarker():
            return (prefix + f"MA{event.marker_bits:d} {event.local_time:12d} "
                    f"{event.global_time:12d} {event.seconds:14.12f}")
        case InvalidChannel():
            return prefix + " illegal chan."
        case ChannelEvent():
            return (prefix + f"  {event.channel:d} {event.local_time:12d} "
                    f"{event.global_time:12d} {event.seconds:14.12f}")
        case _:
            raise TypeError(f"Unknown event type: {type(event).__name__}")


def format_statistics(statistics: RunStatistics) -> str:
    lines = [
        "Statistics obtained from the data:",
        f"last tag= {statistics.last_global_time}",
        f"cnt_0={statistics.count_channel0} cnt_1={statistics.count_channel1plus}",
    ]
    if statistics.count_rate0_khz is None:
        lines.append(f"measurement time= {statistics.measurement_time:.4f}s "
                     "countrate_a = n/a, countrate_b = n/a")
    else:
        lines.append(f"measurement time= {statistics.measurement_time:.4f}s "
                     f"countrate_a = {statistics.count_rate0_khz:.0f} kHz, "
                     f"countrate_b = {statistics.count_rate1_khz:.0f} kHz")
    return "\n".join(lines)


def write_ascii_dump(path, events: Iterable, header_tags=None) -> int:
    """
    Writes the header text and one line per event, as the events arrive.

    `events` may be a lazy iterator, nothing is buffered. Returns the number
    of event lines written.
    """
    written = 0
    with open(path, 'w') as out:
        if header_tags is not None:
            out.write(format_pt2_header(header_tags) + "\n")
        for event in events:
            out.write(format_event(event) + "\n")
            written += 1
    return written


def read_pt2_file(path, header=True, logger: Optional[ProgressLogger] = None) -> dict:
    """
    Reads a PT2 file header and creates a dictionary of instrument constants.

    Raises HeaderError when the file is not a PicoHarp 300 T2 file of
    format version 2.0.
    """
    if logger is None:
        logger = ProgressLogger(mode='print')

    logger.log(f"Reading PT2 file: {path}")
    reader = PT2Reader(path)
    header_tags = reader.header.tags

    constants = {
        "resolution": RESOLUTION,
        # board resolution is stored in ns
        "board_resolution": header_tags["Resolution"] * 1e-9,
        "wrap": WRAPAROUND,
        "routing_channels": header_tags["RoutingChannels"],
        "records": reader.records,
    }

    if header:
        logger.log(format_pt2_header(header_tags))

    return {
        "reader": reader,
        "header": header_tags,
        "constants": constants
    }


def process_pt2_file(path, logger: Optional[ProgressLogger] = None, progress_every: int = 0) -> dict:
    """Reads the header and runs the record-by-record decoder over the file."""
    if logger is None:
        logger = ProgressLogger(mode='print')

    pt2_data = read_pt2_file(path, header=False, logger=logger)
    reader = pt2_data["reader"]
    config = StreamConfig.from_header(reader.header)

    logger.log("processing..")
    processor = StreamProcessor(config, logger=logger, progress_every=progress_every)
    with reader.open_records() as f:
        result = processor.run(f)
    logger.log(f"Decoded {result.records_read} records ({result.status.value}).")

    pt2_data["result"] = result
    return pt2_data


def dump_pt2_records(pt2_data: dict, outfile, header: bool = True,
                     logger: Optional[ProgressLogger] = None,
                     progress_every: int = 0) -> StreamProcessor:
    """
    Streams the records of an opened PT2 file into an ASCII dump.

    Each record is written as soon as it is decoded, so memory use does not
    grow with the file. Statistics and the final status are read from the
    returned processor.
    """
    if logger is None:
        logger = ProgressLogger(mode='print')

    reader = pt2_data["reader"]
    processor = StreamProcessor(StreamConfig.from_header(reader.header),
                                logger=logger, progress_every=progress_every)

    logger.log("processing..")
    with reader.open_records() as f:
        write_ascii_dump(outfile, processor.iter_events(f),
                         header_tags=pt2_data["header"] if header else None)
    logger.log(f"Decoded {processor.records_read} records ({processor.status.value}).")
    return processor


def decode_pt2_file(reader: PT2Reader, chunk_size: int = 1_000_000) -> np.ndarray:
    """Vectorised decode of the whole record stream, one chunk at a time."""
    corrector = T2OverflowCorrector(routing_channels=reader.header.routing_channels)
    chunks = [corrector.correct(chunk) for chunk in reader.iter_chunks(chunk_size=chunk_size)]
    if not chunks:
        return corrector.correct(np.empty(0, dtype=np.uint32))
    return np.concatenate(chunks)


def events_to_dataset(events: np.ndarray, header_tags: dict = None,
                      resolution: float = RESOLUTION) -> xr.Dataset:
    """
    Packs corrected events into an xarray Dataset along a `record` dimension.

    Header tags are stored as attributes; nested values are JSON encoded so
    the dataset can be written to netCDF/HDF5.
    """
    record = np.arange(events.shape[0])
    ds = xr.Dataset(
        data_vars={
            "timetag": ("record", events["timetag"]),
            "seconds": ("record", events["timetag"] * resolution),
            "time": ("record", events["time"]),
            "channel": ("record", events["channel"]),
            "kind": ("record", events["kind"]),
            "markers": ("record", events["markers"]),
        },
        coords={"record": record},
    )
    ds["seconds"].attrs["units"] = "s"
    ds["kind"].attrs["flag_values"] = [int(k) for k in EventKind]
    ds["kind"].attrs["flag_meanings"] = " ".join(k.name.lower() for k in EventKind)
    ds.attrs["resolution"] = resolution

    if header_tags:
        for key, value in header_tags.items():
            if isinstance(value, (list, dict)):
                value = json.dumps(value)
            ds.attrs[key] = value

    return ds
