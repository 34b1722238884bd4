# pt2io/file.py
import struct
from enum import Enum
from typing import BinaryIO

from .decoder import MEASMODE_T2

IDENT = "PicoHarp 300"
FORMAT_VERSION = "2.0"
DISPCURVES = 8

# All blocks are little-endian with 4-byte alignment, no padding is needed
TXT_HDR = struct.Struct('<16s6s18s12s18s2s256s')
BIN_HDR = struct.Struct('<18i16i9f4i20s')
BOARD_HDR = struct.Struct('<16s8s6if2i24i')
TTTR_HDR = struct.Struct('<9i')

TXT_FIELDS = ("Ident", "FormatVersion", "CreatorName", "CreatorVersion",
              "FileTime", "CRLF", "CommentField")
BIN_FIELDS = ("Curves", "BitsPerRecord", "RoutingChannels", "NumberOfBoards",
              "ActiveCurve", "MeasMode", "SubMode", "RangeNo", "Offset", "Tacq",
              "StopAt", "StopOnOvfl", "Restart", "DispLinLog", "DispTimeFrom",
              "DispTimeTo", "DispCountsFrom", "DispCountsTo")
BOARD_FIELDS = ("HardwareIdent", "HardwareVersion", "HardwareSerial", "SyncDivider",
                "CFDZeroCross0", "CFDLevel0", "CFDZeroCross1", "CFDLevel1",
                "Resolution", "RouterModelCode", "RouterEnabled")
ROUTER_FIELDS = ("InputType", "InputLevel", "InputEdge", "CFDPresent",
                 "CFDLevel", "CFDZeroCross")
TTTR_FIELDS = ("ExtDevices", "Reserved1", "Reserved2", "CntRate0", "CntRate1",
               "StopAfter", "StopReason", "Records", "ImgHdrSize")


class HeaderErrorKind(Enum):
    SHORT_READ = "short read"
    BAD_IDENTIFIER = "bad identifier"
    BAD_VERSION = "unsupported format version"
    BAD_MEASUREMENT_MODE = "unsupported measurement mode"


class HeaderError(ValueError):
    def __init__(self, kind: HeaderErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


def _clean_string(raw: bytes) -> str:
    # fixed-width C strings, anything after the first NUL is garbage
    return raw.split(b'\0', 1)[0].decode('ascii', errors='ignore')


def _read_block(f: BinaryIO, layout: struct.Struct, name: str) -> tuple:
    block = f.read(layout.size)
    if len(block) != layout.size:
        raise HeaderError(HeaderErrorKind.SHORT_READ,
                          f"error reading {name} header, aborted.")
    return layout.unpack(block)


class Header:
    """
    Header of a PicoHarp 300 T2 file (format version 2.0).

    Parses the text, binary, board and TTTR headers in file order and
    validates them as it goes. All values end up flattened in `tags`.
    """

    def __init__(self, path: str):
        self.path = path
        with open(path, 'rb') as f:
            self._read_header(f)

    @classmethod
    def from_stream(cls, f: BinaryIO) -> "Header":
        header = cls.__new__(cls)
        header.path = getattr(f, 'name', None)
        header._read_header(f)
        return header

    def _read_header(self, f: BinaryIO):
        self.tags = {}

        values = _read_block(f, TXT_HDR, "txt")
        for key, raw in zip(TXT_FIELDS, values):
            self.tags[key] = _clean_string(raw)

        if self.tags["Ident"] != IDENT:
            raise HeaderError(HeaderErrorKind.BAD_IDENTIFIER,
                              "File identifier not found, aborted.")
        if not self.tags["FormatVersion"].startswith(FORMAT_VERSION):
            raise HeaderError(HeaderErrorKind.BAD_VERSION,
                              f"File format version is {self.tags['FormatVersion']}. "
                              f"Only version {FORMAT_VERSION} is supported.")

        values = _read_block(f, BIN_HDR, "bin")
        self.tags.update(zip(BIN_FIELDS, values[:18]))
        curves = values[18:34]
        self.tags["DispCurves"] = [
            {"MapTo": curves[2 * i], "Show": curves[2 * i + 1]} for i in range(DISPCURVES)
        ]
        params = values[34:43]
        self.tags["Params"] = [
            {"Start": params[3 * i], "Step": params[3 * i + 1], "End": params[3 * i + 2]}
            for i in range(3)
        ]
        (self.tags["RepeatMode"], self.tags["RepeatsPerCurve"],
         self.tags["RepeatTime"], self.tags["RepeatWaitTime"]) = values[43:47]
        self.tags["ScriptName"] = _clean_string(values[47])

        if self.tags["MeasMode"] != MEASMODE_T2:
            raise HeaderError(HeaderErrorKind.BAD_MEASUREMENT_MODE,
                              "Wrong measurement mode, aborted.")

        values = _read_block(f, BOARD_HDR, "board")
        board = dict(zip(BOARD_FIELDS, values[:11]))
        board["HardwareIdent"] = _clean_string(board["HardwareIdent"])
        board["HardwareVersion"] = _clean_string(board["HardwareVersion"])
        self.tags.update(board)
        router = values[11:]
        for chan in range(4):
            for i, field in enumerate(ROUTER_FIELDS):
                self.tags[f"RtChan{chan + 1}_{field}"] = router[6 * chan + i]

        values = _read_block(f, TTTR_HDR, "TTTR")
        self.tags.update(zip(TTTR_FIELDS, values))

        # skip the imaging header
        self.header_size = f.tell()
        self.data_offset = self.header_size + self.tags["ImgHdrSize"] * 4

    @property
    def routing_channels(self) -> int:
        return self.tags["RoutingChannels"]

    @property
    def record_count(self) -> int:
        return self.tags["Records"]

    def get(self, tag: str, default=None):
        return self.tags.get(tag, default)
