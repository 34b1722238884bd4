import numpy as np
from contextlib import contextmanager
from .file import Header

RECORD_DTYPE = np.dtype('<u4')


class PT2Reader:
    def __init__(self, path):
        self.path = path
        self._header = Header(path)  # parse ONCE
        self.offset = self._header.data_offset
        self.records = max(self._header.record_count, 0)

    @property
    def header(self):
        return self._header

    @contextmanager
    def open_records(self):
        """Binary stream positioned at the first T2 record."""
        with open(self.path, 'rb') as f:
            f.seek(self.offset)
            yield f

    def read(self, count=None):
        if count is None or count > self.records:
            count = self.records
        with self.open_records() as f:
            return np.fromfile(f, dtype=RECORD_DTYPE, count=count).astype(np.uint32)

    def iter_chunks(self, chunk_size=1000000):
        remaining = self.records
        with self.open_records() as f:
            while remaining > 0:
                chunk = np.fromfile(f, dtype=RECORD_DTYPE, count=min(chunk_size, remaining))
                if len(chunk) == 0:
                    break
                remaining -= len(chunk)
                yield chunk.astype(np.uint32)
