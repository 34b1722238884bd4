# pt2dump/processing/logger.py
import sys

from qtpy.QtCore import QObject, Signal

MODES = ('print', 'qt', 'quiet')


class ProgressLogger(QObject):
    """
    Progress and warning sink for decoding runs.

    'print' writes progress to stdout, 'qt' emits signals for a GUI and
    'quiet' drops progress. Warnings are never dropped: outside 'qt' mode
    they go to stderr, in 'qt' mode they are emitted on `warning_issued`.
    """
    log_updated = Signal(str)
    warning_issued = Signal(str)

    def __init__(self, mode='print'):
        super().__init__()
        if mode not in MODES:
            raise ValueError(f"mode must be one of {MODES}")
        self.mode = mode
        self.warnings = 0

    def log(self, message: str):
        if self.mode == 'print':
            print(message)
        elif self.mode == 'qt':
            self.log_updated.emit(message)

    def warn(self, message: str):
        self.warnings += 1
        text = f"WARNING: {message}"
        if self.mode == 'qt':
            self.warning_issued.emit(text)
        else:
            print(text, file=sys.stderr)

    def connect(self, slot, warning_slot=None):
        if self.mode == 'qt':
            self.log_updated.connect(slot)
            self.warning_issued.connect(warning_slot if warning_slot is not None else slot)
