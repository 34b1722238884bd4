import argparse
import sys

from .io.loader import read_pt2_file, dump_pt2_records, format_statistics
from .io.pt2io.file import HeaderError
from .processing.logger import ProgressLogger

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_TRUNCATED = 2


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="pt2dump",
        description="Dump a PicoHarp 300 T2 mode file (*.pt2, format 2.0) as ASCII.",
        epilog="Routinely converting T2 data to ASCII is inefficient and therefore discouraged.",
    )
    parser.add_argument("infile", help="binary PicoHarp 300 T2 mode file (*.pt2)")
    parser.add_argument("outfile", help="ASCII output file")
    parser.add_argument(
        "--quiet", "-q", action="store_true", help="Only print warnings and errors"
    )
    parser.add_argument(
        "--no-header", action="store_true", help="Do not write the header dump to outfile"
    )
    parser.add_argument(
        "--progress-every",
        type=int,
        default=0,
        help="Log progress every N records (default: 0, disabled)",
    )
    ns = parser.parse_args(argv)

    if ns.progress_every < 0:
        parser.error("--progress-every must not be negative")

    logger = ProgressLogger(mode='quiet' if ns.quiet else 'print')
    logger.log("PicoHarp T2 Mode File Demo")

    try:
        pt2_data = read_pt2_file(ns.infile, header=False, logger=logger)
    except HeaderError as e:
        print(f"{e} ({e.kind.value})", file=sys.stderr)
        return EXIT_FATAL
    except OSError as e:
        print(f"cannot open input file: {e}", file=sys.stderr)
        return EXIT_FATAL

    try:
        processor = dump_pt2_records(pt2_data, ns.outfile, header=not ns.no_header,
                                     logger=logger, progress_every=ns.progress_every)
    except OSError as e:
        print(f"cannot write output file: {e}", file=sys.stderr)
        return EXIT_FATAL

    logger.log(format_statistics(processor.statistics))

    # the processor has already warned about the short read
    if processor.truncated:
        return EXIT_TRUNCATED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
