#!/usr/bin/env python3
"""
Command line front end for the parallel batch file compressor.
"""

import argparse
import logging
import sys
import threading
from pathlib import Path
from typing import List, Optional

from base_classes import Direction
from batch_compression.stages.codecs import available_codecs
from batch_file_compressor import BatchFileCompressor, BatchSummary
from compression_configs import AdaptiveConfig, CompressionConfig, ConfigPresets
from compression_monitoring import MetricsExporter
from resilience_patterns import ConfigError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_JOB_FAILURES = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Compress or decompress many files concurrently",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  compress.py compress ./logs -o ./archive -w 8 -l 9
  compress.py decompress ./archive -o ./restored
  compress.py compress big.bin -o out --codec lz4
  compress.py benchmark --size-mb 64 --files 4 -w 4
        """
    )
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging verbosity (default: WARNING)')

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('-w', '--workers', type=int,
                        help='Number of worker threads (default: CPU count)')
    common.add_argument('--codec', choices=available_codecs(),
                        help='Stream format (default: gzip)')
    common.add_argument('--buffer-size', type=int,
                        help='Working buffer size in bytes (default: 1MB)')
    common.add_argument('--preset',
                        choices=['fastest', 'balanced', 'smallest',
                                 'memory-constrained', 'single-threaded'],
                        help='Start from a preset configuration')
    common.add_argument('--auto', action='store_true',
                        help='Pick the worker count from CPUs, inputs and free memory')
    common.add_argument('--no-progress', action='store_true',
                        help='Disable the progress bar')
    common.add_argument('--metrics-json', type=Path,
                        help='Write batch metrics as JSON to this file')

    subparsers = parser.add_subparsers(dest='command', required=True)

    compress_parser = subparsers.add_parser('compress', parents=[common],
                                            help='Compress a file or every file in a directory')
    compress_parser.add_argument('input', type=Path, help='Input file or directory')
    compress_parser.add_argument('-o', '--output-dir', type=Path, required=True,
                                 help='Directory receiving compressed files')
    compress_parser.add_argument('-l', '--level', type=int,
                                 help='Compression level (gzip/zlib: 0-9, lz4: 0-16)')

    decompress_parser = subparsers.add_parser('decompress', parents=[common],
                                              help='Decompress a file or a directory of compressed files')
    decompress_parser.add_argument('input', type=Path, help='Input file or directory')
    decompress_parser.add_argument('-o', '--output-dir', type=Path, required=True,
                                   help='Directory receiving decompressed files')

    benchmark_parser = subparsers.add_parser('benchmark', parents=[common],
                                             help='Compare single- and multi-worker compression')
    benchmark_parser.add_argument('--work-dir', type=Path, default=Path('./benchmark'),
                                  help='Directory for generated inputs and outputs')
    benchmark_parser.add_argument('--size-mb', type=int, default=16,
                                  help='Size of each generated input file in MB')
    benchmark_parser.add_argument('--files', type=int, default=4,
                                  help='Number of generated input files')

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CompressionConfig:
    """Merge preset and command line overrides into a validated config."""
    config = ConfigPresets.get(args.preset) if args.preset else CompressionConfig()

    overrides = {}
    if args.workers is not None:
        overrides['num_workers'] = args.workers
    if args.codec is not None:
        overrides['codec'] = args.codec
        if getattr(args, 'level', None) is None:
            # Preset levels belong to the preset's codec
            overrides['compression_level'] = None
    if getattr(args, 'level', None) is not None:
        overrides['compression_level'] = args.level
    if args.buffer_size is not None:
        overrides['buffer_size'] = args.buffer_size
    if args.no_progress:
        overrides['show_progress'] = False
    if args.metrics_json is not None:
        overrides['enable_monitoring'] = True

    config = CompressionConfig(**{**config.__dict__, **overrides})

    if args.auto and args.workers is None:
        target = getattr(args, 'input', None) or args.work_dir
        config = AdaptiveConfig.auto_configure(target, config)
    return config


def print_summary(summary: BatchSummary) -> None:
    label = "Compression" if summary.direction is Direction.COMPRESS else "Decompression"
    print(f"{label} completed in {summary.elapsed_ms} ms")
    print(f"  {summary.succeeded} succeeded, {summary.failed} failed, "
          f"{summary.bytes_in:,} -> {summary.bytes_out:,} bytes")


def write_metrics(summary: BatchSummary, path: Optional[Path]) -> None:
    if path is None or summary.monitor is None:
        return
    path.write_text(MetricsExporter.to_json(summary.monitor))
    logger.info(f"Metrics saved to {path}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = build_config(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    compressor = BatchFileCompressor(config)
    cancel_event = threading.Event()

    try:
        if args.command == 'benchmark':
            if args.size_mb <= 0 or args.files <= 0:
                print("Error: --size-mb and --files must be positive", file=sys.stderr)
                return EXIT_CONFIG_ERROR
            result = compressor.benchmark(
                work_dir=args.work_dir,
                file_size=args.size_mb * 1024 * 1024,
                num_files=args.files,
                num_workers=config.resolved_workers,
                cancel_event=cancel_event
            )
            print("\nBenchmark Results:")
            print(f"Single-threaded time: {result.single_elapsed * 1000:.0f} ms")
            print(f"Multi-threaded time ({result.num_workers} workers): "
                  f"{result.multi_elapsed * 1000:.0f} ms")
            print(f"Performance gain: {result.performance_gain:.1f}% faster "
                  f"({result.speedup:.2f}x)")
            return EXIT_OK

        if args.command == 'compress':
            summary = compressor.compress(args.input, args.output_dir, cancel_event)
        else:
            summary = compressor.decompress(args.input, args.output_dir, cancel_event)

    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        cancel_event.set()
        print("\n\nInterrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED

    print_summary(summary)
    write_metrics(summary, args.metrics_json)
    return EXIT_OK if summary.failed == 0 else EXIT_JOB_FAILURES


if __name__ == "__main__":
    sys.exit(main())
