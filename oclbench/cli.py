# Copyright 2025 Wahyu Ardiansyah
# Licensed under the Apache License, Version 2.0

"""
oclbench Command Line Interface

Exit codes:
    0  success
    1  no OpenCL platform or device found
    2  any other harness failure (build, runtime status, mismatch, config)
"""

from __future__ import annotations

import argparse
import sys

EXIT_OK = 0
EXIT_NO_DEVICE = 1
EXIT_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    from .config import DEFAULT_ITERATIONS, DEFAULT_LOCAL_SIZE, DEFAULT_N

    parser = argparse.ArgumentParser(
        prog="oclbench",
        description="oclbench - OpenCL a+b kernel benchmark and verification",
    )

    parser.add_argument(
        "--version",
        "-v",
        action="store_true",
        help="Show version information",
    )
    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List platforms and devices, then exit",
    )
    parser.add_argument(
        "-n",
        type=int,
        default=None,
        help=f"Number of float elements (default: {DEFAULT_N})",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help=f"Timed iterations (default: {DEFAULT_ITERATIONS})",
    )
    parser.add_argument(
        "--local-size",
        type=int,
        default=None,
        help=f"Work-group size (default: {DEFAULT_LOCAL_SIZE})",
    )
    parser.add_argument("--seed", type=int, default=None, help="Input seed (default: n)")
    parser.add_argument("--kernel-path", default=None, help="Kernel source file")
    parser.add_argument("--kernel-name", default=None, help="Kernel entry point")
    parser.add_argument(
        "--build-options",
        default=None,
        metavar="OPTIONS",
        help=(
            "Compiler options, space separated. Values starting with '-' "
            "need the = form: --build-options=\"-cl-fast-relaxed-math -DX=1\""
        ),
    )
    parser.add_argument(
        "--sync-policy",
        choices=["blocking", "batched"],
        default=None,
        help="Wait after each dispatch (blocking) or after all (batched)",
    )
    parser.add_argument(
        "--profiling",
        action="store_true",
        default=None,
        help="Time kernels with device event profiling",
    )
    parser.add_argument(
        "--runtime",
        choices=["opencl", "simulated"],
        default="opencl",
        help="Compute runtime (default: opencl)",
    )
    parser.add_argument(
        "--verbosity",
        type=int,
        choices=range(0, 5),
        default=None,
        help="Log verbosity 0=silent .. 4=debug",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )
    return parser


def main(argv=None) -> int:
    """Main entry point for oclbench CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from oclbench import __version__

        print(f"oclbench v{__version__}")
        return EXIT_OK

    from .config import HarnessConfig
    from .errors import DeviceNotFoundError, HarnessError
    from .observability import get_logger
    from .runtime import get_runtime

    logger = get_logger()
    if args.verbosity is not None:
        logger.set_verbosity(args.verbosity)
    if args.json_logs:
        logger.set_json_format(True)

    try:
        runtime = get_runtime(args.runtime)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if args.list_devices:
        return _list_devices(runtime)

    from .pipeline import run_benchmark

    try:
        config = HarnessConfig.from_env(
            n=args.n,
            iterations=args.iterations,
            local_size=args.local_size,
            seed=args.seed,
            kernel_path=args.kernel_path,
            kernel_name=args.kernel_name,
            build_options=tuple(args.build_options.split()) if args.build_options else None,
            sync_policy=args.sync_policy,
            profiling=args.profiling,
        )
        run_benchmark(config, runtime=runtime)
    except DeviceNotFoundError as e:
        print(e.message)
        return EXIT_NO_DEVICE
    except HarnessError as e:
        logger.error(e.message, component="cli", error=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    return EXIT_OK


def _list_devices(runtime) -> int:
    from .device import DeviceResolver
    from .errors import HarnessError

    try:
        rows = DeviceResolver(runtime).describe()
    except HarnessError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if not rows:
        print("Platforms not found")
        return EXIT_NO_DEVICE

    print("=" * 50)
    for platform_name, kind, device_name in rows:
        print(f"{platform_name:<24} {kind.upper():<4} {device_name}")
    print("=" * 50)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
