#!/usr/bin/env python3
"""
gpu-util

Prints the current compute utilization of the first NVIDIA GPU as a single
line, e.g. "GPU Utilization: 18%", and exits.

Exit codes:
    0  reading printed
    2  invalid command line
    3  NVML shared library not found
    4  NVML initialization failed
    5  no GPU found
    6  utilization query failed
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from loguru import logger

from gpu_util import __version__
from gpu_util.config import get_settings
from gpu_util.errors import GpuUtilError
from gpu_util.services import nvml_reader

_LOG_FORMAT = "{level}: {message}"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gpu-util",
        description=(
            "Print the current utilization of NVIDIA GPU 0 "
            f"(gpu-util {__version__})."
        ),
    )
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level, format=_LOG_FORMAT)


def main(argv: Optional[List[str]] = None) -> int:
    parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    try:
        reading = nvml_reader.read_gpu_utilization(settings)
    except GpuUtilError as exc:
        logger.error("{}", exc)
        return exc.exit_code

    print(nvml_reader.format_utilization(reading))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
