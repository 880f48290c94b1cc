from contextlib import contextmanager
from typing import Iterator, Optional, Union

import pynvml
from loguru import logger
from pydantic import ValidationError

from gpu_util.config import Settings, get_settings
from gpu_util.errors import (
    LibraryNotFoundError,
    NoDeviceError,
    NvmlInitError,
    QueryError,
)
from gpu_util.models.utilization import GpuDevice, GpuUtilization

# Name the driver installs; the unversioned libnvidia-ml.so is often missing
_NVML_LIBRARY = "libnvidia-ml.so.1"


def _decode(value: Union[str, bytes]) -> str:
    # older pynvml releases return bytes
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


@contextmanager
def nvml_session() -> Iterator[None]:
    """
    Initialise NVML for the duration of the block and always shut it down.

    Initialisation errors are translated into LibraryNotFoundError (the
    shared library could not be loaded) or NvmlInitError (everything else,
    e.g. missing permissions or a driver/library version mismatch). When
    initialisation fails there is no session to shut down.
    """
    try:
        pynvml.nvmlInit()
    except pynvml.NVMLError as exc:
        if getattr(exc, "value", None) == pynvml.NVML_ERROR_LIBRARY_NOT_FOUND:
            raise LibraryNotFoundError(
                f"NVML shared library {_NVML_LIBRARY} not found; install the "
                "NVIDIA driver or create the missing symlink to the versioned "
                "library file"
            ) from exc
        raise NvmlInitError(f"NVML initialization failed: {exc}") from exc

    logger.debug("NVML initialized")
    try:
        yield
    finally:
        try:
            pynvml.nvmlShutdown()
        except pynvml.NVMLError as exc:
            logger.warning("NVML shutdown failed: {}", exc)
        else:
            logger.debug("NVML shut down")


def get_device_handle(index: int):
    """Return the NVML handle for device `index`, or raise NoDeviceError."""
    try:
        count = pynvml.nvmlDeviceGetCount()
    except pynvml.NVMLError as exc:
        raise NoDeviceError(f"Failed to enumerate GPUs: {exc}") from exc

    logger.debug("NVML reports {} device(s)", count)
    if count <= index:
        raise NoDeviceError(f"No GPU found at index {index} ({count} device(s) present)")

    try:
        return pynvml.nvmlDeviceGetHandleByIndex(index)
    except pynvml.NVMLError as exc:
        raise NoDeviceError(f"No GPU found at index {index}: {exc}") from exc


# (GpuDevice field, pynvml function, takes the device handle)
_DEVICE_QUERIES = (
    ("name", "nvmlDeviceGetName", True),
    ("uuid", "nvmlDeviceGetUUID", True),
    ("driver_version", "nvmlSystemGetDriverVersion", False),
    ("vbios_version", "nvmlDeviceGetVbiosVersion", True),
    ("pcie_gen", "nvmlDeviceGetCurrPcieLinkGeneration", True),
    ("pcie_width", "nvmlDeviceGetCurrPcieLinkWidth", True),
)


def get_device_info(handle, index: int) -> GpuDevice:
    """
    Collect descriptive information about a device.

    Every field is best effort: a failing NVML call leaves the model
    default ("N/A" or 0) in place.
    """
    info = {}
    for field, function_name, needs_handle in _DEVICE_QUERIES:
        function = getattr(pynvml, function_name)
        try:
            value = function(handle) if needs_handle else function()
        except pynvml.NVMLError as exc:
            logger.debug("Device {} unavailable: {}", field, exc)
            continue
        info[field] = _decode(value)
    return GpuDevice(index=index, **info)


def read_utilization(handle, index: int) -> GpuUtilization:
    """
    Query the utilization rates of an open device handle.

    Raises QueryError if NVML fails or reports a value outside 0-100. The
    error message names the device so the failure can be traced to a board
    and driver.
    """
    try:
        rates = pynvml.nvmlDeviceGetUtilizationRates(handle)
    except pynvml.NVMLError as exc:
        device = get_device_info(handle, index)
        raise QueryError(f"Utilization query failed for {device.describe()}: {exc}") from exc

    try:
        return GpuUtilization(
            device_index=index,
            gpu_percent=rates.gpu,
            memory_percent=rates.memory,
        )
    except ValidationError as exc:
        device = get_device_info(handle, index)
        raise QueryError(
            f"{device.describe()} reported an invalid utilization "
            f"(gpu={rates.gpu!r}, memory={rates.memory!r})"
        ) from exc


def read_gpu_utilization(settings: Optional[Settings] = None) -> GpuUtilization:
    """
    Take one fresh utilization reading from the configured device.

    The NVML session is opened and closed within this call, so every call
    queries the driver again and no handle outlives it.
    """
    settings = settings or get_settings()
    index = settings.device_index

    with nvml_session():
        handle = get_device_handle(index)
        return read_utilization(handle, index)


def format_utilization(reading: GpuUtilization) -> str:
    return f"GPU Utilization: {reading.gpu_percent}%"
