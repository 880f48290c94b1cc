class GpuUtilError(RuntimeError):
    """Base class for every failure that aborts a reading."""

    exit_code = 1


class LibraryNotFoundError(GpuUtilError):
    exit_code = 3


class NvmlInitError(GpuUtilError):
    exit_code = 4


class NoDeviceError(GpuUtilError):
    exit_code = 5


class QueryError(GpuUtilError):
    exit_code = 6
