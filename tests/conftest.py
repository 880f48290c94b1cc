from types import SimpleNamespace

import pytest
from loguru import logger

from gpu_util.services import nvml_reader


class FakeNVMLError(Exception):
    def __init__(self, value: int):
        super().__init__(f"NVML error code {value}")
        self.value = value


class FakeNvml:
    """
    Stand-in for the pynvml module.

    Each failure point can be armed with an error code, and init/shutdown
    calls are counted so tests can check that no session is left open.
    """

    NVMLError = FakeNVMLError
    NVML_ERROR_NO_PERMISSION = 4
    NVML_ERROR_NOT_FOUND = 6
    NVML_ERROR_LIBRARY_NOT_FOUND = 12
    NVML_ERROR_GPU_IS_LOST = 15

    def __init__(self):
        self.device_count = 1
        self.readings = [18]
        self.memory = 7
        self.name = "NVIDIA GeForce RTX 3080"
        self.driver_version = "550.54.14"
        self.uuid = "GPU-5c3a2f1e-8d7b-4c2a-9f0e-1b2c3d4e5f60"
        self.vbios_version = "94.02.42.00.A9"
        self.pcie_gen = 4
        self.pcie_width = 16

        self.init_error = None
        self.count_error = None
        self.handle_error = None
        self.query_error = None
        self.name_error = None
        self.pcie_error = None
        self.shutdown_error = None

        self.init_calls = 0
        self.shutdown_calls = 0
        self.query_calls = 0
        self.name_calls = 0

    @property
    def open_sessions(self) -> int:
        return self.init_calls - self.shutdown_calls

    def nvmlInit(self):
        if self.init_error is not None:
            raise FakeNVMLError(self.init_error)
        self.init_calls += 1

    def nvmlShutdown(self):
        if self.open_sessions <= 0:
            raise AssertionError("nvmlShutdown called without an open session")
        self.shutdown_calls += 1
        if self.shutdown_error is not None:
            raise FakeNVMLError(self.shutdown_error)

    def nvmlDeviceGetCount(self):
        if self.count_error is not None:
            raise FakeNVMLError(self.count_error)
        return self.device_count

    def nvmlDeviceGetHandleByIndex(self, index):
        if self.handle_error is not None:
            raise FakeNVMLError(self.handle_error)
        return ("handle", index)

    def nvmlDeviceGetName(self, handle):
        self.name_calls += 1
        if self.name_error is not None:
            raise FakeNVMLError(self.name_error)
        return self.name

    def nvmlSystemGetDriverVersion(self):
        return self.driver_version

    def nvmlDeviceGetUUID(self, handle):
        return self.uuid

    def nvmlDeviceGetVbiosVersion(self, handle):
        return self.vbios_version

    def nvmlDeviceGetCurrPcieLinkGeneration(self, handle):
        if self.pcie_error is not None:
            raise FakeNVMLError(self.pcie_error)
        return self.pcie_gen

    def nvmlDeviceGetCurrPcieLinkWidth(self, handle):
        return self.pcie_width

    def nvmlDeviceGetUtilizationRates(self, handle):
        assert self.open_sessions == 1, "device queried outside of an NVML session"
        if self.query_error is not None:
            raise FakeNVMLError(self.query_error)
        self.query_calls += 1
        gpu = self.readings.pop(0) if len(self.readings) > 1 else self.readings[0]
        return SimpleNamespace(gpu=gpu, memory=self.memory)


@pytest.fixture
def fake_nvml(monkeypatch):
    fake = FakeNvml()
    monkeypatch.setattr(nvml_reader, "pynvml", fake)
    return fake


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    # main() binds a sink to the test's captured stderr
    logger.remove()
