from pydantic import BaseModel, Field


class GpuUtilization(BaseModel):
    """Domain model describing a single utilization reading."""

    device_index: int = Field(
        ...,
        ge=0,
        description="NVML index of the device the reading was taken from",
    )
    gpu_percent: int = Field(
        ...,
        ge=0,
        le=100,
        description="GPU compute utilization during the last driver sample window",
    )
    memory_percent: int = Field(
        ...,
        ge=0,
        le=100,
        description="Memory controller utilization during the same window",
    )


class GpuDevice(BaseModel):
    """Descriptive information about the selected device, all best effort."""

    index: int = Field(..., ge=0)
    name: str = Field(default="N/A", description="Product name, e.g. NVIDIA GeForce RTX 3080")
    uuid: str = Field(default="N/A", description="Device UUID, e.g. GPU-5c3a...")
    driver_version: str = Field(default="N/A", description="Installed driver version")
    vbios_version: str = Field(default="N/A", description="VBIOS version of the board")
    pcie_gen: int = Field(default=0, ge=0, description="Current PCIe link generation, 0 if unknown")
    pcie_width: int = Field(default=0, ge=0, description="Current PCIe link width, 0 if unknown")

    def describe(self) -> str:
        return (
            f"GPU {self.index} ({self.name}, driver {self.driver_version}, "
            f"VBIOS {self.vbios_version}, PCIe gen{self.pcie_gen} x{self.pcie_width}, "
            f"UUID {self.uuid})"
        )
