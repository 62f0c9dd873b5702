"""Pydantic models for device identification data."""

from pydantic import BaseModel, ConfigDict, Field


class DeviceInfo(BaseModel):
    """Identification of the CPAP device that wrote the SD card."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "serial_number": "23192345678",
                "product_name": "AirSense 10 AutoSet",
                "product_code": "37028",
                "machine_id": "36",
                "firmware_version": "SX567-0401",
                "raw": {"SRN": "23192345678", "PNA": "AirSense_10_AutoSet"},
                "error": None,
            }
        }
    )

    serial_number: str = Field(default="Unknown", description="Device serial number")
    product_name: str = Field(default="Unknown", description="Product name")
    product_code: str = Field(default="Unknown", description="Product code")
    machine_id: str = Field(default="Unknown", description="Machine identifier")
    firmware_version: str = Field(default="Unknown", description="Firmware version")
    raw: dict[str, str] = Field(
        default_factory=dict, description="All identification key/value pairs"
    )
    error: str | None = Field(
        default=None, description="Why identification could not be read"
    )
