"""Per-site topographical parameters."""

import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TopographicalParameters(BaseModel):
    """Physical constants of a single site.

    Instances are frozen: once a simulation starts the parameters of a site
    never change.
    """

    model_config = ConfigDict(frozen=True)

    uplift_rate: float = Field(default=0.0, ge=0.0, description="Tectonic uplift rate")
    erodibility: float = Field(default=1.0, gt=0.0, description="Erodibility coefficient")
    base_elevation: float = Field(default=0.0, description="Initial elevation of the site")
    max_slope: Optional[float] = Field(
        default=None, description="Maximum slope towards the downstream site, in radians"
    )
    is_outlet: bool = Field(default=False, description="Whether the site is a fixed outlet")

    @field_validator("max_slope")
    @classmethod
    def _check_max_slope(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and not 0.0 <= value < math.pi / 2:
            raise ValueError("max_slope must be in [0, pi/2) radians")
        return value
