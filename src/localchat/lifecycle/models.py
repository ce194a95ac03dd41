"""Engine lifecycle states.

Exactly one of ``Unloaded``, ``Loading``, ``Ready`` or ``Failed`` describes
the engine at any time. States are immutable; a transition replaces the
whole state object.
"""

from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ..engine import EngineHandle


class EngineStatus(str, Enum):
    """Discriminator of ``EngineState``."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class Unloaded(BaseModel):
    """No model has been requested yet."""

    model_config = ConfigDict(frozen=True)

    status: Literal[EngineStatus.UNLOADED] = EngineStatus.UNLOADED


class Loading(BaseModel):
    """A model is being constructed."""

    model_config = ConfigDict(frozen=True)

    status: Literal[EngineStatus.LOADING] = EngineStatus.LOADING
    model_id: str = Field(description="Catalog id of the model being loaded")
    progress_percent: int = Field(default=0, ge=0, le=100, description="Load progress")


class Ready(BaseModel):
    """A model is loaded and the handle can generate."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: Literal[EngineStatus.READY] = EngineStatus.READY
    model_id: str = Field(description="Catalog id of the loaded model")
    handle: EngineHandle = Field(description="Engine handle owned by the lifecycle manager")


class Failed(BaseModel):
    """Loading the model failed; a retry must be requested explicitly."""

    model_config = ConfigDict(frozen=True)

    status: Literal[EngineStatus.FAILED] = EngineStatus.FAILED
    model_id: str = Field(description="Catalog id of the model that failed to load")
    error_description: str = Field(description="Why the load failed")


EngineState = Union[Unloaded, Loading, Ready, Failed]
