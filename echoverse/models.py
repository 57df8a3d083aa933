from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Outcome(BaseModel):
    id: str
    title: str                      # "Path 1", "Path 2", ...
    description: str
    probability: float = Field(..., ge=0.0, le=1.0)
    impact: int = Field(..., ge=1, le=10)
    consequences: list[str] = Field(default_factory=list)


class GeneratedReality(BaseModel):
    title: str
    description: str
    outcomes: list[Outcome]
    probability: float = Field(..., ge=0.0, le=1.0)
    impact: int = Field(..., ge=1, le=10)


# ---------------- request bodies ----------------

class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CreateRealityBody(_Body):
    event: str = ""
    user_session: Optional[str] = Field(None, alias="userSession")

    @field_validator("event", mode="before")
    @classmethod
    def _event_as_text(cls, v: Any) -> str:
        # non-strings count as missing
        return v if isinstance(v, str) else ""


class SaveTreeBody(_Body):
    tree_data: Any = Field(None, alias="treeData")
    user_session: Optional[str] = Field(None, alias="userSession")
    make_public: bool = Field(False, alias="makePublic")


class EnhanceRealityBody(_Body):
    reality: dict[str, Any]
    context: Any = None
    user_session: Optional[str] = Field(None, alias="userSession")
