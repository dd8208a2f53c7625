from __future__ import annotations

from datetime import datetime, timezone
import json
import math
from pathlib import Path
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def json_safe(value: Any) -> Any:
    """Plain JSON payload (camelCase aliases) with every non-finite float replaced by None."""
    if isinstance(value, BaseModel):
        return json_safe(value.model_dump(mode="json", by_alias=True))
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    if isinstance(value, (float, np.floating)) and not math.isfinite(value):
        return None
    return value


class ArtifactBase(BaseModel):
    """JSON documents written by `rank --out` and `heatmap --out`."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return json_safe(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def write_json(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
        return path

    @classmethod
    def from_dict(cls, payload: dict[str, Any]):  # noqa: ANN001
        return cls.model_validate(payload)

    @classmethod
    def from_json(cls, payload: str):  # noqa: ANN001
        return cls.model_validate_json(payload)
