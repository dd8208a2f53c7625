from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from jsonschema import Draft202012Validator
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from options_heatmap.models import GridResolution, Viewport


class ConfigError(ValueError):
    pass


class ScoreWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    distance: float = Field(default=0.2, ge=0.0)
    delta: float = Field(default=0.3, ge=0.0)
    premium: float = Field(default=0.4, ge=0.0)
    volume: float = Field(default=0.1, ge=0.0)


# Named delta/premium splits; the other two weights are shared.
WEIGHT_PRESETS: dict[str, ScoreWeights] = {
    "premium_weighted": ScoreWeights(delta=0.3, premium=0.4),
    "delta_weighted": ScoreWeights(delta=0.4, premium=0.3),
}
DEFAULT_WEIGHT_PRESET = "premium_weighted"


class PremiumConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # fair premium = |delta| * |strike - spot| * scale
    scale: float = Field(default=0.1, gt=0.0)
    floor: float = Field(default=0.1, gt=0.0)
    anomaly_bound: float = Field(default=100.0, gt=0.0)


class ScoreConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    weight_preset: str = DEFAULT_WEIGHT_PRESET
    # Explicit weights override the preset when set.
    weights: ScoreWeights | None = None
    distance_unit: float = Field(default=1000.0, gt=0.0)
    distance_decay: float = Field(default=10.0, ge=0.0)
    delta_band_low: float = Field(default=0.3, ge=0.0, le=1.0)
    delta_band_high: float = Field(default=0.6, ge=0.0, le=1.0)
    delta_center: float = Field(default=0.45, gt=0.0, le=1.0)
    delta_off_band_max: float = Field(default=50.0, ge=0.0, le=100.0)
    volume_divisor: float = Field(default=10.0, gt=0.0)
    neutral_score: float = Field(default=50.0, ge=0.0, le=100.0)

    @field_validator("weight_preset")
    @classmethod
    def _known_preset(cls, value: str) -> str:
        if value not in WEIGHT_PRESETS:
            raise ValueError(f"unknown weight preset {value!r} (use {'|'.join(sorted(WEIGHT_PRESETS))})")
        return value

    def resolved_weights(self) -> ScoreWeights:
        if self.weights is not None:
            return self.weights
        return WEIGHT_PRESETS[self.weight_preset]


class AlertThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    decision_zone_low: float = Field(default=0.3, ge=0.0)
    decision_zone_high: float = Field(default=0.6, ge=0.0)
    underpriced_ratio: float = Field(default=0.7, ge=0.0)
    overpriced_ratio: float = Field(default=1.3, ge=0.0)
    volume_spike_pct: float = 25.0
    oi_spike_pct: float = 15.0
    imbalance_high_delta: float = Field(default=0.5, ge=0.0)
    imbalance_high_delta_ratio: float = Field(default=0.8, ge=0.0)
    imbalance_low_delta: float = Field(default=0.2, ge=0.0)
    imbalance_low_delta_ratio: float = Field(default=1.2, ge=0.0)


class RankerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_spot_distance_pct: float = Field(default=0.2, gt=0.0)
    min_risk_reward: float = -10.0
    good_risk_reward: float = 10.0
    max_results: int = Field(default=15, ge=0)
    top_picks: int = Field(default=4, ge=0)
    highlight_spot_distance_pct: float = Field(default=0.05, ge=0.0)
    highlight_time_value_low: float = Field(default=0.4, ge=0.0, le=1.0)
    highlight_time_value_high: float = Field(default=0.6, ge=0.0, le=1.0)


class HeatmapConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    resolution: GridResolution = Field(default_factory=GridResolution)
    viewport: Viewport = Field(default_factory=Viewport)
    min_strike_padding: float = Field(default=100.0, ge=0.0)
    strike_padding_pct: float = Field(default=0.05, ge=0.0)
    single_strike_padding_min: float = Field(default=1.0, gt=0.0)
    single_strike_padding_pct: float = Field(default=0.1, ge=0.0)
    spot_band_pct: float = Field(default=0.1, ge=0.0, lt=1.0)
    premium_headroom: float = Field(default=1.1, ge=1.0)
    fallback_strike_domain: tuple[float, float] = (0.0, 100000.0)
    fallback_premium_domain: tuple[float, float] = (0.0, 100.0)
    intensity_divisor: float = Field(default=4.0, gt=0.0)
    index: Literal["brute_force", "bucket"] = "brute_force"


class EngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    schema_version: int = 1
    premium: PremiumConfig = Field(default_factory=PremiumConfig)
    scores: ScoreConfig = Field(default_factory=ScoreConfig)
    alerts: AlertThresholds = Field(default_factory=AlertThresholds)
    ranker: RankerConfig = Field(default_factory=RankerConfig)
    heatmap: HeatmapConfig = Field(default_factory=HeatmapConfig)


_NUMBER = {"type": "number"}
_NON_NEGATIVE = {"type": "number", "minimum": 0}
_PAIR = {"type": "array", "items": _NUMBER, "minItems": 2, "maxItems": 2}


def _section(properties: dict[str, Any]) -> dict[str, Any]:
    return {"type": "object", "additionalProperties": False, "properties": properties}


ENGINE_CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "schema_version": {"type": "integer", "const": 1},
        "premium": _section({"scale": _NON_NEGATIVE, "floor": _NON_NEGATIVE, "anomaly_bound": _NON_NEGATIVE}),
        "scores": _section(
            {
                "weight_preset": {"type": "string", "enum": sorted(WEIGHT_PRESETS)},
                "weights": _section(
                    {
                        "distance": _NON_NEGATIVE,
                        "delta": _NON_NEGATIVE,
                        "premium": _NON_NEGATIVE,
                        "volume": _NON_NEGATIVE,
                    }
                ),
                "distance_unit": _NON_NEGATIVE,
                "distance_decay": _NON_NEGATIVE,
                "delta_band_low": _NON_NEGATIVE,
                "delta_band_high": _NON_NEGATIVE,
                "delta_center": _NON_NEGATIVE,
                "delta_off_band_max": _NON_NEGATIVE,
                "volume_divisor": _NON_NEGATIVE,
                "neutral_score": _NON_NEGATIVE,
            }
        ),
        "alerts": _section({name: _NUMBER for name in AlertThresholds.model_fields}),
        "ranker": _section(
            {
                "max_spot_distance_pct": _NON_NEGATIVE,
                "min_risk_reward": _NUMBER,
                "good_risk_reward": _NUMBER,
                "max_results": {"type": "integer", "minimum": 0},
                "top_picks": {"type": "integer", "minimum": 0},
                "highlight_spot_distance_pct": _NON_NEGATIVE,
                "highlight_time_value_low": _NON_NEGATIVE,
                "highlight_time_value_high": _NON_NEGATIVE,
            }
        ),
        "heatmap": _section(
            {
                "resolution": _section(
                    {"cols": {"type": "integer", "minimum": 1}, "rows": {"type": "integer", "minimum": 1}}
                ),
                "viewport": _section(
                    {
                        "width": _NON_NEGATIVE,
                        "height": _NON_NEGATIVE,
                        "margins": _section(
                            {"top": _NON_NEGATIVE, "right": _NON_NEGATIVE, "bottom": _NON_NEGATIVE, "left": _NON_NEGATIVE}
                        ),
                    }
                ),
                "min_strike_padding": _NON_NEGATIVE,
                "strike_padding_pct": _NON_NEGATIVE,
                "single_strike_padding_min": _NON_NEGATIVE,
                "single_strike_padding_pct": _NON_NEGATIVE,
                "spot_band_pct": _NON_NEGATIVE,
                "premium_headroom": _NON_NEGATIVE,
                "fallback_strike_domain": _PAIR,
                "fallback_premium_domain": _PAIR,
                "intensity_divisor": _NON_NEGATIVE,
                "index": {"type": "string", "enum": ["brute_force", "bucket"]},
            }
        ),
    },
}


def load_engine_config(config_path: Path | str | None = None) -> EngineConfig:
    """
    Load engine thresholds from YAML.

    No path means built-in defaults. A file only needs the keys it overrides;
    anything omitted keeps its default.
    """
    if config_path is None:
        return EngineConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Missing config file: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Engine config is not valid YAML: {exc}") from exc

    if cfg is None:
        return EngineConfig()
    if not isinstance(cfg, dict):
        raise ConfigError("Engine config is empty or invalid.")

    validator = Draft202012Validator(ENGINE_CONFIG_SCHEMA)
    errors = sorted(validator.iter_errors(cfg), key=lambda e: list(e.path))
    if errors:
        messages = []
        for err in errors[:10]:
            loc = ".".join(str(p) for p in err.path) or "<root>"
            messages.append(f"{loc}: {err.message}")
        raise ConfigError("Engine config schema validation failed: " + "; ".join(messages))

    _light_validate(cfg)
    try:
        return EngineConfig.model_validate(cfg)
    except ValidationError as exc:
        raise ConfigError(f"Engine config is invalid: {exc}") from exc


def _light_validate(cfg: dict) -> None:
    scores = cfg.get("scores", {}) or {}
    low = float(scores.get("delta_band_low", 0.3))
    high = float(scores.get("delta_band_high", 0.6))
    if low > high:
        raise ConfigError("scores.delta_band_low must be <= scores.delta_band_high")

    alerts = cfg.get("alerts", {}) or {}
    zone_low = float(alerts.get("decision_zone_low", 0.3))
    zone_high = float(alerts.get("decision_zone_high", 0.6))
    if zone_low > zone_high:
        raise ConfigError("alerts.decision_zone_low must be <= alerts.decision_zone_high")
    if float(alerts.get("underpriced_ratio", 0.7)) > float(alerts.get("overpriced_ratio", 1.3)):
        raise ConfigError("alerts.underpriced_ratio must be <= alerts.overpriced_ratio")

    ranker = cfg.get("ranker", {}) or {}
    tv_low = float(ranker.get("highlight_time_value_low", 0.4))
    tv_high = float(ranker.get("highlight_time_value_high", 0.6))
    if tv_low >= tv_high:
        raise ConfigError("ranker.highlight_time_value_low must be < highlight_time_value_high")

    heatmap = cfg.get("heatmap", {}) or {}
    for key in ("fallback_strike_domain", "fallback_premium_domain"):
        pair = heatmap.get(key)
        if pair is not None and float(pair[0]) >= float(pair[1]):
            raise ConfigError(f"heatmap.{key} must be increasing")


def dump_engine_config(cfg: EngineConfig) -> str:
    return yaml.safe_dump(cfg.model_dump(mode="json", exclude_none=True), sort_keys=False)
