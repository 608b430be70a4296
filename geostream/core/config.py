"""Conversion configuration loaded from environment variables.

All configuration values have sensible defaults; the conversion entry
points use ``GeoStreamConfig()`` unless the caller passes a config.

Fail-fast validation:
    ``from_env()`` raises ``ConfigValidationError`` if any value is out of
    its valid range, so bad configuration surfaces at startup rather than
    halfway through a walk.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from geostream.core.exceptions import GeoStreamError

BYTE_ORDERS = ("little", "big")

# Doubles carry at most 17 significant decimal digits.
MAX_COORDINATE_PRECISION = 17

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class ConfigValidationError(GeoStreamError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class GeoStreamConfig:
    """Immutable conversion configuration.

    Attributes:
        svg_width: Output width used when an SVG document viewport is set.
        svg_height: Output height used when an SVG document viewport is set.
        svg_invert_y: Negate Y when rendering SVG (SVG's Y axis points down).
        svg_auto_viewbox: Compute the SVG document viewBox from the bounding box.
        coordinate_precision: Decimal places for text output; ``None`` keeps
            full precision.
        wkb_byte_order: ``"little"`` or ``"big"`` for encoded WKB.
        validate_events: Check the call sequence of every conversion walk.
    """

    svg_width: int = 800
    svg_height: int = 400
    svg_invert_y: bool = False
    svg_auto_viewbox: bool = True
    coordinate_precision: int | None = None
    wkb_byte_order: str = "little"
    validate_events: bool = True

    @property
    def wkb_big_endian(self) -> bool:
        return self.wkb_byte_order == "big"

    @classmethod
    def from_env(cls) -> GeoStreamConfig:
        """Load and validate configuration from ``GEOSTREAM_*`` variables.

        Raises:
            ConfigValidationError: If a value is out of range or a boolean
                variable is not a recognised flag.
            ValueError: If a numeric variable cannot be parsed
                (e.g. ``GEOSTREAM_SVG_WIDTH=abc``).
        """
        precision = os.getenv("GEOSTREAM_COORD_PRECISION", "")
        config = cls(
            svg_width=int(os.getenv("GEOSTREAM_SVG_WIDTH", "800")),
            svg_height=int(os.getenv("GEOSTREAM_SVG_HEIGHT", "400")),
            svg_invert_y=_env_bool("GEOSTREAM_SVG_INVERT_Y", default=False),
            svg_auto_viewbox=_env_bool("GEOSTREAM_SVG_AUTO_VIEWBOX", default=True),
            coordinate_precision=int(precision) if precision.strip() else None,
            wkb_byte_order=os.getenv("GEOSTREAM_WKB_BYTE_ORDER", "little").strip().lower(),
            validate_events=_env_bool("GEOSTREAM_VALIDATE_EVENTS", default=True),
        )
        _validate(config)
        return config


def _env_bool(key: str, *, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigValidationError(key, raw, "must be a boolean flag (true/false, 1/0, yes/no)")


def _validate(config: GeoStreamConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if config.svg_width <= 0:
        raise ConfigValidationError("GEOSTREAM_SVG_WIDTH", config.svg_width, "must be > 0")

    if config.svg_height <= 0:
        raise ConfigValidationError("GEOSTREAM_SVG_HEIGHT", config.svg_height, "must be > 0")

    if config.coordinate_precision is not None and not (
        0 <= config.coordinate_precision <= MAX_COORDINATE_PRECISION
    ):
        raise ConfigValidationError(
            "GEOSTREAM_COORD_PRECISION",
            config.coordinate_precision,
            f"must be between 0 and {MAX_COORDINATE_PRECISION}",
        )

    if config.wkb_byte_order not in BYTE_ORDERS:
        raise ConfigValidationError(
            "GEOSTREAM_WKB_BYTE_ORDER",
            config.wkb_byte_order,
            f"must be one of {', '.join(BYTE_ORDERS)}",
        )
