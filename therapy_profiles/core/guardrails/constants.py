"""Absolute clinical guardrails for therapy profile schedules.

A stored profile may only be activated when every schedule value lies
inside these bounds (inclusive). They are the absolute limits the
settings editors enforce, not the narrower recommended ranges.
Basal rates have no fixed guardrail: they are bounded by the user's
maximum basal rate and by the increments the pump supports.
"""

from typing import Final

# Correction range (mg/dL). Below 87 the target overlaps the
# suspend-threshold region; above 180 corrections stop being useful.
CORRECTION_RANGE_MIN_MGDL: Final[float] = 87.0
CORRECTION_RANGE_MAX_MGDL: Final[float] = 180.0

# Insulin sensitivity (mg/dL per U).
INSULIN_SENSITIVITY_MIN_MGDL_PER_UNIT: Final[float] = 10.0
INSULIN_SENSITIVITY_MAX_MGDL_PER_UNIT: Final[float] = 500.0

# Carb ratio (g per U).
CARB_RATIO_MIN_GRAMS_PER_UNIT: Final[float] = 2.0
CARB_RATIO_MAX_GRAMS_PER_UNIT: Final[float] = 150.0

# Basal rates are compared against pump increments at milliunit
# resolution, matching the milliunit convention used for doses.
BASAL_RATE_PRECISION_DECIMALS: Final[int] = 3
