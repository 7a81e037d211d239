"""
Shared constants used across multiple modules.
Single source of truth for the built-in factor, lifestyle-metric and
histogram catalogs.
"""

# Factor kinds
NUMERIC = "numeric"
BOOLEAN = "boolean"

# Custom category kinds as tagged by the entry form
CUSTOM_KINDS = ("numeric", "scale", "boolean")

# Subjective targets every factor is correlated against
HAPPINESS = "happiness_rating"
STRESS = "stress_level"
TARGETS = (HAPPINESS, STRESS)

# Built-in factors: (factor_id, display name, kind).
# Order is the catalog discovery order used to break ranking ties.
BUILTIN_FACTORS = [
    ("sleep_hours",     "Sleep Hours",     NUMERIC),
    ("sleep_quality",   "Sleep Quality",   NUMERIC),
    ("exercise",        "Exercise",        BOOLEAN),
    ("exercise_time",   "Exercise Time",   NUMERIC),
    ("alcohol",         "Alcohol",         BOOLEAN),
    ("alcohol_units",   "Alcohol Units",   NUMERIC),
    ("cannabis",        "Cannabis",        BOOLEAN),
    ("cannabis_amount", "Cannabis Amount", NUMERIC),
    ("meditation",      "Meditation",      BOOLEAN),
    ("meditation_time", "Meditation Time", NUMERIC),
    ("social_time",     "Social Time",     NUMERIC),
    ("work_hours",      "Work Hours",      NUMERIC),
    ("meals",           "Meals",           NUMERIC),
    ("food_quality",    "Food Quality",    NUMERIC),
    ("stress_level",    "Stress Level",    NUMERIC),
    ("happiness_rating", "Happiness",      NUMERIC),
]

# Amount fields that read 0 when the companion flag is off, so a stale
# amount left on the record is never counted.
FLAG_GATED_AMOUNTS = {
    "exercise_time":   "exercise",
    "alcohol_units":   "alcohol",
    "cannabis_amount": "cannabis",
    "meditation_time": "meditation",
}

# Record field -> camelCase key used by the entries API
RECORD_FIELD_KEYS = {
    "sleep_hours":      "sleepHours",
    "sleep_quality":    "sleepQuality",
    "exercise":         "exercise",
    "exercise_time":    "exerciseTime",
    "alcohol":          "alcohol",
    "alcohol_units":    "alcoholUnits",
    "cannabis":         "cannabis",
    "cannabis_amount":  "cannabisAmount",
    "meditation":       "meditation",
    "meditation_time":  "meditationTime",
    "social_time":      "socialTime",
    "work_hours":       "workHours",
    "meals":            "meals",
    "food_quality":     "foodQuality",
    "stress_level":     "stressLevel",
    "happiness_rating": "happinessRating",
    "notes":            "notes",
}

# Subset shown in the factor-vs-factor correlation matrix
MATRIX_FACTORS = [
    "happiness_rating", "stress_level", "sleep_hours", "exercise",
    "meditation", "alcohol", "cannabis", "social_time", "work_hours",
    "meals", "food_quality",
]

# Lifestyle composition normalization rules
LINEAR = "linear"
SCALE = "scale"

# Composable lifestyle metrics: (metric_id, label, typical max, rule).
# Targets are excluded. This is an ordered list: the LAST metric absorbs
# the floating-point residual of the per-day composition.
LIFESTYLE_METRICS = [
    ("sleep_hours",     "Sleep Hours",   12,   LINEAR),
    ("sleep_quality",   "Sleep Quality", 10,   SCALE),
    ("exercise_time",   "Exercise",      720,  LINEAR),   # minutes
    ("meditation_time", "Meditation",    60,   LINEAR),   # minutes
    ("social_time",     "Social Time",   12,   LINEAR),
    ("work_hours",      "Work Hours",    12,   LINEAR),
    ("meals",           "Meals",         10,   LINEAR),
    ("food_quality",    "Food Quality",  10,   SCALE),
    ("alcohol_units",   "Alcohol",       10,   LINEAR),
    ("cannabis_amount", "Cannabis",      0.1,  LINEAR),
]

# Upper bound of the pass-1 normalized scale
COMPOSITION_SCALE = 10.0
# Per-day sum tolerance before the residual correction kicks in
COMPOSITION_TOLERANCE = 1e-4

# Distribution histograms: factor_id -> (domain max, bin count, decimals).
# Small-scale factors get more label precision.
HISTOGRAM_CATALOG = {
    "sleep_hours":     (12,   12, 1),
    "sleep_quality":   (10,   10, 1),
    "exercise_time":   (720,  12, 1),
    "meditation_time": (60,   12, 1),
    "social_time":     (12,   12, 1),
    "work_hours":      (12,   12, 1),
    "meals":           (10,   10, 1),
    "food_quality":    (10,   10, 1),
    "alcohol_units":   (10,   10, 1),
    "cannabis_amount": (0.1,  10, 3),
}

# 1-10 subjective rating range
RATING_MIN = 1
RATING_MAX = 10

# Correlation strength bands: (upper bound of |r|, label stem)
STRENGTH_BANDS = [
    (0.1, None),
    (0.3, "Weak"),
    (0.5, "Moderate"),
    (0.7, "Good"),
]
