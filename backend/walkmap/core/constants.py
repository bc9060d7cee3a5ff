"""Shared application constants.

Centralizes repeat values used across ingestion, simplification and query
logic so we can document and adjust them in one place.
"""

# Mean Earth radius in kilometers (Haversine)
EARTH_RADIUS_KM = 6371.0

# Assumed walking speed when a track has no usable timestamps
WALKING_SPEED_KMH = 5.0

# Douglas-Peucker tolerance for the stored simplified LOD, in degrees.
# ~0.0001 deg is roughly 11 m at NYC latitude.
DEFAULT_TOLERANCE_DEG = 0.0001

# Tolerance search window for target-count simplification (degrees)
TOLERANCE_SEARCH_LOW = 0.00001
TOLERANCE_SEARCH_HIGH = 0.01
TOLERANCE_SEARCH_MAX_ITERATIONS = 20

# Acceptance band around the target point count
TARGET_BAND_HIGH = 1.5
TARGET_BAND_LOW = 0.5

# Source files the pipeline knows how to read
SOURCE_EXTENSIONS = (".gpx", ".fit")

# Display palette (RGBA), assigned by processing index
TRACK_ALPHA = 180
TRACK_COLORS = [
    [255, 255, 255, TRACK_ALPHA],
    [200, 200, 255, TRACK_ALPHA],
    [255, 200, 200, TRACK_ALPHA],
    [200, 255, 200, TRACK_ALPHA],
    [255, 255, 200, TRACK_ALPHA],
    [200, 255, 255, TRACK_ALPHA],
    [255, 200, 255, TRACK_ALPHA],
]

# Maximum stored length of a generated narrative summary
SUMMARY_MAX_CHARS = 400
