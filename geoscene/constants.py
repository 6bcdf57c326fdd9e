"""Projection constants shared by the coordinate and camera code."""

import math
import pathlib

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = pathlib.Path(__file__).parent.parent.absolute()

# ── Tiles and world space ────────────────────────────────────────────────
TILE_SIZE = 512
WORLD_SIZE = TILE_SIZE * 2000
WORLD_SIZE_RATIO = TILE_SIZE / WORLD_SIZE

# ── Earth ────────────────────────────────────────────────────────────────
EARTH_RADIUS = 6371008.8  # mean radius, meters
EARTH_CIRCUMFERENCE = 2 * math.pi * EARTH_RADIUS

DEG_TO_RAD = math.pi / 180
RAD_TO_DEG = 180 / math.pi

# World units per meter at the equator
PROJECTION_WORLD_SIZE = WORLD_SIZE / EARTH_CIRCUMFERENCE

# Web-mercator latitude limit (square world)
MAX_VALID_LATITUDE = 85.051129

# ── Layer defaults ───────────────────────────────────────────────────────
DEFAULT_MIN_ZOOM = 0
DEFAULT_MAX_ZOOM = 24
