import logging
import os
import pathlib

from .constants import BASE_DIR

OUTPUT_DIR = pathlib.Path(os.environ.get("GEOSCENE_OUTPUT_DIR", BASE_DIR / "output"))

LOG_LEVEL = os.environ.get("GEOSCENE_LOG_LEVEL", "INFO").upper()

# Vertical field of view (degrees) used by web-map cameras
DEFAULT_FOV = float(os.environ.get("GEOSCENE_DEFAULT_FOV", "36.86989764584402"))

# Set GEOSCENE_RENDER_OUTSIDE_BOUNDS=0 to cull objects outside the viewport by default
RENDER_OUTSIDE_BOUNDS = os.environ.get(
    "GEOSCENE_RENDER_OUTSIDE_BOUNDS", "1").strip().lower() not in ("0", "false", "no")


def configure_logging(level=None):
    """Install a stream handler on the root logger (CLI entry points only)."""
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
