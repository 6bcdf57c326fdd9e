"""Click CLI commands for GeoScene.

Negative coordinates must follow ``--`` so click does not read them as
options, e.g. ``geoscene project -- 148.9819 -35.3981``.
"""

import asyncio
import logging

import click

from .config import configure_logging
from .layer import GeoLayer
from .models import GeoCoordinate, ValidationError
from .projection import meters_to_world_units, project, projected_to_mercator, unproject
from .render import GlbRenderDriver
from .viewport import MapViewport

logger = logging.getLogger(__name__)


@click.group()
@click.option('--log-level', default=None, help='Logging level (default: GEOSCENE_LOG_LEVEL or INFO)')
def cli(log_level):
    """GeoScene CLI for placing 3D models at geographic positions on a web map."""
    configure_logging(log_level.upper() if log_level else None)


def _viewport_options(func):
    options = [
        click.option('--zoom', default=17.0, help='Map zoom level'),
        click.option('--bearing', default=0.0, help='Map bearing in degrees'),
        click.option('--pitch', default=0.0, help='Map pitch in degrees'),
        click.option('--width', default=800, help='Canvas width in pixels'),
        click.option('--height', default=600, help='Canvas height in pixels'),
        click.option('--alt', default=0.0, help='Model altitude in meters'),
        click.option('--scale', default=1.0, help='Meters per model unit'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@cli.command(name='project')
@click.argument('lng', type=float)
@click.argument('lat', type=float)
@click.option('--alt', default=0.0, help='Altitude in meters')
def project_command(lng: float, lat: float, alt: float):
    """Project a longitude/latitude/altitude into world units."""
    try:
        coord = GeoCoordinate(lng, lat, alt)
    except ValidationError as e:
        raise click.ClickException(str(e))
    x, y, z = project(*coord.to_tuple())
    mx, my = projected_to_mercator(x, y)
    click.echo(f"world:    {x:.6f} {y:.6f} {z:.6f}")
    click.echo(f"mercator: {mx:.9f} {my:.9f}")
    click.echo(f"units/m:  {meters_to_world_units(coord.lat):.9f}")


@cli.command(name='unproject')
@click.argument('x', type=float)
@click.argument('y', type=float)
@click.option('--z', default=0.0, help='World-unit height')
def unproject_command(x: float, y: float, z: float):
    """Convert a world-space position back to longitude/latitude/altitude."""
    coord = unproject(x, y, z)
    click.echo(f"{coord.lng:.9f} {coord.lat:.9f} {coord.alt:.3f}")


@cli.command()
@click.argument('model', type=click.Path(exists=True, dir_okay=False))
@click.argument('lng', type=float)
@click.argument('lat', type=float)
@click.option('--x', 'canvas_x', type=float, default=None, help='Canvas x (default: center)')
@click.option('--y', 'canvas_y', type=float, default=None, help='Canvas y (default: center)')
@_viewport_options
def pick(model: str, lng: float, lat: float, canvas_x, canvas_y, zoom, bearing, pitch,
         width, height, alt, scale):
    """Place MODEL at LNG LAT and report what lies under a canvas pixel."""
    viewport = MapViewport((lng, lat), zoom, bearing, pitch, width, height)
    point = (width / 2 if canvas_x is None else canvas_x,
             height / 2 if canvas_y is None else canvas_y)
    layer, _ = _run(async_place(viewport, model, (lng, lat, alt), scale))
    hit = layer.query_render_object(point)
    if hit is None:
        click.echo(f"({point[0]:.1f}, {point[1]:.1f}): no object")
    else:
        click.echo(f"({point[0]:.1f}, {point[1]:.1f}): object {hit.id} at "
                   f"{hit.position.lng:.6f}, {hit.position.lat:.6f}")
    layer.on_detach()


@cli.command()
@click.argument('model', type=click.Path(exists=True, dir_okay=False))
@click.argument('lng', type=float)
@click.argument('lat', type=float)
@click.option('--output', '-o', default='snapshot.glb', help='Output GLB file path')
@_viewport_options
def snapshot(model: str, lng: float, lat: float, output: str, zoom, bearing, pitch,
             width, height, alt, scale):
    """Export one synchronized frame of MODEL placed at LNG LAT as GLB."""
    viewport = MapViewport((lng, lat), zoom, bearing, pitch, width, height)
    driver = GlbRenderDriver(output, resolution=(width, height))
    layer, _ = _run(async_place(viewport, model, (lng, lat, alt), scale, renderer=driver))
    layer.render_frame()
    layer.on_detach()
    click.echo(f"Snapshot written: {driver.output_path}")


def _run(coro):
    try:
        return asyncio.run(coro)
    except ValidationError as e:
        logger.error(f"Invalid input: {e}")
        raise click.ClickException(str(e))
    except Exception as e:
        logger.error(f"Error placing model: {e}")
        raise click.ClickException(str(e))


async def async_place(viewport: MapViewport, model: str, position, scale: float,
                      renderer=None):
    """Attach a layer to ``viewport`` and load ``model`` onto it."""
    layer = GeoLayer('cli', renderer=renderer)
    layer.on_attach(viewport)
    placed = await layer.load_model(model, position, scale=(scale, scale, scale))
    return layer, placed
