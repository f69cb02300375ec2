"""
Positional astronomy for the star map.

Low-precision formulas (accurate to a fraction of a degree), which is far
below what a character canvas can resolve:
- Greenwich mean sidereal time from the Julian date
- equatorial (RA hours, Dec degrees) -> horizontal (altitude, azimuth)
- approximate solar coordinates for the day/night indicator

Projections:
- horizontal_to_canvas: stereographic from the zenith, North up and East
  right, log-compressed beyond r = 100
- project_to_canvas: flat RA/Dec offsets from a centre, compressed beyond 30°
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Tuple

SEOUL = (37.5665, 126.9780)
UNIX_EPOCH_JD = 2440587.5
J2000_JD = 2451545.0

# Sun altitude below which the sky counts as dark
NIGHT_SUN_ALTITUDE = -6.0


@dataclass(frozen=True)
class HorizontalCoordinates:
    altitude: float
    azimuth: float

    @property
    def visible(self) -> bool:
        return self.altitude > 0


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def julian_date(moment: datetime) -> float:
    return _as_utc(moment).timestamp() / 86400.0 + UNIX_EPOCH_JD


def gmst_degrees(moment: datetime) -> float:
    """Greenwich mean sidereal time in degrees [0, 360)."""
    d = julian_date(moment) - J2000_JD
    t = d / 36525.0
    gmst = 280.46061837 + 360.98564736629 * d + 0.000387933 * t * t - t ** 3 / 38710000.0
    return gmst % 360.0


def local_sidereal_degrees(moment: datetime, longitude: float) -> float:
    return (gmst_degrees(moment) + longitude) % 360.0


def equatorial_to_horizontal(ra_hours: float, dec_degrees: float, moment: datetime,
                             location: Tuple[float, float] = SEOUL) -> HorizontalCoordinates:
    """Altitude and azimuth (degrees, azimuth clockwise from North)."""
    latitude, longitude = location
    hour_angle = math.radians(local_sidereal_degrees(moment, longitude) - ra_hours * 15.0)
    dec = math.radians(dec_degrees)
    lat = math.radians(latitude)

    sin_alt = math.sin(dec) * math.sin(lat) + math.cos(dec) * math.cos(lat) * math.cos(hour_angle)
    altitude = math.degrees(math.asin(max(-1.0, min(1.0, sin_alt))))

    y = -math.cos(dec) * math.sin(hour_angle)
    x = math.sin(dec) * math.cos(lat) - math.cos(dec) * math.sin(lat) * math.cos(hour_angle)
    azimuth = math.degrees(math.atan2(y, x)) % 360.0
    return HorizontalCoordinates(altitude, azimuth)


def horizontal_to_canvas(altitude: float, azimuth: float, width: float, height: float,
                         scale: float = 1.0) -> Tuple[float, float]:
    alt = math.radians(altitude)
    az = math.radians(azimuth)

    r = math.tan((math.pi / 2 - alt) / 2) * scale * 2.5
    if r > 100:
        r = 100 + math.log(1 + (r - 100) / 20) * 20

    angle = az - math.pi / 2
    return width / 2 + r * math.cos(angle), height / 2 + r * math.sin(angle)


def project_to_canvas(ra_hours: float, dec_degrees: float, scale: float,
                      center_x: float, center_y: float,
                      center_ra: float = 6.0, center_dec: float = 0.0) -> Tuple[float, float]:
    """Flat chart projection around (center_ra, center_dec), ignoring the observer."""
    ra_offset = (ra_hours - center_ra) * 15.0
    dec_offset = dec_degrees - center_dec

    distance = math.hypot(ra_offset, dec_offset)
    compressed = 30 + math.log(1 + (distance - 30) / 10) * 10 if distance > 30 else distance
    ratio = compressed / distance if distance > 0 else 1.0

    x = center_x + ra_offset * ratio * scale * 0.05
    y = center_y - dec_offset * ratio * scale * 0.05
    return x, y


def magnitude_to_size(magnitude: float) -> float:
    return max(2.0, min(12.0, 9.0 - magnitude))


def magnitude_to_opacity(magnitude: float) -> float:
    return max(0.3, min(1.0, 1.0 - magnitude / 8.0))


def sun_equatorial(moment: datetime) -> Tuple[float, float]:
    """Approximate solar RA (hours) and declination (degrees)."""
    n = julian_date(moment) - J2000_JD
    mean_longitude = math.radians((280.460 + 0.9856474 * n) % 360)
    anomaly = math.radians((357.528 + 0.9856003 * n) % 360)
    ecliptic_longitude = (
        mean_longitude
        + math.radians(1.915) * math.sin(anomaly)
        + math.radians(0.020) * math.sin(2 * anomaly)
    )
    obliquity = math.radians(23.439 - 0.0000004 * n)

    ra = math.atan2(math.cos(obliquity) * math.sin(ecliptic_longitude), math.cos(ecliptic_longitude))
    dec = math.asin(math.sin(obliquity) * math.sin(ecliptic_longitude))
    return (math.degrees(ra) % 360.0) / 15.0, math.degrees(dec)


def sun_altitude(moment: datetime, location: Tuple[float, float] = SEOUL) -> float:
    ra, dec = sun_equatorial(moment)
    return equatorial_to_horizontal(ra, dec, moment, location).altitude


def is_night(moment: datetime, location: Tuple[float, float] = SEOUL) -> bool:
    return sun_altitude(moment, location) < NIGHT_SUN_ALTITUDE
