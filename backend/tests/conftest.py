"""Shared pytest fixtures & GPX builders."""
from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from walkmap.db import open_store

MEMORY_DB = "sqlite+pysqlite:///:memory:"


def gpx_document(segments, name=None, metadata_time=None, routes=None, desc=None):
    """Build a GPX 1.1 string.

    ``segments``: list of segments, each a list of (lon, lat, ele, iso_time)
    tuples; ele/time may be None.
    """
    meta = ""
    if name or metadata_time or desc:
        meta = "<metadata>"
        if name:
            meta += f"<name>{name}</name>"
        if desc:
            meta += f"<desc>{desc}</desc>"
        if metadata_time:
            meta += f"<time>{metadata_time}</time>"
        meta += "</metadata>"

    def pt(tag, lon, lat, ele, t):
        inner = ""
        if ele is not None:
            inner += f"<ele>{ele}</ele>"
        if t is not None:
            inner += f"<time>{t}</time>"
        return f'<{tag} lat="{lat}" lon="{lon}">{inner}</{tag}>'

    trk = ""
    if segments:
        trk = "<trk>"
        for seg in segments:
            trk += "<trkseg>" + "".join(pt("trkpt", *p) for p in seg) + "</trkseg>"
        trk += "</trk>"
    rte = ""
    for route in routes or []:
        rte += "<rte>" + "".join(pt("rtept", *p) for p in route) + "</rte>"

    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<gpx version="1.1" creator="tests" xmlns="http://www.topografix.com/GPX/1/1">'
        f"{meta}{trk}{rte}</gpx>"
    )


def simple_walk(offset: float = 0.0, n: int = 30):
    """A wiggly walk near lower Manhattan, one point per minute."""
    start = datetime(2024, 5, 4, 10, 0)
    seg = []
    for i in range(n):
        lon = -74.0 + offset + i * 0.001
        lat = 40.70 + offset + (0.0005 if i % 2 else 0.0)
        t = (start + timedelta(minutes=i)).strftime("%Y-%m-%dT%H:%M:%SZ")
        seg.append((lon, lat, 10 + (i % 3), t))
    return [seg]


def write_gpx(directory, filename, **kwargs):
    path = directory / filename
    path.write_text(gpx_document(**kwargs), encoding="utf-8")
    return path


@pytest.fixture
def store():
    with open_store(MEMORY_DB) as s:
        yield s
