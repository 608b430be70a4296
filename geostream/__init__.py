"""Streaming geometry interchange.

Any geometry source (a GeoPackage blob, a KML document, an in-memory
geometry tree) emits its structure as a sequence of processor calls,
and any geometry sink (an SVG renderer, a WKB encoder, a geometry
builder) consumes them without either side knowing the other.
"""

__version__ = "0.1.0"
