import math

MAX_LAT = math.degrees(math.atan(math.sinh(math.pi)))  # ~85.0511287798066
MAX_LON = 180.0
MAX_ZOOM = 24  # deepest level of the WebMercatorQuad tile matrix set
GEOG_EPSG = 4326
WEB_MERCATOR_QUAD = "WebMercatorQuad"
TIMEOUT = 10  # timeout for tile requests
JSON_INDENT = 4  # indentation for JSON strings
DEF_EXTENSION = "png"
USER_AGENT = "pytilelayer (+https://github.com/TUW-GEO/pytilelayer)"
