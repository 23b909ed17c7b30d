# guitarshare/constants.py
# Share visibility schema, storage key layout and image constants

from types import MappingProxyType

# Guitar attributes copied verbatim when their flag is on
PLAIN_FIELDS: tuple[str, ...] = (
    "brand", "model", "year", "color", "type",
    "bodyMaterial", "neckMaterial", "fretboardMaterial", "numberOfFrets",
    "scaleLength", "pickupConfiguration", "finish", "tuningMachines",
    "bridge", "nut", "electronics", "caseIncluded", "countryOfOrigin",
    "detailedSpecs", "notes",
)

# conditionReport flag exposes both of these
CONDITION_FIELDS: tuple[str, ...] = ("conditionShape", "conditionMarkers")

# Flags read from guitar["privateInfo"]
PRIVATE_INFO_FIELDS: tuple[str, ...] = ("purchasePrice", "purchaseDate")

# true = public by default
DEFAULT_SHARED_FIELDS = MappingProxyType({
    "brand": True,
    "model": True,
    "year": True,
    "color": True,
    "type": True,
    "bodyMaterial": False,
    "neckMaterial": False,
    "fretboardMaterial": False,
    "numberOfFrets": False,
    "scaleLength": False,
    "pickupConfiguration": False,
    "finish": False,
    "tuningMachines": False,
    "bridge": False,
    "nut": False,
    "electronics": False,
    "caseIncluded": False,
    "countryOfOrigin": False,
    "detailedSpecs": False,
    "conditionReport": False,
    # Always private by default
    "purchasePrice": False,
    "purchaseDate": False,
    "notes": False,
    "provenance": False,
    "documents": False,
})

# --- Redis key layout ---
SHARE_KEY = "share:{owner_id}:{share_id}"
SHARE_INDEX_KEY = "share-index:{share_id}"
OWNER_SHARES_KEY = "shares-by-owner:{owner_id}"
GUITAR_KEY = "guitar:{owner_id}:{guitar_id}"

# --- Blob layout ---
SOURCE_IMAGE_PREFIX = "images/"
DERIVATIVE_KEY = "shared/{share_id}/{image_id}.webp"
DERIVATIVE_CONTENT_TYPE = "image/webp"
DERIVATIVE_CACHE_CONTROL = "public, max-age=31536000, immutable"

# --- Watermark geometry ---
WATERMARK_BASE_WIDTH = 360
WATERMARK_BASE_HEIGHT = 56
WATERMARK_WIDTH_RATIO = 0.18
WATERMARK_MIN_WIDTH = 140
WATERMARK_MAX_WIDTH = 220
WATERMARK_PADDING = 12

# --- Analytics ---
# Ordered (family, required substrings, forbidden substrings); first match wins
BROWSER_FAMILIES: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("Chrome", ("chrome",), ("edg",)),
    ("Firefox", ("firefox",), ()),
    ("Safari", ("safari",), ("chrome",)),
    ("Edge", ("edg",), ()),
    ("Opera", ("opera",), ()),
    ("Opera", ("opr",), ()),
)
BROWSER_FALLBACK = "Other"

COUNTRY_HEADERS: tuple[str, ...] = ("cloudfront-viewer-country", "cf-ipcountry")
