"""assetpak: PACK archive container, asset loading and the ``pakutil`` tool."""

from .assets import (
    Asset,
    AssetMap,
    asset_free,
    asset_get,
    asset_get_chunk,
    asset_write,
)
from .hashing import content_hash, hash_asset
from .pack import PackHandle, PackMode, open_file, open_memory
from .packing.errors import (
    ArgumentError,
    CapacityError,
    FormatError,
    NotFoundError,
    PakError,
    PakIOError,
)

__version__ = "0.3.0"

__all__ = [
    "Asset",
    "AssetMap",
    "asset_free",
    "asset_get",
    "asset_get_chunk",
    "asset_write",
    "content_hash",
    "hash_asset",
    "PackHandle",
    "PackMode",
    "open_file",
    "open_memory",
    "PakError",
    "FormatError",
    "PakIOError",
    "NotFoundError",
    "ArgumentError",
    "CapacityError",
    "__version__",
]
