"""
=============================================================================
ASSET TABLE
=============================================================================

The web viewer is a fixed set of files produced by an external build step:

    web_viewer/
    ├── index_bundled.html        HTML shell, served at /
    ├── favicon.svg               Tab icon
    ├── sw.js                     Service worker
    ├── re_viewer.js              JS glue for the release module
    ├── re_viewer_bg.wasm         Release WebAssembly module
    ├── re_viewer_debug.js        JS glue for the debug module
    └── re_viewer_debug_bg.wasm   Debug WebAssembly module

They are read into memory ONCE at startup and never change afterwards:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    ASSET TABLE LIFECYCLE                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   load_assets(dir)                                                   │
    │        │                                                             │
    │        ├──► read every file in VIEWER_ASSETS                         │
    │        │       missing / unreadable ──► AssetError (fatal)           │
    │        │                                                             │
    │        └──► AssetTable(MappingProxyType({path: Asset}))              │
    │                    │                                                 │
    │                    └──► shared by all worker threads, read-only      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Since nothing ever mutates the table, worker threads can read it
concurrently without any locking.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, NamedTuple, Optional, Union

from .errors import AssetError


logger = logging.getLogger(__name__)


ROOT_PATH = "/"

# Extra URL paths that resolve to an existing entry
PATH_ALIASES = {
    "/index.html": ROOT_PATH,
}

# Directory shipped next to this module; overridden by WEB_VIEWER_ASSET_DIR
DEFAULT_ASSET_DIR = Path(__file__).parent / "web_viewer"


class AssetSpec(NamedTuple):
    """One entry of the viewer manifest."""
    url_path: str
    filename: str
    content_type: str
    cacheable: bool = False


# Only the icon may be cached without revalidation
VIEWER_ASSETS = (
    AssetSpec("/", "index_bundled.html", "text/html"),
    AssetSpec("/favicon.svg", "favicon.svg", "image/svg+xml", cacheable=True),
    AssetSpec("/sw.js", "sw.js", "text/javascript"),
    AssetSpec("/re_viewer.js", "re_viewer.js", "text/javascript"),
    AssetSpec("/re_viewer_bg.wasm", "re_viewer_bg.wasm", "application/wasm"),
    AssetSpec("/re_viewer_debug.js", "re_viewer_debug.js", "text/javascript"),
    AssetSpec("/re_viewer_debug_bg.wasm", "re_viewer_debug_bg.wasm", "application/wasm"),
)


@dataclass(frozen=True)
class Asset:
    """
    One servable file.

    Attributes:
        path: URL path the asset is served at (e.g. "/sw.js").
        content: The file bytes. Immutable.
        content_type: Value for the Content-Type header.
        cacheable: True if browsers may cache without revalidating.
        size: Byte length of content. Range arithmetic relies on this
              being exact, so a mismatch is rejected at construction.
    """

    path: str
    content: bytes = field(repr=False)
    content_type: str
    cacheable: bool = False
    size: int = -1

    def __post_init__(self):
        if not isinstance(self.content, bytes):
            # bytearray / memoryview would let callers mutate shared data
            object.__setattr__(self, "content", bytes(self.content))
        actual = len(self.content)
        if self.size == -1:
            object.__setattr__(self, "size", actual)
        elif self.size != actual:
            raise ValueError(
                f"Asset {self.path}: declared size {self.size} != actual {actual}"
            )

    @property
    def is_wasm(self) -> bool:
        return self.content_type == "application/wasm"


class AssetTable:
    """
    Immutable mapping from URL path to Asset.

    Usage:
        table = load_assets("./web_viewer")
        asset = table.lookup("/re_viewer_bg.wasm")
        if asset is None:
            ...  # 404
    """

    def __init__(self, assets: Mapping[str, Asset]):
        self._assets: Mapping[str, Asset] = MappingProxyType(dict(assets))

    @classmethod
    def from_files(
        cls,
        files: Mapping[str, Union[bytes, bytearray, memoryview]],
        manifest=VIEWER_ASSETS,
    ) -> "AssetTable":
        """
        Build a table from in-memory file contents keyed by filename.

        Every manifest entry must be present, the same rule load_assets()
        applies to a directory.
        """
        assets: Dict[str, Asset] = {}
        for spec in manifest:
            if spec.filename not in files:
                raise AssetError(f"Missing web viewer asset: {spec.filename}", spec.filename)
            assets[spec.url_path] = Asset(
                path=spec.url_path,
                content=bytes(files[spec.filename]),
                content_type=spec.content_type,
                cacheable=spec.cacheable,
            )
        return cls(assets)

    def lookup(self, path: str) -> Optional[Asset]:
        """
        Find the asset for a normalized request path.

        Exact match only. Paths with a ".." segment are rejected before
        the lookup even though the table is flat.

        Args:
            path: Request path, query string already stripped.

        Returns:
            The Asset, or None if the path is not served.
        """
        if not path or path == ROOT_PATH:
            return self._assets.get(ROOT_PATH)

        if ".." in path.split("/"):
            logger.warning(f"Rejected path with parent segment: {path!r}")
            return None

        path = PATH_ALIASES.get(path, path)
        return self._assets.get(path)

    @property
    def total_bytes(self) -> int:
        return sum(asset.size for asset in self._assets.values())

    def __contains__(self, path: str) -> bool:
        return self.lookup(path) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self._assets)

    def __len__(self) -> int:
        return len(self._assets)


def resolve_asset_dir(asset_dir: Optional[Union[str, Path]] = None) -> Path:
    """Pick the asset directory: explicit argument, then env var, then package default."""
    if asset_dir:
        return Path(asset_dir)
    env_dir = os.getenv("WEB_VIEWER_ASSET_DIR")
    if env_dir:
        return Path(env_dir)
    return DEFAULT_ASSET_DIR


def load_assets(
    asset_dir: Optional[Union[str, Path]] = None,
    manifest=VIEWER_ASSETS,
) -> AssetTable:
    """
    Read every viewer file from disk into an AssetTable.

    The build step is trusted to have produced correct files; we only
    check that each one exists and can be read.

    Args:
        asset_dir: Directory containing the files. See resolve_asset_dir().
        manifest: Which files to load. Defaults to VIEWER_ASSETS.

    Returns:
        The loaded, immutable AssetTable.

    Raises:
        AssetError: If any file is missing or unreadable.
    """
    root = resolve_asset_dir(asset_dir)
    if not root.is_dir():
        raise AssetError(f"Web viewer asset directory does not exist: {root}", str(root))

    files: Dict[str, bytes] = {}
    for spec in manifest:
        file_path = root / spec.filename
        try:
            files[spec.filename] = file_path.read_bytes()
        except FileNotFoundError:
            raise AssetError(f"Missing web viewer asset: {file_path}", str(file_path)) from None
        except OSError as e:
            raise AssetError(f"Cannot read web viewer asset {file_path}: {e}", str(file_path)) from e

    table = AssetTable.from_files(files, manifest)
    logger.info(f"Loaded {len(table)} web viewer assets ({table.total_bytes} bytes) from {root}")
    return table
