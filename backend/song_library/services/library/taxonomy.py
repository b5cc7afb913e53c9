"""
Key-Space Taxonomy
==================
Derives a two-level hierarchy (folder -> song) from flat object keys.

Object stores have no directories: a key such as ``jazz/a.mp3`` belongs to the
folder ``jazz`` only by convention. Everything here is a pure function of the
keys (and optional folder/query); no I/O happens in this module.

Key rules:
- Leading slashes are ignored (``/jazz/a.mp3`` is ``jazz/a.mp3``).
- The folder is the FIRST path segment, not the dirname
  (``jazz/live/a.mp3`` belongs to ``jazz``).
- Keys with no ``/`` are root items, shown under the synthetic root folder.
- Folder markers (trailing ``/``, ``.keep`` placeholders, zero-length
  objects) define folders but are never songs.
"""

from typing import Callable, Iterable, List, Optional, Union
from urllib.parse import quote

from song_library.core.exceptions import InvalidRequest
from song_library.models.song import Folder, Song, StoredObject


ROOT_FOLDER_LABEL = "All Songs"
ROOT_FOLDER_PATH = ""
FOLDER_PLACEHOLDER = ".keep"
DELIMITER = "/"

KeyLike = Union[str, StoredObject]
UrlBuilder = Callable[[str], str]


# ============================================================================
# KEY HELPERS
# ============================================================================

def _as_object(item: KeyLike) -> StoredObject:
    if isinstance(item, StoredObject):
        return item
    return StoredObject(key=item)


def normalize_key(key: str) -> str:
    """Strip leading slashes"""
    return key.lstrip(DELIMITER)


def derive_folder(key: str) -> Optional[str]:
    """
    Folder a key belongs to.

    Examples:
        "a.mp3"            -> None
        "/a.mp3"           -> None
        "jazz/a.mp3"       -> "jazz"
        "/jazz/a.mp3"      -> "jazz"
        "jazz/"            -> "jazz"
        "jazz/live/a.mp3"  -> "jazz"
        ""                 -> None
    """
    normalized = normalize_key(key)
    if DELIMITER not in normalized:
        return None
    return normalized.split(DELIMITER, 1)[0]


def basename(key: str) -> str:
    return normalize_key(key).rsplit(DELIMITER, 1)[-1]


def is_folder_marker(key: str, size: Optional[int] = None) -> bool:
    """True for keys that only exist to make a folder visible"""
    normalized = normalize_key(key)
    if not normalized or normalized.endswith(DELIMITER):
        return True
    if basename(normalized) == FOLDER_PLACEHOLDER:
        return True
    return size == 0


def display_name(key: str, folder: Optional[str] = None) -> str:
    """
    Key with the folder prefix removed.

    Uses ``folder`` when given, else the key's own derived folder.
    """
    normalized = normalize_key(key)
    folder = folder if folder else derive_folder(normalized)
    if folder:
        prefix = folder + DELIMITER
        if normalized.startswith(prefix):
            return normalized[len(prefix):]
    return normalized


def is_root_label(name: str, root_label: str = ROOT_FOLDER_LABEL) -> bool:
    return name.strip().lower() == root_label.strip().lower()


def default_url(key: str) -> str:
    return quote(normalize_key(key), safe=DELIMITER)


# ============================================================================
# FOLDERS
# ============================================================================

def list_folders(keys: Iterable[KeyLike], root_label: str = ROOT_FOLDER_LABEL) -> List[Folder]:
    """
    Distinct folders across ``keys``.

    The root pseudo-folder comes first when any key has no ``/``; the rest are
    sorted by name. A stored folder named like ``root_label`` is not listed,
    since the label always addresses root items.
    """
    names = set()
    has_root_items = False

    for item in keys:
        key = normalize_key(_as_object(item).key)
        if not key:
            continue
        folder = derive_folder(key)
        if folder is None:
            has_root_items = True
        elif folder and not is_root_label(folder, root_label):
            names.add(folder)

    folders = [Folder(name=name, path=name + DELIMITER) for name in sorted(names)]
    if has_root_items:
        folders.insert(0, Folder(name=root_label, path=ROOT_FOLDER_PATH))
    return folders


# ============================================================================
# SONGS
# ============================================================================

def to_song(obj: StoredObject, url_for: Optional[UrlBuilder] = None) -> Song:
    folder = derive_folder(obj.key) or ""
    return Song(
        name=display_name(obj.key, folder),
        key=normalize_key(obj.key),
        url=(url_for or default_url)(normalize_key(obj.key)),
        folder=folder,
        size=obj.size,
        last_modified=obj.last_modified,
    )


def _songs(objects: Iterable[KeyLike]) -> Iterable[StoredObject]:
    for item in objects:
        obj = _as_object(item)
        if not is_folder_marker(obj.key, obj.size):
            yield obj


def list_songs(
    objects: Iterable[KeyLike],
    folder: Optional[str] = None,
    url_for: Optional[UrlBuilder] = None,
) -> List[Song]:
    """
    Songs, optionally restricted to one folder.

    Args:
        objects: Keys or stored objects
        folder: None for every song, "" for root-level songs only, otherwise
            a folder name (surrounding slashes ignored)
        url_for: Builds the access URL for a key

    Returns:
        List[Song]: In input order, folder markers excluded
    """
    if folder is not None:
        folder = folder.strip(DELIMITER)

    songs = []
    for obj in _songs(objects):
        if folder is not None and (derive_folder(obj.key) or "") != folder:
            continue
        songs.append(to_song(obj, url_for))
    return songs


def search(
    objects: Iterable[KeyLike],
    query: Optional[str],
    url_for: Optional[UrlBuilder] = None,
) -> List[Song]:
    """
    Case-insensitive substring search over basenames and folder names.

    An empty or blank query matches every song.
    """
    needle = (query or "").strip().lower()

    results = []
    for obj in _songs(objects):
        if needle:
            folder = (derive_folder(obj.key) or "").lower()
            if needle not in basename(obj.key).lower() and needle not in folder:
                continue
        results.append(to_song(obj, url_for))
    return results


# ============================================================================
# KEY CONSTRUCTION
# ============================================================================

def normalize_folder_name(name: Optional[str], allow_root: bool = False) -> str:
    """
    Validate a user-supplied folder name.

    Raises:
        InvalidRequest: Empty (unless ``allow_root``), nested, or dot names
    """
    cleaned = (name or "").strip().strip(DELIMITER).strip()
    if not cleaned:
        if allow_root:
            return ROOT_FOLDER_PATH
        raise InvalidRequest("Folder name is required")
    if DELIMITER in cleaned:
        raise InvalidRequest("Nested folders are not supported", details={"folder": cleaned})
    if cleaned in (".", ".."):
        raise InvalidRequest("Invalid folder name", details={"folder": cleaned})
    return cleaned


def build_object_key(folder: Optional[str], filename: str) -> str:
    """
    Key for an uploaded file.

    Directory components in ``filename`` are dropped; an empty folder puts the
    file at the root.
    """
    name = basename((filename or "").replace("\\", DELIMITER)).strip()
    if not name or name in (".", "..") or name == FOLDER_PLACEHOLDER:
        raise InvalidRequest("Invalid file name", details={"filename": filename})
    folder = normalize_folder_name(folder, allow_root=True)
    return f"{folder}{DELIMITER}{name}" if folder else name
