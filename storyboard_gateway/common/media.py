"""
Media Type Helpers

Maps between asset file extensions and MIME types.
"""

DEFAULT_MIME_TYPE = "application/octet-stream"

EXTENSION_TO_MIME: dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "gif": "image/gif",
    "mp4": "video/mp4",
    "webm": "video/webm",
}

MIME_TO_EXTENSION: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/webm": "webm",
}


def mime_type_for_path(path: str) -> str:
    """Guess the MIME type of an asset file from its extension"""
    _, _, ext = path.rpartition(".")
    return EXTENSION_TO_MIME.get(ext.lower(), DEFAULT_MIME_TYPE)


def extension_for_mime_type(mime_type: str) -> str:
    """
    File extension for a MIME type

    Parameters such as ``; codecs=...`` are ignored; unknown types fall back to the subtype.
    """
    base = mime_type.split(";", 1)[0].strip().lower()
    if base in MIME_TO_EXTENSION:
        return MIME_TO_EXTENSION[base]
    _, _, subtype = base.partition("/")
    return subtype or "bin"
