"""Centralized MIME type handling for vidshift.

Registers the video container mappings that are missing or inconsistent
across platforms and exposes a lookup keyed by container name.
"""

import mimetypes

mimetypes.add_type("video/x-matroska", ".mkv")
mimetypes.add_type("video/webm", ".webm")
mimetypes.add_type("video/x-msvideo", ".avi")
mimetypes.add_type("video/quicktime", ".mov")

DEFAULT_VIDEO_MIME_TYPE = "video/mp4"


def mime_type_for_container(container: str) -> str:
    """Return the MIME type for a container name such as ``mp4`` or ``gif``.

    Unknown containers map to ``video/mp4``.
    """
    guessed, _ = mimetypes.guess_type(f"output.{container.lower()}")
    return guessed or DEFAULT_VIDEO_MIME_TYPE


__all__ = ["DEFAULT_VIDEO_MIME_TYPE", "mime_type_for_container", "mimetypes"]
