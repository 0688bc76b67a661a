"""Home server configuration, denormalized from the instance endpoint"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

KB = 1024
MB = KB * KB

DEFAULT_MAX_CHARACTERS = 500
DEFAULT_MAX_ATTACHMENTS = 4
DEFAULT_MAX_IMAGE_SIZE = 10 * MB
DEFAULT_MAX_VIDEO_SIZE = 40 * MB

AUDIO_GROUP = "audio/*"
IMAGE_GROUP = "image/*"
VIDEO_GROUP = "video/*"

MimeExtensions = Dict[str, List[str]]

GOTOSOCIAL = "gotosocial"


def mime_type_extension(mime_type: str) -> str:
    return "." + mime_type.split("/")[1]


def build_mime_extensions(mime_types: List[str]) -> MimeExtensions:
    """Map the server's accepted MIME types to file extensions, grouped by media category."""
    extensions: MimeExtensions = {}

    for mime_type in mime_types:
        if "/" not in mime_type:
            logger.warning(f"Malformed MIME type in server config: {mime_type}")
            continue

        category, file_type = mime_type.split("/", 1)
        if file_type.startswith("x-") or "." in file_type:
            continue  # not a usable file extension

        if category == "audio":
            extensions.setdefault(AUDIO_GROUP, []).append(mime_type_extension(mime_type))
        elif category == "image":
            extensions.setdefault(IMAGE_GROUP, []).append(mime_type_extension(mime_type))
            if file_type == "jpeg":
                extensions[IMAGE_GROUP].append(".jpg")
        elif category == "video":
            if mime_type == "video/quicktime":
                extensions.setdefault(VIDEO_GROUP, []).append(".mov")
            else:
                extensions.setdefault(VIDEO_GROUP, []).append(mime_type_extension(mime_type))
        else:
            logger.warning(f"Unknown MIME type in home server's attachments config: {mime_type}")

    return extensions


class ServerMetadata(BaseModel):
    """Limits and media types the home server accepts"""

    model_config = ConfigDict(frozen=True)

    domain: str
    version: str = ""
    source_url: Optional[str] = None
    supported_mime_types: List[str] = Field(default_factory=list)
    mime_extensions: MimeExtensions = Field(default_factory=dict)
    max_characters: int = DEFAULT_MAX_CHARACTERS
    max_media_attachments: int = DEFAULT_MAX_ATTACHMENTS
    image_size_limit: int = DEFAULT_MAX_IMAGE_SIZE
    video_size_limit: int = DEFAULT_MAX_VIDEO_SIZE

    @property
    def is_goto_social(self) -> bool:
        return is_goto_social_instance({"version": self.version, "source_url": self.source_url})

    @classmethod
    def from_instance(cls, instance: Dict[str, Any]) -> "ServerMetadata":
        """Build from a v2 (or v1) instance payload; missing sections use defaults."""
        configuration = instance.get("configuration") or {}
        statuses = configuration.get("statuses") or {}
        media = configuration.get("media_attachments") or {}
        mime_types = list(media.get("supported_mime_types") or [])

        return cls(
            domain=instance.get("domain") or instance.get("uri") or "",
            version=str(instance.get("version") or ""),
            source_url=instance.get("source_url"),
            supported_mime_types=mime_types,
            mime_extensions=build_mime_extensions(mime_types),
            max_characters=statuses.get("max_characters") or DEFAULT_MAX_CHARACTERS,
            max_media_attachments=statuses.get("max_media_attachments") or DEFAULT_MAX_ATTACHMENTS,
            image_size_limit=media.get("image_size_limit") or DEFAULT_MAX_IMAGE_SIZE,
            video_size_limit=media.get("video_size_limit") or DEFAULT_MAX_VIDEO_SIZE,
        )


def is_goto_social_instance(instance: Dict[str, Any]) -> bool:
    """GoToSocial advertises itself in source_url and sometimes in the version string"""
    haystack = f"{instance.get('source_url') or ''} {instance.get('version') or ''}".lower()
    return GOTOSOCIAL in haystack
