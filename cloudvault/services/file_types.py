"""Map a declared content-type onto the node type shown in listings."""

from typing import Optional

# Checked in order; first match wins.
_SUBSTRING_RULES = (
    (("pdf",), "pdf"),
    (("zip", "rar", "tar", "7z"), "archive"),
    (("text", "plain"), "text"),
    (("javascript", "python", "java", "cpp", "html", "css"), "code"),
)


def classify(content_type: Optional[str]) -> str:
    """Return image, video, audio, pdf, archive, text, code or document."""
    mime = (content_type or "").lower()
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("video/"):
        return "video"
    if mime.startswith("audio/"):
        return "audio"
    for needles, node_type in _SUBSTRING_RULES:
        if any(needle in mime for needle in needles):
            return node_type
    return "document"
