import re

from twdl.errors import ConfigError

# Bare slug, clips.twitch.tv/<slug>, clips.twitch.tv/embed?clip=<slug>&parent=...
# or twitch.tv/<channel>/clip/<slug>
CLIP_URL_PATTERN = re.compile(
    r"^(?:https?://)?"
    r"(?:(?:www\.|m\.)?twitch\.tv/[^/]+/clip/|clips\.twitch\.tv/(?P<embed>embed\?clip=)?)?"
    r"(?P<slug>[A-Za-z0-9_-]+)"
    r"(?(embed)(?:[&#].*)?|/?(?:[?#].*)?)$"
)


def extract_clip_slug(value: str) -> str:
    """Return the clip slug from a bare slug or any common clip URL form."""
    if not value or not value.strip():
        raise ConfigError("a clip slug or URL is required")

    match = CLIP_URL_PATTERN.match(value.strip())
    if not match:
        raise ConfigError(f"could not find a clip slug in {value!r}")
    return match.group("slug")
