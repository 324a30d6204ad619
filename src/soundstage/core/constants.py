"""Core constants for Soundstage.

This module defines constants used throughout the scanning pipeline:
- Library kinds and the media entity kinds they produce
- Media file extensions per library kind
- Release tags stripped from filenames
- Artwork size tiers and provider configuration
"""

# ============================================================================
# Library / Media Kinds
# ============================================================================

#: Valid library kind identifiers
LIBRARY_KINDS: tuple[str, ...] = ("movies", "tvshows", "music", "photos")

# ============================================================================
# Media File Extensions
# ============================================================================

#: Video file extensions (movies and TV shows)
VIDEO_EXTENSIONS: tuple[str, ...] = (
    ".mp4",
    ".mkv",
    ".avi",
    ".mov",
    ".wmv",
    ".flv",
    ".webm",
    ".m4v",
)

#: Audio file extensions for music
AUDIO_EXTENSIONS: tuple[str, ...] = (
    ".mp3",
    ".flac",
    ".m4a",
    ".aac",
    ".ogg",
    ".wav",
    ".wma",
)

#: Image file extensions for photos
IMAGE_EXTENSIONS: tuple[str, ...] = (
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".bmp",
)

#: Extension allow-list for each library kind
EXTENSIONS_BY_KIND: dict[str, frozenset[str]] = {
    "movies": frozenset(VIDEO_EXTENSIONS),
    "tvshows": frozenset(VIDEO_EXTENSIONS),
    "music": frozenset(AUDIO_EXTENSIONS),
    "photos": frozenset(IMAGE_EXTENSIONS),
}

# ============================================================================
# Filename Parsing
# ============================================================================

#: Resolution / encoding / source tags removed from titles (case-insensitive)
RELEASE_TAGS: tuple[str, ...] = (
    "720p",
    "1080p",
    "2160p",
    "4k",
    "HDR",
    "BluRay",
    "WEB-DL",
    "HDTV",
    "x264",
    "x265",
    "HEVC",
)

#: Earliest release year accepted by the parser
MIN_YEAR: int = 1900

#: Album name used when a track has no parent directory name
UNKNOWN_ALBUM: str = "Unknown Album"

# ============================================================================
# Metadata Provider
# ============================================================================

#: TMDB API base URL
TMDB_BASE_URL: str = "https://api.themoviedb.org/3"

#: TMDB image base URL (size tier and relative path are appended)
TMDB_IMAGE_BASE: str = "https://image.tmdb.org/t/p"

#: Image size tier per artwork kind
IMAGE_SIZE_TIERS: dict[str, str] = {
    "poster": "w500",
    "backdrop": "w1280",
    "season": "w300",
    "still": "w300",
}

#: Number of credited cast members kept per entity
MAX_CAST_MEMBERS: int = 10

#: Crew jobs treated as writers
WRITER_JOBS: frozenset[str] = frozenset({"Writer", "Screenplay"})

#: Timeout for provider API calls in seconds
PROVIDER_TIMEOUT: float = 10.0

#: Maximum number of retry attempts for provider API calls
MAX_PROVIDER_RETRIES: int = 3

#: Requests allowed per rate window before the provider throttles itself
PROVIDER_RATE_LIMIT: int = 40

#: Length of the provider rate window in seconds
PROVIDER_RATE_WINDOW_SECONDS: float = 10.0

# ============================================================================
# Scanning
# ============================================================================

#: Default number of files processed concurrently within one scan
DEFAULT_SCAN_CONCURRENCY: int = 4

#: Default number of rows returned by the continue-watching query
CONTINUE_WATCHING_LIMIT: int = 10
