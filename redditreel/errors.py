"""Exception hierarchy shared by the redditreel pipeline."""


class RedditReelError(Exception):
    """Base exception for all redditreel errors"""


class ConfigError(RedditReelError):
    """Raised when configuration is invalid or missing"""


class RedditFetchError(RedditReelError):
    """Raised when a Reddit listing cannot be fetched or decoded"""


class RedditNotFoundError(RedditFetchError):
    """The requested post or listing does not exist"""


class RedditTransportError(RedditFetchError):
    """Network failure or non-success HTTP status"""


class RedditMalformedError(RedditFetchError):
    """The response was not the JSON shape Reddit normally returns"""


class SynthesisError(RedditReelError):
    """Raised when narration audio could not be produced"""


class CardRenderError(RedditReelError):
    """Raised when a caption card could not be drawn"""


class FfmpegError(RedditReelError):
    """Raised when an ffmpeg/ffprobe invocation fails"""


class ComposeError(RedditReelError):
    """Raised when a segment clip could not be composed"""


class AssemblyError(RedditReelError):
    """Raised when clips could not be joined into a final video"""


class UploadError(RedditReelError):
    """Raised when the finished video could not be uploaded"""
