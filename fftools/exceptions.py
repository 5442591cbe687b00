"""Exceptions raised by the fftools package."""


class FFToolsError(RuntimeError):
    """Base error for the fftools package."""


class ConfigurationError(FFToolsError):
    """Raised when the environment cannot support running ffmpeg."""


class ExecutableNotFoundError(ConfigurationError):
    """Raised when ffmpeg or ffprobe cannot be located."""


class InvalidArgumentError(FFToolsError, ValueError):
    """Raised when a required argument is missing or empty."""


class SessionAlreadyRunningError(FFToolsError):
    """Raised when a session is started while a previous run is active."""


class ProcessLaunchError(FFToolsError):
    """Raised when the operating system refuses to start the child process."""

    def __init__(self, path: str, cause: OSError):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to start {path}: {cause}")


class ConversionError(FFToolsError):
    """Raised when ffmpeg exits with a non-zero return code."""

    def __init__(self, return_code: int, arguments: str, message: str):
        self.return_code = return_code
        self.arguments = arguments
        self.message = message
        super().__init__(f"ffmpeg exited with code {return_code}: {message}")


class ProbeError(FFToolsError):
    """Raised when ffprobe cannot inspect a media file."""
