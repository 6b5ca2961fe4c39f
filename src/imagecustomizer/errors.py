"""Error types raised by the customization pipeline."""


class ImageCustomizerError(Exception):
    """Base class for all image customizer errors."""
    pass


class MountError(ImageCustomizerError):
    """Mount or unmount failure."""
    pass


class ChrootBusyError(ImageCustomizerError):
    """Another root redirection is already active in this process."""
    pass


class FileCopyError(ImageCustomizerError):
    """Copying a file into the image failed."""
    pass


class ScriptExecutionError(ImageCustomizerError):
    """A customization script failed to launch or exited non-zero."""

    def __init__(self, script_path: str, message: str):
        super().__init__(f"script ({script_path}) failed: {message}")
        self.script_path = script_path


class PackageOperationError(ImageCustomizerError):
    """Package add/remove/update failed."""
    pass


class ConfigWriteError(ImageCustomizerError):
    """Writing a config file (hostname, resolv.conf) in the image failed."""
    pass


class ConfigError(ImageCustomizerError):
    """Customization config could not be loaded or is invalid."""
    pass


class BlobStorageError(ImageCustomizerError):
    """Blob upload or download failed."""
    pass


class PipelineStepError(ImageCustomizerError):
    """A pipeline step failed; wraps the step's error."""

    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"{step} step failed: {cause}")
        self.step = step
        self.cause = cause
