"""envibe exceptions."""


class EnvibeError(Exception):
    """Base exception for all envibe errors."""
    pass


class ManifestError(EnvibeError):
    """Base class for manifest loading problems."""
    def __init__(self, path: str, message: str):
        self.path = str(path)
        super().__init__(message)


class ManifestNotFoundError(ManifestError):
    """Raised when the manifest file does not exist."""
    def __init__(self, path: str):
        super().__init__(path, f"Manifest not found: {path}")


class ManifestParseError(ManifestError):
    """Raised when the manifest exists but cannot be understood."""
    def __init__(self, path: str, detail: str, key: str = ""):
        self.detail = detail
        self.key = key
        msg = f"Invalid manifest {path}"
        if key:
            msg += f" (variable: {key})"
        msg += f": {detail}"
        super().__init__(path, msg)
