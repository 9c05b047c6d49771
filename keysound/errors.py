"""Exception taxonomy. Every message is meant to be shown to the user as-is."""


class KeySoundError(Exception):
    pass


# --- Validation: raised before anything touches the filesystem ---
class ValidationError(KeySoundError):
    pass


class EmptyNameError(ValidationError):
    def __init__(self, message="Pack name cannot be empty"):
        super().__init__(message)


class UnsupportedFormatError(ValidationError):
    def __init__(self, extension, allowed):
        self.extension = extension
        super().__init__(f"Unsupported format '{extension}'. Use {', '.join(allowed[:-1])}, or {allowed[-1]}.")


class FileTooLargeError(ValidationError):
    def __init__(self, size, limit):
        self.size = size
        self.limit = limit
        super().__init__(f"File too large ({size / (1024 * 1024):.1f}MB). Maximum is {limit / (1024 * 1024):g}MB.")


class InvalidSlotError(ValidationError):
    def __init__(self, slot):
        self.slot = slot
        super().__init__(f"Unknown sound slot '{slot}'")


# --- Not found ---
class NotFoundError(KeySoundError):
    pass


class ManifestMissingError(NotFoundError):
    def __init__(self, directory):
        self.directory = directory
        super().__init__(f"No pack.json found in {directory}")


class PackNotFoundError(NotFoundError):
    def __init__(self, pack_id):
        self.pack_id = pack_id
        super().__init__(f"Sound pack '{pack_id}' not found")


class SourceFileNotFoundError(NotFoundError):
    def __init__(self, path):
        self.path = path
        super().__init__(f"File not found: {path}")


# --- Manifest / filesystem ---
class ManifestParseError(KeySoundError):
    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse {path}: {reason}")


class PackIOError(KeySoundError):
    """A copy, write or delete failed. The originating OSError is chained."""


class BundledPackError(KeySoundError):
    def __init__(self, pack_id):
        self.pack_id = pack_id
        super().__init__(f"Cannot modify bundled sound pack '{pack_id}'")


# --- Audio ---
class AudioBackendError(KeySoundError):
    pass
