from .bigbuffer import BigBuffer, Phase
from .constants import DEFAULT_MEMORY_LIMIT
from .exceptions import (
    BufferFinished,
    ConfigurationError,
    DecryptionStreamInitFailed,
    DirectoryValidationFailed,
    DiskBufferError,
    EncryptionStreamInitFailed,
    InvalidOffset,
    KeyGenerationFailed,
    TempFileCreationFailed,
    TempFileError,
    TempFileIOFailed,
    TempFileOpenFailed,
    TempFileRemovalFailed,
    TransferFailed,
)
from .utils import memory_limit_from_available_memory
