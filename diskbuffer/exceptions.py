class DiskBufferError(Exception):
    pass


class BufferFinished(DiskBufferError):

    def __init__(self):
        super().__init__('Buffer is finished, writing is not possible after reading has started!')


class InvalidOffset(DiskBufferError, ValueError):

    def __init__(self, offset):
        super().__init__(f'Negative offset: {offset}')
        self.offset = offset


class ConfigurationError(DiskBufferError):
    pass


class KeyGenerationFailed(DiskBufferError):
    pass


class EncryptionStreamInitFailed(DiskBufferError):
    pass


class DecryptionStreamInitFailed(DiskBufferError):
    pass


class DirectoryValidationFailed(DiskBufferError):

    def __init__(self, message, path):
        super().__init__(message)
        self.path = path


class TempFileError(DiskBufferError):

    def __init__(self, message, path=None):
        super().__init__(message)
        self.path = path


class TempFileCreationFailed(TempFileError):
    pass


class TempFileOpenFailed(TempFileError):
    pass


class TempFileIOFailed(TempFileError):
    pass


class TempFileRemovalFailed(TempFileError):
    pass


class TransferFailed(DiskBufferError):
    """Raised by read_from() and drain_to() when the other side of the copy fails.

    The amount of bytes that were already moved is stored in "transferred".
    """

    def __init__(self, message, transferred):
        super().__init__(message)
        self.transferred = transferred
