from . import crypto
from . import exceptions
from . import utils

import os
import threading


class PlainReaderAt:
    """Positional reader for unencrypted temporary files."""

    def __init__(self, file):
        self.file = file
        self.lock = threading.Lock()

    def read_at(self, size, offset):
        if size <= 0:
            return b''
        with self.lock:
            self.file.seek(offset)
            return self.file.read(size)

    def close(self):
        self.file.close()


def open_write_stream(file, key=None, random_source=os.urandom):
    """Wraps a freshly created temporary file for writing, encrypting if "key" is given."""
    if key is None:
        return file
    return crypto.EncryptWriter(file, key, random_source)


def open_read_stream(path, key=None):
    file = utils.open_temp_file(path)
    if key is None:
        return file
    try:
        return crypto.DecryptReader(file, key)
    except OSError as err:
        file.close()
        raise exceptions.TempFileIOFailed(f'Unable to read temporary file "{path}"!', path) from err
    except Exception:
        file.close()
        raise


def open_read_at_stream(path, key=None):
    file = utils.open_temp_file(path)
    try:
        if key is None:
            return PlainReaderAt(file)
        return crypto.DecryptReaderAt(file, key)
    except OSError as err:
        file.close()
        raise exceptions.TempFileIOFailed(f'Unable to read temporary file "{path}"!', path) from err
    except Exception:
        file.close()
        raise
