from . import constants
from . import exceptions

import os
import tempfile

import psutil


def memory_limit_from_available_memory(divisor=10, minimum=constants.DEFAULT_MEMORY_LIMIT):
    """Returns a memory limit that is a fraction of the currently available memory.

    The result never goes below "minimum". Suitable for passing to BigBuffer.set_memory_limit().
    """
    if divisor <= 0:
        raise ValueError(f'Divisor must be positive, got {divisor}')
    return max(minimum, psutil.virtual_memory().available // divisor)


def validate_directory(path):
    """Makes sure "path" is an existing and accessible directory, and returns its absolute form."""
    path_abs = os.path.abspath(os.path.expanduser(path))
    if not os.path.lexists(path_abs):
        raise exceptions.DirectoryValidationFailed(f'Directory "{path_abs}" does not exist!', path_abs)
    if not os.path.isdir(path_abs):
        raise exceptions.DirectoryValidationFailed(f'"{path_abs}" is not a directory!', path_abs)
    # Files are created, read and removed in it
    if not os.access(path_abs, os.R_OK | os.W_OK | os.X_OK):
        raise exceptions.DirectoryValidationFailed(f'Directory "{path_abs}" is not accessible!', path_abs)
    return path_abs


def create_temp_file(directory=None):
    """Creates a new uniquely named file and returns it opened for writing.

    The file is not removed automatically, use remove_temp_file() for that.
    """
    try:
        return tempfile.NamedTemporaryFile(
            'wb',
            prefix=constants.TEMP_FILE_PREFIX,
            suffix=constants.TEMP_FILE_SUFFIX,
            dir=directory,
            delete=False,
        )
    except OSError as err:
        location = directory or tempfile.gettempdir()
        raise exceptions.TempFileCreationFailed(f'Unable to create a temporary file in "{location}"!', location) from err


def open_temp_file(path):
    try:
        return open(path, 'rb')
    except OSError as err:
        raise exceptions.TempFileOpenFailed(f'Unable to open temporary file "{path}"!', path) from err


def remove_temp_file(path):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as err:
        raise exceptions.TempFileRemovalFailed(f'Unable to remove temporary file "{path}"!', path) from err
