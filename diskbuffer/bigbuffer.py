from . import constants
from . import crypto
from . import exceptions
from . import streams
from . import utils

import contextlib
import enum
import logging
import os

logger = logging.getLogger(__name__)

REPLACEMENT_CHARACTER = '\ufffd'


class Phase(enum.Enum):
    WRITING = 'writing'
    OVERFLOWING = 'overflowing'
    READING = 'reading'
    EXHAUSTED = 'exhausted'


class BigBuffer:
    """Byte buffer that keeps data in memory up to a limit, and the rest in a temporary file.

    Data is first written, and then read. The first read of any kind ends the
    writing phase for good. Reading is possible either sequentially, with
    read() and the helpers built on it, or at arbitrary offsets with read_at().
    The temporary file is removed once the sequential reading reaches the end,
    or when the buffer is reset.

    Not thread safe.
    """

    @classmethod
    def set_memory_limit(cls, limit):
        if limit is not None and limit < 0:
            raise ValueError(f'Memory limit must not be negative, got {limit}')
        cls.custom_memory_limit = limit

    @classmethod
    def from_bytes(cls, data, memory_limit=None):
        buf = cls(memory_limit)
        if data:
            buf.write(data)
        return buf

    @classmethod
    def from_string(cls, text, memory_limit=None):
        return cls.from_bytes(text.encode('utf8'), memory_limit)

    def __init__(self, memory_limit=None, temp_dir=None, encrypt=False, random_source=os.urandom):
        if memory_limit is None:
            memory_limit = getattr(BigBuffer, 'custom_memory_limit', None)
        if memory_limit is None:
            memory_limit = constants.DEFAULT_MEMORY_LIMIT
        if memory_limit < 0:
            raise ValueError(f'Memory limit must not be negative, got {memory_limit}')
        self.memory_limit = memory_limit

        self.random_source = random_source
        self.key = None
        self.temp_dir = None

        # In memory buffer. Sequential reading only moves "buf_pos",
        # so the contents stay available for read_at().
        self.buf = bytearray()
        self.buf_pos = 0

        # On disk buffer
        self.file_path = None
        self.writer = None
        self.reader = None
        self.reader_at = None
        self._uses_file = False

        self.phase = Phase.WRITING
        # Total amount of bytes written, and amount of bytes read sequentially
        self.size = 0
        self.offset = 0

        if temp_dir is not None:
            self.change_temp_dir(temp_dir)
        if encrypt:
            self.enable_encryption()

    @property
    def uses_file(self):
        return self._uses_file

    @property
    def encrypted(self):
        return self.key is not None

    @property
    def write_finished(self):
        return self.phase in (Phase.READING, Phase.EXHAUSTED)

    @property
    def read_exhausted(self):
        return self.phase is Phase.EXHAUSTED

    def change_temp_dir(self, path):
        self.temp_dir = utils.validate_directory(path)

    def enable_encryption(self):
        # Key is never changed once it exists
        if self.key is not None:
            return
        if self._uses_file:
            raise exceptions.ConfigurationError('Encryption must be enabled before data is written to a temporary file!')
        self.key = crypto.generate_key(self.random_source)

    def write(self, data):
        if self.write_finished:
            raise exceptions.BufferFinished()

        data = bytes(data)
        accepted = 0
        try:
            if not self._uses_file:
                # If there is still space left in memory
                if len(self.buf) + len(data) <= self.memory_limit:
                    self.buf += data
                    accepted = len(data)
                    return accepted

                # Fill memory first, and continue with the rest on disk
                bound = self.memory_limit - len(self.buf)
                self.buf += data[:bound]
                accepted = bound
                self._create_file()

            self._write_to_file(data[accepted:])
            accepted = len(data)
            return accepted
        finally:
            self.size += accepted

    def write_byte(self, value):
        self.write(bytes((value,)))

    def write_rune(self, char):
        if len(char) != 1:
            raise ValueError(f'Expected a single character, got {len(char)}')
        try:
            encoded = char.encode('utf8')
        except UnicodeEncodeError:
            # Surrogates
            encoded = REPLACEMENT_CHARACTER.encode('utf8')
        return self.write(encoded)

    def write_string(self, text):
        return self.write(text.encode('utf8'))

    def read_from(self, source):
        transferred = 0
        while True:
            try:
                chunk = source.read(constants.STREAM_CHUNK_SIZE)
            except OSError as err:
                raise exceptions.TransferFailed('Unable to read data from source!', transferred) from err
            if not chunk:
                return transferred
            self.write(chunk)
            transferred += len(chunk)

    def read(self, size=-1):
        if size is None or size < 0:
            return self._read_all()
        if self.read_exhausted:
            return b''
        self._finish_writing()

        # Memory position is moved only after the file has been read successfully
        result = bytes(self.buf[self.buf_pos:self.buf_pos + size])
        from_memory = len(result)
        if from_memory < size and self._uses_file:
            result += self._read_from_file(size - from_memory)
        self.buf_pos += from_memory
        self.offset += len(result)

        if len(result) < size:
            self._finish_reading()
        return result

    def read_byte(self):
        data = self.read(1)
        if not data:
            raise EOFError('End of buffer reached')
        return data[0]

    def read_rune(self):
        """Reads a single UTF-8 encoded character and returns it with its size in bytes.

        Invalid encoding consumes the bytes read so far, but results in U+FFFD with size 1.
        """
        first = self.read_byte()
        if first < 0x80:
            return chr(first), 1
        expected = _utf8_sequence_length(first)
        if expected is None:
            return REPLACEMENT_CHARACTER, 1

        encoded = bytearray((first,))
        while len(encoded) < expected:
            byte = self.read_byte()
            encoded.append(byte)
            if byte & 0xC0 != 0x80:
                return REPLACEMENT_CHARACTER, 1
        try:
            return encoded.decode('utf8'), expected
        except UnicodeDecodeError:
            # Overlong forms and surrogates
            return REPLACEMENT_CHARACTER, 1

    def read_bytes(self, delimiter):
        """Reads until "delimiter" and returns the data, including the delimiter.

        If the end is reached before the delimiter, then the data read so far
        is returned. So a result not ending with the delimiter means the end.
        """
        delimiter = _delimiter_byte(delimiter)
        result = bytearray()
        while data := self.read(1):
            result += data
            if data[0] == delimiter:
                break
        return bytes(result)

    def read_string(self, delimiter):
        return self.read_bytes(delimiter).decode('utf8', errors='replace')

    def next(self, n):
        """Returns the next "n" bytes from memory.

        Unlike read(), this never continues from the temporary file, and never
        marks the buffer as exhausted. If there are less than "n" bytes left in
        memory, then only those are returned.
        """
        if n < 0:
            raise ValueError(f'Negative count: {n}')
        self._finish_writing()
        data = bytes(self.buf[self.buf_pos:self.buf_pos + n])
        self.buf_pos += len(data)
        self.offset += len(data)
        return data

    def drain_to(self, sink):
        transferred = 0
        while chunk := self.read(constants.STREAM_CHUNK_SIZE):
            # Raw sinks may accept only part of the data
            while chunk:
                try:
                    written = sink.write(chunk)
                except OSError as err:
                    raise exceptions.TransferFailed('Unable to write data to sink!', transferred) from err
                if written is None:
                    written = len(chunk)
                if written <= 0:
                    raise exceptions.TransferFailed('Sink did not accept any data!', transferred)
                transferred += written
                chunk = chunk[written:]
        return transferred

    def read_at(self, size, offset):
        """Reads "size" bytes starting from "offset", like os.pread().

        This is independent from sequential reading: it does not move the
        position of read(), and the same range can be read any number of
        times. A result shorter than "size" means the end was reached.

        Sequential reading removes the temporary file when it reaches the end.
        After that, ranges in the file can only be read if read_at() already
        opened the file before. Otherwise TempFileOpenFailed is raised.
        Ranges in memory stay readable until reset().
        """
        if offset < 0:
            raise exceptions.InvalidOffset(offset)
        if size < 0:
            raise ValueError(f'Negative size: {size}')
        if size == 0 or offset >= self.size:
            return b''
        self._finish_writing()

        memory_size = len(self.buf)
        result = bytearray()
        if offset < memory_size:
            result += self.buf[offset:offset + size]
        if len(result) < size and self._uses_file:
            file_offset = offset - memory_size + len(result)
            result += self._read_at_file(size - len(result), file_offset)
        return bytes(result)

    def remaining(self):
        return self.size - self.offset

    def __len__(self):
        return self.remaining()

    def reset(self):
        handles = (self.writer, self.reader, self.reader_at)
        path = self.file_path

        self.buf = bytearray()
        self.buf_pos = 0
        self.file_path = None
        self.writer = None
        self.reader = None
        self.reader_at = None
        self._uses_file = False
        self.phase = Phase.WRITING
        self.size = 0
        self.offset = 0

        # Callbacks run in reverse order, so the file is removed after all handles are closed
        with contextlib.ExitStack() as stack:
            if path is not None:
                stack.callback(utils.remove_temp_file, path)
            for handle in handles:
                if handle is not None:
                    stack.callback(handle.close)
        if path is not None:
            logger.debug('Removed temporary file "%s" on reset', path)

    def close(self):
        self.reset()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _create_file(self):
        file = utils.create_temp_file(self.temp_dir)
        try:
            writer = streams.open_write_stream(file, self.key, self.random_source)
        except OSError as err:
            file.close()
            utils.remove_temp_file(file.name)
            raise exceptions.TempFileIOFailed(f'Unable to write to temporary file "{file.name}"!', file.name) from err
        except Exception:
            file.close()
            utils.remove_temp_file(file.name)
            raise

        self.writer = writer
        self.file_path = file.name
        self._uses_file = True
        self.phase = Phase.OVERFLOWING
        logger.debug('Memory limit of %d bytes exceeded, continuing in temporary file "%s"', self.memory_limit, self.file_path)

    def _write_to_file(self, data):
        try:
            self.writer.write(data)
        except OSError as err:
            raise exceptions.TempFileIOFailed(f'Unable to write to temporary file "{self.file_path}"!', self.file_path) from err

    def _finish_writing(self):
        if self.write_finished:
            return
        writer = self.writer
        self.writer = None
        self.phase = Phase.READING
        if writer is not None:
            try:
                writer.close()
            except OSError as err:
                raise exceptions.TempFileIOFailed(f'Unable to close temporary file "{self.file_path}"!', self.file_path) from err
        logger.debug('Writing finished with %d bytes, %d in memory', self.size, len(self.buf))

    def _read_all(self):
        chunks = []
        while chunk := self.read(constants.STREAM_CHUNK_SIZE):
            chunks.append(chunk)
        return b''.join(chunks)

    def _read_from_file(self, size):
        if self.reader is None:
            self.reader = streams.open_read_stream(self.file_path, self.key)
        try:
            return self.reader.read(size)
        except OSError as err:
            raise exceptions.TempFileIOFailed(f'Unable to read temporary file "{self.file_path}"!', self.file_path) from err

    def _read_at_file(self, size, offset):
        if self.reader_at is None:
            if self.file_path is None:
                raise exceptions.TempFileOpenFailed('Temporary file has already been removed!')
            self.reader_at = streams.open_read_at_stream(self.file_path, self.key)
        try:
            return self.reader_at.read_at(size, offset)
        except OSError as err:
            raise exceptions.TempFileIOFailed(f'Unable to read temporary file "{self.file_path}"!', self.file_path) from err

    def _finish_reading(self):
        self.phase = Phase.EXHAUSTED
        reader = self.reader
        path = self.file_path
        self.reader = None
        self.file_path = None
        logger.debug('Reading finished after %d bytes', self.offset)

        try:
            if reader is not None:
                reader.close()
        finally:
            if path is not None:
                utils.remove_temp_file(path)
                logger.debug('Removed temporary file "%s"', path)


def _utf8_sequence_length(first_byte):
    if 0xC2 <= first_byte <= 0xDF:
        return 2
    if 0xE0 <= first_byte <= 0xEF:
        return 3
    if 0xF0 <= first_byte <= 0xF4:
        return 4
    return None


def _delimiter_byte(delimiter):
    if isinstance(delimiter, str):
        delimiter = delimiter.encode('utf8')
    if isinstance(delimiter, (bytes, bytearray)):
        if len(delimiter) != 1:
            raise ValueError(f'Delimiter must be a single byte, got {len(delimiter)}')
        return delimiter[0]
    if not 0 <= delimiter <= 255:
        raise ValueError(f'Delimiter must be a byte value, got {delimiter}')
    return delimiter
