from . import constants
from . import exceptions

from cryptography.hazmat.primitives.ciphers import algorithms, Cipher, modes
import os
import threading

# Encrypted temporary files consist of the initial counter block followed by
# AES-256-CTR ciphertext. CTR keeps ciphertext offsets equal to cleartext
# offsets, which makes positional decryption possible.


def generate_key(random_source=os.urandom):
    try:
        key = random_source(constants.KEY_SIZE)
    except OSError as err:
        raise exceptions.KeyGenerationFailed('Unable to read random data for encryption key!') from err
    if not isinstance(key, bytes) or len(key) != constants.KEY_SIZE:
        raise exceptions.KeyGenerationFailed(f'Random source must return {constants.KEY_SIZE} bytes!')
    return key


def _aes_ctr_cipher(key, counter_block):
    if len(key) != constants.KEY_SIZE:
        raise ValueError(f'Key must be {constants.KEY_SIZE} bytes, got {len(key)}')
    return Cipher(algorithms.AES(key), modes.CTR(counter_block))


def _counter_block(nonce, block_index):
    # CTR treats the whole 128 bit block as a big endian counter that wraps around
    counter = (int.from_bytes(nonce, 'big') + block_index) % (1 << (8 * constants.NONCE_SIZE))
    return counter.to_bytes(constants.NONCE_SIZE, 'big')


class EncryptWriter:

    def __init__(self, file, key, random_source=os.urandom):
        self.file = file
        try:
            nonce = random_source(constants.NONCE_SIZE)
            self.encryptor = _aes_ctr_cipher(key, nonce).encryptor()
        except (OSError, ValueError) as err:
            raise exceptions.EncryptionStreamInitFailed('Unable to create an encryption stream!') from err
        self.file.write(nonce)

    def write(self, data):
        self.file.write(self.encryptor.update(data))
        return len(data)

    def close(self):
        try:
            self.file.write(self.encryptor.finalize())
        finally:
            self.file.close()


class DecryptReader:
    """Forward only decrypting reader."""

    def __init__(self, file, key):
        self.file = file
        nonce = file.read(constants.NONCE_SIZE)
        if len(nonce) != constants.NONCE_SIZE:
            raise exceptions.DecryptionStreamInitFailed('Encrypted stream is missing its header!')
        try:
            self.decryptor = _aes_ctr_cipher(key, nonce).decryptor()
        except ValueError as err:
            raise exceptions.DecryptionStreamInitFailed('Unable to create a decryption stream!') from err

    def read(self, size):
        return self.decryptor.update(self.file.read(size))

    def close(self):
        self.file.close()


class DecryptReaderAt:
    """Decrypting reader that supports reads at arbitrary offsets.

    The counter block of any offset can be calculated, so decryption itself is
    positional. The underlying file has only a single seek position, however,
    so every read holds a lock. This also means that every read seeks.
    """

    def __init__(self, file, key):
        self.file = file
        self.key = key
        self.lock = threading.Lock()

        self.file.seek(0)
        self.nonce = self.file.read(constants.NONCE_SIZE)
        if len(self.nonce) != constants.NONCE_SIZE:
            raise exceptions.DecryptionStreamInitFailed('Encrypted stream is missing its header!')
        # Fail early on bad keys
        try:
            _aes_ctr_cipher(key, self.nonce)
        except ValueError as err:
            raise exceptions.DecryptionStreamInitFailed('Unable to create a decryption stream!') from err

    def read_at(self, size, offset):
        with self.lock:
            return self._read_at(size, offset)

    def close(self):
        self.file.close()

    def _read_at(self, size, offset):
        if size <= 0:
            return b''
        block_index, skip = divmod(offset, constants.CIPHER_BLOCK_SIZE)
        decryptor = _aes_ctr_cipher(self.key, _counter_block(self.nonce, block_index)).decryptor()
        self.file.seek(constants.NONCE_SIZE + block_index * constants.CIPHER_BLOCK_SIZE)
        ciphertext = self.file.read(skip + size)
        return decryptor.update(ciphertext)[skip:]
