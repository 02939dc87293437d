# Used when neither the constructor nor BigBuffer.set_memory_limit() gives a limit
DEFAULT_MEMORY_LIMIT = 2 * 1024 * 1024

# Chunk size of read_from() and drain_to(), and of read() without a size
STREAM_CHUNK_SIZE = 512

TEMP_FILE_PREFIX = 'diskbuffer-'
TEMP_FILE_SUFFIX = '.tmp'

# AES-256
KEY_SIZE = 32
# Initial counter block stored in front of the ciphertext
NONCE_SIZE = 16
CIPHER_BLOCK_SIZE = 16
