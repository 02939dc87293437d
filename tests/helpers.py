def write_by_chunks(buf, data, chunk_size):
    for i in range(0, len(data), chunk_size):
        chunk = data[i:i + chunk_size]
        assert buf.write(chunk) == len(chunk)
        assert len(buf) == i + len(chunk)


def read_by_chunks(buf, chunk_size):
    result = b''
    total = len(buf)
    while True:
        chunk = buf.read(chunk_size)
        result += chunk
        assert len(buf) == total - len(result)
        if len(chunk) < chunk_size:
            return result
