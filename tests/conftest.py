from diskbuffer import BigBuffer

import pytest


@pytest.fixture(autouse=True)
def default_memory_limit(monkeypatch):
    # Tests that change the class wide limit must not leak it
    monkeypatch.setattr(BigBuffer, 'custom_memory_limit', None, raising=False)


@pytest.fixture
def make_buffer(tmp_path):
    buffers = []

    def factory(memory_limit, encrypt=False, **kwargs):
        buf = BigBuffer(memory_limit, temp_dir=tmp_path, encrypt=encrypt, **kwargs)
        buffers.append(buf)
        return buf

    yield factory

    for buf in buffers:
        buf.reset()
