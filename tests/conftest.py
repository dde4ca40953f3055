# StegFile Test Configuration
# This file contains test settings and fixtures

import pytest
import sys
import os
from io import BytesIO

import numpy as np
from PIL import Image

# Add core directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'python-core'))


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return os.path.dirname(os.path.dirname(__file__))


@pytest.fixture
def temp_directory(tmp_path):
    """Provide a temporary directory for test operations."""
    return tmp_path


@pytest.fixture
def host_bytes():
    """Minimal host used by the reference scenario."""
    return b"ABC"


@pytest.fixture
def sample_binary_data():
    """Binary host with bytes that are not valid UTF-8."""
    return b'\x00\x01\x02\x03\x04\x05\xff\xfe\xfd'


@pytest.fixture
def png_bytes():
    """Encoded 32x32 RGB PNG carrier."""
    img_array = np.zeros((32, 32, 3), dtype=np.uint8)
    img_array[:, :, 0] = 255  # Red channel
    img_array[8:24, 8:24, 1] = 255  # Green square

    buf = BytesIO()
    Image.fromarray(img_array, 'RGB').save(buf, format='PNG')
    return buf.getvalue()


@pytest.fixture
def png_file(temp_directory, png_bytes):
    """PNG carrier written to disk."""
    path = temp_directory / "photo.png"
    path.write_bytes(png_bytes)
    return path


@pytest.fixture
def manager():
    """Manager with default configuration."""
    from stegfile import StegFileManager
    return StegFileManager()
