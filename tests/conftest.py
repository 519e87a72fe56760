from pathlib import Path

import pytest

from tests.helpers.content import sample_manifest, sample_scenes, write_content


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    """Sample content written to disk as manifest.json plus scenes/<id>.json."""
    return write_content(tmp_path / "content", sample_manifest(), sample_scenes())
