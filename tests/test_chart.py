"""Tests for chart package parsing."""

import io
import tarfile

import pytest

from app_catalog.chart import ChartMetadata, TarballChartParser
from app_catalog.exceptions import ChartParseError

from tests.conftest import build_chart


def make_archive(files: dict[str, str]) -> bytes:
    """Build a gzipped tarball with the files."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as archive:
        for path, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(path)
            info.size = len(data)
            archive.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def test_parse() -> None:
    """Test reading the metadata of a chart package."""
    metadata = TarballChartParser().parse(build_chart("redis", "7.0.0", "7.2.4"))
    assert metadata == ChartMetadata(
        name="redis",
        version="7.0.0",
        app_version="7.2.4",
        description="A chart for redis",
        home="https://redis.example.com",
    )


def test_files() -> None:
    """Test listing the files of a chart package."""
    package = build_chart(extra_files={"templates/deployment.yaml": "kind: x\n"})
    files = TarballChartParser().files(package)
    assert sorted(files) == ["Chart.yaml", "templates/deployment.yaml", "values.yaml"]
    assert files["templates/deployment.yaml"] == b"kind: x\n"


@pytest.mark.parametrize(
    ("package", "match"),
    [
        (b"", "no files in chart archive"),
        (b"not a tarball", "failed to load chart archive"),
        (make_archive({"nginx/values.yaml": "a: 1\n"}), "Chart.yaml"),
        (make_archive({"nginx/Chart.yaml": "name: nginx\n"}), "version must not"),
        (make_archive({"nginx/Chart.yaml": "version: 1.0.0\n"}), "name must not"),
        (make_archive({"nginx/Chart.yaml": "name: [\n"}), "failed to parse"),
        (make_archive({"nginx/Chart.yaml": "- a\n"}), "not a mapping"),
    ],
)
def test_invalid_package(package: bytes, match: str) -> None:
    """Test malformed packages raise a descriptive error."""
    with pytest.raises(ChartParseError, match=match):
        TarballChartParser().parse(package)
