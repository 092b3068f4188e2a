"""Tests for the batch directory orchestrator."""

import logging

import pytest
from PIL import Image

from conftest import write_image
from imgcompressor.compress import build_output_path, compress_directory, format_report
from imgcompressor.errors import EmptyExtensionError, InputNotFoundError, UnsupportedFormatError
from imgcompressor.models import BatchReport, CompressOptions


@pytest.fixture
def photo_dir(tmp_path):
    source = tmp_path / 'photos'
    for name in ('a.jpg', 'b.jpg', 'c.jpg'):
        write_image(source / name, 'JPEG')
    (source / 'readme.txt').write_bytes(b'garbage, not an image')
    return source


class TestCompressDirectory:
    """Tests for compress_directory."""

    def test_corrupt_file_is_isolated(self, photo_dir, tmp_path):
        report = compress_directory(photo_dir, tmp_path / 'out', 'webp')
        assert (report.compressed, report.failed, report.skipped) == (3, 1, 0)
        for name in ('a', 'b', 'c'):
            with Image.open(tmp_path / 'out' / f'{name}.webp') as image:
                assert image.format == 'WEBP'
        assert not (tmp_path / 'out' / 'readme.webp').exists()

    def test_totals_only_count_successes(self, photo_dir, tmp_path):
        report = compress_directory(photo_dir, tmp_path / 'out', 'webp')
        expected_original = sum((photo_dir / f'{name}.jpg').stat().st_size for name in 'abc')
        expected_compressed = sum((tmp_path / 'out' / f'{name}.webp').stat().st_size for name in 'abc')
        assert report.total_original_bytes == expected_original
        assert report.total_compressed_bytes == expected_compressed

    def test_existing_destination_is_skipped(self, photo_dir, tmp_path):
        output_dir = tmp_path / 'out'
        output_dir.mkdir()
        (output_dir / 'a.webp').write_bytes(b'previous run')
        report = compress_directory(photo_dir, output_dir, 'webp')
        assert (report.compressed, report.skipped, report.failed) == (2, 1, 1)
        assert (output_dir / 'a.webp').read_bytes() == b'previous run'

    def test_overwrite_replaces_destination(self, photo_dir, tmp_path):
        output_dir = tmp_path / 'out'
        output_dir.mkdir()
        (output_dir / 'a.webp').write_bytes(b'previous run')
        report = compress_directory(photo_dir, output_dir, 'webp', CompressOptions(overwrite=True))
        assert report.skipped == 0
        assert report.compressed == 3
        assert (output_dir / 'a.webp').read_bytes()[:4] == b'RIFF'

    def test_non_recursive_ignores_subdirectories(self, photo_dir, tmp_path):
        write_image(photo_dir / 'nested' / 'd.png', 'PNG')
        report = compress_directory(photo_dir, tmp_path / 'out', 'jpg', recursive=False)
        assert report.compressed == 3
        assert not (tmp_path / 'out' / 'nested').exists()

    def test_recursive_mirrors_tree(self, photo_dir, tmp_path):
        write_image(photo_dir / 'nested' / 'deeper' / 'd.png', 'PNG')
        report = compress_directory(photo_dir, tmp_path / 'out', '.JPG', recursive=True)
        assert report.compressed == 4
        with Image.open(tmp_path / 'out' / 'nested' / 'deeper' / 'd.jpg') as image:
            assert image.format == 'JPEG'

    def test_creates_output_dir(self, photo_dir, tmp_path):
        output_dir = tmp_path / 'a' / 'b' / 'c'
        compress_directory(photo_dir, output_dir, 'png')
        assert output_dir.is_dir()

    def test_missing_input_dir(self, tmp_path):
        with pytest.raises(InputNotFoundError) as excinfo:
            compress_directory(tmp_path / 'nope', tmp_path / 'out', 'webp')
        assert 'input directory not found' in str(excinfo.value)

    def test_file_as_input_dir(self, photo_dir, tmp_path):
        with pytest.raises(InputNotFoundError):
            compress_directory(photo_dir / 'a.jpg', tmp_path / 'out', 'webp')

    def test_invalid_target_aborts_before_touching_files(self, photo_dir, tmp_path):
        with pytest.raises(UnsupportedFormatError):
            compress_directory(photo_dir, tmp_path / 'out', 'bmp')
        assert not (tmp_path / 'out').exists()

    def test_empty_target_aborts(self, photo_dir, tmp_path):
        with pytest.raises(EmptyExtensionError):
            compress_directory(photo_dir, tmp_path / 'out', ' . ')

    def test_progress_receives_every_outcome(self, photo_dir, tmp_path):
        seen = []
        compress_directory(photo_dir, tmp_path / 'out', 'webp', progress=seen.append)
        outcomes = sorted(result.outcome.value for result in seen)
        assert outcomes == ['compressed', 'compressed', 'compressed', 'failed']
        assert [result.source.name for result in seen] == ['a.jpg', 'b.jpg', 'c.jpg', 'readme.txt']

    def test_failures_are_logged(self, photo_dir, tmp_path, caplog):
        with caplog.at_level(logging.ERROR, logger='imgcompressor'):
            compress_directory(photo_dir, tmp_path / 'out', 'webp')
        assert any('readme.txt' in record.getMessage() for record in caplog.records)

    def test_unexpected_error_counts_as_failure(self, photo_dir, tmp_path, monkeypatch):
        from imgcompressor import compress as compress_module

        original = compress_module.try_compress_file

        def flaky(source, output, options):
            if source.name == 'b.jpg':
                raise RuntimeError('encoder crashed')
            return original(source, output, options)

        monkeypatch.setattr(compress_module, 'try_compress_file', flaky)
        report = compress_directory(photo_dir, tmp_path / 'out', 'jpg')
        assert (report.compressed, report.failed) == (2, 2)

    def test_empty_directory(self, tmp_path):
        source = tmp_path / 'empty'
        source.mkdir()
        report = compress_directory(source, tmp_path / 'out', 'webp')
        assert report == BatchReport()


class TestPathMapping:
    """Tests for mapping source paths into the output tree."""

    def test_rewrites_extension(self, tmp_path):
        target = build_output_path(tmp_path / 'in' / 'sub' / 'x.jpeg', tmp_path / 'in', tmp_path / 'out', 'webp')
        assert target == tmp_path / 'out' / 'sub' / 'x.webp'

    def test_only_last_suffix_replaced(self, tmp_path):
        target = build_output_path(tmp_path / 'in' / 'x.tar.png', tmp_path / 'in', tmp_path / 'out', 'avif')
        assert target == tmp_path / 'out' / 'x.tar.avif'

    def test_file_without_extension(self, tmp_path):
        target = build_output_path(tmp_path / 'in' / 'README', tmp_path / 'in', tmp_path / 'out', 'png')
        assert target == tmp_path / 'out' / 'README.png'

    def test_outside_input_dir(self, tmp_path):
        with pytest.raises(ValueError):
            build_output_path(tmp_path / 'elsewhere' / 'x.png', tmp_path / 'in', tmp_path / 'out', 'png')


def test_format_report():
    report = BatchReport(
        compressed=3, skipped=1, failed=1, total_original_bytes=2_000_000, total_compressed_bytes=500_000
    )
    assert format_report(report) == (
        'batch complete: compressed=3, failed=1, skipped=1, saved 1.5 MB (75.0%)'
    )

