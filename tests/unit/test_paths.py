"""
路径工具单元测试
"""

import pytest

from rampack.utils.paths import archive_name, ensure_directory, format_size, normalize_image_path


class TestNormalizeImagePath:
    """normalize_image_path 测试"""

    def test_normalize(self):
        """测试折叠分隔符和 . / .."""
        assert normalize_image_path("/usr//lib/./x/../libc.so") == "/usr/lib/libc.so"
        assert normalize_image_path("/etc/") == "/etc"
        assert normalize_image_path("/") == "/"

    def test_double_leading_slash(self):
        """测试开头的 // 被折叠"""
        assert normalize_image_path("//etc") == "/etc"
        assert normalize_image_path("///") == "/"

    def test_parent_of_root(self):
        """测试根目录之上的 .. 停留在根目录"""
        assert normalize_image_path("/../../bin") == "/bin"

    def test_relative_rejected(self):
        """测试相对路径"""
        with pytest.raises(ValueError):
            normalize_image_path("bin/sh")
        with pytest.raises(ValueError):
            normalize_image_path("")


class TestArchiveName:
    """archive_name 测试"""

    def test_archive_name(self):
        """测试去掉开头的 /，根目录为 ."""
        assert archive_name("/") == "."
        assert archive_name("/bin/sh") == "bin/sh"


class TestHelpers:
    """其他工具函数测试"""

    def test_ensure_directory(self, tmp_path):
        """测试创建多级目录"""
        target = tmp_path / "a" / "b"
        assert ensure_directory(target) == target
        assert target.is_dir()
        ensure_directory(target)

    def test_format_size(self):
        """测试大小格式化"""
        assert format_size(0) == "0 B"
        assert format_size(1023) == "1023 B"
        assert format_size(1536) == "1.5 KB"
        assert format_size(5 * 1024 * 1024) == "5.0 MB"
        assert format_size(3 * 1024 ** 5) == "3072.0 TB"
