"""
输出门面单元测试
"""

from rampack.utils.logging import LogStage, OutputFacade, OutputLevel


class TestOutputFacade:
    """OutputFacade 测试"""

    def test_level_filter(self, capsys):
        """测试低于当前级别的消息不输出"""
        facade = OutputFacade()
        facade.emit("hidden debug", OutputLevel.DEBUG)
        facade.emit("visible info", OutputLevel.INFO, LogStage.BUILD)

        out = capsys.readouterr().out
        assert "hidden debug" not in out
        assert "visible info" in out
        assert "BUILD" in out

    def test_debug_level(self, capsys):
        """测试 DEBUG 级别"""
        facade = OutputFacade()
        facade.set_level(OutputLevel.DEBUG)
        facade.emit("dependency list", OutputLevel.DEBUG, LogStage.DEPS)

        assert "dependency list" in capsys.readouterr().out

    def test_unknown_level_ignored(self):
        """测试未知级别不改变当前设置"""
        facade = OutputFacade()
        facade.set_level("VERBOSE")
        assert facade.level == OutputLevel.INFO

    def test_errors_go_to_stderr(self, capsys):
        """测试错误输出到 stderr"""
        facade = OutputFacade()
        facade.emit("build failed", OutputLevel.ERROR)

        captured = capsys.readouterr()
        assert "build failed" in captured.err
        assert "build failed" not in captured.out

    def test_markup_not_interpreted(self, capsys):
        """测试消息中的方括号原样输出"""
        facade = OutputFacade()
        facade.emit("file [red]/tmp/x[/red]", OutputLevel.INFO)

        assert "[red]/tmp/x[/red]" in capsys.readouterr().out

    def test_log_file(self, tmp_path):
        """测试日志文件记录带日期的消息"""
        log_path = tmp_path / "logs" / "build.log"
        facade = OutputFacade()
        facade.set_log_file(log_path)
        facade.emit("published image", OutputLevel.SUCCESS, LogStage.PUBLISH)
        facade.close()

        content = log_path.read_text(encoding="utf-8")
        assert "[SUCCESS] [PUBLISH] published image" in content
