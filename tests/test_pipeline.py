"""Tests for the stream pipeline."""

import io

import pytest

from cbackup.backup.pipeline import CommandStage, MeterStage, run_pipeline
from cbackup.errors import StreamError


def cat(name="cat"):
    return CommandStage(name, ["cat"])


class TestRunPipeline:
    """Test running chains of stages."""
    
    def test_in_memory_source_and_sink(self):
        sink = io.BytesIO()
        
        run_pipeline([cat()], source=io.BytesIO(b"hello pipeline"), sink=sink)
        
        assert sink.getvalue() == b"hello pipeline"
    
    def test_file_source_through_several_stages(self, tmp_path):
        data = bytes(range(256)) * 4096
        source_file = tmp_path / "input.bin"
        source_file.write_bytes(data)
        sink = io.BytesIO()
        
        with open(source_file, "rb") as source:
            run_pipeline([cat("first"), cat("second"), cat("third")], source=source, sink=sink)
        
        assert sink.getvalue() == data
    
    def test_stage_without_source(self):
        sink = io.BytesIO()
        
        run_pipeline([CommandStage("echo", ["sh", "-c", "printf produced"])], sink=sink)
        
        assert sink.getvalue() == b"produced"
    
    def test_meter_is_transparent(self):
        sink = io.BytesIO()
        
        run_pipeline(
            [MeterStage(total=5, enabled=False), cat()],
            source=io.BytesIO(b"12345"),
            sink=sink,
        )
        
        assert sink.getvalue() == b"12345"
    
    def test_trailing_meter(self):
        sink = io.BytesIO()
        
        run_pipeline([cat(), MeterStage(enabled=False)], source=io.BytesIO(b"abc"), sink=sink)
        
        assert sink.getvalue() == b"abc"
    
    def test_output_discarded_without_sink(self):
        run_pipeline([cat()], source=io.BytesIO(b"ignored"))
    
    def test_failing_stage(self):
        with pytest.raises(StreamError) as exc_info:
            run_pipeline([CommandStage("fail", ["sh", "-c", "exit 3"])])
        
        assert exc_info.value.stage == "fail"
        assert "status 3" in exc_info.value.cause
    
    def test_false_fails(self):
        with pytest.raises(StreamError):
            run_pipeline([cat(), CommandStage("false", ["false"])], source=io.BytesIO(b"x"))
    
    def test_root_cause_is_not_broken_pipe(self):
        data = b"x" * (4 * 1024 * 1024)
        
        with pytest.raises(StreamError) as exc_info:
            run_pipeline(
                [cat("producer"), CommandStage("consumer", ["sh", "-c", "exit 4"])],
                source=io.BytesIO(data),
            )
        
        assert exc_info.value.stage == "consumer"
    
    def test_stderr_included(self):
        with pytest.raises(StreamError) as exc_info:
            run_pipeline([CommandStage("noisy", ["sh", "-c", "echo bad magic >&2; exit 1"])])
        
        assert "bad magic" in exc_info.value.cause
    
    def test_missing_executable(self):
        with pytest.raises(StreamError) as exc_info:
            run_pipeline([CommandStage("ghost", ["/nonexistent/ghost-tool"])], source=io.BytesIO(b""))
        
        assert exc_info.value.stage == "ghost"
    
    def test_environment_passed(self):
        sink = io.BytesIO()
        stage = CommandStage("env", ["sh", "-c", 'printf "$SECRET_VALUE"'], env={"SECRET_VALUE": "s3cret"})
        
        run_pipeline([stage], sink=sink)
        
        assert sink.getvalue() == b"s3cret"
    
    def test_requires_command_stage(self):
        with pytest.raises(ValueError):
            run_pipeline([MeterStage()], source=io.BytesIO(b""))
