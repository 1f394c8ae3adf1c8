"""
Unit tests for result models.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from agent_swarm.core.models import SwarmOutput, TaskOutput, summarize
from agent_swarm.core.state_machine import utc_now


class TestTaskOutput:
    """Tests for TaskOutput."""

    def test_summary_derived_from_raw_output(self):
        """Test short output is its own summary."""
        output = TaskOutput(task_id="t1", raw_output="Short answer")

        assert output.summary == "Short answer"

    def test_long_output_summary_truncated(self):
        """Test long output is shortened to 100 characters."""
        output = TaskOutput(task_id="t1", raw_output="x" * 250)

        assert len(output.summary) == 100
        assert output.summary.endswith("...")

    def test_explicit_summary_kept(self):
        """Test an executor-provided summary wins."""
        output = TaskOutput(task_id="t1", raw_output="long text", summary="tl;dr")

        assert output.summary == "tl;dr"

    def test_total_tokens(self):
        """Test token totals treat missing counts as zero."""
        assert TaskOutput(task_id="t1", prompt_tokens=7, completion_tokens=3).total_tokens == 10
        assert TaskOutput(task_id="t1", prompt_tokens=7).total_tokens == 7
        assert TaskOutput(task_id="t1").total_tokens == 0

    def test_negative_tokens_rejected(self):
        """Test token counts cannot be negative."""
        with pytest.raises(ValidationError):
            TaskOutput(task_id="t1", prompt_tokens=-1)

    def test_summarize_edges(self):
        """Test summarize boundaries."""
        assert summarize(None) == ""
        assert summarize("a" * 100) == "a" * 100
        assert summarize("abcdef", max_length=5) == "ab..."


class TestSwarmOutput:
    """Tests for SwarmOutput."""

    @pytest.fixture
    def output(self) -> SwarmOutput:
        start = utc_now()
        return SwarmOutput(
            swarm_id="swarm-1",
            raw_output="final",
            final_output="final",
            task_outputs=[
                TaskOutput(task_id="a", raw_output="first"),
                TaskOutput(task_id="b", raw_output="second", successful=False),
                TaskOutput(task_id="c", raw_output="skipped", skipped=True),
            ],
            start_time=start,
            end_time=start + timedelta(milliseconds=1500),
        )

    def test_execution_time(self, output):
        """Test execution time from start and end."""
        assert output.execution_time_ms == 1500

    def test_execution_time_without_end(self):
        """Test an unfinished run reports zero."""
        assert SwarmOutput(swarm_id="s").execution_time_ms == 0

    def test_get_task_output(self, output):
        """Test lookup by task id."""
        assert output.get_task_output("b").raw_output == "second"
        assert output.get_task_output("missing") is None

    def test_success_partition(self, output):
        """Test successful and failed outputs."""
        assert [o.task_id for o in output.successful_outputs] == ["a", "c"]
        assert [o.task_id for o in output.failed_outputs] == ["b"]
        assert output.success_rate == pytest.approx(2 / 3)

    def test_success_rate_empty(self):
        """Test success rate of an empty run."""
        assert SwarmOutput(swarm_id="s").success_rate == 0.0

    def test_summary_text(self, output):
        """Test the human-readable summary."""
        text = output.summary()

        assert text.startswith("Swarm swarm-1: successful")
        assert "Tasks: 3 (2 successful, 1 failed)" in text
        assert "  - c [skipped]: skipped" in text
        assert "  - b [failed]: second" in text
