"""Tests for the day timeline layout."""

from datetime import datetime, timedelta, timezone

import pytest  # type: ignore[import-not-found]

from timeboard.core.models import NO_PROJECT_COLOR, Project, TimeEntry
from timeboard.core.timeline import (
    TimelineSettings,
    build_timeline,
    format_clock,
    format_duration,
)

DAY_START = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
DAY_END = DAY_START + timedelta(days=1)
NOW = datetime(2024, 1, 1, 18, 0, tzinfo=timezone.utc)


def closed(entry_id: int, start_hour: float, minutes: float, **kwargs) -> TimeEntry:  # type: ignore[no-untyped-def]
    start = DAY_START + timedelta(hours=start_hour)
    return TimeEntry(
        id=entry_id,
        member="Ana",
        start_at=start,
        stop_at=start + timedelta(minutes=minutes),
        duration_seconds=int(minutes * 60),
        **kwargs,
    )


class TestFormatting:
    def test_format_duration(self) -> None:
        assert format_duration(5400) == "1h 30m"
        assert format_duration(59) == "0h 0m"
        assert format_duration(-10) == "0h 0m"

    def test_format_clock(self) -> None:
        """Test local HH:MM and the missing-time dash."""
        assert format_clock(DAY_START + timedelta(hours=9), -120) == "11:00"
        assert format_clock(None) == "—"


class TestBuildTimeline:
    """Test block placement."""

    def test_positions_scale_with_hour_height(self) -> None:
        """Test an hour-long block at 09:00 sits at 9 * 72 units."""
        blocks = build_timeline([closed(1, 9, 60)], DAY_START, DAY_END, NOW)

        assert len(blocks) == 1
        assert blocks[0].top == pytest.approx(9 * 72)
        assert blocks[0].height == pytest.approx(72)
        assert blocks[0].time_range == "09:00 → 10:00"
        assert blocks[0].duration_label == "1h 0m"

    def test_short_entries_get_minimum_height(self) -> None:
        blocks = build_timeline([closed(1, 9, 5)], DAY_START, DAY_END, NOW)
        assert blocks[0].height == pytest.approx(24)

    def test_overlaps_are_pushed_down(self) -> None:
        """Test blocks never overlap and keep a 2-unit gap."""
        entries = [closed(2, 9.5, 60), closed(1, 9, 60), closed(3, 9.6, 5)]
        blocks = build_timeline(entries, DAY_START, DAY_END, NOW)

        assert [b.entry_id for b in blocks] == [1, 2, 3]
        for above, below in zip(blocks, blocks[1:]):
            assert below.top >= above.top + above.height + 2 - 1e-9
        assert blocks[1].top == pytest.approx(10 * 72 + 2)

    def test_entries_outside_the_day_are_dropped(self) -> None:
        entries = [closed(1, -3, 60), closed(2, 25, 60)]
        assert build_timeline(entries, DAY_START, DAY_END, NOW) == []

    def test_entries_are_clipped_to_the_day(self) -> None:
        """Test an entry crossing midnight is clipped at the day start."""
        blocks = build_timeline([closed(1, -1, 120)], DAY_START, DAY_END, NOW)
        assert blocks[0].top == pytest.approx(0)
        assert blocks[0].height == pytest.approx(72)

    def test_running_entry_extends_to_now(self) -> None:
        running = TimeEntry(id=5, member="Ana", start_at=DAY_START + timedelta(hours=16))
        blocks = build_timeline([running], DAY_START, DAY_END, NOW)

        assert blocks[0].is_running
        assert blocks[0].height == pytest.approx(2 * 72)
        assert blocks[0].time_range == "16:00 → —"
        assert blocks[0].duration_label == "2h 0m"

    def test_labels_and_colors(self) -> None:
        """Test fallbacks for missing description and project."""
        project = Project(key="manual:ops", name="Ops", color="#A9E8E8")
        entries = [
            closed(1, 9, 30, description="Review", project_key="manual:ops"),
            closed(2, 11, 30),
        ]
        blocks = build_timeline(entries, DAY_START, DAY_END, NOW, {"manual:ops": project})

        assert (blocks[0].title, blocks[0].project, blocks[0].project_color) == (
            "Review",
            "Ops",
            "#A9E8E8",
        )
        assert (blocks[1].title, blocks[1].project, blocks[1].project_color) == (
            "(No description)",
            "No project",
            NO_PROJECT_COLOR,
        )

    def test_block_ids_are_stable(self) -> None:
        entry = closed(7, 9, 30)
        first = build_timeline([entry], DAY_START, DAY_END, NOW)
        second = build_timeline([entry], DAY_START, DAY_END, NOW + timedelta(hours=1))
        assert first[0].id == second[0].id == f"7-{int(entry.start_at.timestamp() * 1000)}"

    def test_custom_settings(self) -> None:
        settings = TimelineSettings(hour_height=60, min_block_height=10, block_gap=0)
        blocks = build_timeline([closed(1, 2, 30)], DAY_START, DAY_END, NOW, settings=settings)
        assert blocks[0].top == pytest.approx(120)
        assert blocks[0].height == pytest.approx(30)

    def test_pushed_blocks_near_midnight_never_overlap(self) -> None:
        """Test blocks pushed past the end of the day keep stacking downwards."""
        entries = [closed(i, 23 + (50 + i) / 60, 1) for i in range(4)]
        blocks = build_timeline(entries, DAY_START, DAY_END, NOW)

        assert len(blocks) == 4
        for above, below in zip(blocks, blocks[1:]):
            assert below.top >= above.top + above.height
        assert blocks[-1].top + blocks[-1].height > 24 * 72

    def test_unpushed_late_block_stays_inside_the_day(self) -> None:
        """Test a short entry at 23:59 is lifted so its minimum height fits."""
        blocks = build_timeline([closed(1, 23 + 59 / 60, 1)], DAY_START, DAY_END, NOW)
        assert blocks[0].top == pytest.approx(24 * 72 - 24)
        assert blocks[0].top + blocks[0].height == pytest.approx(24 * 72)
