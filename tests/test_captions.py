"""Unit tests for the caption track module.

WHY: Every cue in an article's caption file is positioned by the chunk
offset it was shifted by. An offset computed wrongly, or a cue list left
unordered, makes the read-along highlight run ahead of or behind the
voice for the rest of the article.

HOW: The builder is fed per-chunk word timings and checked against the
offset law. The WebVTT writer and reader are checked on exact output and
on the variations real caption files contain.

RULES:
- Times are milliseconds throughout; timestamps are HH:MM:SS.mmm.
- Comparisons after a text round-trip allow 1 ms of rounding.
"""

import pytest

from newscast.captions import (
    CaptionBuilder,
    CaptionCue,
    CaptionTrack,
    format_timestamp,
    load_track,
    parse_timestamp,
    parse_vtt,
    save_track,
    to_vtt,
)
from newscast.errors import CaptionFormatError
from newscast.synthesis import WordTiming


def _timings(*words):
    """Consecutive 100 ms words starting at chunk time 0."""
    return [WordTiming(w, i * 100.0, i * 100.0 + 100.0) for i, w in enumerate(words)]


# ---------------------------------------------------------------------------
# CaptionBuilder
# ---------------------------------------------------------------------------

class TestOffsetLaw:
    """Chunk k's cues are shifted by the summed durations of chunks 0..k-1."""

    def test_three_chunks(self):
        builder = CaptionBuilder()
        builder.add_chunk(_timings("un", "deux"), 0)
        builder.add_chunk(_timings("trois", "quatre"), 5000)
        builder.add_chunk(_timings("cinq"), 5000 + 3000)
        track = builder.build(duration_ms=12000)

        assert [cue.start_ms for cue in track] == [0, 100, 5000, 5100, 8000]
        assert track.end_ms <= 12000
        assert track.duration_ms == 12000
        assert builder.chunk_count == 3

    def test_offset_applies_to_both_ends(self):
        builder = CaptionBuilder().add_chunk([WordTiming("mot", 250, 400)], 1000)
        assert builder.build().cues == [CaptionCue(1250, 1400, "mot")]

    def test_clamped_to_measured_chunk_end(self):
        builder = CaptionBuilder()
        builder.add_chunk([WordTiming("un", 0, 400), WordTiming("deux", 450, 900)], 0, 500.6)
        builder.add_chunk([WordTiming("trois", 0, 200)], 500.6, 300)
        track = builder.build(duration_ms=800.6)

        assert track.cues == [
            CaptionCue(0, 400, "un"),
            CaptionCue(450, 500, "deux"),
            CaptionCue(501, 701, "trois"),
        ]
        assert track.end_ms <= track.duration_ms

    def test_no_clamp_without_a_duration(self):
        builder = CaptionBuilder().add_chunk([WordTiming("mot", 0, 900)], 0, 0)
        assert builder.build().cues == [CaptionCue(0, 900, "mot")]

    def test_rounded_to_whole_milliseconds(self):
        track = CaptionBuilder().add_chunk([WordTiming("mot", 12.4, 99.6)], 0).build()
        assert track[0] == CaptionCue(12, 100, "mot")


class TestCueOrdering:
    def test_empty_words_are_skipped(self):
        builder = CaptionBuilder().add_chunk(
            [WordTiming("  ", 0, 50), WordTiming("mot", 50, 100)], 0
        )
        assert builder.cue_count == 1

    def test_overlap_clamps_previous_end(self):
        builder = CaptionBuilder().add_chunk(
            [WordTiming("a", 0, 500), WordTiming("b", 400, 700)], 0
        )
        assert builder.build().cues == [CaptionCue(0, 400, "a"), CaptionCue(400, 700, "b")]

    def test_same_start_merges(self):
        builder = CaptionBuilder().add_chunk(
            [WordTiming("a", 0, 500), WordTiming("b", 0, 300)], 0
        )
        assert builder.build().cues == [CaptionCue(0, 500, "a b")]

    def test_result_is_well_formed(self):
        builder = CaptionBuilder()
        builder.add_chunk([WordTiming("a", 0, 900), WordTiming("b", 300, 600)], 0)
        builder.add_chunk([WordTiming("c", 0, 100)], 500)
        assert builder.build().is_well_formed()


# ---------------------------------------------------------------------------
# CaptionTrack lookups
# ---------------------------------------------------------------------------

class TestCueLookup:
    @pytest.fixture
    def track(self):
        return CaptionTrack([CaptionCue(0, 500, "un"), CaptionCue(600, 900, "deux")])

    @pytest.mark.parametrize(
        "position, expected",
        [(0, 0), (499, 0), (500, None), (550, None), (600, 1), (899, 1), (900, None), (-1, None)],
    )
    def test_cue_index_at(self, track, position, expected):
        assert track.cue_index_at(position) == expected

    def test_empty_track(self):
        track = CaptionTrack()
        assert track.cue_index_at(100) is None
        assert track.end_ms == 0.0

    def test_overlap_is_not_well_formed(self):
        track = CaptionTrack([CaptionCue(0, 700, "un"), CaptionCue(600, 900, "deux")])
        assert not track.is_well_formed()


# ---------------------------------------------------------------------------
# Timestamps and WebVTT
# ---------------------------------------------------------------------------

class TestTimestamps:
    def test_format(self):
        assert format_timestamp(0) == "00:00:00.000"
        assert format_timestamp(3_723_004) == "01:02:03.004"

    def test_parse(self):
        assert parse_timestamp("01:02:03.004") == 3_723_004
        assert parse_timestamp("02:03.5") == 123_500

    def test_parse_invalid(self):
        with pytest.raises(CaptionFormatError):
            parse_timestamp("soon")


class TestWriteVtt:
    def test_exact_output(self):
        track = CaptionTrack([CaptionCue(0, 500, "Bonjour"), CaptionCue(5100, 5600, "monde")])
        assert to_vtt(track) == (
            "WEBVTT\n\n"
            "1\n00:00:00.000 --> 00:00:00.500\nBonjour\n\n"
            "2\n00:00:05.100 --> 00:00:05.600\nmonde\n\n"
        )

    def test_empty_track_is_header_only(self):
        assert to_vtt(CaptionTrack()) == "WEBVTT\n\n"
        assert len(parse_vtt("WEBVTT\n\n")) == 0

    def test_round_trip(self):
        cues = [CaptionCue(0, 1500, "Bonjour"), CaptionCue(1500, 3000, "le monde")]
        parsed = parse_vtt(to_vtt(CaptionTrack(cues)))
        assert len(parsed) == 2
        for original, back in zip(cues, parsed):
            assert back.text == original.text
            assert back.start_ms == pytest.approx(original.start_ms, abs=1)
            assert back.end_ms == pytest.approx(original.end_ms, abs=1)

    def test_save_and_load(self, tmp_path):
        track = CaptionTrack([CaptionCue(0, 420, "Bonjour")])
        path = save_track(tmp_path / "nested" / "a.vtt", track)
        assert path.read_text(encoding="utf-8").startswith("WEBVTT")
        assert load_track(path).cues == track.cues


class TestParseVtt:
    def test_tolerates_real_world_variations(self):
        content = (
            "\ufeffWEBVTT - article\r\n\r\n"
            "NOTE generated offline\r\n\r\n"
            "00:01.000 --> 00:01.250 align:start\r\n"
            "Bonjour\r\n\r\n"
            "cue-2\r\n"
            "00:00:01.250 --> 00:00:02.000\r\n"
            "le\r\nmonde\r\n"
        )
        track = parse_vtt(content)
        assert track.cues == [
            CaptionCue(1000, 1250, "Bonjour"),
            CaptionCue(1250, 2000, "le\nmonde"),
        ]

    def test_missing_header(self):
        with pytest.raises(CaptionFormatError):
            parse_vtt("1\n00:00:00.000 --> 00:00:01.000\nBonjour\n")

    def test_bad_timing_line(self):
        with pytest.raises(CaptionFormatError):
            parse_vtt("WEBVTT\n\n1\n00:00:00.000 --> later\nBonjour\n")

    def test_cue_without_timing(self):
        with pytest.raises(CaptionFormatError):
            parse_vtt("WEBVTT\n\njust some text\n")
