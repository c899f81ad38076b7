"""Tests for the offline recorder and its frame codec."""

import json
import pytest
import numpy as np

from tools.record import (
    FORMAT_DELTA, FORMAT_KEYFRAME, FrameWriter, compress_frame, decompress_frame,
    default_settings, frame_format, get_completed_frames, get_recording_dir,
    list_recordings, load_frame, load_metadata, main, parse_number, record,
)

SCALE = 1000.0


def _frames(count, n=40, seed=0):
    """A slowly drifting point cloud with fixed colors."""
    rng = np.random.default_rng(seed)
    positions = rng.uniform(-1.0, 1.0, (n, 3)).astype(np.float32)
    colors = rng.uniform(0.0, 1.0, (n, 3)).astype(np.float32)
    frames = []
    for _ in range(count):
        positions = (positions + rng.normal(0.0, 0.002, (n, 3))).astype(np.float32)
        frames.append((positions.copy(), colors.copy()))
    return frames


class TestFrameCodec:
    def test_keyframe_is_exact(self):
        (pos, col), = _frames(1)
        data = compress_frame(pos, col)
        assert frame_format(data) == FORMAT_KEYFRAME
        out_pos, out_col = decompress_frame(data)
        np.testing.assert_array_equal(out_pos, pos)
        np.testing.assert_array_equal(out_col, col)

    def test_delta_frame_within_quantization(self):
        (p0, c0), (p1, c1) = _frames(2)
        data = compress_frame(p1, c1, p0, c0, scale=SCALE)
        assert frame_format(data) == FORMAT_DELTA
        out_pos, out_col = decompress_frame(data, p0, c0, scale=SCALE)
        np.testing.assert_allclose(out_pos, p1, atol=0.5 / SCALE + 1e-6)
        np.testing.assert_allclose(out_col, c1, atol=1e-6)

    def test_large_jump_falls_back_to_keyframe(self):
        (p0, c0), = _frames(1)
        p1 = p0 + np.float32(100.0)
        data = compress_frame(p1, c0, p0, c0, scale=SCALE)
        assert frame_format(data) == FORMAT_KEYFRAME
        out_pos, _ = decompress_frame(data)
        np.testing.assert_array_equal(out_pos, p1)

    def test_delta_needs_previous_frame(self):
        (p0, c0), (p1, c1) = _frames(2)
        data = compress_frame(p1, c1, p0, c0)
        with pytest.raises(ValueError):
            decompress_frame(data)

    def test_unknown_format(self):
        (p0, c0), = _frames(1)
        data = bytearray(compress_frame(p0, c0))
        data[0] = 9
        with pytest.raises(ValueError):
            decompress_frame(bytes(data))


class TestFrameWriter:
    def test_error_does_not_accumulate(self, recordings_dir):
        rec_dir = get_recording_dir("drift", recordings_dir)
        frames = _frames(30)
        writer = FrameWriter(rec_dir, level=3, scale=SCALE, keyframe_interval=100)
        for pos, col in frames:
            writer.write(pos, col)
        assert writer.keyframes == 1
        assert get_completed_frames(rec_dir) == 30

        last_pos, _ = load_frame(rec_dir, 29, scale=SCALE)
        np.testing.assert_allclose(last_pos, frames[29][0], atol=0.5 / SCALE + 1e-5)

    def test_keyframe_interval(self, recordings_dir):
        rec_dir = get_recording_dir("keys", recordings_dir)
        writer = FrameWriter(rec_dir, level=3, scale=SCALE, keyframe_interval=4)
        for pos, col in _frames(10):
            writer.write(pos, col)
        formats = [frame_format((rec_dir / f"frame_{i:04d}.zstd").read_bytes()) for i in range(10)]
        assert [i for i, f in enumerate(formats) if f == FORMAT_KEYFRAME] == [0, 4, 8]

    def test_missing_frame(self, recordings_dir):
        rec_dir = get_recording_dir("empty", recordings_dir)
        with pytest.raises(FileNotFoundError):
            load_frame(rec_dir, 0, scale=SCALE)


@pytest.mark.slow
class TestRecord:
    def _settings(self, name, frames):
        settings = default_settings(name)
        settings.update(
            num_bodies=48, num_galaxies=2, total_frames=frames, steps_per_frame=2,
            compression_level=3, keyframe_interval=4, use_gpu=False,
        )
        return settings

    def test_record_and_resume(self, recordings_dir):
        rec_dir = record(self._settings("run", 3), base_dir=recordings_dir)
        assert get_completed_frames(rec_dir) == 3
        metadata = load_metadata(rec_dir)
        assert metadata["num_bodies"] == 48
        assert "start_datetime" in metadata

        with np.load(rec_dir / "state.npz") as state:
            assert int(state["frame"]) == 2
            final_positions = state["positions"]
        positions, colors = load_frame(rec_dir, 2)
        np.testing.assert_allclose(positions, final_positions, atol=1e-3)
        assert colors.shape == (48, 3)

        record(self._settings("run", 5), resume=True, base_dir=recordings_dir)
        assert get_completed_frames(rec_dir) == 5
        with np.load(rec_dir / "state.npz") as state:
            assert int(state["steps"]) == 8

    def test_cli_status_and_list(self, recordings_dir, capsys):
        record(self._settings("listed", 1), base_dir=recordings_dir)
        assert list_recordings(recordings_dir) == ["listed"]
        assert main(["listed", "--status", "--output-dir", str(recordings_dir)]) == 0
        out = capsys.readouterr().out
        assert "1/1 frames" in out

    def test_cli_rejects_bad_dt(self, recordings_dir, capsys):
        code = main(["bad", "--dt", "-0.5", "--frames", "1", "--cpu",
                     "--output-dir", str(recordings_dir)])
        assert code == 1
        assert "[Record] Error" in capsys.readouterr().out


class TestHelpers:
    @pytest.mark.parametrize("text,value", [("100", 100), ("20k", 20_000), ("1.5M", 1_500_000)])
    def test_parse_number(self, text, value):
        assert parse_number(text) == value

    def test_metadata_is_json(self, recordings_dir):
        from tools.record import save_metadata
        rec_dir = get_recording_dir("meta", recordings_dir)
        save_metadata(rec_dir, {"num_bodies": 10, "total_frames": 2}, 0.0)
        with open(rec_dir / "metadata.json") as f:
            assert json.load(f)["num_bodies"] == 10
