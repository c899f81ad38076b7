"""
Galaxy Offline Recorder
=======================

Runs the galaxy simulation without a window and saves every frame's particle
positions and colors to disk, compressed with zstd.

Usage:
    python -m tools.record my_run               # Start new recording
    python -m tools.record my_run --resume      # Resume interrupted recording
    python -m tools.record my_run --status      # Check recording status
    python -m tools.record --list               # List all recordings

Output:
    recordings/<session_name>/
        metadata.json     - Recording settings
        frame_0000.zstd   - Keyframe (absolute float32 values)
        frame_0001.zstd   - Delta frame (int16 differences to the previous frame)
        ...
        state.npz         - Latest full population, used by --resume
"""

import sys
import json
import time
import struct
import argparse
import numpy as np
from datetime import datetime, timedelta
from pathlib import Path

import zstandard as zstd

from config import galaxy as config

# Get project root (parent of tools/)
PROJECT_ROOT = Path(__file__).parent.parent

FORMAT_KEYFRAME = 1
FORMAT_DELTA = 2
INT16_LIMIT = 32767


def get_recording_dir(session_name: str, base_dir: Path = None) -> Path:
    """Get (and create) the directory for a recording session."""
    base = Path(base_dir) if base_dir is not None else PROJECT_ROOT / "recordings"
    rec_dir = base / session_name
    rec_dir.mkdir(parents=True, exist_ok=True)
    return rec_dir


def save_metadata(rec_dir: Path, settings: dict, start_time: float):
    metadata = {
        **settings,
        "start_time": start_time,
        "start_datetime": datetime.fromtimestamp(start_time).isoformat(),
    }
    with open(rec_dir / "metadata.json", "w") as f:
        json.dump(metadata, f, indent=2)


def load_metadata(rec_dir: Path) -> dict:
    with open(rec_dir / "metadata.json", "r") as f:
        return json.load(f)


def frame_path(rec_dir: Path, frame_idx: int) -> Path:
    return rec_dir / f"frame_{frame_idx:04d}.zstd"


def get_completed_frames(rec_dir: Path) -> int:
    """Count consecutive frames on disk starting at frame 0."""
    count = 0
    while frame_path(rec_dir, count).exists():
        count += 1
    return count


# =============================================================================
# FRAME CODEC (zstd + delta)
# =============================================================================

def _apply_delta(prev: np.ndarray, delta: np.ndarray, scale: float) -> np.ndarray:
    return (prev.astype(np.float32) + delta.astype(np.float32) / np.float32(scale)).astype(np.float32)


def _quantize_delta(values: np.ndarray, prev: np.ndarray, scale: float):
    """int16 deltas, or None when some delta does not fit."""
    q = np.rint((values.astype(np.float64) - prev.astype(np.float64)) * scale)
    if not np.all(np.isfinite(q)) or np.any(np.abs(q) > INT16_LIMIT):
        return None
    return q.astype(np.int16)


def _pack(comp_format: int, pos_data: bytes, col_data: bytes, level: int) -> bytes:
    cctx = zstd.ZstdCompressor(level=level)
    pos_compressed = cctx.compress(pos_data)
    col_compressed = cctx.compress(col_data)

    result = struct.pack('B', comp_format)
    result += struct.pack('I', len(pos_compressed))
    result += pos_compressed
    result += struct.pack('I', len(col_compressed))
    result += col_compressed
    return result


def compress_frame(positions: np.ndarray, colors: np.ndarray,
                   prev_positions: np.ndarray = None,
                   prev_colors: np.ndarray = None,
                   level: int = 19, scale: float = 1000.0) -> bytes:
    """
    Compress one frame.

    Format:
    - 1 byte: compression format (1=zstd absolute, 2=zstd+delta)
    - 4 bytes: positions data size
    - N bytes: compressed positions
    - 4 bytes: colors data size
    - N bytes: compressed colors

    A delta frame is written only when a previous frame is given and every
    difference fits in int16 after scaling; otherwise the frame is absolute.
    """
    if prev_positions is not None and prev_colors is not None:
        pos_delta = _quantize_delta(positions, prev_positions, scale)
        col_delta = _quantize_delta(colors, prev_colors, scale)
        if pos_delta is not None and col_delta is not None:
            return _pack(FORMAT_DELTA, pos_delta.tobytes(), col_delta.tobytes(), level)

    return _pack(
        FORMAT_KEYFRAME,
        np.ascontiguousarray(positions, dtype=np.float32).tobytes(),
        np.ascontiguousarray(colors, dtype=np.float32).tobytes(),
        level,
    )


def frame_format(data: bytes) -> int:
    if len(data) < 1:
        raise ValueError("Invalid compressed data")
    return struct.unpack('B', data[0:1])[0]


def decompress_frame(data: bytes, prev_positions: np.ndarray = None,
                     prev_colors: np.ndarray = None, scale: float = 1000.0) -> tuple:
    """Inverse of compress_frame; delta frames need the previous decoded frame."""
    comp_format = frame_format(data)
    offset = 1

    pos_size = struct.unpack('I', data[offset:offset + 4])[0]
    offset += 4
    pos_compressed = data[offset:offset + pos_size]
    offset += pos_size

    col_size = struct.unpack('I', data[offset:offset + 4])[0]
    offset += 4
    col_compressed = data[offset:offset + col_size]

    dctx = zstd.ZstdDecompressor()
    pos_data = dctx.decompress(pos_compressed)
    col_data = dctx.decompress(col_compressed)

    if comp_format == FORMAT_KEYFRAME:
        positions = np.frombuffer(pos_data, dtype=np.float32).reshape(-1, 3).copy()
        colors = np.frombuffer(col_data, dtype=np.float32).reshape(-1, 3).copy()
    elif comp_format == FORMAT_DELTA:
        if prev_positions is None or prev_colors is None:
            raise ValueError("Delta compression requires previous frame")
        pos_delta = np.frombuffer(pos_data, dtype=np.int16).reshape(-1, 3)
        col_delta = np.frombuffer(col_data, dtype=np.int16).reshape(-1, 3)
        positions = _apply_delta(prev_positions, pos_delta, scale)
        colors = _apply_delta(prev_colors, col_delta, scale)
    else:
        raise ValueError(f"Unknown compression format: {comp_format}")

    return positions, colors


class FrameWriter:
    """
    Writes consecutive frames of one session.

    Deltas are taken against the frame as a reader will reconstruct it, so
    quantization error does not accumulate between keyframes.
    """

    def __init__(self, rec_dir: Path, level: int = 19, scale: float = 1000.0,
                 keyframe_interval: int = 50, start_frame: int = 0):
        self.rec_dir = Path(rec_dir)
        self.level = level
        self.scale = scale
        self.keyframe_interval = max(1, int(keyframe_interval))
        self.next_frame = start_frame
        self._reference = None
        self.keyframes = 0
        if start_frame > 0:
            self._reference = load_frame(self.rec_dir, start_frame - 1, scale=scale)

    def write(self, positions: np.ndarray, colors: np.ndarray) -> int:
        """Write the next frame and return its size in bytes."""
        frame_idx = self.next_frame
        prev_pos, prev_col = self._reference if self._reference is not None else (None, None)
        if frame_idx % self.keyframe_interval == 0:
            prev_pos, prev_col = None, None

        data = compress_frame(positions, colors, prev_pos, prev_col, self.level, self.scale)
        with open(frame_path(self.rec_dir, frame_idx), "wb") as f:
            f.write(data)

        if frame_format(data) == FORMAT_KEYFRAME:
            self.keyframes += 1
        self._reference = decompress_frame(data, prev_pos, prev_col, self.scale)
        self.next_frame += 1
        return len(data)


def load_frame(rec_dir: Path, frame_idx: int, scale: float = None) -> tuple:
    """
    Load (positions, colors) for any frame.

    Walks back to the nearest keyframe and replays the deltas forward.
    """
    rec_dir = Path(rec_dir)
    if scale is None:
        scale = load_metadata(rec_dir).get("delta_scale", 1000.0)

    chain = []
    idx = frame_idx
    while True:
        path = frame_path(rec_dir, idx)
        if not path.exists():
            raise FileNotFoundError(f"Frame {idx:04d} not found")
        data = path.read_bytes()
        chain.append(data)
        if frame_format(data) == FORMAT_KEYFRAME:
            break
        if idx == 0:
            raise ValueError(f"Frame {frame_idx:04d} is delta-compressed but no keyframe precedes it")
        idx -= 1

    positions, colors = None, None
    for data in reversed(chain):
        positions, colors = decompress_frame(data, positions, colors, scale)
    return positions, colors


# =============================================================================
# RECORDING
# =============================================================================

def format_time(seconds: float) -> str:
    if seconds < 1.0:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 90:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


def format_eta(seconds: float) -> str:
    if seconds < 0:
        return "calculating..."
    if seconds < 90:
        return f"{seconds:.0f}s"
    return str(timedelta(seconds=int(seconds)))


def default_settings(session_name: str = None) -> dict:
    """Recording settings from the config modules."""
    return {
        "session_name": session_name or datetime.now().strftime("galaxy_%Y%m%d_%H%M%S"),
        "num_bodies": config.GALAXY["count"],
        "num_galaxies": config.GALAXY["num_galaxies"],
        "distribution": config.GALAXY["distribution"],
        "seed": config.GALAXY["seed"],
        "force_law": config.SIMULATION["force_law"],
        "integrator": config.SIMULATION["integrator"],
        "dt": config.SIMULATION["dt"],
        "color_mode": config.RENDER["color_mode"],
        "total_frames": config.RECORD["frames"],
        "steps_per_frame": config.RECORD["steps_per_frame"],
        "compression_level": config.RECORD["compression_level"],
        "delta_scale": config.RECORD["delta_scale"],
        "keyframe_interval": config.RECORD["keyframe_interval"],
        "use_gpu": True,
    }


def _save_state(rec_dir: Path, sim, frame: int):
    pop = sim.population
    np.savez(
        rec_dir / "state.npz",
        frame=frame,
        time=sim.time,
        steps=sim.steps,
        positions=pop.positions,
        velocities=pop.velocities,
        accelerations=pop.accelerations if pop.has_accelerations else np.zeros_like(pop.positions),
        has_accelerations=pop.has_accelerations,
        masses=pop.masses,
        galaxy_ids=pop.galaxy_ids,
    )


def _load_state(rec_dir: Path):
    """(population, frame, time, steps) from state.npz."""
    from galaxy import Population

    with np.load(rec_dir / "state.npz") as data:
        accelerations = data["accelerations"] if bool(data["has_accelerations"]) else None
        population = Population(
            data["positions"], data["velocities"], data["masses"],
            accelerations=accelerations, galaxy_ids=data["galaxy_ids"],
        )
        return population, int(data["frame"]), float(data["time"]), int(data["steps"])


def _create_simulation(settings: dict, population=None):
    # Import here to avoid loading numba for --status / --list
    from galaxy import GalaxySimulation, SimParams
    from galaxy.initialize import generate_population

    params = SimParams.from_config(dt=settings["dt"])
    if population is None:
        population = generate_population(
            settings["distribution"], n=settings["num_bodies"],
            num_galaxies=settings["num_galaxies"], G=params.g, seed=settings["seed"],
        )
    return GalaxySimulation(
        distribution=settings["distribution"],
        force_law=settings["force_law"],
        integrator=settings["integrator"],
        params=params,
        population=population,
        color_mode=settings["color_mode"],
        use_gpu=settings.get("use_gpu", True),
    )


def record(settings: dict, resume: bool = False, base_dir: Path = None) -> Path:
    """Record (or continue recording) a session; returns its directory."""
    session_name = settings["session_name"]
    rec_dir = get_recording_dir(session_name, base_dir)
    total = int(settings["total_frames"])
    steps_per_frame = max(1, int(settings["steps_per_frame"]))
    scale = float(settings["delta_scale"])

    start_frame = 0
    if resume and (rec_dir / "state.npz").exists():
        population, state_frame, sim_time, sim_steps = _load_state(rec_dir)
        start_frame = min(state_frame + 1, get_completed_frames(rec_dir))
        if start_frame != state_frame + 1:
            print(f"[Record] Frames after {start_frame - 1} are missing, restarting from scratch")
            start_frame = 0
            sim = _create_simulation(settings)
        else:
            sim = _create_simulation(settings, population)
            sim.time, sim.steps = sim_time, sim_steps
        print(f"[Record] Resuming '{session_name}' at frame {start_frame}/{total}")
    else:
        save_metadata(rec_dir, settings, time.time())
        sim = _create_simulation(settings)
        print(f"[Record] Recording '{session_name}': {sim.num_bodies:,} bodies, "
              f"{total} frames x {steps_per_frame} steps")

    writer = FrameWriter(
        rec_dir, level=int(settings["compression_level"]), scale=scale,
        keyframe_interval=int(settings["keyframe_interval"]), start_frame=start_frame,
    )

    start = time.time()
    total_bytes = 0
    for frame in range(start_frame, total):
        frame_start = time.time()
        if frame > 0:
            sim.update(steps_per_frame)

        positions = sim.population.positions
        total_bytes += writer.write(positions, sim.colors())
        _save_state(rec_dir, sim, frame)

        done = frame - start_frame + 1
        elapsed = time.time() - start
        eta = elapsed / done * (total - frame - 1)
        print(f"[Record] Frame {frame + 1:4d}/{total} | "
              f"Time: {format_time(time.time() - frame_start):>6s} | "
              f"Size: {total_bytes / 1e6:.1f} MB | ETA: {format_eta(eta)}")

    print(f"[Record] Done: {writer.next_frame} frames in {rec_dir}")
    return rec_dir


def show_status(session_name: str, base_dir: Path = None):
    """Show recording status for a specific session."""
    rec_dir = get_recording_dir(session_name, base_dir)

    if not (rec_dir / "metadata.json").exists():
        print(f"[Status] No recording found: {session_name}")
        return

    metadata = load_metadata(rec_dir)
    completed = get_completed_frames(rec_dir)
    total = metadata["total_frames"]
    pct = completed / total * 100 if total else 100.0

    print(f"\n[Status] Recording: {session_name}")
    print(f"  Bodies: {metadata['num_bodies']:,}")
    print(f"  Galaxies: {metadata.get('num_galaxies', 1)}")
    print(f"  Force law: {metadata.get('force_law', 'unknown')}")
    print(f"  Progress: {completed}/{total} frames ({pct:.1f}%)")
    print(f"  Started: {metadata.get('start_datetime', 'unknown')}")

    if completed < total:
        print(f"\n  To resume: python -m tools.record {session_name} --resume")
    else:
        print("\n  Complete!")


def list_recordings(base_dir: Path = None):
    """List all available recordings."""
    recordings_dir = Path(base_dir) if base_dir is not None else PROJECT_ROOT / "recordings"

    if not recordings_dir.exists():
        print("[List] No recordings directory found")
        return []

    sessions = sorted(d.name for d in recordings_dir.iterdir()
                      if d.is_dir() and (d / "metadata.json").exists())
    if not sessions:
        print("[List] No recordings found")
        return []

    print(f"\n[List] Found {len(sessions)} recording(s):\n")
    for session in sessions:
        rec_dir = recordings_dir / session
        metadata = load_metadata(rec_dir)
        completed = get_completed_frames(rec_dir)
        total = metadata["total_frames"]
        status = "done" if completed >= total else f"{completed / total * 100:.0f}%"
        print(f"  {session:30s} | {metadata['num_bodies']:>10,} bodies | "
              f"{completed:>4}/{total:<4} frames | {status}")
    print()
    return sessions


def parse_number(value: str) -> int:
    """Parse number with optional suffix (k, m, K, M)."""
    value = value.strip().lower()
    multipliers = {'k': 1_000, 'm': 1_000_000}

    for suffix, mult in multipliers.items():
        if value.endswith(suffix):
            return int(float(value[:-1]) * mult)

    return int(value)


def main(argv=None) -> int:
    from galaxy import GalaxySimError

    parser = argparse.ArgumentParser(description="Galaxy offline recorder")
    parser.add_argument("session", nargs="?", help="Session name")
    parser.add_argument("--resume", action="store_true", help="Resume interrupted recording")
    parser.add_argument("--status", action="store_true", help="Show recording status")
    parser.add_argument("--list", action="store_true", help="List all recordings")
    parser.add_argument("--output-dir", type=Path, default=None, help="Recordings directory")
    parser.add_argument("--bodies", "-n", type=str, help="Number of bodies (e.g., 20000, 20k)")
    parser.add_argument("--galaxies", type=int, help="Number of galaxies")
    parser.add_argument("--frames", "-f", type=int, help="Number of frames")
    parser.add_argument("--steps-per-frame", type=int, help="Simulation steps per frame")
    parser.add_argument("--dt", type=float, help="Time step")
    parser.add_argument("--force-law", type=str, help="Force law name")
    parser.add_argument("--cpu", action="store_true", help="Disable the CUDA backend")
    args = parser.parse_args(argv)

    if args.list:
        list_recordings(args.output_dir)
        return 0

    if args.status:
        if args.session:
            show_status(args.session, args.output_dir)
        else:
            list_recordings(args.output_dir)
        return 0

    try:
        if args.resume:
            if not args.session:
                print("[Record] Error: --resume requires a session name")
                return 1
            rec_dir = get_recording_dir(args.session, args.output_dir)
            if not (rec_dir / "metadata.json").exists():
                print(f"[Record] No metadata found for session: {args.session}")
                return 1
            settings = load_metadata(rec_dir)
            settings["session_name"] = args.session
            if args.cpu:
                settings["use_gpu"] = False
            record(settings, resume=True, base_dir=args.output_dir)
            return 0

        settings = default_settings(args.session)
        if args.bodies:
            settings["num_bodies"] = parse_number(args.bodies)
        if args.galaxies:
            settings["num_galaxies"] = args.galaxies
        if args.frames:
            settings["total_frames"] = args.frames
        if args.steps_per_frame:
            settings["steps_per_frame"] = args.steps_per_frame
        if args.dt:
            settings["dt"] = args.dt
        if args.force_law:
            settings["force_law"] = args.force_law
        if args.cpu:
            settings["use_gpu"] = False

        record(settings, resume=False, base_dir=args.output_dir)
    except GalaxySimError as e:
        print(f"[Record] Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
