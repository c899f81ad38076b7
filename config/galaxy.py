"""Configuration for the galaxy N-body simulation."""

# =============================================================================
# PERFORMANCE PRESETS - Choose one by uncommenting
# =============================================================================

# PRESET: LARGE (20K bodies) - needs CUDA for interactive framerates
# PARTICLE_COUNT = 20_000

# PRESET: DEFAULT (10K bodies)
PARTICLE_COUNT = 10_000

# PRESET: SMALL (2K bodies) - smooth on CPU
# PARTICLE_COUNT = 2_000

# =============================================================================

WINDOW = {
    "width": 1280,
    "height": 720,
    "title": "Galaxy Sim"
}

CAMERA = {
    "fov": 45.0,
    "near_clip": 0.01,
    "far_clip": 100.0,
    "initial_radius": 2.2,
    "initial_theta": 90.0,
    "initial_phi": 25.0,
    "min_radius": 0.1,
    "max_radius": 20.0,
    "min_phi": -89.0,
    "max_phi": 89.0,
    "keyboard_rotate_speed": 60.0,
    "keyboard_zoom_speed": 1.0,
    "mouse_sensitivity": 0.3
}

# Per-step physics parameters (see galaxy.particles.SimParams)
SIMULATION = {
    "dt": 0.0005,                  # Integration time step
    "gravity": 1e-6,               # Gravitational constant (tuned for visualization)
    "softening": 0.01,             # Softening epsilon added to the distance denominator
    "halo_scale": 2.0,             # Halo force magnitude at and beyond halo_radius
    "halo_radius": 2.0,            # Distance over which the halo force ramps up
    "particles_per_group": 64,     # Workers per dispatched batch (CUDA threads per block)

    # "newtonian" (unstable), "plummer", "halo", "multi_galaxy"
    "force_law": "multi_galaxy",

    # "leapfrog" (kick-drift-kick) or "euler" (naive baseline)
    "integrator": "leapfrog",
}

# Initial conditions
GALAXY = {
    "count": PARTICLE_COUNT,
    "num_galaxies": 1,
    "central_mass": 1_000_000.0,
    "distance_between_galaxies": 0.5,
    "galaxy_velocity": 0.0,        # Only useful when num_galaxies > 1
    "seed": 42,

    # Initial distribution: "spiral", "elliptical", "disk"
    "distribution": "spiral",

    # Spiral shape
    "bulge_std": 0.1,              # Std-dev of bulge particle offsets
    "bulge_fraction": 0.2,         # Share of particles placed in the bulge
    "width": 0.1,                  # Vertical flattening factor
    "spiral_length": 6.0,          # Arm length in half-turns
    "spiral_size": 0.2,            # Arm radius scale (r = size * sqrt(theta))
    "spiral_width": 0.02,          # Std-dev of arm particle offsets
}

RENDER = {
    "triangle_size": 0.002,        # Glyph size in world units

    # "constant", "index_split", "galaxy"
    "color_mode": "galaxy",

    # "flat" (heading in the xy plane) or "spatial" (azimuth + elevation)
    "glyph_mode": "spatial",
}

COLORS = {
    "background": (0.0, 0.0, 0.02, 1.0),
    "constant": (1.0, 1.0, 1.0),
    "split": ((0.35, 0.6, 1.0), (1.0, 0.55, 0.25)),
    "text": (0.7, 0.8, 0.9)
}

RECORD = {
    "frames": 600,
    "steps_per_frame": 4,
    "compression_level": 19,
    "delta_scale": 1000.0,         # Delta frames store round(delta * scale) as int16
    "keyframe_interval": 50,       # Absolute frame every N frames
}
