"""Point cloud loading and normal export (PLY, NPZ, PNG)."""

import numpy as np
from pathlib import Path
from ..utils.utils import as_numpy

TEXT_SUFFIXES = (".txt", ".xy", ".xyz", ".csv")


def setup_matplotlib():
    """Setup matplotlib for non-interactive mode."""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    return plt


def load_ply_points_ascii(path: Path) -> np.ndarray:
    """
    Loads vertex coordinates from an ASCII PLY file.
    The header is parsed to find the vertex count and the start of the data.
    """
    with Path(path).open("r", encoding="utf-8") as f:
        lines = f.readlines()

    if not lines or lines[0].strip() != "ply":
        raise ValueError(f"{path} is not a PLY file.")

    end_idx = None
    num_vertices = None
    for i, line in enumerate(lines):
        if line.startswith("format") and "ascii" not in line:
            raise ValueError(f"Only ASCII PLY is supported: {line.strip()}")
        if line.startswith("element vertex"):
            try:
                num_vertices = int(line.strip().split()[-1])
            except (ValueError, IndexError):
                num_vertices = None
        if line.strip() == "end_header":
            end_idx = i
            break

    if end_idx is None:
        raise ValueError("PLY file header is malformed or 'end_header' not found.")

    count = num_vertices if num_vertices is not None else len(lines)
    pts = []
    for line in lines[end_idx + 1 : end_idx + 1 + count]:
        parts = line.strip().split()
        if len(parts) >= 2:
            pts.append((float(parts[0]), float(parts[1])))

    return np.array(pts, dtype=np.float64).reshape(-1, 2)


def load_points(path) -> np.ndarray:
    """
    Load a 2-D point set as an (n, 2) float64 array.

    Supported: ``.npy``, whitespace/comma separated text (``.txt``, ``.xy``,
    ``.xyz``, ``.csv``) and ASCII ``.ply``. Only the first two columns are used.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Point file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".npy":
        pts = np.load(path)
    elif suffix == ".ply":
        return load_ply_points_ascii(path)
    elif suffix in TEXT_SUFFIXES:
        delimiter = "," if suffix == ".csv" else None
        pts = np.loadtxt(path, delimiter=delimiter, ndmin=2)
    else:
        raise ValueError(f"Unsupported point file extension: {suffix}")

    pts = np.asarray(pts, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] < 2:
        raise ValueError(f"Expected at least two coordinate columns, got shape {pts.shape}")
    return pts[:, :2]


def save_ply_xy_normals(path: Path, points, normals):
    """Save 2-D points and normals as an ASCII PLY (z = 0, nz = 0)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    P = as_numpy(points).reshape(-1, 2)
    N = as_numpy(normals).reshape(-1, 2)
    zeros = np.zeros((len(P), 1))
    data = np.hstack([P, zeros, N, zeros])

    with path.open('w', encoding='utf-8') as f:
        f.write("ply\nformat ascii 1.0\n")
        f.write(f"element vertex {len(P)}\n")
        f.write("property float x\nproperty float y\nproperty float z\n")
        f.write("property float nx\nproperty float ny\nproperty float nz\n")
        f.write("end_header\n")
        np.savetxt(f, data, fmt="%.6f")


def save_normals_npz(path: Path, points, normals, initial_normals=None):
    """Save points and normals in NPZ format."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    arrays = {
        "points": as_numpy(points),
        "normals": as_numpy(normals),
    }
    if initial_normals is not None:
        arrays["initial_normals"] = as_numpy(initial_normals)
    np.savez_compressed(path, **arrays)


def compute_plot_bounds(points):
    """Square plot bounds (mid, half-range) around a 2-D point cloud."""
    P = as_numpy(points)
    if P.size == 0:
        return None
    mins, maxs = P.min(0), P.max(0)
    rng = max((maxs - mins).max() * 0.5, 1e-9)
    mid = (maxs + mins) * 0.5
    return mid, rng


def save_normals_png(path, points, normals, dpi=160, ptsize=4.0, arrow_scale=0.05):
    """Save a quiver plot of the normals."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    P = as_numpy(points)
    N = as_numpy(normals)
    plt = setup_matplotlib()

    if P.size == 0:
        fig = plt.figure(figsize=(3, 3))
        fig.text(0.5, 0.5, "No points", ha="center")
        fig.savefig(path, dpi=dpi, bbox_inches="tight")
        plt.close(fig)
        return

    mid, rng = compute_plot_bounds(P)
    length = arrow_scale * 2 * rng

    fig, ax = plt.subplots(figsize=(6, 6))
    ax.scatter(P[:, 0], P[:, 1], s=ptsize, c="k")
    ax.quiver(P[:, 0], P[:, 1], N[:, 0] * length, N[:, 1] * length,
              angles="xy", scale_units="xy", scale=1, color="tab:red", width=0.003)
    ax.set_xlim(mid[0] - rng * 1.1, mid[0] + rng * 1.1)
    ax.set_ylim(mid[1] - rng * 1.1, mid[1] + rng * 1.1)
    ax.set_aspect("equal")
    ax.set_xlabel("X")
    ax.set_ylabel("Y")
    ax.set_title(f"Normals ({len(P)} points)")

    fig.tight_layout()
    fig.savefig(path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
