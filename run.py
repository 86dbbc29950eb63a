"""
run.py - PCA normal estimation for 2-D point clouds

Pipeline:
──────────────────────────────────────────────────────────────────────
  points (.npy / .txt / .xy / .xyz / .csv / .ply)
     │
     ▼
  Spatial index (torch brute force, or FAISS for large clouds)
     │
     ▼
  Normal estimation: weighted PCA over k nearest neighbors
     │                (orientation arbitrary per point)
     ▼
  Orientation-aware refinement (one pass, optional)
     │
     ▼
  Export: PLY (x, y, 0, nx, ny, 0), NPZ, PNG quiver plot, summary JSON

Configuration:
──────────────────────────────────────────────────────────────────────
Optional YAML config, merged over normals2d.default_cfg():
  k: 16
  refine: true
  refine_mode: snapshot        # or: sequential
  backend: auto                # auto | torch | faiss
  dtype: float64               # float32 | float64
  device: cpu
  export: {ply, npz, png, dpi, ptsize, arrow_scale}

Command-line flags override the config file.

Usage:
──────────────────────────────────────────────────────────────────────
python run.py points.ply -o output/
python run.py points.npy -o output/ -k 8 --mode sequential --png
python run.py points.txt -o output/ -c config.yaml --no-refine

Output Structure:
──────────────────────────────────────────────────────────────────────
output/
├── <name>_normals.ply
├── <name>_normals.npz
├── <name>_normals.png           # with --png
└── <name>_summary.json
"""

import argparse
import json
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
import torch

from normals2d import (
    build_index,
    estimate_normals,
    refine_orientation,
    load_points,
    save_ply_xy_normals,
    save_normals_npz,
    save_normals_png,
    default_cfg,
    merge_cfg,
    validate_config,
    resolve_dtype,
    as_numpy,
)


# ============================================================================
# Configuration Loading
# ============================================================================
def load_config(config_path: Optional[str]) -> Dict:
    """Load an optional YAML config and merge it over the defaults."""
    cfg = default_cfg()
    if config_path is None:
        return cfg

    import yaml

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        user = yaml.safe_load(f) or {}
    if not isinstance(user, dict):
        raise ValueError(f"Config root must be a mapping: {config_path}")

    return merge_cfg(cfg, user)


def apply_cli_overrides(cfg: Dict, args) -> Dict:
    """Command-line flags take precedence over the config file."""
    cfg = merge_cfg(cfg, {})
    if args.k is not None:
        cfg["k"] = args.k
    if args.no_refine:
        cfg["refine"] = False
    if args.mode is not None:
        cfg["refine_mode"] = args.mode
    if args.backend is not None:
        cfg["backend"] = args.backend
    if args.dtype is not None:
        cfg["dtype"] = args.dtype
    if args.png:
        cfg["export"] = {**cfg["export"], "png": True}
    return cfg


# ============================================================================
# Pipeline
# ============================================================================
def compute_normals(points: np.ndarray, cfg: Dict, log=print) -> Tuple[torch.Tensor, Optional[torch.Tensor], Dict]:
    """Run estimation (and refinement) according to ``cfg``."""
    dtype = resolve_dtype(cfg["dtype"])
    index = build_index(points, backend=cfg["backend"], device=cfg["device"], dtype=dtype)
    log(f"[Index] {type(index).__name__} over {index.size()} points")

    t0 = time.perf_counter()
    normals = estimate_normals(index, cfg["k"])
    t_est = time.perf_counter() - t0
    log(f"[Normals] k={cfg['k']} estimated in {t_est:.3f}s")

    initial = None
    flipped = 0
    t_ref = 0.0
    if cfg["refine"]:
        initial = normals.clone()
        t0 = time.perf_counter()
        refine_orientation(index, cfg["k"], normals, mode=cfg["refine_mode"])
        t_ref = time.perf_counter() - t0
        flipped = int(((normals * initial).sum(-1) < 0).sum().item())
        log(f"[Refine] mode={cfg['refine_mode']} in {t_ref:.3f}s ({flipped} sign changes)")

    stats = {
        "num_points": int(index.size()),
        "k": int(cfg["k"]),
        "backend": type(index).__name__,
        "dtype": cfg["dtype"],
        "refine": bool(cfg["refine"]),
        "refine_mode": cfg["refine_mode"] if cfg["refine"] else None,
        "sign_changes": flipped,
        "time_estimate_s": t_est,
        "time_refine_s": t_ref,
    }
    return normals, initial, stats


def export_results(out_dir: Path, stem: str, points, normals, initial, cfg: Dict, stats: Dict, log=print) -> None:
    """Write PLY / NPZ / PNG / JSON outputs."""
    out_dir.mkdir(parents=True, exist_ok=True)
    exp = cfg["export"]

    if exp.get("ply", True):
        path = out_dir / f"{stem}_normals.ply"
        save_ply_xy_normals(path, points, normals)
        log(f"[Save] {path}")
    if exp.get("npz", True):
        path = out_dir / f"{stem}_normals.npz"
        save_normals_npz(path, points, normals, initial_normals=initial)
        log(f"[Save] {path}")
    if exp.get("png", False):
        path = out_dir / f"{stem}_normals.png"
        save_normals_png(path, points, as_numpy(normals), dpi=int(exp.get("dpi", 160)),
                         ptsize=float(exp.get("ptsize", 4.0)), arrow_scale=float(exp.get("arrow_scale", 0.05)))
        log(f"[Save] {path}")

    path = out_dir / f"{stem}_summary.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(stats, f, indent=2)
    log(f"[Save] {path}")


# ============================================================================
# Main Function
# ============================================================================
def main(argv=None):
    """Main entry point."""
    ap = argparse.ArgumentParser(description="PCA normal estimation for 2-D point clouds")
    ap.add_argument("input", type=str, help="Point file (.npy, .txt, .xy, .xyz, .csv, .ply).")
    ap.add_argument("-o", "--output", type=str, default="output/normals", help="Output directory.")
    ap.add_argument("-c", "--config", type=str, default=None, help="Path to YAML config.")
    ap.add_argument("-k", type=int, default=None, help="Number of nearest neighbors.")
    ap.add_argument("--no-refine", action="store_true", help="Skip orientation-aware refinement.")
    ap.add_argument("--mode", choices=["snapshot", "sequential"], default=None, help="Refinement sweep mode.")
    ap.add_argument("--backend", choices=["auto", "torch", "faiss"], default=None)
    ap.add_argument("--dtype", choices=["float32", "float64"], default=None)
    ap.add_argument("--png", action="store_true", help="Export a PNG quiver plot.")
    ap.add_argument("--quiet", action="store_true", help="Suppress progress output.")
    args = ap.parse_args(argv)

    log = (lambda *a, **kw: None) if args.quiet else print

    log("[Config] Loading configuration...")
    cfg = apply_cli_overrides(load_config(args.config), args)
    validate_config(cfg)

    input_path = Path(args.input)
    log(f"[Load] {input_path}")
    points = load_points(input_path)

    normals, initial, stats = compute_normals(points, cfg, log=log)
    export_results(Path(args.output), input_path.stem, points, normals, initial, cfg, stats, log=log)

    log("Done.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
