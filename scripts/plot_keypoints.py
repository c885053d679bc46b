#!/usr/bin/env python3
"""
Plot the distance field and SDF keypoints of a map_server map.

Usage:
    python3 scripts/plot_keypoints.py --map maps/office.yaml --save keypoints.png
"""

import argparse

import matplotlib.pyplot as plt
import numpy as np

from gl_pose_sampler.core.gl_pose_sampler import GLPoseSampler
from gl_pose_sampler.core.types import OCCUPIED, GLPoseSamplerParams, KeypointType
from gl_pose_sampler.utils.map_io import load_map_yaml
from gl_pose_sampler.utils.topics import KEYPOINT_COLORS


def plot_keypoints(map_path: str, params: GLPoseSamplerParams, save_path: str = None) -> None:
    """Run the global feature extraction on a map file and plot the result"""
    grid = load_map_yaml(map_path)
    sampler = GLPoseSampler(params)
    feature_map = sampler.set_map(grid)

    print(f"Map {grid.width}x{grid.height} @ {grid.resolution:.3f} m: {len(feature_map)} keypoints")
    for kind in (KeypointType.MAXIMUM, KeypointType.MINIMUM, KeypointType.SADDLE):
        print(f"  {kind.name.lower():8s}: {feature_map.count(kind)}")

    extent = [
        grid.origin.x, grid.origin.x + grid.width * grid.resolution,
        grid.origin.y, grid.origin.y + grid.height * grid.resolution,
    ]

    fig, axes = plt.subplots(1, 2, figsize=(16, 8))
    fig.suptitle(f"{map_path} | {len(feature_map)} keypoints", fontsize=14)

    ax = axes[0]
    im = ax.imshow(feature_map.distance_field, cmap='viridis', origin='lower', extent=extent)
    ax.set_title("Distance field (m)")
    plt.colorbar(im, ax=ax)

    ax = axes[1]
    ax.imshow(grid.data == OCCUPIED, cmap='gray_r', origin='lower', extent=extent)
    for value, rgb in KEYPOINT_COLORS.items():
        kind = KeypointType(value)
        points = np.array([(kp.x, kp.y) for kp in feature_map.keypoints if kp.kind == kind])
        if len(points) == 0:
            continue
        ax.scatter(points[:, 0], points[:, 1], color=rgb, s=12, label=kind.name.lower())
    ax.set_title("Keypoints")
    ax.legend()

    plt.tight_layout()
    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved: {save_path}")
    else:
        plt.show()
    plt.close()


def main():
    parser = argparse.ArgumentParser(description="Plot SDF keypoints of an occupancy map")
    parser.add_argument("--map", type=str, required=True,
                        help="map_server YAML file")
    parser.add_argument("--gradient-th", type=float, default=10e-4,
                        help="Squared gradient flatness threshold")
    parser.add_argument("--min-dist", type=float, default=1.0,
                        help="Minimum distance from obstacles (m)")
    parser.add_argument("--save", type=str, default=None,
                        help="Output image path (shows a window if omitted)")

    args = parser.parse_args()
    params = GLPoseSamplerParams(
        gradient_square_th=args.gradient_th,
        keypoints_min_dist_from_map=args.min_dist,
    )
    plot_keypoints(args.map, params, args.save)


if __name__ == "__main__":
    main()
