"""
Offline map loading (map_server YAML + image).

Used by tests and scripts to build an OccupancyGrid without a running ROS graph.
"""

from pathlib import Path

import cv2
import numpy as np
import yaml

from gl_pose_sampler.core.types import FREE, OCCUPIED, UNKNOWN, OccupancyGrid, Pose2D


def image_to_occupancy(image: np.ndarray, negate: bool = False,
                       occupied_thresh: float = 0.65, free_thresh: float = 0.196) -> np.ndarray:
    """Trinary interpretation of a grayscale map image (row 0 = top of the map).

    Returns:
        int8 cell array with row 0 at the bottom of the map
    """
    if image.ndim == 3:
        image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    pixels = image.astype(np.float64) / 255.0
    occupancy = pixels if negate else 1.0 - pixels

    data = np.full(image.shape, UNKNOWN, dtype=np.int8)
    data[occupancy > occupied_thresh] = OCCUPIED
    data[occupancy < free_thresh] = FREE
    return np.flipud(data)


def load_map_yaml(path, frame_id: str = "map") -> OccupancyGrid:
    """Load a map_server style map description.

    Args:
        path: YAML file with ``image``, ``resolution``, ``origin`` and optional
            ``negate``, ``occupied_thresh``, ``free_thresh``
        frame_id: Frame assigned to the grid

    Returns:
        OccupancyGrid
    """
    path = Path(path)
    with open(path, 'r') as f:
        meta = yaml.safe_load(f)

    for key in ('image', 'resolution', 'origin'):
        if key not in meta:
            raise ValueError(f"Map file {path} is missing '{key}'")

    image_path = Path(meta['image'])
    if not image_path.is_absolute():
        image_path = path.parent / image_path
    image = cv2.imread(str(image_path), cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise FileNotFoundError(f"Cannot read map image {image_path}")

    data = image_to_occupancy(
        image,
        negate=bool(meta.get('negate', 0)),
        occupied_thresh=float(meta.get('occupied_thresh', 0.65)),
        free_thresh=float(meta.get('free_thresh', 0.196)),
    )
    origin = meta['origin']
    height, width = data.shape
    return OccupancyGrid(
        width, height, float(meta['resolution']),
        Pose2D(float(origin[0]), float(origin[1]), float(origin[2]) if len(origin) > 2 else 0.0),
        data, frame_id,
    )
