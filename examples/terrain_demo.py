"""
Example generating terrain on a jittered Voronoi model.
"""

import numpy as np
import matplotlib.pyplot as plt
from py_lem.config import settings
from py_lem.core import (
    TerrainModel2DBuilder, TerrainGenerator, TopographicalParameters,
    generate_jittered_sites,
)
from py_lem.utils.logging_config import configure_logging


def main():
    configure_logging(settings.log_level, "console")

    # Configuration
    bound_min, bound_max = (0.0, 0.0), (200.0, 100.0)
    spacing = 2.0

    # Create model
    sites = generate_jittered_sites(bound_min, bound_max, spacing, seed=42)
    model = (
        TerrainModel2DBuilder()
        .set_sites(sites)
        .set_bounding_box(bound_min, bound_max)
        .relax_sites(1)
        .build()
    )

    # Uplift is strongest in the middle of the map and zero at the outlets
    outlets = set(model.default_outlets())
    parameters = []
    for i, (x, y) in enumerate(model.sites()):
        uplift = 0.0 if i in outlets else 1.0 - abs(x - 100.0) / 100.0
        parameters.append(
            TopographicalParameters(
                uplift_rate=max(uplift, 0.0),
                erodibility=1.0,
                max_slope=np.radians(30),
            )
        )

    print("Generating terrain...")
    terrain = TerrainGenerator(model=model, parameters=parameters, max_iteration=10).generate()

    print(f"Sites: {model.num()}, outlets: {len(outlets)}")
    print(f"Elevation range: {terrain.elevations.min():.2f} to {terrain.elevations.max():.2f}")
    print(f"Elevation at map centre: {terrain.get_elevation(100.0, 50.0):.2f}")

    # Visualize results
    fig, ax = plt.subplots(figsize=(12, 6))
    scatter = ax.scatter(terrain.sites[:, 0], terrain.sites[:, 1], c=terrain.elevations, cmap='terrain', s=3)
    ax.set_title('Elevation')
    ax.set_aspect('equal')
    plt.colorbar(scatter, ax=ax, label='Elevation')

    plt.tight_layout()
    plt.savefig('terrain_demo.png', dpi=150)
    print("Saved visualization to terrain_demo.png")


if __name__ == "__main__":
    main()
