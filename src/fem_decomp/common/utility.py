import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Polygon, Rectangle
from matplotlib.collections import PatchCollection


def _style_axes(ax, title):
    ax.set_title(title, fontsize=18, pad=20)
    ax.set_xlabel("X", fontsize=14, labelpad=8)
    ax.set_ylabel("Y", fontsize=14, labelpad=8)
    ax.grid(True, linestyle="--", alpha=0.5)
    ax.set_aspect("equal", adjustable="box")
    ax.tick_params(axis="both", which="major", pad=2, labelsize=12)
    ax.autoscale_view()

    for spine in ax.spines.values():
        spine.set_visible(False)


def plot_mesh(ax, nodes, cells, parts=None, title="Mesh"):
    """
    Plots a 2D mesh, optionally colored by partition.

    Args:
        ax: Matplotlib axes object.
        nodes (np.ndarray): Array of node coordinates (num_nodes, 2).
        cells (list): List of lists, where each inner list contains the node indices for a cell.
        parts (np.ndarray, optional): Array of partition IDs for each cell.
        title (str, optional): The title for the plot.
    """
    nodes = np.asarray(nodes)[:, :2]

    part_colors = {}
    if parts is not None:
        unique_parts = np.unique(parts)
        cmap = plt.get_cmap("tab20", max(len(unique_parts), 1))
        part_colors = {p: cmap(i) for i, p in enumerate(unique_parts)}

    patches = []
    for i, cell_conn in enumerate(cells):
        color = part_colors[parts[i]] if parts is not None else "#90EE90"
        patches.append(
            Polygon(nodes[cell_conn], facecolor=color, edgecolor="k", alpha=0.7, lw=0.5)
        )
    ax.add_collection(PatchCollection(patches, match_original=True))

    _style_axes(ax, title)

    if parts is not None:
        legend_handles = [
            Rectangle(
                (0, 0),
                1,
                1,
                color=part_colors[p],
                label=f"Part {p} (#{int(np.sum(parts == p))})",
            )
            for p in part_colors
        ]
        ax.legend(
            handles=legend_handles,
            loc="upper left",
            bbox_to_anchor=(1.0, 1.0),
            fontsize=14,
            frameon=False,
            ncol=1,
        )


def plot_partition(ax, nodes, cells, boundary_nodes=(), node_labels=None, title="Partition"):
    """
    Plots one 2D partition with its boundary (shared) nodes highlighted.

    Args:
        ax: Matplotlib axes object.
        nodes (np.ndarray): Local node coordinates (num_nodes, 2).
        cells (list): Local node indices of each cell.
        boundary_nodes (array-like): Local ids of the boundary nodes.
        node_labels (array-like, optional): Label per local node (e.g. global ids).
        title (str, optional): The title for the plot.
    """
    nodes = np.asarray(nodes)[:, :2]
    plot_mesh(ax, nodes, cells, title=title)

    is_boundary = np.zeros(nodes.shape[0], dtype=bool)
    is_boundary[np.asarray(boundary_nodes, dtype=int)] = True
    ax.scatter(nodes[~is_boundary, 0], nodes[~is_boundary, 1], s=12, c="k", label="internal")
    ax.scatter(nodes[is_boundary, 0], nodes[is_boundary, 1], s=30, c="r", label="boundary")

    if node_labels is not None:
        fontsize = 8 if nodes.shape[0] < 200 else 4
        for i, label in enumerate(node_labels):
            ax.text(
                nodes[i, 0],
                nodes[i, 1],
                str(label),
                color="darkred",
                ha="center",
                va="bottom",
                fontsize=fontsize,
            )

    ax.legend(loc="upper left", bbox_to_anchor=(1.0, 1.0), fontsize=14, frameon=False)
