import logging
import os
from typing import Mapping

import matplotlib.pyplot as plt

from ..domains.backtesting.entities import CalibrationBucket

logger = logging.getLogger(__name__)


def plot_calibration_buckets(
    buckets: Mapping[str, CalibrationBucket],
    save_path,
    filename,
    show=False,
):
    """
    Plots mean predicted probability against observed hit rate per bucket.

    Parameters:
        buckets (Mapping[str, CalibrationBucket]): Buckets keyed by range label.
        save_path: The folder to save the plot.
        filename: The name of the plot.
        show (bool): Show the plot in a new window.

    Returns:
        The path of the saved figure.
    """
    filled = [(label, b) for label, b in buckets.items() if b.count]

    plt.figure(figsize=(8, 8))
    plt.plot([0, 1], [0, 1], linestyle="--", color="grey", label="Perfect calibration")

    if filled:
        predicted = [b.mean_predicted for _, b in filled]
        observed = [b.hit_rate for _, b in filled]
        plt.plot(predicted, observed, marker="o", label="Model")

        for (label, bucket), x, y in zip(filled, predicted, observed):
            plt.text(x, y, f"{label}% (n={bucket.count})", fontsize=9, ha="left")

    plt.xlim(0, 1)
    plt.ylim(0, 1)
    plt.xlabel("Mean predicted probability")
    plt.ylabel("Observed hit rate")
    plt.title("Calibration of top picks")
    plt.legend()
    plt.grid()

    os.makedirs(save_path, exist_ok=True)

    save_file = os.path.join(save_path, filename)
    plt.savefig(save_file, bbox_inches="tight")
    logger.info(f"Calibration plot saved to '{save_file}'")
    if show:
        plt.show()
    else:
        plt.close()

    return save_file
