# helpers/logger.py
import csv, json, datetime, pathlib

import numpy as np
import matplotlib.pyplot as plt


class RunLogger:
    def __init__(self, root="runs", tag="run"):
        ts = datetime.datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        self.root = pathlib.Path(root)
        self.dir = self.root / f"{tag}_{ts}"
        self.dir.mkdir(parents=True, exist_ok=True)
        self.csv_path = self.dir / "history.csv"
        self.json_path = self.dir / "history.json"
        self.best_ckpt = self.dir / "checkpoint_best.npz"
        self.last_ckpt = self.dir / "checkpoint_last.npz"
        self.metrics = []  # list of dicts per epoch
        self._csv_header_written = False

    # ---------- logging ----------
    def log_epoch(self, epoch, **kwargs):
        row = {"epoch": int(epoch), **{k: float(v) for k, v in kwargs.items()}}
        self.metrics.append(row)
        with open(self.csv_path, "a", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=list(row.keys()))
            if not self._csv_header_written:
                writer.writeheader()
                self._csv_header_written = True
            writer.writerow(row)

    def save_json(self):
        with open(self.json_path, "w") as f:
            json.dump(self.metrics, f, indent=2)

    def save_checkpoint(self, npz_dict, best=False):
        path = self.best_ckpt if best else self.last_ckpt
        np.savez(path, **npz_dict)
        return str(path)

    # ---------- plotting ----------
    def plot_loss(self, history, tag="run", subdir="plots"):
        """
        Saves loss curve as loss_curve_<tag>_epochs_<n>.png and returns its path.
        """
        train = history.get("loss", [])
        outdir = self.dir / subdir
        outdir.mkdir(parents=True, exist_ok=True)

        plt.figure()
        if len(train) > 0:
            plt.plot(train, label="train loss")
            plt.legend()
        plt.xlabel("Epoch")
        plt.ylabel("Cross-Entropy Loss")
        plt.title(f"Loss vs Epochs ({tag})")
        plt.tight_layout()
        path = outdir / f"loss_curve_{tag}_epochs_{len(train)}.png"
        plt.savefig(path, dpi=160)
        plt.close()
        return path
