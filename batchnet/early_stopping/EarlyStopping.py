class EarlyStopping:
    def __init__(
        self,
        patience=5,
        min_delta=0.0,
        monitor="loss",
        mode="min",
        restore_best_weights=True,
    ):
        if mode not in ("min", "max"):
            raise ValueError(f"mode must be 'min' or 'max', got {mode!r}")
        self.monitor = monitor
        self.mode = mode
        self.patience = patience
        self.min_delta = float(min_delta)
        self.restore_best_weights = restore_best_weights

        self.best = None
        self.best_epoch = -1
        self.wait = 0
        self.stopped = False
        self._best_snapshot = None

    def _is_better(self, current, best):
        if self.mode == "min":
            return current < (best - self.min_delta)
        else:  # 'max'
            return current > (best + self.min_delta)

    def update(self, epoch, metrics, layers):
        value = metrics[self.monitor]
        if self.best is None or self._is_better(value, self.best):
            self.best = value
            self.best_epoch = epoch
            self.wait = 0
            # snapshot best weights
            self._best_snapshot = [[p.copy() for p in L.params()] for L in layers]
        else:
            self.wait += 1
            if self.wait >= self.patience:
                self.stopped = True
                if self.restore_best_weights and self._best_snapshot is not None:
                    for L, (w, b) in zip(layers, self._best_snapshot):
                        L.weights = w
                        L.biases = b
                return True
        return False
