import time
from collections.abc import Mapping

import numpy as np

from .helpers.Batch import Batch
from .helpers.checkpoint import pack_state
from .helpers.errors import ShapeMismatchError
from .helpers.logger import RunLogger
from .loss.CrossEntropyLoss import CrossEntropyLoss
from .optimizer.SGDOptimizer import SGDOptimizer
from .optimizer.GradientTransforms import l2_regularizer, clip_by_value, chain
from .early_stopping.EarlyStopping import EarlyStopping


class Trainer:
    """
    Mini-batch trainer for a chain of layers ending in a Softmax layer.

    Per mini-batch: forward through the chain in order, cross-entropy on the
    last output, backward in reverse order, then for every trainable layer
    optional gradient transforms (L2, clipping) followed by
    update(get_gradients(), update_rule).
    """

    def __init__(
        self,
        update_rule=None,
        lr=0.01,
        weight_decay=0.0,
        batch_size=32,
        shuffle=True,
        seed=None,
        clip_grad=None,
        l2_lambda=0.0,
        early_stopping=None,
        verbose=1,
        runs_root=None,
        tag="run",
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        # any (value, gradient) -> value callable; SGD when none is given
        self.update_rule = update_rule if update_rule is not None else SGDOptimizer(lr, weight_decay)
        self.batch_size = batch_size
        self.shuffle = shuffle
        self.seed = seed
        self.clip_grad = clip_grad
        self.l2_lambda = l2_lambda
        self.early_stopping = early_stopping
        self.verbose = verbose
        self.runs_root = runs_root
        self.tag = tag
        self.rng = np.random.default_rng(seed)
        self.logger = None

    def train(self, layers, weights, training_data, epochs):
        """
        layers: ordered sequence of Layer, the last one a Softmax layer
        weights: None, or one entry per layer (None to keep, a (weights,
            biases) pair, or an (inputs, outputs) weight matrix) loaded
            before the first epoch
        training_data: mapping input vector -> target vector(s), or an
            iterable of (input, targets) pairs
        epochs: number of passes over the data
        returns: history dict {"loss": [...], "acc": [...]}
        """
        layers = list(layers)
        self._check_chain(layers)
        if weights is not None:
            self._load_weights(layers, weights)
        X, Y = self._examples(training_data, layers)
        if int(epochs) < 0:
            raise ValueError(f"epochs must be >= 0, got {epochs}")
        epochs = int(epochs)

        loss_fn = CrossEntropyLoss()
        history = {"loss": [], "acc": []}

        if isinstance(self.early_stopping, dict):
            stopper = EarlyStopping(**self.early_stopping)
        else:
            stopper = self.early_stopping

        if self.runs_root is not None:
            self.logger = RunLogger(root=self.runs_root, tag=self.tag)

        if self.verbose > 0:
            print(f"Starting training for {epochs} epochs on {X.shape[0]} examples...")
        for ep in range(1, epochs + 1):
            t0 = time.time()
            idx = np.arange(X.shape[0])
            if self.shuffle:
                idx = self.rng.permutation(idx)
            Xs = X[idx]
            Ys = Y[idx]

            for start in range(0, Xs.shape[0], self.batch_size):
                end = min(start + self.batch_size, Xs.shape[0])
                self.train_step(layers, Xs[start:end], Ys[start:end], loss_fn)

            # end of epoch: evaluate on train
            train_loss, train_acc = self.evaluate(layers, Xs, Ys)
            history["loss"].append(train_loss)
            history["acc"].append(train_acc)
            metrics = {"loss": train_loss, "acc": train_acc}

            # logging (console)
            if self.verbose > 0:
                log_interval = max(1, epochs // 10)
                if ep % log_interval == 0 or ep == 1 or ep == epochs:
                    print(f"Epoch {ep}/{epochs} - loss: {train_loss:.4f} - acc: {train_acc:.4f}")

            # logging (files + checkpoints)
            if self.logger is not None:
                self.logger.log_epoch(ep, time_s=time.time() - t0, loss=train_loss, acc=train_acc)
                self.logger.save_checkpoint(pack_state(layers), best=False)
                if ep == 1 or train_loss <= np.min(history["loss"]):
                    self.logger.save_checkpoint(pack_state(layers), best=True)

            # early stopping
            if stopper is not None and stopper.update(ep, metrics, layers):
                if self.verbose > 0:
                    print(
                        f"Early stopping at epoch {ep:02d}. "
                        f"Best {stopper.monitor}={stopper.best:.4f} at epoch {stopper.best_epoch:02d}."
                    )
                break

        if self.logger is not None:
            self.logger.save_json()
            if history["loss"]:
                self.logger.plot_loss(history, tag=self.tag)
        return history

    def train_step(self, layers, xb, yb, loss_fn=None):
        """One forward/backward/update pass over a single mini-batch. Returns the batch loss."""
        if loss_fn is None:
            loss_fn = CrossEntropyLoss()
        acts = Batch.from_array(xb)
        contexts = []
        for L in layers:
            acts, ctx = L.forward(acts, training=True)
            contexts.append(ctx)

        loss = loss_fn.forward(acts, Batch.from_array(yb))

        grad = loss_fn.backward()
        for L, ctx in zip(reversed(layers), reversed(contexts)):
            grad = L.backward(ctx, grad)

        for L in layers:
            if not L.trainable:
                continue
            transform = self._gradient_transform(L)
            if transform is not None:
                L.set_gradients(transform)
            L.update(L.get_gradients(), self.update_rule)
        return loss

    def evaluate(self, layers, x, y_onehot, batch_size=256):
        loss_fn = CrossEntropyLoss()
        N = x.shape[0]
        total_loss = 0.0
        correct = 0
        for start in range(0, N, batch_size):
            end = min(start + batch_size, N)
            probs = self._infer(layers, x[start:end])
            total_loss += loss_fn.forward(probs, Batch.from_array(y_onehot[start:end])) * (end - start)
            pred = np.argmax(probs.to_array(), axis=1)
            true = np.argmax(y_onehot[start:end], axis=1)
            correct += int(np.sum(pred == true))
        return total_loss / N, correct / N

    def predict_proba(self, layers, x, batch_size=256):
        x = np.asarray(x, dtype=np.float64)
        if x.ndim == 1:
            x = x.reshape(1, -1)
        probs = [self._infer(layers, x[s:s + batch_size]).to_array() for s in range(0, x.shape[0], batch_size)]
        return np.vstack(probs)

    def predict(self, layers, x, batch_size=256):
        return np.argmax(self.predict_proba(layers, x, batch_size=batch_size), axis=1)

    # ================== helpers ==================
    def _infer(self, layers, xb):
        acts = Batch.from_array(xb)
        for L in layers:
            acts, _ = L.forward(acts, training=False)
        return acts

    def _gradient_transform(self, layer):
        transforms = []
        if self.l2_lambda:
            transforms.append(l2_regularizer(layer, self.l2_lambda))
        if self.clip_grad is not None:
            transforms.append(clip_by_value(self.clip_grad))
        if not transforms:
            return None
        return transforms[0] if len(transforms) == 1 else chain(*transforms)

    @staticmethod
    def _check_chain(layers):
        if not layers:
            raise ValueError("need at least one layer to train")
        for a, b in zip(layers, layers[1:]):
            if a.outputs != b.inputs:
                raise ShapeMismatchError(
                    f"{a.name} produces {a.outputs} values but {b.name} expects {b.inputs}"
                )

    @staticmethod
    def _load_weights(layers, weights):
        weights = list(weights)
        if len(weights) != len(layers):
            raise ShapeMismatchError(f"got {len(weights)} weight entries for {len(layers)} layers")
        for L, entry in zip(layers, weights):
            if entry is None:
                continue
            pair = Trainer._as_pair(L, entry)
            if pair is not None:
                L.weights, L.biases = pair
                continue
            try:
                w = np.asarray(entry, dtype=np.float64)
            except ValueError as exc:
                raise ShapeMismatchError(
                    f"{L.name}: expected a (weights, biases) pair or an {(L.inputs, L.outputs)} weight matrix"
                ) from exc
            if w.ndim == 2 and w.shape != (L.inputs, L.outputs):
                raise ShapeMismatchError(
                    f"{L.name}: weight matrix must be {(L.inputs, L.outputs)}, got {w.shape}"
                )
            # row-major flattening matches the flat layout: w[j, i] -> i + outputs*j
            L.weights = w.reshape(-1)

    @staticmethod
    def _as_pair(layer, entry):
        # [weights, biases] or (weights, biases); None for a plain weight matrix
        if not isinstance(entry, (tuple, list)) or len(entry) != 2:
            return None
        try:
            w = np.asarray(entry[0], dtype=np.float64)
            b = np.asarray(entry[1], dtype=np.float64)
        except (TypeError, ValueError):
            return None
        if w.size == layer.inputs * layer.outputs and b.size == layer.outputs:
            return w, b
        if isinstance(entry, tuple):
            raise ShapeMismatchError(
                f"{layer.name}: (weights, biases) must hold {layer.inputs * layer.outputs} "
                f"weights and {layer.outputs} biases, got {w.size} and {b.size}"
            )
        return None

    @staticmethod
    def _examples(training_data, layers):
        items = training_data.items() if isinstance(training_data, Mapping) else training_data
        xs, ys = [], []
        for x, targets in items:
            x = np.asarray(x, dtype=np.float64).reshape(-1)
            if not isinstance(targets, np.ndarray):
                targets = list(targets)
            targets = np.asarray(targets, dtype=np.float64)
            rows = targets.reshape(1, -1) if targets.ndim == 1 else targets
            for t in rows:
                xs.append(x)
                ys.append(t)
        if not xs:
            raise ValueError("training_data is empty")

        X = np.stack(xs, axis=0)
        Y = np.stack(ys, axis=0)
        if X.shape[1] != layers[0].inputs:
            raise ShapeMismatchError(f"inputs have {X.shape[1]} features, {layers[0].name} expects {layers[0].inputs}")
        if Y.shape[1] != layers[-1].outputs:
            raise ShapeMismatchError(f"targets have {Y.shape[1]} classes, {layers[-1].name} outputs {layers[-1].outputs}")
        return X, Y
