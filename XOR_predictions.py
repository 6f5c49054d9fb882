import itertools

import numpy as np

from batchnet import Trainer, Softmax, FullyConnectedLayer
from batchnet.initializers import seeded, glorot_uniform


def generate_xor_data(n):
    # odd parity -> class 1, one-hot targets keyed by the input tuple
    data = {}
    for bits in itertools.product((0.0, 1.0), repeat=n):
        label = int(sum(bits)) % 2
        data[bits] = np.eye(2)[label]
    return data


def test(n, n_hidden, lr, epochs, seed=0):
    data = generate_xor_data(n)
    layers = [
        FullyConnectedLayer(n, n_hidden, activation="tanh", initializer=seeded(glorot_uniform, seed)),
        Softmax(n_hidden, 2, initializer=seeded(glorot_uniform, seed + 1)),
    ]
    trainer = Trainer(lr=lr, batch_size=len(data), seed=seed, verbose=0)
    trainer.train(layers, None, data, epochs)

    X = np.array(list(data.keys()))
    Y = np.argmax(np.array(list(data.values())), axis=1)
    preds = trainer.predict(layers, X)

    print(f"Predicting XOR for {n} inputs:")
    print(f"XOR-{n} Predictions:", preds)
    print(f"Accuracy: {np.mean(preds == Y) * 100:.2f}%")


if __name__ == "__main__":
    test(n=2, n_hidden=4, lr=0.5, epochs=2_000)
    test(n=3, n_hidden=8, lr=0.5, epochs=2_000)
    test(n=4, n_hidden=16, lr=0.3, epochs=3_000)
