import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from utils import partition_samples
from worker import Worker


class CentralizedTrainer:
    def __init__(self, function, config):
        self.function = function
        self.config = config
        self.n_workers = config['n_workers']
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be positive, got {self.n_workers}")
        self.workers = self._create_workers()
        self.x_global = function.initial_point  # Initialized here
        self.history = {'objective': [], 'batch_objective': [], 'accuracy': [], 'time': []}
        self.total_samples_processed = 0

    def _create_workers(self):
        ranges = partition_samples(self.function.num_functions(), self.n_workers)
        return [Worker(i, self.function, begin, size, self.config['local_batch_size'])
                for i, (begin, size) in enumerate(ranges)]

    def _get_learning_rate(self, t):
        eta0 = self.config['learning_rate_eta0']
        if not self.config.get('lr_decay', True):
            return eta0
        return eta0 / np.sqrt(t + 1)   #  As in the convex case, using O(1/sqrt(t))

    def run(self, n_iterations, f_opt=0.0, record_accuracy=True):
        print(f"\n--- Running Centralized Synchronous mini-batch SGD ({self.n_workers} workers) ---")
        start_time = time.time()
        shuffle_every = self.config.get('shuffle_every', 0)
        self.total_samples_processed = 0

        # Workers only read the shared data, so their batches can run concurrently
        with ThreadPoolExecutor(max_workers=self.config.get('max_threads', self.n_workers)) as pool:
            for t in range(n_iterations):
                current_model = self.x_global.copy()
                results = list(pool.map(lambda worker: worker.compute_gradient(current_model), self.workers))

                # Sum of batch objectives and gradients over the samples seen, at the central server
                grad_sum = np.zeros_like(current_model)
                batch_obj_sum = 0.0
                n_seen = 0
                for batch_obj, grad, batch_size in results:
                    if batch_size > 0:
                        batch_obj_sum += batch_obj
                        grad_sum += grad
                        n_seen += batch_size
                if n_seen == 0:
                    raise ValueError("No worker holds any samples")
                avg_gradient = grad_sum / n_seen
                eta_t = self._get_learning_rate(t)

                # Update the global model
                self.x_global = self.x_global - eta_t * avg_gradient
                self.total_samples_processed += n_seen
                # Per-point objective of the batches, before the update
                self.history['batch_objective'].append(batch_obj_sum / n_seen)

                # Shuffling rewrites the shared data: only between iterations
                if shuffle_every > 0 and (t + 1) % shuffle_every == 0:
                    self.function.shuffle()

                obj_val = self.function.evaluate(self.x_global)
                self.history['objective'].append(obj_val - f_opt)
                if record_accuracy:
                    self.history['accuracy'].append(self.function.compute_accuracy(
                        self.function.predictors, self.function.responses, self.x_global))
                self.history['time'].append(time.time() - start_time)

        print(f"C-SGD training finished. Time: {time.time() - start_time:.2f}s")
        return self.history, self.x_global


class SparseCoordinateTrainer:
    """Gradient descent that applies one sparse per-coordinate gradient at a time."""

    def __init__(self, function, config):
        self.function = function
        self.config = config
        self.order = config.get('order', 'cyclic')
        if self.order not in ('cyclic', 'reverse', 'random'):
            raise NotImplementedError(f"Wrong update order: {self.order}")
        self.rng = np.random.RandomState(config.get('seed'))
        self.history = {'objective': []}

    def _get_learning_rate(self, epoch):
        eta0 = self.config['learning_rate_eta0']
        if not self.config.get('lr_decay', False):
            return eta0
        return eta0 / np.sqrt(epoch + 1)

    def _update_order(self):
        indices = np.arange(self.function.num_functions())
        if self.order == 'reverse':
            return indices[::-1]
        if self.order == 'random':
            return self.rng.permutation(indices)
        return indices

    def run(self, n_epochs):
        x = self.function.get_initial_point().astype(float)
        for epoch in range(n_epochs):
            eta = self._get_learning_rate(epoch)
            for i in self._update_order():
                grad = self.function.gradient(x, i).tocoo()
                # Only the stored coordinates move
                x[grad.row, grad.col] -= eta * grad.data
            self.history['objective'].append(self.function.evaluate(x))
        return self.history, x
