class Worker:
    def __init__(self, worker_id, function, begin, n_local_samples, batch_size):
        self.worker_id = worker_id
        self.function = function
        self.begin = begin
        self.n_local_samples = n_local_samples
        self.batch_size = batch_size
        self.offset = 0

    def get_mini_batch(self):
        """Next contiguous (begin, size) range inside this worker's samples."""
        # Return empty batch if no local samples
        if self.n_local_samples == 0:
            return self.begin, 0

        # Ensure batch size doesn't exceed what is left of the local range
        effective_batch_size = min(self.batch_size, self.n_local_samples - self.offset)
        batch_begin = self.begin + self.offset
        self.offset = (self.offset + effective_batch_size) % self.n_local_samples
        return batch_begin, effective_batch_size

    def compute_gradient(self, model_params):
        batch_begin, batch_size = self.get_mini_batch()
        if batch_size == 0:
            return 0.0, None, 0

        objective, gradient = self.function.evaluate_with_gradient(model_params, batch_begin, batch_size)
        return objective, gradient, batch_size
