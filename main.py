import logging

import numpy as np

from simulator import Simulator

WORKER_COUNTS = [1, 4, 16]  # Worker pools to compare
LOCAL_BATCH_SIZE = 16  # Mini-batch size 'b' per worker
N_ITERATIONS = 2000     # Total number of iterations
LEARNING_RATE_ETA0 = 0.5 # Initial learning rate
SUBOPTIMALITY_THRESHOLD = 0.01 # for reporting, per point
SHUFFLE_EVERY = 100  # Iterations between data shuffles, 0 disables

N_SAMPLES = 16 * 500
N_FEATURES = 80
N_INFORMATIVE_FEATURES = 50
CLASSIFICATION_SEP = 0.7
SPARSE_PREDICTORS = False

L2_REGULARIZATION_LAMBDA = 1e-1 # for L2

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    np.random.seed(203)
    sim_config = {
        'worker_counts': WORKER_COUNTS,
        'local_batch_size': LOCAL_BATCH_SIZE,
        'n_iterations': N_ITERATIONS,
        'learning_rate_eta0': LEARNING_RATE_ETA0,
        'l2_regularization_lambda': L2_REGULARIZATION_LAMBDA,
        'shuffle_every': SHUFFLE_EVERY,
        'n_samples': N_SAMPLES,
        'n_features': N_FEATURES,
        'n_informative_features': N_INFORMATIVE_FEATURES,
        'classification_sep': CLASSIFICATION_SEP,
        'sparse': SPARSE_PREDICTORS,
        'suboptimality_threshold': SUBOPTIMALITY_THRESHOLD,
        'seed': 203,
    }
    simulator = Simulator(sim_config)
    simulator.run_all()
    simulator.plot_results()
