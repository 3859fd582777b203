import numpy as np
import pytest

from obj_problems import LogisticRegressionFunction
from simulator import Simulator
from trainer import CentralizedTrainer
from utils import generate_and_preprocess_data, generate_gaussian_clusters, partition_samples
from worker import Worker

DATA_CONFIG = {
    'n_samples': 600,
    'n_features': 5,
    'n_informative_features': 5,
    'classification_sep': 2.0,
    'flip_y': 0.0,
    'seed': 0,
}


def test_partition_samples_covers_all_points():
    assert partition_samples(10, 3) == [(0, 4), (4, 3), (7, 3)]
    assert partition_samples(2, 3) == [(0, 1), (1, 1), (2, 0)]


def test_worker_cycles_through_its_range(small_problem):
    predictors, responses, _ = small_problem
    function = LogisticRegressionFunction(predictors, responses, 0.3)
    worker = Worker(0, function, 10, 25, 10)

    batches = [worker.get_mini_batch() for _ in range(4)]
    assert batches == [(10, 10), (20, 10), (30, 5), (10, 10)]


def test_worker_gradient_is_a_batch_gradient(small_problem):
    predictors, responses, parameters = small_problem
    function = LogisticRegressionFunction(predictors, responses, 0.3)
    worker = Worker(1, function, 20, 20, 8)

    objective, gradient, batch_size = worker.compute_gradient(parameters)
    assert batch_size == 8
    np.testing.assert_allclose(objective, function.evaluate(parameters, 20, 8))
    np.testing.assert_allclose(gradient, function.gradient(parameters, 20, 8))


def test_empty_worker_returns_no_gradient(small_problem):
    predictors, responses, parameters = small_problem
    function = LogisticRegressionFunction(predictors, responses, 0.3)
    assert Worker(0, function, 40, 0, 8).compute_gradient(parameters) == (0.0, None, 0)


def test_generated_data_layout():
    predictors, responses = generate_and_preprocess_data(DATA_CONFIG)
    assert predictors.shape == (5, 600)
    assert set(np.unique(responses)) == {0, 1}

    sparse_predictors, _ = generate_and_preprocess_data(dict(DATA_CONFIG, sparse=True))
    assert sparse_predictors.format == 'csc'
    np.testing.assert_allclose(sparse_predictors.toarray(), predictors)


def test_gaussian_clusters_layout():
    data, responses = generate_gaussian_clusters(50, random_state=1, dtype=np.float32)
    assert data.shape == (3, 100)
    assert data.dtype == np.float32
    np.testing.assert_array_equal(responses, [0] * 50 + [1] * 50)
    assert data[:, :50].mean() < data[:, 50:].mean()


@pytest.mark.parametrize('n_workers', [1, 3])
def test_centralized_sgd_learns(n_workers):
    predictors, responses = generate_and_preprocess_data(DATA_CONFIG)
    function = LogisticRegressionFunction(predictors, responses, 1e-2)
    initial_objective = function.evaluate(function.initial_point)
    config = {
        'n_workers': n_workers,
        'local_batch_size': 20,
        'learning_rate_eta0': 0.5,
        'shuffle_every': 10,
    }

    trainer = CentralizedTrainer(function, config)
    history, x = trainer.run(300)

    assert x.shape == (1, 6)
    assert len(history['objective']) == 300
    assert history['objective'][-1] < initial_objective
    assert history['accuracy'][-1] > 90.0
    assert trainer.total_samples_processed == 300 * 20 * n_workers


def test_centralized_trainer_rejects_no_workers(small_problem):
    predictors, responses, _ = small_problem
    function = LogisticRegressionFunction(predictors, responses, 0.3)
    with pytest.raises(ValueError):
        CentralizedTrainer(function, {'n_workers': 0, 'local_batch_size': 4, 'learning_rate_eta0': 0.1})


def test_simulator_reference_optimum_and_report():
    config = dict(DATA_CONFIG,
                  worker_counts=[1, 2],
                  local_batch_size=16,
                  n_iterations=50,
                  learning_rate_eta0=0.5,
                  l2_regularization_lambda=0.1,
                  suboptimality_threshold=0.05)
    simulator = Simulator(config)

    # The sklearn solution is a stationary point of this objective
    gradient = simulator.function.gradient(simulator.w_opt)
    assert np.max(np.abs(gradient)) / simulator.n_points < 1e-3

    simulator.run_all()
    assert set(simulator.numerical_results) == {"C-SGD (1 workers)", "C-SGD (2 workers)"}
    for result in simulator.numerical_results.values():
        assert result['final_accuracy'] > 80.0
    for history in simulator.results.values():
        # Nothing beats the reference optimum by more than rounding
        assert min(history['objective']) > -1e-6


@pytest.mark.parametrize('batch_size', [30, 35, 40])
def test_centralized_sgd_separates_gaussian_clusters(gaussian_data, batch_size):
    data, test_data, shuffled_data, responses, test_responses, shuffled_responses = gaussian_data
    function = LogisticRegressionFunction(shuffled_data, shuffled_responses, 1.0 / data.shape[1])
    config = {
        'n_workers': 1,
        'local_batch_size': batch_size,
        'learning_rate_eta0': 0.5,
        'shuffle_every': 20,
    }

    trainer = CentralizedTrainer(function, config)
    _, x = trainer.run(1000, record_accuracy=False)

    assert function.compute_accuracy(data, responses, x) >= 98.0
    assert function.compute_accuracy(test_data, test_responses, x) >= 98.0


def test_centralized_sgd_records_batch_objective(small_problem):
    predictors, responses, _ = small_problem
    function = LogisticRegressionFunction(predictors, responses, 0.3)
    initial_objective = function.evaluate(function.initial_point)
    config = {'n_workers': 2, 'local_batch_size': 20, 'learning_rate_eta0': 0.1}

    history, _ = CentralizedTrainer(function, config).run(5)

    assert len(history['batch_objective']) == 5
    # Two workers covering all 40 points see the full objective at the start
    np.testing.assert_allclose(history['batch_objective'][0], initial_objective / 40, rtol=1e-12)
