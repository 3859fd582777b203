import numpy as np
import pytest

from utils import logistic_regression_test_data


@pytest.fixture
def small_problem():
    rng = np.random.RandomState(0)
    predictors = rng.randn(5, 40)
    responses = (rng.rand(40) > 0.5).astype(np.int64)
    parameters = 0.5 * rng.randn(1, 6)
    return predictors, responses, parameters


@pytest.fixture(scope="module")
def gaussian_data():
    return logistic_regression_test_data(500, random_state=42)
