import logging

import numpy as np
import scipy.sparse as sp

from backends import get_backend
from errors import DimensionMismatch, InvalidInput, RangeError

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class LogisticRegressionFunction:
    """L2-regularized logistic regression objective for gradient-based optimizers.

    Predictors are laid out features x samples and responses hold one {0, 1}
    label per column. Parameters are a (1, d + 1) row whose first element is
    the intercept; the intercept is never regularized.

    The objective is the negative log-likelihood

        f(w) = 0.5 * lambda * w[1:] . w[1:] - sum_i log(1 - y_i + s_i * (2 y_i - 1))

    with s_i = sigmoid(w[0] + w[1:] . x_i). Batch forms restrict the sum to
    the samples [begin, begin + batch_size) and scale the regularization by
    batch_size / n, so batch objectives and gradients over a partition of the
    samples add up to the full ones.

    Predictors and responses are borrowed, not copied. shuffle() rebinds the
    function to freshly permuted arrays and leaves the caller's arrays alone;
    it must not run while any other call is in flight. Everything else only
    reads the data and is safe to call from several threads at once.
    """

    def __init__(self, predictors, responses, lambda_reg=0.0, initial_point=None, backend=None):
        self.backend = backend if backend is not None else get_backend(predictors)
        self._predictors = self.backend.prepare(predictors)
        self._elem_type = self.backend.elem_type(self._predictors)
        self._responses = np.ravel(np.asarray(responses))

        n_points = self._predictors.shape[1]
        if self._responses.size != n_points:
            raise InvalidInput(
                f"LogisticRegressionFunction(): predictors matrix has {n_points} points, "
                f"but responses vector has {self._responses.size} elements (should be {n_points})")
        self.lambda_reg = lambda_reg
        self._initial_point = self._check_initial_point(initial_point)
        logger.debug("Logistic regression function: %d features, %d points, %s backend",
                     self._predictors.shape[0], n_points, self.backend.name)

    @property
    def predictors(self):
        return self._predictors

    @property
    def responses(self):
        return self._responses

    @property
    def lambda_reg(self):
        return self._lambda_reg

    @lambda_reg.setter
    def lambda_reg(self, value):
        if value < 0:
            raise InvalidInput(f"lambda_reg must be non-negative, got {value}")
        self._lambda_reg = value

    @property
    def initial_point(self):
        return self._initial_point.copy()

    def num_functions(self):
        return self._predictors.shape[1]

    def num_features(self):
        return self._predictors.shape[0] + 1

    def _check_initial_point(self, initial_point):
        n_params = self.num_features()
        if initial_point is None:
            return np.zeros((1, n_params), dtype=self._elem_type)

        initial_point = np.asarray(initial_point)
        if initial_point.shape in ((1, n_params), (n_params, 1)):
            return initial_point.reshape(1, n_params).astype(self._elem_type)

        logger.warning("Initial point of shape %s does not fit %d predictors; starting from zeros of shape %s",
                       initial_point.shape, n_params - 1, (1, n_params))
        return np.zeros((1, n_params), dtype=self._elem_type)

    def _check_parameters(self, parameters):
        parameters = np.asarray(parameters)
        expected = (1, self.num_features())
        if parameters.shape != expected:
            raise DimensionMismatch(f"parameters have shape {parameters.shape}, expected {expected}")
        return self.backend.convert(parameters, self._elem_type)

    def _batch(self, begin, batch_size):
        """Predictors, responses and regularization scale for a sample range."""
        n_points = self.num_functions()
        if begin is None and batch_size is None:
            return self._predictors, self._responses, 1.0

        begin = 0 if begin is None else begin
        batch_size = n_points - begin if batch_size is None else batch_size
        if begin < 0 or batch_size < 1 or begin + batch_size > n_points:
            raise RangeError(
                f"batch [{begin}, {begin + batch_size}) is outside the {n_points} available points")

        end = begin + batch_size
        return (self.backend.columns(self._predictors, begin, end),
                self._responses[begin:end],
                batch_size / n_points)

    def _sigmoids(self, parameters, predictors, backend=None):
        backend = self.backend if backend is None else backend
        exponents = parameters[0, 0] + backend.weighted_sum(parameters[0, 1:], predictors)
        return 1.0 / (1.0 + backend.exp(-exponents))

    def _objective(self, parameters, sigmoids, labels, scale):
        weights = parameters[0, 1:]
        regularization = 0.5 * self.lambda_reg * scale * self.backend.dot(weights, weights)

        # log(y * s + (1 - y) * (1 - s)), clamped so a saturated sigmoid stays finite
        likelihoods = 1.0 - labels + sigmoids * (2 * labels - 1.0)
        likelihoods = np.maximum(likelihoods, np.finfo(self._elem_type).tiny)
        result = np.sum(self.backend.log(likelihoods))

        # Invert the result, because it's a minimization
        return self._elem_type.type(regularization - result)

    def _gradient(self, parameters, sigmoids, labels, predictors, scale):
        gradient = np.empty(parameters.shape, dtype=self._elem_type)
        gradient[0, 0] = -np.sum(labels - sigmoids)
        gradient[0, 1:] = (self.backend.project(sigmoids - labels, predictors)
                           + self.lambda_reg * scale * parameters[0, 1:])
        return gradient

    def shuffle(self, rng=None):
        """Permute the points, keeping each predictor column with its response."""
        rng = np.random if rng is None else rng
        ordering = rng.permutation(self.num_functions())

        # Take ownership of the new data
        self._predictors = self.backend.take_columns(self._predictors, ordering)
        self._responses = self._responses[ordering]
        logger.debug("Shuffled %d points", ordering.size)

    def evaluate(self, parameters, begin=None, batch_size=None):
        parameters = self._check_parameters(parameters)
        predictors, responses, scale = self._batch(begin, batch_size)
        labels = self.backend.convert(responses, self._elem_type)
        sigmoids = self._sigmoids(parameters, predictors)
        return self._objective(parameters, sigmoids, labels, scale)

    def gradient(self, parameters, begin=None, batch_size=None):
        parameters = self._check_parameters(parameters)
        predictors, responses, scale = self._batch(begin, batch_size)
        labels = self.backend.convert(responses, self._elem_type)
        sigmoids = self._sigmoids(parameters, predictors)
        return self._gradient(parameters, sigmoids, labels, predictors, scale)

    def evaluate_with_gradient(self, parameters, begin=None, batch_size=None):
        """Objective and gradient from a single pass over the sigmoids."""
        parameters = self._check_parameters(parameters)
        predictors, responses, scale = self._batch(begin, batch_size)
        labels = self.backend.convert(responses, self._elem_type)
        sigmoids = self._sigmoids(parameters, predictors)
        gradient = self._gradient(parameters, sigmoids, labels, predictors, scale)
        return self._objective(parameters, sigmoids, labels, scale), gradient

    def partial_gradient(self, parameters, j):
        """Coordinate j of the full gradient, as a sparse row with a single entry."""
        parameters = self._check_parameters(parameters)
        if not 0 <= j < self.num_features():
            raise DimensionMismatch(f"coordinate {j} is outside parameters of length {self.num_features()}")

        labels = self.backend.convert(self._responses, self._elem_type)
        diffs = labels - self._sigmoids(parameters, self._predictors)
        if j == 0:
            value = -np.sum(diffs)
        else:
            value = (-self.backend.dot(self.backend.feature_row(self._predictors, j - 1), diffs)
                     + self.lambda_reg * parameters[0, j])

        return sp.csr_matrix(([value], ([0], [j])), shape=parameters.shape, dtype=self._elem_type)

    def classify(self, dataset, parameters, decision_boundary=0.5):
        """Label each column of dataset 1 if its sigmoid reaches decision_boundary, else 0."""
        parameters = self._check_parameters(parameters)
        if not 0.0 < decision_boundary <= 1.0:
            raise ValueError(f"decision_boundary must be in (0, 1], got {decision_boundary}")

        backend = get_backend(dataset)
        dataset = backend.prepare(dataset)
        if dataset.shape[0] != self.num_features() - 1:
            raise DimensionMismatch(
                f"dataset has {dataset.shape[0]} features, expected {self.num_features() - 1}")

        # The (1 - decision_boundary) offset makes floor() return 0 or 1
        sigmoids = self._sigmoids(parameters, dataset, backend=backend)
        labels = np.floor(sigmoids + (1.0 - decision_boundary))
        return labels.astype(self._label_type())

    def compute_accuracy(self, predictors, responses, parameters, decision_boundary=0.5):
        """Percentage of points in predictors whose predicted label matches responses."""
        labels = self.classify(predictors, parameters, decision_boundary)
        responses = np.ravel(np.asarray(responses))
        if responses.size != labels.size:
            raise InvalidInput(
                f"compute_accuracy(): predictors matrix has {labels.size} points, "
                f"but responses vector has {responses.size} elements")

        count = np.count_nonzero(labels == responses)
        return count * 100.0 / responses.size

    def _label_type(self):
        if np.issubdtype(self._responses.dtype, np.integer):
            return self._responses.dtype
        return np.dtype(np.int64)


class SparseTestFunction:
    """Four independent parabolas, one per coordinate.

    Each gradient touches a single coordinate, so an optimizer updating one
    dimension at a time should drive every coordinate to the vertex of its
    own parabola, -b_i / 2.
    """

    def __init__(self):
        self.intercepts = np.array([20.0, 12.0, 15.0, 100.0])
        self.bi = np.array([-4.0, -2.0, -3.0, -8.0])

    def num_functions(self):
        return 4

    def num_features(self):
        return 4

    def get_initial_point(self):
        return np.zeros((4, 1))

    def optimum(self):
        return (-self.bi / 2).reshape(4, 1)

    def _coordinates(self, coordinates):
        coordinates = np.ravel(np.asarray(coordinates, dtype=float))
        if coordinates.size != self.num_features():
            raise DimensionMismatch(f"coordinates have {coordinates.size} elements, expected 4")
        return coordinates

    def _check_index(self, i):
        if not 0 <= i < self.num_functions():
            raise DimensionMismatch(f"index {i} is outside [0, 4)")

    def evaluate(self, coordinates, i=None):
        x = self._coordinates(coordinates)
        if i is None:
            return float(np.sum(x * x + self.bi * x + self.intercepts))
        self._check_index(i)
        return float(x[i] * x[i] + self.bi[i] * x[i] + self.intercepts[i])

    def gradient(self, coordinates, i):
        value = self.feature_gradient(coordinates, i)
        return sp.csr_matrix(([value], ([i], [0])), shape=(self.num_features(), 1))

    def feature_gradient(self, coordinates, j):
        x = self._coordinates(coordinates)
        self._check_index(j)
        return float(2 * x[j] + self.bi[j])
