"""Linear algebra backends the objective functions are written against.

Every backend takes predictors laid out features x samples and hands back
dense numpy vectors, so the formulas in obj_problems only ever see dense
rows no matter how the predictors are stored.
"""
import logging

import numpy as np
import scipy.sparse as sp

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class NumericBackend:
    """Operations an objective function may perform on its data."""
    name = None

    def prepare(self, matrix):
        raise NotImplementedError

    def elem_type(self, matrix):
        raise NotImplementedError

    def convert(self, values, dtype):
        raise NotImplementedError

    def exp(self, x):
        raise NotImplementedError

    def log(self, x):
        raise NotImplementedError

    def dot(self, a, b):
        raise NotImplementedError

    def weighted_sum(self, row, matrix):
        """row (d,) times matrix (d, n) -> (n,)"""
        raise NotImplementedError

    def project(self, row, matrix):
        """row (n,) times matrix.T (n, d) -> (d,)"""
        raise NotImplementedError

    def feature_row(self, matrix, j):
        raise NotImplementedError

    def columns(self, matrix, begin, end):
        raise NotImplementedError

    def take_columns(self, matrix, ordering):
        raise NotImplementedError


class DenseBackend(NumericBackend):
    name = 'dense'

    def prepare(self, matrix):
        return np.asarray(matrix)

    def elem_type(self, matrix):
        # Integer predictors are promoted, the formulas need a float type
        if np.issubdtype(matrix.dtype, np.floating):
            return matrix.dtype
        return np.dtype(np.float64)

    def convert(self, values, dtype):
        return np.asarray(values, dtype=dtype)

    def exp(self, x):
        # exp(-z) overflowing to inf gives a sigmoid of exactly 0
        with np.errstate(over='ignore'):
            return np.exp(x)

    def log(self, x):
        return np.log(x)

    def dot(self, a, b):
        return np.dot(np.ravel(a), np.ravel(b))

    def weighted_sum(self, row, matrix):
        return row @ matrix

    def project(self, row, matrix):
        return row @ matrix.T

    def feature_row(self, matrix, j):
        return matrix[j]

    def columns(self, matrix, begin, end):
        return matrix[:, begin:end]

    def take_columns(self, matrix, ordering):
        return matrix[:, ordering]


class SparseBackend(DenseBackend):
    """scipy.sparse predictors, kept in CSC form so column slices are cheap."""
    name = 'sparse'

    def prepare(self, matrix):
        if sp.issparse(matrix) and matrix.format == 'csc':
            return matrix
        logger.debug("Converting %s predictors to CSC", type(matrix).__name__)
        return sp.csc_matrix(matrix)

    def weighted_sum(self, row, matrix):
        return np.asarray(matrix.T @ row).ravel()

    def project(self, row, matrix):
        return np.asarray(matrix @ row).ravel()

    def feature_row(self, matrix, j):
        return matrix[j, :].toarray().ravel()


DENSE = DenseBackend()
SPARSE = SparseBackend()


def get_backend(matrix):
    if sp.issparse(matrix):
        return SPARSE
    return DENSE
