import numpy as np
import scipy.sparse as sp
from sklearn.datasets import make_classification
from sklearn.preprocessing import StandardScaler
from sklearn.utils import check_random_state


def generate_gaussian_clusters(n_per_class=500, centers=((1.0, 1.0, 1.0), (9.0, 9.0, 9.0)),
                               random_state=None, dtype=np.float64):
    """Two unit-covariance Gaussian clusters, labelled 0 and 1, laid out features x points."""
    rng = check_random_state(random_state)
    centers = np.asarray(centers, dtype=dtype)
    dim = centers.shape[1]

    data = np.empty((dim, 2 * n_per_class), dtype=dtype)
    responses = np.empty(2 * n_per_class, dtype=np.int64)
    for label, center in enumerate(centers):
        cols = slice(label * n_per_class, (label + 1) * n_per_class)
        data[:, cols] = rng.standard_normal((dim, n_per_class)) + center[:, np.newaxis]
        responses[cols] = label
    return data, responses


def logistic_regression_test_data(n_per_class=500, random_state=None, dtype=np.float64):
    """Training, held-out and shuffled training sets for clusters at (1, 1, 1) and (9, 9, 9).

    Returns (data, test_data, shuffled_data, responses, test_responses, shuffled_responses).
    """
    rng = check_random_state(random_state)
    data, responses = generate_gaussian_clusters(n_per_class, random_state=rng, dtype=dtype)

    # Shuffle the dataset
    indices = rng.permutation(data.shape[1])
    shuffled_data = data[:, indices]
    shuffled_responses = responses[indices]

    # Create a test set
    test_data, test_responses = generate_gaussian_clusters(n_per_class, random_state=rng, dtype=dtype)
    return data, test_data, shuffled_data, responses, test_responses, shuffled_responses


def generate_and_preprocess_data(config):
    n_samples = config['n_samples']
    n_features = config['n_features']
    n_informative = config['n_informative_features']
    class_sep = config.get('classification_sep', 0.8)

    print("Generating classification data")

    X, y = make_classification(n_samples=n_samples, n_features=n_features,
                               n_informative=n_informative, n_redundant=n_features - n_informative,
                               n_clusters_per_class=1, flip_y=config.get('flip_y', 0.05),
                               class_sep=class_sep, random_state=config.get('seed', 203))

    scaler = StandardScaler()
    X_scaled = scaler.fit_transform(X)

    # Features x points, as the objective functions expect
    predictors = np.ascontiguousarray(X_scaled.T)
    if config.get('sparse', False):
        predictors = sp.csc_matrix(predictors)

    print(f"Generated {n_samples} samples, {n_features} features, positive rate: {np.mean(y):.2f}")
    return predictors, y.astype(np.int64)


def partition_samples(n_samples, n_parts):
    """Split range(n_samples) into n_parts contiguous (begin, size) ranges."""
    sizes = [len(idx) for idx in np.array_split(np.arange(n_samples), n_parts)]
    begins = np.concatenate([[0], np.cumsum(sizes)[:-1]]).astype(int)
    return [(int(begin), int(size)) for begin, size in zip(begins, sizes)]
