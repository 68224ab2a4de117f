"""
Algorithm implementations behind the gallery pages.

Each module is plain numpy/scikit-learn code with no FastAPI imports, so it
can be exercised directly from tests:
- kmeans.py, som.py: stepwise simulations with immutable states
- dbscan.py: cluster overlays (hulls and noise) and sample data
- knn.py, svm.py: neighbour voting and the pseudo-dual instructional SVM
- trees.py, gain_ratio.py: decision trees and random forests
- regression.py: logistic and linear regression training histories
- perceptron.py: the configurable feed-forward network
- datasets.py: bundled tabular datasets
"""
