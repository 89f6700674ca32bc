"""Change detection: which test units are new, changed or gone."""

from pytest_covwatch.detection.changeset import ChangeSet
from pytest_covwatch.detection.detector import ChangeDetector


__all__ = ['ChangeDetector', 'ChangeSet']
