import numpy as np


def build_index(space: np.ndarray) -> dict:
    """
    Maps every element of a state or action space to its position.

    Tabular agents store values in dense arrays, while environments are free
    to label states and actions however they like (the chain numbers both
    from 1). This lookup converts labels to array indices.

    Args:
        space (np.ndarray): A 1D array of unique state or action labels.

    Returns:
        dict: A mapping from label to row/column index.

    Raises:
        ValueError: If the space is empty or contains duplicates.
    """
    labels = [int(x) for x in space]
    if not labels:
        raise ValueError("Space must contain at least one element.")
    if len(set(labels)) != len(labels):
        raise ValueError(f"Space contains duplicate labels: {labels}.")
    return {label: i for i, label in enumerate(labels)}


def check_unit_interval(name: str, value: float) -> float:
    """Returns `value` as a float, raising ValueError if it lies outside [0, 1]."""
    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must lie in [0, 1], got {value}.")
    return value
