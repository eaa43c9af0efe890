import logging

# --- Utility Functions ---
from .utils import build_index, check_unit_interval

# --- Base Agents ---
from .base import (
    BaseAgent,
    LearningAgent
)

# --- Heuristic Agents ---
# Non-learning baselines
from .heuristic import (
    RandomAgent,
    FixedActionAgent
)

# --- Q-Learning Agents ---
from .q_learning import QLearningAgent

logging.debug("Agents package successfully initialized.")
