"""
Non-learning baseline agents.

They follow the same start/step protocol as the learning agents, which makes
them useful as reference curves for the Q-learning agent and for exercising
environments in tests.
"""
from typing import Optional

import numpy as np

from .base import BaseAgent

# --- Type Aliases for Readability ---
State = int
Action = int
Reward = float


class RandomAgent(BaseAgent):
    """
    An agent that picks a uniformly random action at every step.

    On the Markov chain this is the symmetric random walk, so episodes
    terminate with probability 1 but can be long.
    """

    def __init__(self, action_space: np.ndarray, rng: np.random.Generator):
        self.action_space = np.asarray(action_space)
        self.rng = rng

    def act(self, obs: Optional[State] = None) -> Action:
        return int(self.rng.choice(self.action_space))

    def start(self, obs: State) -> Action:
        return self.act(obs)

    def step(self, obs: State, reward: Reward, terminal: bool) -> Action:
        return self.act(obs)


class FixedActionAgent(BaseAgent):
    """
    A stubborn agent that always takes the same action, no matter what happens.

    Attributes:
        action (int): The action to repeat. Defaults to the first action of
            the action space.
    """

    def __init__(self, action_space: np.ndarray, action: Optional[Action] = None):
        self.action_space = np.asarray(action_space)
        if action is None:
            action = int(self.action_space[0])
        elif action not in self.action_space:
            raise ValueError(f"Action {action} is not in the action space {self.action_space.tolist()}.")
        self.action = int(action)

    def start(self, obs: State) -> Action:
        return self.action

    def step(self, obs: State, reward: Reward, terminal: bool) -> Action:
        return self.action
