import logging
from typing import Optional

import numpy as np

from .base import LearningAgent
from .utils import build_index, check_unit_interval

# --- Type Aliases for Readability ---
State = int
Action = int
Reward = float
QFunction = np.ndarray


class QLearningAgent(LearningAgent):
    """
    A tabular one-step Q-learning agent with an epsilon-greedy policy.

    The agent learns a Q-function `Q(s, a)` that maps state-action pairs to
    expected discounted future rewards. It remembers the last state it acted
    in and the action it took, so that each call to `step` can update the
    value of that pair before choosing the next action.

    Attributes:
        action_space (np.ndarray): The set of actions available to this agent.
        state_space (np.ndarray): The set of states the agent can observe.
        learning_rate (float): The step size for Q-function updates.
        gamma (float): The discount factor for future rewards.
        epsilon (float): The exploration rate for the epsilon-greedy policy.
        rng (np.random.Generator): The random source for exploration and
            random initialization of the Q-table.
        initial_Q_value (float, optional): Constant used to initialize the
            Q-table. If None, the table is filled with uniform random values.
        Q (np.ndarray): The agent's Q-table, with shape (n_states, n_actions).
        last_state (int, optional): The state observed by the previous call
            to `start` or `step`.
        last_action (int, optional): The action returned by that call.
    """

    def __init__(self, action_space: np.ndarray, state_space: np.ndarray, learning_rate: float,
                 gamma: float, epsilon: float, rng: np.random.Generator,
                 initial_Q_value: Optional[float] = None):

        self.action_space = np.asarray(action_space)
        self.state_space = np.asarray(state_space)
        self.learning_rate = check_unit_interval("learning_rate", learning_rate)
        self.gamma = check_unit_interval("gamma", gamma)
        self.epsilon = check_unit_interval("epsilon", epsilon)
        self.rng = rng
        self.initial_Q_value = initial_Q_value

        self._state_index = build_index(self.state_space)
        self._action_index = build_index(self.action_space)

        self.last_state: Optional[State] = None
        self.last_action: Optional[Action] = None

        # This is the Q-function Q(s, a)
        self.Q = self._setup_Q()

    def _setup_Q(self) -> QFunction:
        """
        Initializes the Q-table.

        Returns:
            np.ndarray: A table of shape (n_states, n_actions), filled with
                `initial_Q_value` or, if that is None, with uniform random
                values in [0, 1).
        """
        shape = (len(self.state_space), len(self.action_space))
        if self.initial_Q_value is None:
            return self.rng.random(shape)
        return np.full(shape, float(self.initial_Q_value))

    def _row(self, obs: State) -> int:
        try:
            return self._state_index[int(obs)]
        except KeyError:
            raise ValueError(f"State {obs!r} is not in the agent's state space.") from None

    def _col(self, action: Action) -> int:
        try:
            return self._action_index[int(action)]
        except KeyError:
            raise ValueError(f"Action {action!r} is not in the agent's action space.") from None

    def act(self, obs: State) -> Action:
        """
        Selects an action using an epsilon-greedy policy.

        With probability epsilon, it chooses a uniformly random action.
        Otherwise, it chooses the action with the highest Q-value for the
        current state. Ties go to the action listed first in `action_space`.

        Args:
            obs (int): The current state observation.

        Returns:
            int: The chosen action.
        """
        row = self._row(obs)
        if self.rng.random() < self.epsilon:
            return int(self.rng.choice(self.action_space))
        # np.argmax returns the first maximal index
        return int(self.action_space[np.argmax(self.Q[row, :])])

    def start(self, obs: State) -> Action:
        self.last_state = obs
        self.last_action = self.act(obs)
        return self.last_action

    def step(self, obs: State, reward: Reward, terminal: bool) -> Action:
        if self.last_state is None or self.last_action is None:
            raise RuntimeError("QLearningAgent.step called before start.")

        self.update(self.last_state, self.last_action, obs, reward, terminal)

        self.last_state = obs
        self.last_action = self.act(obs)
        return self.last_action

    def update(self, obs: State, action: Action, new_obs: State, reward: Reward, terminal: bool):
        """
        Updates the Q-function using the one-step Q-learning rule.

        The update rule is:
        Q(s,a) <- Q(s,a) + α(target - Q(s,a))
        where target = r for a terminal s' and r + γ * max_a' Q(s',a') otherwise.

        Args:
            obs (int): The state before the action.
            action (int): The action taken in `obs`.
            new_obs (int): The state after the action.
            reward (float): The reward for the transition.
            terminal (bool): Whether `new_obs` ends the episode.
        """
        row, col = self._row(obs), self._col(action)

        if terminal:
            # No future rewards after a terminal state.
            target = reward
        else:
            target = reward + self.gamma * np.max(self.Q[self._row(new_obs), :])

        self.Q[row, col] += self.learning_rate * (target - self.Q[row, col])

    def reset(self):
        """Reinitializes the Q-table and forgets the last state-action pair."""
        self.Q = self._setup_Q()
        self.last_state = None
        self.last_action = None
        logging.debug("QLearningAgent Q-table reinitialized with shape %s.", self.Q.shape)
