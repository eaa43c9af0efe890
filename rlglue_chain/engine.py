"""
This module implements the simulation environments for the project.

Environments define the world in which agents interact. They are primarily
characterized by two methods:
- start: Resets the environment to an initial state for a new episode and
         returns that state.
- step: Receives an action from the agent and returns the new state, the
        reward and a terminal flag.

Concrete environments do not override `start` and `step`. They implement the
hooks (`_reset`, `_apply_action`) and the accessors (`get_state`,
`get_reward`, `is_terminal`) that the two public methods are built from.
"""
from abc import ABC, abstractmethod
from typing import NamedTuple, Optional

import numpy as np

# --- Type Aliases for Readability ---
State = int
Action = int
Reward = float

LEFT: Action = 1
RIGHT: Action = 2


class InvalidActionError(ValueError):
    """Raised when an action outside the environment's action space is stepped."""


class StateOutOfBoundsError(IndexError):
    """Raised when a transition would leave the environment's state space."""


class Transition(NamedTuple):
    """The observable outcome of a single environment step."""
    state: State
    reward: Reward
    terminal: bool


class BaseEnvironment(ABC):
    """
    The minimal interface for any environment.

    `start` and `step` are template methods: they delegate the dynamics to
    the environment-specific hooks and read the observable state, reward and
    termination flag back through the accessors.
    """

    def start(self) -> State:
        """Resets the environment and returns the initial state."""
        self._reset()
        return self.get_state()

    def step(self, action: Action) -> Transition:
        """
        Applies an action and returns the resulting transition.

        Args:
            action: An action from `action_space`.

        Returns:
            Transition: The (state, reward, terminal) tuple after the action.

        Raises:
            InvalidActionError: If the action is not in `action_space`.
        """
        is_integer = isinstance(action, (int, np.integer)) and not isinstance(action, (bool, np.bool_))
        if not is_integer or action not in self.action_space:
            raise InvalidActionError(
                f"Invalid action {action!r}. Legal actions are {self.action_space.tolist()}."
            )
        self._apply_action(action)
        return Transition(self.get_state(), self.get_reward(), self.is_terminal())

    @property
    def n_states(self) -> int:
        return len(self.state_space)

    @property
    def n_actions(self) -> int:
        return len(self.action_space)

    @property
    @abstractmethod
    def action_space(self) -> np.ndarray:
        """The legal actions. Must not change during the environment's lifetime."""

    @property
    @abstractmethod
    def state_space(self) -> np.ndarray:
        """Every state the environment can be observed in."""

    @abstractmethod
    def _reset(self) -> None:
        """Puts the environment in an initial state."""

    @abstractmethod
    def _apply_action(self, action: Action) -> None:
        """Updates the internal state with an already validated action."""

    @abstractmethod
    def get_state(self) -> State:
        pass

    @abstractmethod
    def get_reward(self) -> Reward:
        """The reward for arriving in the current state."""

    @abstractmethod
    def is_terminal(self) -> bool:
        pass


class MarkovChain(BaseEnvironment):
    """
    A one-dimensional chain of `size` states numbered 1..size.

    The agent moves one state LEFT (action 1) or RIGHT (action 2) per step.
    Both ends of the chain are terminal. Arriving at the right end pays +1,
    every other transition costs -1, so the shortest walk to the right end is
    the optimal policy.

    Attributes:
        size (int): The number of states in the chain.
        rng (np.random.Generator): The random source used to draw start states.
        initial_state (int, optional): If set, every episode starts here instead
            of at a random interior state.
        state (int): The current state.
    """

    def __init__(self, size: int, rng: np.random.Generator, initial_state: Optional[State] = None):
        if size < 3:
            raise ValueError(f"Chain size must be at least 3, got {size}.")
        if initial_state is not None and not 1 <= initial_state <= size:
            raise ValueError(f"Initial state {initial_state} is outside the chain [1, {size}].")

        self.size = size
        self.rng = rng
        self.initial_state = initial_state

        self._action_space = np.array([LEFT, RIGHT])
        self._state_space = np.arange(1, size + 1)

        # Start states are drawn from the inner half of the chain, never from a terminal state.
        centre, quarter = size // 2, size // 4
        self.start_low = max(2, centre - quarter)
        self.start_high = min(size - 1, max(self.start_low, centre + quarter))

        self.state = self.start_low

    @property
    def action_space(self) -> np.ndarray:
        return self._action_space

    @property
    def state_space(self) -> np.ndarray:
        return self._state_space

    def _reset(self) -> None:
        if self.initial_state is not None:
            self.state = self.initial_state
        else:
            # integers() excludes the upper bound
            self.state = int(self.rng.integers(self.start_low, self.start_high + 1))

    def _apply_action(self, action: Action) -> None:
        new_state = self.state - 1 if action == LEFT else self.state + 1
        if not 1 <= new_state <= self.size:
            raise StateOutOfBoundsError(
                f"Action {action} from state {self.state} leaves the chain [1, {self.size}]."
            )
        self.state = new_state

    def get_state(self) -> State:
        return self.state

    def get_reward(self) -> Reward:
        return 1.0 if self.state == self.size else -1.0

    def is_terminal(self) -> bool:
        return self.state == 1 or self.state == self.size
