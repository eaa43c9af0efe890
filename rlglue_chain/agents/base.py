from abc import ABC, abstractmethod

# --- Type Aliases for Readability ---
State = int
Action = int
Reward = float


class BaseAgent(ABC):
    """
    The minimal interface for any agent.

    An agent is driven through an episode by two calls: `start` with the
    initial state, then `step` with every transition the environment produces.
    Both return the next action to take.
    """
    @abstractmethod
    def start(self, obs: State) -> Action:
        """
        Selects the first action of an episode.

        Args:
            obs: The initial state returned by the environment.

        Returns:
            The action to take from `obs`.
        """
        pass

    @abstractmethod
    def step(self, obs: State, reward: Reward, terminal: bool) -> Action:
        """
        Observes a transition and selects the next action.

        Args:
            obs: The state the environment moved to.
            reward: The reward received for the transition.
            terminal: Whether `obs` ends the episode.

        Returns:
            The action to take from `obs`. Ignored by the driver when `terminal` is True.
        """
        pass


class LearningAgent(BaseAgent):
    """
    The interface for agents that learn from experience.

    These agents must implement a learning update for a single transition and
    a way to forget everything they have learned, so that one instance can be
    reused for independent runs.
    """
    @abstractmethod
    def update(self, obs: State, action: Action, new_obs: State, reward: Reward, terminal: bool):
        """Updates the agent's internal model based on a transition."""
        pass

    @abstractmethod
    def reset(self):
        """Reinitializes the agent's learned parameters."""
        pass
