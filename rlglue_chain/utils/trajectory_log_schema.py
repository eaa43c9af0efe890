import numpy as np

TRAJECTORY_LOG_COLUMN_MAP = {
    'experiment_num': 0, 'episode_num': 1, 'step_num': 2,
    'state_old': 3, # State the action was chosen in
    'action': 4, # Action chosen in the previous state
    'state_new': 5, # State reached after the action
    'reward': 6, 'cum_reward': 7, # Reward for reaching the new state and cumulative reward for the episode so far
    'terminal': 8
}

TRAJECTORY_LOG_DTYPE = np.dtype([
    ('experiment_num', np.int32), ('episode_num', np.int32), ('step_num', np.int32),
    ('state_old', np.int32), ('action', np.int8), ('state_new', np.int32),
    ('reward', np.float32), ('cum_reward', np.float32),
    ('terminal', np.int8)
])
