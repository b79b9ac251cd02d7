import gymnasium as gym

from on_policy.baselines.a2c.a2c import a2c
from on_policy.common.loggers import build_logger
from on_policy.common.spaces import ActionSpace
from on_policy.common.trainers import Trainer
from on_policy.common.utils.train_utils import _obs_shape_from_space


# -----------------------------
# Env factories
# -----------------------------
NUM_PROCESSES = 8
SEED = 0


def make_cartpole_env():
    """
    Factory helper: create a fresh CartPole env.
    """
    return gym.make("CartPole-v1")


# SAME_STEP autoreset: the observation returned with a terminal flag is already
# the first observation of the next episode, matching the storage mask layout.
envs = gym.vector.SyncVectorEnv(
    [make_cartpole_env for _ in range(NUM_PROCESSES)],
    autoreset_mode=gym.vector.AutoresetMode.SAME_STEP,
)
envs.action_space.seed(SEED)

device = "cpu"  # or "cuda"


# -----------------------------
# Build algo + logger + trainer
# -----------------------------
algo = a2c(
    obs_shape=_obs_shape_from_space(envs.single_observation_space),
    action_space=ActionSpace.from_gym(envs.single_action_space),
    num_processes=NUM_PROCESSES,
    device=device,
    num_steps=5,
    gamma=0.99,
    use_gae=False,
)

logger = build_logger(log_dir="./runs", exp_name="cartpole_a2c", use_tensorboard=True, console_every=1)
logger.dump_config(
    {
        "env_id": "CartPole-v1",
        "num_processes": NUM_PROCESSES,
        "num_steps": algo.num_steps,
        "gamma": algo.gamma,
        "seed": SEED,
    }
)

trainer = Trainer(
    env=envs,
    algo=algo,
    total_env_steps=200_000,
    seed=SEED,
    log_every_updates=100,
    logger=logger,
    checkpoint_every_updates=1000,
    show_progress=True,
)

try:
    trainer.train()
    trainer.save_checkpoint()
finally:
    logger.close()
    envs.close()
