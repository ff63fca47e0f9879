# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Model factory for bigcoder.

Provides preset configurations for the published StarCoder sizes, the bridge
from the YAML schema to GPTBigCodeConfig, and the build functions that load
a model from a parameter store with logging around the load.
``build_model_from_config`` is the one-call path from a loaded YAML config
and a state dict to a ready model.

All sizes share the same code; only config values change.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable, Mapping, Optional

import torch

from bigcoder.config.exceptions import ConfigValidationError
from bigcoder.config.schema import BigCoderConfig, ModelConfig
from bigcoder.logging.logger import configure_logging, get_logger
from bigcoder.model.config import GPTBigCodeConfig
from bigcoder.model.init.weights import synthetic_state_dict
from bigcoder.model.store import ParameterStore
from bigcoder.model.transformer import GPTBigCode

logger: logging.Logger = get_logger(__name__)

STARCODER_VOCAB_SIZE = 49152
STARCODER_MAX_POSITIONS = 8192


# ── Preset Configurations ──────────────────────────────────────────────────


def starcoder_1b() -> GPTBigCodeConfig:
    """StarCoderBase-1B: 24 layers, 2048 hidden, 16 query heads, multi-query."""
    return GPTBigCodeConfig(
        vocab_size=STARCODER_VOCAB_SIZE,
        max_position_embeddings=STARCODER_MAX_POSITIONS,
        num_hidden_layers=24,
        hidden_size=2048,
        layer_norm_epsilon=1e-5,
        n_inner=8192,
        num_attention_heads=16,
        multi_query=True,
    )


def starcoder_3b() -> GPTBigCodeConfig:
    """StarCoderBase-3B."""
    return GPTBigCodeConfig(
        vocab_size=STARCODER_VOCAB_SIZE,
        max_position_embeddings=STARCODER_MAX_POSITIONS,
        num_hidden_layers=36,
        hidden_size=2816,
        layer_norm_epsilon=1e-5,
        n_inner=11264,
        num_attention_heads=22,
        multi_query=True,
    )


def starcoder_7b() -> GPTBigCodeConfig:
    """StarCoderBase-7B."""
    return GPTBigCodeConfig(
        vocab_size=STARCODER_VOCAB_SIZE,
        max_position_embeddings=STARCODER_MAX_POSITIONS,
        num_hidden_layers=42,
        hidden_size=4096,
        layer_norm_epsilon=1e-5,
        n_inner=16384,
        num_attention_heads=32,
        multi_query=True,
    )


def starcoder() -> GPTBigCodeConfig:
    """StarCoder / StarCoderBase (15.5B)."""
    return GPTBigCodeConfig(
        vocab_size=STARCODER_VOCAB_SIZE,
        max_position_embeddings=STARCODER_MAX_POSITIONS,
        num_hidden_layers=40,
        hidden_size=6144,
        layer_norm_epsilon=1e-5,
        n_inner=24576,
        num_attention_heads=48,
        multi_query=True,
    )


PRESETS: dict[str, Callable[[], GPTBigCodeConfig]] = {
    "starcoder-1b": starcoder_1b,
    "starcoder-3b": starcoder_3b,
    "starcoder-7b": starcoder_7b,
    "starcoder": starcoder,
}


def get_preset(preset: str) -> GPTBigCodeConfig:
    """
    Look up a preset config by name.

    Raises:
        ValueError: If the preset name is not recognized.
    """
    config_fn = PRESETS.get(preset)
    if config_fn is None:
        raise ValueError(f"Unknown preset '{preset}'. Available: {list(PRESETS.keys())}")
    return config_fn()


def model_config_from_schema(model_cfg: ModelConfig) -> GPTBigCodeConfig:
    """
    Bridge between the YAML config schema and the model config.

    Starts from the named preset, if any, and overlays every field the YAML
    sets explicitly.
    """
    overrides = model_cfg.model_dump(exclude={"config_version", "preset"}, exclude_none=True)
    if model_cfg.preset is not None:
        return replace(get_preset(model_cfg.preset), **overrides)
    return GPTBigCodeConfig(**overrides)


# ── Build Functions ────────────────────────────────────────────────────────


def build_model(store: ParameterStore, config: GPTBigCodeConfig) -> GPTBigCode:
    """
    Load a GPTBigCode from a store.

    This is the canonical entry point for model construction.

    Args:
        store: Store rooted at the checkpoint's top level.
        config: Fully populated GPTBigCodeConfig.

    Returns:
        Loaded GPTBigCode in eval mode.
    """
    logger.info(
        "building_model",
        extra={
            "vocab_size": config.vocab_size,
            "max_position_embeddings": config.max_position_embeddings,
            "num_hidden_layers": config.num_hidden_layers,
            "hidden_size": config.hidden_size,
            "num_attention_heads": config.num_attention_heads,
            "kv_heads": config.kv_heads,
            "inner_dim": config.inner_dim,
            "multi_query": config.multi_query,
        },
    )
    model = GPTBigCode.load(store, config)
    logger.info(
        "model_built",
        extra={"total_parameters": model.count_parameters()},
    )
    return model


def build_model_from_preset(preset: str, store: ParameterStore) -> GPTBigCode:
    """
    Load a GPTBigCode using a named preset's architecture.

    Raises:
        ValueError: If preset name is not recognized.
    """
    return build_model(store, get_preset(preset))


def build_model_from_config(
    cfg: BigCoderConfig,
    state_dict: Optional[Mapping[str, torch.Tensor]] = None,
) -> GPTBigCode:
    """
    Load a GPTBigCode as a full YAML config describes it.

    The ``global:`` section sets the log level and log file for every
    bigcoder logger, ``model:`` gives the architecture, and ``runtime:``
    (when present) sets the dtype and device the weights are loaded into.
    Without a ``runtime:`` section tensors keep the state dict's dtype and
    device.

    Args:
        cfg: Validated root config.
        state_dict: Checkpoint tensors. If omitted, a synthetic checkpoint
            is generated from ``global.seed``.

    Raises:
        ConfigValidationError: If the config has no ``model:`` section.
        ValueError: If the model section names an unknown preset.
    """
    global_cfg = cfg.global_config
    log_file = Path(global_cfg.log_file) if global_cfg.log_file is not None else None
    configure_logging(global_cfg.log_level, log_file)

    if cfg.model is None:
        raise ConfigValidationError("Config has no 'model' section; cannot build a model")
    model_config = model_config_from_schema(cfg.model)

    runtime_cfg = cfg.runtime
    logger.info(
        "config_applied",
        extra={
            "project_name": global_cfg.project_name,
            "seed": global_cfg.seed,
            "log_level": global_cfg.log_level,
            "preset": cfg.model.preset,
            "dtype": runtime_cfg.dtype if runtime_cfg is not None else None,
            "device": runtime_cfg.device if runtime_cfg is not None else None,
            "synthetic_weights": state_dict is None,
        },
    )

    if state_dict is None:
        state_dict = synthetic_state_dict(model_config, seed=global_cfg.seed)

    if runtime_cfg is not None:
        store = ParameterStore.from_state_dict(
            state_dict, dtype=runtime_cfg.dtype, device=runtime_cfg.device
        )
    else:
        store = ParameterStore.from_state_dict(state_dict)

    return build_model(store, model_config)
