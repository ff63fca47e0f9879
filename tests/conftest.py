# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for bigcoder tests.

Fixtures here are available to every test file automatically.
We keep them minimal, just the things several test modules need.
"""

import textwrap
from pathlib import Path

import pytest
import torch

from bigcoder.model.config import GPTBigCodeConfig
from bigcoder.model.init.weights import synthetic_state_dict


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """
    Create a minimal valid config YAML file in a temp directory.

    This is the smallest config that passes schema validation.
    Tests that need specific config values should write their own files.
    """
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "bigcoder-test"
          seed: 42
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """A config file that's valid YAML but fails schema validation (missing required field)."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "bigcoder-test"
          seed: 42
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file


@pytest.fixture()
def tiny_config() -> GPTBigCodeConfig:
    """Two-layer, four-head multi-query config small enough for any test."""
    return GPTBigCodeConfig(
        vocab_size=32,
        max_position_embeddings=16,
        num_hidden_layers=2,
        hidden_size=16,
        layer_norm_epsilon=1e-5,
        num_attention_heads=4,
        multi_query=True,
    )


@pytest.fixture()
def tiny_state_dict(tiny_config: GPTBigCodeConfig) -> dict[str, torch.Tensor]:
    """Deterministic checkpoint matching ``tiny_config``."""
    return synthetic_state_dict(tiny_config, seed=0, init_std=0.2)
