# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the full GPTBigCode model.

Loading (success, missing tensors, bad configs), forward pass shape across
batch sizes and sequence lengths, input validation, last-position logits,
naming-convention independence, and determinism.
"""

import pytest
import torch

from bigcoder.model.config import GPTBigCodeConfig
from bigcoder.model.errors import InvalidConfig, InvalidInput, MissingParameter, ShapeMismatch
from bigcoder.model.init.weights import parameter_shapes, synthetic_state_dict
from bigcoder.model.store import ParameterStore
from bigcoder.model.transformer import GPTBigCode


def _load(config: GPTBigCodeConfig, state: dict[str, torch.Tensor]) -> GPTBigCode:
    return GPTBigCode.load(ParameterStore.from_state_dict(state), config)


class TestEndToEnd:
    """The reference scenarios."""

    def test_standard_attention_scenario(self) -> None:
        config = GPTBigCodeConfig(
            vocab_size=10,
            max_position_embeddings=4,
            num_hidden_layers=1,
            hidden_size=8,
            num_attention_heads=2,
            multi_query=False,
        )
        model = _load(config, synthetic_state_dict(config, seed=7, init_std=0.5))
        logits = model(torch.tensor([[1, 2, 3]]), torch.tensor([[0, 1, 2]]))
        assert logits.shape == (1, 10)
        assert torch.isfinite(logits).all()

    def test_multi_query_scenario(self) -> None:
        config = GPTBigCodeConfig(
            vocab_size=10,
            max_position_embeddings=4,
            num_hidden_layers=1,
            hidden_size=8,
            num_attention_heads=4,
            multi_query=True,
        )
        model = _load(config, synthetic_state_dict(config, seed=7, init_std=0.5))
        attn = model.h[0].attn
        head_dim = 2
        assert attn.kv_heads == 1
        assert attn.kv_dim == head_dim
        assert attn.c_attn.out_features == 8 + 2 * head_dim

        logits = model(torch.tensor([[1, 2, 3]]), torch.tensor([[0, 1, 2]]))
        assert logits.shape == (1, 10)
        assert torch.isfinite(logits).all()


class TestLoading:
    def test_module_tree(self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict) -> None:
        model = _load(tiny_config, tiny_state_dict)
        assert len(model.h) == 2
        assert model.wte.weight.shape == (32, 16)
        assert model.wpe.weight.shape == (16, 16)
        assert model.lm_head.bias is None
        assert model.config is tiny_config

    def test_loaded_in_eval_mode_and_frozen(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        model = _load(tiny_config, tiny_state_dict)
        assert not model.training
        assert all(not p.requires_grad for p in model.parameters())

    def test_parameter_count_matches_layout(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        model = _load(tiny_config, tiny_state_dict)
        expected = sum(
            torch.Size(shape).numel() for shape in parameter_shapes(tiny_config).values()
        )
        assert model.count_parameters() == expected

    def test_loaded_weights_are_the_stored_tensors(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        model = _load(tiny_config, tiny_state_dict)
        assert torch.equal(model.h[1].attn.c_attn.weight, tiny_state_dict["h.1.attn.c_attn.weight"])
        assert torch.equal(model.lm_head.weight, tiny_state_dict["lm_head.weight"])

    def test_model_owns_its_parameters(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        """Writing to a loaded parameter must not reach the checkpoint it came from."""
        model = _load(tiny_config, tiny_state_dict)
        before = tiny_state_dict["h.0.attn.c_attn.weight"].clone()
        with torch.no_grad():
            model.h[0].attn.c_attn.weight.fill_(3.0)
        assert torch.equal(tiny_state_dict["h.0.attn.c_attn.weight"], before)
        stored = {t.data_ptr() for t in tiny_state_dict.values()}
        assert all(p.data_ptr() not in stored for p in model.parameters())

    def test_invalid_config_fails(self) -> None:
        config = GPTBigCodeConfig(
            vocab_size=10,
            max_position_embeddings=4,
            num_hidden_layers=1,
            hidden_size=10,
            num_attention_heads=3,
            multi_query=False,
        )
        with pytest.raises(InvalidConfig):
            _load(config, {})

    def test_missing_block_tensor_aborts(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        del tiny_state_dict["h.1.mlp.c_fc.bias"]
        with pytest.raises(MissingParameter) as exc_info:
            _load(tiny_config, tiny_state_dict)
        assert exc_info.value.path == "h.1.mlp.c_fc.bias"

    def test_missing_lm_head_aborts(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        del tiny_state_dict["lm_head.weight"]
        with pytest.raises(MissingParameter, match="lm_head.weight"):
            _load(tiny_config, tiny_state_dict)

    def test_multi_query_checkpoint_rejected_by_standard_config(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        """A multi-query checkpoint's packed projection is too narrow for standard attention."""
        config = GPTBigCodeConfig(
            vocab_size=32,
            max_position_embeddings=16,
            num_hidden_layers=2,
            hidden_size=16,
            num_attention_heads=4,
            multi_query=False,
        )
        with pytest.raises(ShapeMismatch) as exc_info:
            _load(config, tiny_state_dict)
        assert exc_info.value.path == "h.0.attn.c_attn.weight"

    def test_gamma_beta_checkpoint_loads_identically(self, tiny_config: GPTBigCodeConfig) -> None:
        primary = _load(tiny_config, synthetic_state_dict(tiny_config, seed=3, init_std=0.2))
        fallback = _load(
            tiny_config,
            synthetic_state_dict(tiny_config, seed=3, init_std=0.2, norm_naming="gamma"),
        )
        ids = torch.tensor([[1, 5, 9, 2]])
        assert torch.equal(primary(ids), fallback(ids))

    def test_store_dtype_applies_to_model(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        store = ParameterStore.from_state_dict(tiny_state_dict, dtype=torch.float64)
        model = GPTBigCode.load(store, tiny_config)
        logits = model(torch.tensor([[1, 2]]))
        assert logits.dtype == torch.float64


class TestForwardShape:
    @pytest.mark.parametrize("batch_size", [1, 2, 5])
    @pytest.mark.parametrize("seq_len", [1, 3, 16])
    def test_logits_shape(
        self,
        tiny_config: GPTBigCodeConfig,
        tiny_state_dict: dict,
        batch_size: int,
        seq_len: int,
    ) -> None:
        model = _load(tiny_config, tiny_state_dict)
        ids = torch.randint(0, 32, (batch_size, seq_len))
        positions = torch.arange(seq_len).expand(batch_size, seq_len)
        logits = model(ids, positions)
        assert logits.shape == (batch_size, 32)
        assert torch.isfinite(logits).all()

    def test_zero_layers(self) -> None:
        """With no blocks the model is embeddings, final norm and head."""
        config = GPTBigCodeConfig(
            vocab_size=10, max_position_embeddings=4, num_hidden_layers=0,
            hidden_size=8, num_attention_heads=2, multi_query=True,
        )
        model = _load(config, synthetic_state_dict(config))
        assert model(torch.tensor([[1, 2]])).shape == (1, 10)


class TestForwardSemantics:
    def test_default_positions(self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict) -> None:
        model = _load(tiny_config, tiny_state_dict)
        ids = torch.tensor([[3, 1, 4, 1], [5, 9, 2, 6]])
        explicit = model(ids, torch.arange(4).expand(2, 4))
        assert torch.equal(model(ids), explicit)

    def test_last_position_logits(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        """Logits are the head applied to the final-normed last hidden state."""
        model = _load(tiny_config, tiny_state_dict)
        ids = torch.tensor([[4, 8, 15, 16, 23]])
        positions = torch.arange(5).unsqueeze(0)
        with torch.no_grad():
            h = model.wte(ids) + model.wpe(positions)
            for block in model.h:
                h = block(h)
            expected = model.lm_head(model.ln_f(h))[:, -1]
            assert torch.allclose(model(ids, positions), expected, atol=1e-5)

    def test_prefix_logits_ignore_later_tokens(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        """Logits after a prefix equal the logits of running only that prefix."""
        model = _load(tiny_config, tiny_state_dict)
        ids = torch.tensor([[7, 3, 11, 2, 30]])
        with torch.no_grad():
            h = model.wte(ids) + model.wpe(torch.arange(5).unsqueeze(0))
            for block in model.h:
                h = block(h)
            full = model.lm_head(model.ln_f(h))
            assert torch.allclose(full[:, 2], model(ids[:, :3]), atol=1e-5)

    def test_batch_rows_independent(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        model = _load(tiny_config, tiny_state_dict)
        ids = torch.tensor([[1, 2, 3], [4, 5, 6]])
        batched = model(ids)
        assert torch.allclose(batched[1:], model(ids[1:]), atol=1e-5)

    def test_position_ids_matter(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        model = _load(tiny_config, tiny_state_dict)
        ids = torch.tensor([[1, 2, 3]])
        shifted = model(ids, torch.tensor([[5, 6, 7]]))
        assert not torch.allclose(model(ids), shifted)

    def test_deterministic_forward(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        model = _load(tiny_config, tiny_state_dict)
        ids = torch.randint(0, 32, (2, 6))
        assert torch.equal(model(ids), model(ids))

    def test_forward_does_not_mutate_weights(
        self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict
    ) -> None:
        model = _load(tiny_config, tiny_state_dict)
        before = {name: p.clone() for name, p in model.named_parameters()}
        model(torch.randint(0, 32, (2, 6)))
        for name, p in model.named_parameters():
            assert torch.equal(p, before[name]), name


class TestInvalidInput:
    @pytest.fixture()
    def model(self, tiny_config: GPTBigCodeConfig, tiny_state_dict: dict) -> GPTBigCode:
        return _load(tiny_config, tiny_state_dict)

    def test_empty_sequence(self, model: GPTBigCode) -> None:
        ids = torch.zeros((1, 0), dtype=torch.long)
        with pytest.raises(InvalidInput):
            model(ids, ids)

    def test_empty_sequence_default_positions(self, model: GPTBigCode) -> None:
        with pytest.raises(InvalidInput):
            model(torch.zeros((2, 0), dtype=torch.long))

    def test_empty_batch(self, model: GPTBigCode) -> None:
        with pytest.raises(InvalidInput):
            model(torch.zeros((0, 3), dtype=torch.long))

    def test_token_id_at_vocab_size(self, model: GPTBigCode) -> None:
        with pytest.raises(InvalidInput, match="token ids"):
            model(torch.tensor([[1, 32]]))

    def test_negative_token_id(self, model: GPTBigCode) -> None:
        with pytest.raises(InvalidInput, match="token ids"):
            model(torch.tensor([[-1, 2]]))

    def test_position_out_of_range(self, model: GPTBigCode) -> None:
        with pytest.raises(InvalidInput, match="position ids"):
            model(torch.tensor([[1, 2]]), torch.tensor([[15, 16]]))

    def test_sequence_longer_than_positions(self, model: GPTBigCode) -> None:
        with pytest.raises(InvalidInput, match="position ids"):
            model(torch.zeros((1, 17), dtype=torch.long))

    def test_one_dimensional_ids(self, model: GPTBigCode) -> None:
        with pytest.raises(InvalidInput, match="2-D"):
            model(torch.tensor([1, 2, 3]))

    def test_shape_mismatch_between_ids_and_positions(self, model: GPTBigCode) -> None:
        with pytest.raises(InvalidInput, match="does not match"):
            model(torch.tensor([[1, 2, 3]]), torch.tensor([[0, 1]]))

    def test_float_ids(self, model: GPTBigCode) -> None:
        with pytest.raises(InvalidInput, match="integer"):
            model(torch.tensor([[1.0, 2.0]]))

    def test_invalid_input_is_value_error(self, model: GPTBigCode) -> None:
        with pytest.raises(ValueError):
            model(torch.tensor([[99]]))
