"""
Parameter Block Tests - prompt, negative prompt and trailing fields.
"""

import pytest

from sd_params import model_identifier, normalize_key, parse_parameters


# =============================================================================
# parse_parameters
# =============================================================================

class TestParseParameters:

    def test_full_block(self):
        text = "a cat\nNegative prompt: blurry, low quality\nSteps: 20, Sampler: Euler, Model hash: abc123\n"
        assert parse_parameters(text) == {
            "prompt": "a cat",
            "negative": "blurry, low quality",
            "steps": "20",
            "sampler": "Euler",
            "model_hash": "abc123",
        }

    def test_without_negative(self):
        params = parse_parameters("a dog\nSteps: 5\n")
        assert params == {"prompt": "a dog", "steps": "5"}
        assert "negative" not in params

    def test_empty_text(self):
        assert parse_parameters("") == {"prompt": ""}

    def test_prompt_only(self):
        assert parse_parameters("a castle at night") == {"prompt": "a castle at night"}

    def test_prompt_kept_verbatim(self):
        assert parse_parameters("  spaced prompt  \nSteps: 1")["prompt"] == "  spaced prompt  "

    @pytest.mark.parametrize("line", [
        "Negative prompt: ugly",
        "negative prompt: ugly",
        "NEGATIVE PROMPT:   ugly  ",
    ])
    def test_negative_prefix_case_insensitive(self, line):
        assert parse_parameters(f"p\n{line}\nSteps: 1")["negative"] == "ugly"

    def test_negative_keeps_later_colons(self):
        params = parse_parameters("p\nNegative prompt: text: more\n")
        assert params["negative"] == "text: more"

    def test_negative_only_on_second_line(self):
        params = parse_parameters("p\nSteps: 3\nNegative prompt: late")
        assert "negative" not in params
        assert params["negative_prompt"] == "late"

    def test_empty_negative(self):
        assert parse_parameters("p\nNegative prompt:\nSteps: 2")["negative"] == ""

    def test_key_normalization(self):
        params = parse_parameters("p\nCFG scale: 7,  Face   restoration: CodeFormer,Denoising strength:0.5")
        assert params["cfg_scale"] == "7"
        assert params["face_restoration"] == "CodeFormer"
        assert params["denoising_strength"] == "0.5"

    def test_value_keeps_later_colons(self):
        assert parse_parameters("p\nVersion: v1.6.0: dev")["version"] == "v1.6.0: dev"

    def test_segment_without_colon(self):
        params = parse_parameters("p\nSteps: 20, Hires upscale")
        assert params["steps"] == "20"
        assert params["hires_upscale"] == ""

    def test_empty_segments_dropped(self):
        params = parse_parameters("p\nSteps: 20, , Seed: 1,")
        assert params == {"prompt": "p", "steps": "20", "seed": "1"}

    def test_stops_at_blank_line(self):
        params = parse_parameters("p\nSteps: 20\n\nSeed: 99")
        assert "seed" not in params

    def test_whitespace_line_does_not_stop(self):
        params = parse_parameters("p\nSteps: 20\n   \nSeed: 99")
        assert params == {"prompt": "p", "steps": "20", "seed": "99"}

    def test_crlf_empty_line_stops(self):
        params = parse_parameters("p\r\nSteps: 20\r\n\r\nSeed: 99")
        assert "seed" not in params

    def test_trailing_prompt_field_does_not_replace_prompt(self):
        params = parse_parameters("a cat\nSteps: 20, Prompt: other")
        assert params == {"prompt": "a cat", "steps": "20"}

    def test_trailing_negative_field_does_not_replace_negative(self):
        params = parse_parameters("a cat\nNegative prompt: blurry\nSteps: 20, Negative: sharp")
        assert params["negative"] == "blurry"

    def test_trailing_negative_field_without_negative_line(self):
        params = parse_parameters("a cat\nSteps: 20, Negative: sharp")
        assert "negative" not in params

    def test_blank_second_line(self):
        assert parse_parameters("p\n\nSteps: 20") == {"prompt": "p"}

    def test_multiple_field_lines(self):
        params = parse_parameters("p\nSteps: 20, Seed: 1\nSeed: 2, Size: 512x768")
        assert params["seed"] == "2"
        assert params["size"] == "512x768"

    def test_crlf_values_trimmed(self):
        params = parse_parameters("p\r\nNegative prompt: bad\r\nSteps: 20\r\n")
        assert params["negative"] == "bad"
        assert params["steps"] == "20"

    def test_fresh_result(self):
        first = parse_parameters("p\nSteps: 1")
        first["steps"] = "changed"
        assert parse_parameters("p\nSteps: 1")["steps"] == "1"


class TestNormalizeKey:

    @pytest.mark.parametrize("name, key", [
        ("Steps", "steps"),
        (" Model hash ", "model_hash"),
        ("Clip\tskip", "clip_skip"),
        ("", ""),
    ])
    def test_normalize(self, name, key):
        assert normalize_key(name) == key


# =============================================================================
# model_identifier
# =============================================================================

class TestModelIdentifier:

    def test_prefers_hash(self):
        assert model_identifier({"model_hash": "abc123", "model": "v1-5"}) == "abc123"

    def test_falls_back_to_model(self):
        assert model_identifier({"model": "v1-5"}) == "v1-5"

    def test_empty_hash_ignored(self):
        assert model_identifier({"model_hash": "", "model": "v1-5"}) == "v1-5"

    def test_none(self):
        assert model_identifier({"prompt": "p"}) is None
