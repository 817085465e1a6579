import base64
import hashlib

import pytest

from aitools_auth.auth.models.errors import StateValidationError
from aitools_auth.auth.primitives.pkce import PKCEManager, PKCEParameters
from aitools_auth.auth.services.security import generate_state, validate_state


class TestPKCEManager:
    def test_generate_parameters_crypto_requirements(self) -> None:
        # Arrange
        pkce_manager = PKCEManager()

        # Act
        params = pkce_manager.generate_parameters()

        # Assert RFC 7636 requirements
        assert len(params.code_verifier) == 128
        assert params.code_challenge_method == "S256"

        # Verify code_challenge is base64url(sha256(code_verifier))
        expected_challenge = (
            base64.urlsafe_b64encode(
                hashlib.sha256(params.code_verifier.encode("ascii")).digest()
            )
            .decode("ascii")
            .rstrip("=")
        )
        assert params.code_challenge == expected_challenge
        assert "=" not in params.code_challenge

    def test_generate_parameters_uniqueness(self) -> None:
        pkce_manager = PKCEManager()

        params1 = pkce_manager.generate_parameters()
        params2 = pkce_manager.generate_parameters()

        assert params1.code_verifier != params2.code_verifier
        assert params1.code_challenge != params2.code_challenge

    def test_rfc7636_appendix_b_vector(self) -> None:
        challenge = PKCEManager.compute_challenge(
            "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        )

        assert challenge == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_verifier_masked_in_repr(self) -> None:
        params = PKCEManager().generate_parameters()

        text = repr(params)

        assert params.code_verifier not in text
        assert params.code_verifier[4:] not in text
        assert params.code_challenge in text

    def test_challenge_follows_verifier(self) -> None:
        params = PKCEParameters("dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk")

        assert params.code_challenge == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
        assert params.code_challenge_method == "S256"

    @pytest.mark.parametrize("verifier", ["short", "a" * 129, "a" * 42 + " "])
    def test_invalid_verifier_rejected(self, verifier: str) -> None:
        with pytest.raises(ValueError):
            PKCEParameters(verifier)


class TestStateValidation:
    def test_generated_state_is_unique(self) -> None:
        assert len(generate_state()) == 32
        assert generate_state() != generate_state()

    def test_matching_state_passes(self) -> None:
        state = generate_state()

        validate_state(state, state)

    def test_mismatched_state_raises(self) -> None:
        with pytest.raises(StateValidationError) as exc_info:
            validate_state("expected-state", "forged-state")

        assert "CSRF state mismatch" in str(exc_info.value)

    def test_missing_state_raises(self) -> None:
        with pytest.raises(StateValidationError):
            validate_state("expected-state", None)
