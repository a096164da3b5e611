"""Priority order and totality of the compliance verdict."""

from __future__ import annotations

import itertools

import pytest

from fips_scan.domain import reason_codes
from fips_scan.domain.models import VerdictStatus
from fips_scan.services.compliance import evaluate_compliance

EXPECTED = {
    (False, False, False): reason_codes.CRYPTO_BACKEND_NOT_ENGAGED,
    (False, False, True): reason_codes.CRYPTO_BACKEND_NOT_ENGAGED,
    (False, True, False): reason_codes.CRYPTO_BACKEND_NOT_ENGAGED,
    (False, True, True): reason_codes.CRYPTO_BACKEND_NOT_ENGAGED,
    (True, False, False): reason_codes.RUNTIME_REFUSED_STRICT_MODE,
    (True, False, True): reason_codes.RUNTIME_REFUSED_STRICT_MODE,
    (True, True, False): reason_codes.HOST_LACKS_VALIDATED_MODULE,
    (True, True, True): reason_codes.TENTATIVELY_COMPLIANT,
}


@pytest.mark.parametrize("inputs", sorted(EXPECTED))
def test_every_combination_has_a_fixed_reason(inputs: tuple[bool, bool, bool]) -> None:
    verdict = evaluate_compliance(*inputs)

    assert verdict.reason == EXPECTED[inputs]
    assert verdict.compliant is (inputs == (True, True, True))


def test_evaluation_is_deterministic() -> None:
    for inputs in itertools.product((False, True), repeat=3):
        first = evaluate_compliance(*inputs)
        assert all(evaluate_compliance(*inputs) == first for _ in range(5))


@pytest.mark.parametrize("probe_passed", [False, True])
@pytest.mark.parametrize("host_capable", [False, True])
def test_without_system_crypto_never_compliant(
    probe_passed: bool, host_capable: bool
) -> None:
    verdict = evaluate_compliance(False, probe_passed, host_capable)

    assert verdict.status is VerdictStatus.NOT_COMPLIANT
    assert verdict.detail == "crypto backend not engaged."


def test_host_reason_detail() -> None:
    verdict = evaluate_compliance(True, True, False)

    assert verdict.detail == "host lacks a validated cryptographic module."
