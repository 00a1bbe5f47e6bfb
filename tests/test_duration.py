"""Tests for job duration calculation."""

import pytest

from pressplan.domain.duration import DurationCalculator, InvalidDurationError
from pressplan.domain.models import Job, JobPhaseBreakdown, JobType, Product
from pressplan.domain.policies import CeilingRoundingPolicy


class TestDurationCalculator:
    """Tests for DurationCalculator."""

    @pytest.fixture
    def calculator(self):
        return DurationCalculator()

    def test_phases_summed_then_rounded_up(self, calculator):
        """15 + 45 + 20 = 80 minutes should need 90."""
        job = Job(
            id="J1",
            phases=(JobPhaseBreakdown(setup_minutes=15, production_minutes=45, finishing_minutes=20),),
        )
        assert calculator.required_minutes(job) == 90

    def test_product_lines_summed_before_rounding(self, calculator):
        """Two 10-minute lines should need one slot, not two."""
        job = Job(
            id="J1",
            phases=(
                JobPhaseBreakdown(production_minutes=10),
                JobPhaseBreakdown(production_minutes=10),
            ),
        )
        assert calculator.required_minutes(job) == 30

    def test_estimate_keeps_raw_minutes(self, calculator):
        estimate = calculator.estimate([JobPhaseBreakdown(production_minutes=100)])
        assert estimate.raw_minutes == 100
        assert estimate.required_minutes == 120
        assert estimate.is_placeholder is False

    def test_no_phases_is_placeholder(self, calculator):
        """A job without phases should get one flagged placeholder slot."""
        estimate = calculator.estimate([])
        assert estimate.required_minutes == 30
        assert estimate.is_placeholder is True

    def test_no_phases_cannot_be_scheduled(self, calculator):
        with pytest.raises(InvalidDurationError) as exc_info:
            calculator.required_minutes(Job(id="J-empty"))
        assert exc_info.value.job_id == "J-empty"

    def test_zero_minutes_rejected(self, calculator):
        job = Job(id="J-zero", phases=(JobPhaseBreakdown(),))
        with pytest.raises(InvalidDurationError):
            calculator.required_minutes(job)

    def test_invalid_duration_is_value_error(self, calculator):
        with pytest.raises(ValueError):
            calculator.required_minutes(Job(id="J-empty"))

    def test_negative_phase_rejected(self):
        with pytest.raises(ValueError):
            JobPhaseBreakdown(setup_minutes=-5)

    def test_required_minutes_always_whole_slots(self, calculator):
        """Every positive raw duration should map to a multiple of 30."""
        for raw in range(1, 300, 7):
            job = Job(id="J", phases=(JobPhaseBreakdown(production_minutes=raw),))
            required = calculator.required_minutes(job)
            assert required % 30 == 0
            assert raw <= required < raw + 30

    def test_custom_rounding_policy(self):
        calculator = DurationCalculator(CeilingRoundingPolicy(granularity_minutes=60))
        job = Job(id="J1", phases=(JobPhaseBreakdown(production_minutes=61),))
        assert calculator.required_minutes(job) == 120

    def test_phase_from_product(self, calculator):
        product = Product(
            id="P1",
            name="Banner",
            job_type=JobType.WIDE_FORMAT,
            production_time=90,
            setup_time=20,
            finishing_time=30,
        )
        job = Job(id="J1", phases=[JobPhaseBreakdown.from_product(product)])
        assert calculator.required_minutes(job) == 150
        assert isinstance(job.phases, tuple)
