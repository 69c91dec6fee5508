"""Tests for estimation methods and accuracy tracking."""

from datetime import datetime

import pytest

from goalplan.errors import InsufficientHistoryError, InvalidEstimateInputError
from goalplan.estimation import EstimationEngine, PertStrategy, keyword_similarity
from goalplan.models.estimate import EstimationMethod
from goalplan.models.task import TaskOutcome


def outcome(task_id, actual, title="Build api", skills=("backend",)):
    return TaskOutcome(
        task_id=task_id,
        title=title,
        estimated_minutes=actual,
        actual_minutes=actual,
        completed_at=datetime(2024, 12, 1),
        skills=list(skills),
    )


class TestPert:
    def test_expected_and_std_dev(self, make_task, config):
        estimate = PertStrategy(config).estimate(
            make_task("t"), {'optimistic': 4, 'most_likely': 8, 'pessimistic': 16},
        )
        assert estimate.expected_minutes == pytest.approx(8.6667, rel=1e-4)
        assert estimate.std_dev == pytest.approx(2.0)
        assert estimate.interval == pytest.approx((6.6667, 10.6667), rel=1e-4)
        assert estimate.rounded_minutes() == 9

    def test_non_monotonic_rejected(self, make_task, config):
        with pytest.raises(InvalidEstimateInputError) as excinfo:
            PertStrategy(config).estimate(make_task("t"), {'optimistic': 10, 'most_likely': 8, 'pessimistic': 16})
        assert excinfo.value.details['optimistic'] == 10

    def test_missing_parameter(self, make_task, config):
        with pytest.raises(InvalidEstimateInputError):
            PertStrategy(config).estimate(make_task("t"), {'optimistic': 4, 'most_likely': 8})


class TestExpert:
    def test_direct_duration(self, make_task, config):
        estimate = EstimationEngine(config).estimate(make_task("t"), "expert", {'duration_minutes': 90})
        assert estimate.expected_minutes == 90
        assert estimate.confidence == 0.5

    def test_confidence_out_of_range(self, make_task, config):
        with pytest.raises(InvalidEstimateInputError):
            EstimationEngine(config).estimate(make_task("t"), "expert", {'duration_minutes': 90, 'confidence': 2})

    def test_unknown_method(self, make_task, config):
        with pytest.raises(InvalidEstimateInputError):
            EstimationEngine(config).estimate(make_task("t"), "gut-feeling", {})


class TestAnalogy:
    def test_weighted_average_of_neighbours(self, make_task, config):
        scores = {'h1': 0.8, 'h2': 0.8, 'h3': 0.1}
        corpus = [outcome('h1', 100), outcome('h2', 200), outcome('h3', 1000)]
        estimate = EstimationEngine(config).estimate(
            make_task("t"), EstimationMethod.ANALOGY,
            {'corpus': corpus, 'similarity': lambda task, past: scores[past.task_id]},
        )
        assert estimate.expected_minutes == pytest.approx(150.0)
        assert estimate.confidence == pytest.approx(0.8)
        assert estimate.source_task_ids == ('h1', 'h2')

    def test_complexity_delta(self, make_task, config):
        estimate = EstimationEngine(config).estimate(
            make_task("t"), "analogy",
            {'corpus': [outcome('h1', 100)], 'similarity': lambda task, past: 1.0, 'complexity_delta': 0.2},
        )
        assert estimate.expected_minutes == pytest.approx(120.0)

    def test_no_similar_history(self, make_task, config):
        with pytest.raises(InsufficientHistoryError):
            EstimationEngine(config).estimate(
                make_task("t", title="Paint fence"), "analogy",
                {'corpus': [outcome('h1', 100, title="Write report", skills=("writing",))]},
            )

    def test_keyword_similarity(self, make_task):
        task = make_task("t", title="Build api", skills=["backend"])
        assert keyword_similarity(task, outcome('h1', 60)) == pytest.approx(1.0)


class TestAccuracy:
    def test_history_is_append_only(self, make_task, config):
        engine = EstimationEngine(config)
        task = make_task("t")
        first = engine.estimate(task, "expert", {'duration_minutes': 60})
        engine.estimate(task, "expert", {'duration_minutes': 90})
        assert engine.history("t")[0] is first
        assert engine.latest("t").expected_minutes == 90

    def test_calibration_after_min_samples(self, make_task, config):
        engine = EstimationEngine(config)
        for task_id in ("a", "b"):
            engine.estimate(make_task(task_id), "expert", {'duration_minutes': 100})
            engine.record_actual(task_id, 125)
        assert engine.calibration_factor(EstimationMethod.EXPERT) == 1.0

        engine.estimate(make_task("c"), "expert", {'duration_minutes': 100})
        engine.record_actual("c", 125)

        assert engine.mape("expert") == pytest.approx(0.2)
        assert engine.calibration_factor(EstimationMethod.EXPERT) == pytest.approx(0.8)
        later = engine.estimate(make_task("d"), "expert", {'duration_minutes': 100})
        assert later.confidence == pytest.approx(0.4)
        assert engine.history("a")[0].confidence == 0.5

    def test_record_without_estimate(self, config):
        assert EstimationEngine(config).record_actual("nothing", 30) is None

    def test_non_positive_actual(self, config):
        with pytest.raises(InvalidEstimateInputError):
            EstimationEngine(config).record_actual("t", 0)

    def test_accuracy_report(self, config):
        report = EstimationEngine(config).accuracy_report()
        assert report['pert'] == {'mape': None, 'samples': 0, 'calibration_factor': 1.0}

    def test_recording_again_replaces_sample(self, make_task, config):
        engine = EstimationEngine(config)
        engine.estimate(make_task("a"), "expert", {'duration_minutes': 100})
        engine.record_actual("a", 125)
        sample = engine.record_actual("a", 150)

        assert sample.actual_minutes == 150
        assert engine.accuracy_report()['expert']['samples'] == 1
        assert engine.mape("expert") == pytest.approx(50 / 150)


class TestCombined:
    def test_confidence_weighted_mean_and_interval(self, make_task, config):
        engine = EstimationEngine(config)
        task = make_task("t")

        estimate = engine.estimate_combined(task, {
            'expert': {'duration_minutes': 100, 'confidence': 0.95},
            'analogy': {'corpus': [outcome('h1', 200)], 'similarity': lambda task, past: 1.0},
        })

        assert estimate.method == EstimationMethod.COMBINED
        assert estimate.expected_minutes == pytest.approx(150.0)
        assert estimate.std_dev == pytest.approx(50.0)
        assert estimate.interval[0] == pytest.approx(150 - 1.282 * 50)
        assert estimate.interval[1] == pytest.approx(150 + 1.282 * 50)
        assert estimate.confidence == pytest.approx(0.95)
        assert estimate.source_task_ids == ('h1',)
        assert [e.method for e in engine.history("t")] == [
            EstimationMethod.EXPERT, EstimationMethod.ANALOGY, EstimationMethod.COMBINED,
        ]
        assert engine.latest("t") is estimate

    def test_pert_widens_range(self, make_task, config):
        estimate = EstimationEngine(config).estimate_combined(make_task("t"), {
            'expert': {'duration_minutes': 90, 'confidence': 0.8},
            'pert': {'optimistic': 60, 'most_likely': 90, 'pessimistic': 120},
        })

        assert estimate.expected_minutes == pytest.approx(90.0)
        assert estimate.interval == pytest.approx((90.0, 90.0))
        assert estimate.optimistic == pytest.approx(63.0)
        assert estimate.pessimistic == pytest.approx(117.0)

    def test_requires_a_method(self, make_task, config):
        with pytest.raises(InvalidEstimateInputError):
            EstimationEngine(config).estimate_combined(make_task("t"), {})

    def test_combined_is_not_a_single_method(self, make_task, config):
        with pytest.raises(InvalidEstimateInputError):
            EstimationEngine(config).estimate(make_task("t"), "combined", {})
