import pytest

from app.services.decision_evaluator import (
    Participant,
    QuestionConfig,
    QuorumBasis,
    QuorumType,
    ThresholdType,
    TwoThirdsMode,
    evaluate,
    evaluate_quorum,
    evaluate_threshold,
    quorum_status,
    required_quorum_count,
)
from app.services.tally_engine import Ballot, tally


def _tally(yes=0, no=0, abstain=0, abstain_counts=False):
    ballots = []
    for choice, amount in (("yes", yes), ("no", no), ("abstain", abstain)):
        ballots.extend(
            Ballot("q1", f"{choice}-{index}", (choice,)) for index in range(amount)
        )
    return tally(ballots, abstain_counts)


def test_simple_majority_accepts_clear_majority():
    result = _tally(yes=3, no=1)

    assert result.yes_percent == 75
    assert evaluate_threshold(result, ThresholdType.SIMPLE_MAJORITY, 4) is True


def test_simple_majority_rejects_tie():
    result = _tally(yes=1, no=1)

    assert result.yes_percent == 50
    assert evaluate_threshold(result, ThresholdType.SIMPLE_MAJORITY, 2) is False


def test_simple_majority_abstentions_can_block_when_counted():
    assert evaluate_threshold(
        _tally(yes=2, no=1, abstain=2, abstain_counts=True), "simple_majority", 5
    ) is False
    assert evaluate_threshold(
        _tally(yes=2, no=1, abstain=2, abstain_counts=False), "simple_majority", 5
    ) is True


def test_two_thirds_accepts_three_to_one():
    for mode in TwoThirdsMode:
        assert evaluate_threshold(
            _tally(yes=3, no=1), ThresholdType.TWO_THIRDS, 4, two_thirds_mode=mode
        ) is True


def test_two_thirds_boundary_exact_mode_accepts_two_to_one():
    # 2/3 of the ballots is exactly two thirds, which meets the rule
    result = _tally(yes=2, no=1)

    assert evaluate_threshold(
        result, ThresholdType.TWO_THIRDS, 3, two_thirds_mode=TwoThirdsMode.EXACT
    ) is True
    assert evaluate_threshold(result, ThresholdType.TWO_THIRDS, 3) is True


def test_two_thirds_boundary_rounded_mode_rejects_two_to_one():
    # 66.666...% falls short of the 66.67 literal
    result = _tally(yes=2, no=1)

    assert evaluate_threshold(
        result, ThresholdType.TWO_THIRDS, 3, two_thirds_mode="rounded"
    ) is False


def test_two_thirds_rejects_below_boundary():
    assert evaluate_threshold(_tally(yes=3, no=2), ThresholdType.TWO_THIRDS, 5) is False


def test_absolute_majority_uses_whole_roster():
    assert evaluate_threshold(_tally(yes=6, no=1), ThresholdType.ABSOLUTE, 10) is True
    assert evaluate_threshold(_tally(yes=5), ThresholdType.ABSOLUTE, 10) is False


@pytest.mark.parametrize("eligible", [0, -3, None, "n/a"])
def test_absolute_majority_rejects_empty_roster(eligible):
    assert evaluate_threshold(_tally(yes=4), ThresholdType.ABSOLUTE, eligible) is False


def test_unanimous_requires_no_dissent():
    assert evaluate_threshold(_tally(yes=4, abstain=2), ThresholdType.UNANIMOUS, 6) is True
    assert evaluate_threshold(_tally(yes=4, no=1), ThresholdType.UNANIMOUS, 5) is False
    assert evaluate_threshold(_tally(abstain=3), ThresholdType.UNANIMOUS, 3) is False


@pytest.mark.parametrize("threshold", list(ThresholdType))
def test_no_ballots_always_rejected(threshold):
    assert evaluate_threshold(_tally(), threshold, 10) is False


def test_unknown_threshold_rejects():
    assert evaluate_threshold(_tally(yes=5), "plurality", 5) is False


def test_required_quorum_count_rounds_up():
    assert required_quorum_count(50, 10) == 5
    assert required_quorum_count(50, 9) == 5
    assert required_quorum_count(7, 100) == 7
    assert required_quorum_count(33.3, 3) == 1


def test_percentage_quorum_by_headcount():
    assert evaluate_quorum(0, 0, 5, 10, QuorumType.PERCENTAGE, 50) is True
    assert evaluate_quorum(0, 0, 4, 10, QuorumType.PERCENTAGE, 50) is False


def test_fixed_quorum():
    assert evaluate_quorum(0, 0, 7, 20, QuorumType.FIXED, 7) is True
    assert evaluate_quorum(0, 0, 6, 20, QuorumType.FIXED, 7) is False


@pytest.mark.parametrize("present", [0, 3, 10])
def test_no_quorum_is_always_met(present):
    assert evaluate_quorum(0, 0, present, 10, QuorumType.NONE, 90) is True


def test_empty_roster_never_meets_percentage_quorum():
    assert evaluate_quorum(0, 0, 0, 0, QuorumType.PERCENTAGE, 0) is False
    assert evaluate_quorum(
        0, 0, 0, 0, QuorumType.PERCENTAGE, 50, basis=QuorumBasis.WEIGHT
    ) is False


def test_percentage_quorum_by_weight():
    # two owners holding 60% of the shares outweigh eight absent small holders
    assert evaluate_quorum(
        60, 100, 2, 10, "percentage", 50, basis=QuorumBasis.WEIGHT
    ) is True
    assert evaluate_quorum(
        40, 100, 8, 10, "percentage", 50, basis=QuorumBasis.WEIGHT
    ) is False


def test_quorum_status_counts_represented_principals():
    roster = [
        Participant("a", weight=1, is_present=True),
        Participant("b", weight=1, is_present=False),
        Participant("c", weight=1, is_present=False),
    ]
    config = QuestionConfig(quorum_type=QuorumType.PERCENTAGE, quorum_value=50)

    without_proxy = quorum_status(roster, config)
    with_proxy = quorum_status(roster, config, represented={"b"})

    assert without_proxy.required == 2
    assert without_proxy.is_met is False
    assert with_proxy.present_count == 2
    assert with_proxy.proxy_weight == 1
    assert with_proxy.is_met is True


def test_quorum_status_weight_basis_clamps_bad_weights():
    roster = [
        Participant("a", weight=30, is_present=True),
        Participant("b", weight=-10, is_present=True),
        Participant("c", weight=float("nan"), is_present=False),
        Participant("d", weight=10, is_present=False),
    ]
    config = QuestionConfig(
        quorum_type="percentage", quorum_value=60, quorum_basis="weight"
    )

    status = quorum_status(roster, config)

    assert status.total_weight == 40
    assert status.present_weight == 30
    assert status.present_percent == 75
    assert status.required == 24
    assert status.is_met is True


def test_quorum_status_payload_uses_plain_values():
    status = quorum_status([], QuestionConfig())

    payload = status.to_payload()

    assert payload["quorum_type"] == "none"
    assert payload["basis"] == "headcount"
    assert payload["is_met"] is True
    assert payload["present_percent"] == 0


def test_evaluate_combines_threshold_and_quorum():
    config = QuestionConfig(
        threshold_type="two_thirds",
        quorum_type=QuorumType.FIXED,
        quorum_value=3,
    )
    roster = [Participant(str(index), is_present=index < 2) for index in range(4)]
    status = quorum_status(roster, config)

    verdict = evaluate(_tally(yes=2, no=1), config, 4, quorum=status)

    assert verdict.is_accepted is True
    assert verdict.threshold_type is ThresholdType.TWO_THIRDS
    assert verdict.quorum.is_met is False
    payload = verdict.to_payload()
    assert payload["threshold_type"] == "two_thirds"
    assert payload["tally"]["yes"] == 2
    assert payload["quorum"]["required"] == 3


def test_evaluate_honours_rounded_mode():
    config = QuestionConfig(threshold_type=ThresholdType.TWO_THIRDS)

    verdict = evaluate(_tally(yes=2, no=1), config, 3, two_thirds_mode="rounded")

    assert verdict.is_accepted is False
    assert verdict.quorum is None


def test_evaluate_reports_unknown_threshold_as_missing():
    config = QuestionConfig(threshold_type="plurality")

    verdict = evaluate(_tally(yes=5), config, 5)

    assert verdict.is_accepted is False
    assert verdict.threshold_type is None
    assert verdict.to_payload()["threshold_type"] is None
