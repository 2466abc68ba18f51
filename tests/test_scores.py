"""
Test score variants and the AnyScore envelope

Run with: pytest tests/test_scores.py -v
"""

import base64
import json
import random
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cogniplay.scores import (
    SCORE_TYPES,
    AnyScore,
    ClockScore,
    CorsiScore,
    GenericScore,
    SpeechScore,
    SRTTScore,
    clamp_mmse,
    score_from_json,
)


SAMPLE_SCORES = [
    SpeechScore(probability=0.37),
    SRTTScore(average_rt=450.0, pattern_rt=400.0, random_rt=500.0, learning_effect=0.2),
    CorsiScore(span_score=5, highest_level=6, correct_trials=7, total_trials=10, success_rate=0.7),
    ClockScore(completion_time=92.4, target_hour=10, target_minute=15),
    GenericScore.create(12, {"source": "watch", "note": "resting"}),
    GenericScore(value=3),
]


# ========== Envelope contract ==========

@pytest.mark.parametrize("score", SAMPLE_SCORES, ids=lambda s: type(s).__name__)
def test_decode_as_own_type_returns_original(score):
    wrapped = AnyScore.wrap(score)
    assert wrapped.type_name == type(score).__name__
    assert wrapped.decode(type(score)) == score


@pytest.mark.parametrize("score", SAMPLE_SCORES, ids=lambda s: type(s).__name__)
def test_decode_as_other_type_returns_none(score):
    wrapped = AnyScore.wrap(score)
    for other in SCORE_TYPES.values():
        if other is type(score):
            continue
        assert wrapped.decode(other) is None


def test_envelope_survives_json_record():
    """Serialized envelope rebuilds an equal envelope"""
    original = AnyScore.wrap(SAMPLE_SCORES[1])
    record = json.loads(json.dumps(original.to_json()))

    restored = AnyScore.from_json(record)

    assert restored == original
    assert restored.decode(SRTTScore) == SAMPLE_SCORES[1]


def test_envelope_record_layout():
    """Record is {typeName, data} with base64 of camelCase JSON"""
    record = AnyScore.wrap(SRTTScore(1.0, 2.0, 3.0, 0.5)).to_json()

    assert set(record) == {'typeName', 'data'}
    assert record['typeName'] == 'SRTTScore'
    payload = json.loads(base64.b64decode(record['data']))
    assert payload == {'averageRT': 1.0, 'patternRT': 2.0, 'randomRT': 3.0, 'learningEffect': 0.5}


def test_unwrap_resolves_variant_without_hint():
    score = ClockScore(completion_time=30.0, target_hour=3, target_minute=45)
    assert AnyScore.wrap(score).unwrap() == score


# ========== Schema drift ==========

def test_unknown_discriminator_is_absent_not_error():
    future = AnyScore(type_name="GaitScore", data=b'{"stride": 1.2}')

    assert future.is_known_type is False
    assert future.unwrap() is None
    assert future.to_mmse() == 0
    for score_type in SCORE_TYPES.values():
        assert future.decode(score_type) is None


def test_unknown_discriminator_round_trips_unchanged():
    future = AnyScore(type_name="GaitScore", data=b'{"stride": 1.2}')
    assert AnyScore.from_json(future.to_json()) == future


def test_corrupt_payload_decodes_to_none():
    broken = AnyScore(type_name="SpeechScore", data=b'{"prob')
    assert broken.decode(SpeechScore) is None
    assert broken.to_mmse() == 0


def test_payload_with_missing_field_decodes_to_none():
    partial = AnyScore(type_name="CorsiScore", data=b'{"spanScore": 4}')
    assert partial.decode(CorsiScore) is None


def test_from_json_rejects_malformed_record():
    with pytest.raises(ValueError):
        AnyScore.from_json({'typeName': 'SpeechScore'})
    with pytest.raises(ValueError):
        AnyScore.from_json({'typeName': 'SpeechScore', 'data': '***not base64***'})
    with pytest.raises(ValueError):
        AnyScore.from_json(['SpeechScore'])


# ========== MMSE conversion ==========

@pytest.mark.parametrize("score", SAMPLE_SCORES, ids=lambda s: type(s).__name__)
def test_mmse_within_bounds(score):
    assert 0 <= AnyScore.wrap(score).to_mmse() <= 30


def test_generic_score_mmse_is_clamped_value():
    assert GenericScore(value=12).to_mmse() == 12
    assert GenericScore(value=99).to_mmse() == 30
    assert GenericScore(value=-4).to_mmse() == 0


def test_clamp_mmse():
    assert clamp_mmse(-1) == 0
    assert clamp_mmse(17) == 17
    assert clamp_mmse(31) == 30


# ========== Variant validation and builders ==========

def test_speech_probability_range():
    SpeechScore(probability=0.0)
    SpeechScore(probability=1.0)
    with pytest.raises(ValueError):
        SpeechScore(probability=1.5)
    with pytest.raises(ValueError):
        SpeechScore(probability=-0.1)


def test_clock_target_validation():
    with pytest.raises(ValueError):
        ClockScore(completion_time=10.0, target_hour=13, target_minute=0)
    with pytest.raises(ValueError):
        ClockScore(completion_time=10.0, target_hour=0, target_minute=0)
    with pytest.raises(ValueError):
        ClockScore(completion_time=10.0, target_hour=10, target_minute=10)


def test_clock_random_target_is_valid():
    rng = random.Random(7)
    for _ in range(50):
        hour, minute = ClockScore.random_target(rng)
        score = ClockScore(completion_time=1.0, target_hour=hour, target_minute=minute)
        assert score.target_time == (hour, minute)


def test_srtt_from_reaction_times():
    """First 8 rounds are pattern rounds, last 4 random"""
    times = [400.0] * 8 + [500.0] * 4
    score = SRTTScore.from_reaction_times(times)

    assert score.pattern_rt == 400.0
    assert score.random_rt == 500.0
    assert score.average_rt == pytest.approx(5200.0 / 12)
    assert score.learning_effect == pytest.approx(0.2)


def test_srtt_from_no_reaction_times():
    assert SRTTScore.from_reaction_times([]) == SRTTScore(0.0, 0.0, 0.0, 0.0)


def test_corsi_from_trials():
    score = CorsiScore.from_trials(span_score=5, highest_level=5, correct_trials=6, total_trials=8)
    assert score.success_rate == 0.75
    assert CorsiScore.from_trials(2, 2, 0, 0).success_rate == 0.0


def test_generic_score_details_keep_order():
    score = GenericScore.create(1, {"b": "2", "a": "1"})
    assert score.details == (("b", "2"), ("a", "1"))
    assert score.details_dict() == {"b": "2", "a": "1"}
    assert GenericScore(value=1).details_dict() is None


def test_generic_score_dict_details_round_trip():
    """A dict handed to the constructor is stored as pairs and survives the envelope"""
    score = GenericScore(value=3, details={"a": "b", "n": 4})

    assert score.details == (("a", "b"), ("n", "4"))
    assert score == GenericScore.create(3, {"a": "b", "n": "4"})
    assert AnyScore.wrap(score).decode(GenericScore) == score


def test_float_fields_are_normalized():
    score = SRTTScore(average_rt=450, pattern_rt=400, random_rt=500, learning_effect=0)

    assert isinstance(score.average_rt, float)
    assert AnyScore.wrap(score).decode(SRTTScore) == score
    assert SpeechScore(probability=1).probability == 1.0


@pytest.mark.parametrize("build", [
    lambda: GenericScore(value=2.7),
    lambda: GenericScore(value="3"),
    lambda: GenericScore(value=1, details=[("a",)]),
    lambda: GenericScore(value=1, details=(("a", 1),)),
    lambda: GenericScore(value=1, details=(("a", "x"), ("a", "y"))),
    lambda: GenericScore(value=1, details="a=b"),
    lambda: CorsiScore(None, 1, 1, 1, 1.0),
    lambda: CorsiScore(4, 4, 3.5, 8, 0.5),
    lambda: CorsiScore(4, 4, 4, 8, "0.5"),
    lambda: SRTTScore(None, 1.0, 1.0, 0.0),
    lambda: SRTTScore(float("nan"), 1.0, 1.0, 0.0),
    lambda: SRTTScore(1.0, 1.0, True, 0.0),
    lambda: SpeechScore(probability=None),
    lambda: ClockScore(completion_time="fast", target_hour=3, target_minute=0),
    lambda: ClockScore(completion_time=10.0, target_hour=3.0, target_minute=0),
], ids=[
    "generic-float", "generic-str", "generic-short-pair", "generic-nonstr-value",
    "generic-duplicate-key", "generic-str-details", "corsi-none", "corsi-float-count",
    "corsi-str-rate", "srtt-none", "srtt-nan", "srtt-bool", "speech-none",
    "clock-str-time", "clock-float-hour",
])
def test_invalid_fields_rejected_at_construction(build):
    with pytest.raises(ValueError):
        build()


def test_wrap_accepts_every_constructible_score():
    for score in SAMPLE_SCORES:
        assert AnyScore.wrap(score).unwrap() == score


# ========== score_from_json ==========

def test_score_from_json_builds_variant():
    score = score_from_json('CorsiScore', {
        'spanScore': 4, 'highestLevel': 5, 'correctTrials': 6,
        'totalTrials': 8, 'successRate': 0.75,
    })
    assert score == CorsiScore(4, 5, 6, 8, 0.75)


def test_score_from_json_rejects_unknown_type():
    with pytest.raises(ValueError, match="Unknown score type"):
        score_from_json('GaitScore', {})


def test_score_from_json_rejects_missing_fields():
    with pytest.raises(ValueError):
        score_from_json('SRTTScore', {'averageRT': 1.0})


def test_score_from_json_rejects_boolean_counts():
    with pytest.raises(ValueError):
        score_from_json('GenericScore', {'value': True})
