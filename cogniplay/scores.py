"""
Task score payloads and the type-erased AnyScore envelope.

Every mini-game reports its result as one concrete score variant. Sessions
store them uniformly inside AnyScore, which carries the variant's type name
as a discriminator next to the variant's own JSON bytes.

Design principles:
- Frozen dataclasses (immutable after creation)
- Closed set of variants, registered in SCORE_TYPES by class name
- Field names on the wire are camelCase and must stay stable across releases
- Decoding as the wrong variant yields None, never a coerced value
- Unknown discriminators (data written by a newer build) survive a
  load/save cycle untouched and convert to MMSE 0

Contents:
- TaskScore: base class for all variants
- SpeechScore, SRTTScore, CorsiScore, ClockScore, GenericScore
- AnyScore: discriminated envelope
- score_from_json(): build a variant from a type name + field dict

Usage:
    from cogniplay.scores import AnyScore, SRTTScore

    wrapped = AnyScore.wrap(SRTTScore(450.0, 400.0, 500.0, 0.2))
    wrapped.decode(SRTTScore)    # -> SRTTScore(...)
    wrapped.decode(CorsiScore)   # -> None
"""

import base64
import binascii
import json
import logging
import math
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

MMSE_MIN = 0
MMSE_MAX = 30

CLOCK_TARGET_MINUTES = (0, 15, 30, 45)

S = TypeVar("S", bound="TaskScore")


def clamp_mmse(value: int) -> int:
    """Clamp an integer onto the 0-30 MMSE scale."""
    return max(MMSE_MIN, min(MMSE_MAX, int(value)))


def _as_int(value: Any, name: str = "value") -> int:
    # bool is an int subclass; reject it so true/false never pass as counts
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return value


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return float(value)


def _set_fields(score: "TaskScore", **values: Any) -> None:
    """Store normalized values on a frozen dataclass during __post_init__."""
    for name, value in values.items():
        object.__setattr__(score, name, value)


class TaskScore:
    """
    Base class for per-task score variants.

    Subclasses are frozen dataclasses that implement to_json()/from_json()
    with camelCase keys. The discriminator is the class name.
    """

    @classmethod
    def type_name(cls) -> str:
        return cls.__name__

    def to_mmse(self) -> int:
        """
        Convert to the 0-30 MMSE-like scale.

        Conversion formulas are placeholders; callers that need a real
        policy inject one into SessionManager.
        """
        return 0

    def to_json(self) -> Dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_json(cls: Type[S], data: Dict[str, Any]) -> S:
        raise NotImplementedError


# ========================
# Score variants
# ========================

@dataclass(frozen=True)
class SpeechScore(TaskScore):
    """
    Result of the picture-description speech task.

    Attributes:
        probability: Impairment probability returned by the inference
            service, 0.0-1.0.
    """
    probability: float

    def __post_init__(self):
        _set_fields(self, probability=_as_float(self.probability, 'probability'))
        if not 0.0 <= self.probability <= 1.0:
            raise ValueError(f"probability must be within [0, 1], got {self.probability}")

    def to_json(self) -> Dict[str, Any]:
        return {'probability': float(self.probability)}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "SpeechScore":
        return cls(probability=data['probability'])


@dataclass(frozen=True)
class SRTTScore(TaskScore):
    """
    Serial reaction time statistics, in milliseconds.

    Attributes:
        average_rt: Mean reaction time over all rounds
        pattern_rt: Mean over the repeating-pattern rounds
        random_rt: Mean over the random rounds
        learning_effect: (random_rt - pattern_rt) / random_rt, 0 if undefined
    """
    average_rt: float
    pattern_rt: float
    random_rt: float
    learning_effect: float

    def __post_init__(self):
        _set_fields(
            self,
            average_rt=_as_float(self.average_rt, 'average_rt'),
            pattern_rt=_as_float(self.pattern_rt, 'pattern_rt'),
            random_rt=_as_float(self.random_rt, 'random_rt'),
            learning_effect=_as_float(self.learning_effect, 'learning_effect'),
        )

    @classmethod
    def from_reaction_times(cls, reaction_times: Sequence[float],
                            pattern_rounds: int = 8,
                            random_rounds: int = 4) -> "SRTTScore":
        """
        Summarize raw per-round reaction times.

        The first `pattern_rounds` rounds follow the hidden sequence and the
        last `random_rounds` rounds are random.

        Args:
            reaction_times: Reaction time per round (ms), in play order
            pattern_rounds: Number of leading pattern rounds
            random_rounds: Number of trailing random rounds

        Returns:
            SRTTScore: Aggregated statistics (all zero for no rounds)
        """
        times = [float(t) for t in reaction_times]
        if not times:
            return cls(0.0, 0.0, 0.0, 0.0)

        pattern = times[:min(pattern_rounds, len(times))]
        randoms = times[-min(random_rounds, len(times)):] if random_rounds > 0 else []

        average_rt = sum(times) / len(times)
        pattern_rt = sum(pattern) / len(pattern) if pattern else 0.0
        random_rt = sum(randoms) / len(randoms) if randoms else 0.0

        learning_effect = 0.0
        if pattern_rt > 0 and random_rt > 0:
            learning_effect = (random_rt - pattern_rt) / random_rt

        return cls(average_rt, pattern_rt, random_rt, learning_effect)

    def to_json(self) -> Dict[str, Any]:
        return {
            'averageRT': float(self.average_rt),
            'patternRT': float(self.pattern_rt),
            'randomRT': float(self.random_rt),
            'learningEffect': float(self.learning_effect),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "SRTTScore":
        return cls(
            average_rt=data['averageRT'],
            pattern_rt=data['patternRT'],
            random_rt=data['randomRT'],
            learning_effect=data['learningEffect'],
        )


@dataclass(frozen=True)
class CorsiScore(TaskScore):
    """Corsi block spatial span result."""
    span_score: int
    highest_level: int
    correct_trials: int
    total_trials: int
    success_rate: float

    def __post_init__(self):
        for name in ('span_score', 'highest_level', 'correct_trials', 'total_trials'):
            _as_int(getattr(self, name), name)
        _set_fields(self, success_rate=_as_float(self.success_rate, 'success_rate'))

    @classmethod
    def from_trials(cls, span_score: int, highest_level: int,
                    correct_trials: int, total_trials: int) -> "CorsiScore":
        success_rate = correct_trials / total_trials if total_trials > 0 else 0.0
        return cls(span_score, highest_level, correct_trials, total_trials, success_rate)

    def to_json(self) -> Dict[str, Any]:
        return {
            'spanScore': int(self.span_score),
            'highestLevel': int(self.highest_level),
            'correctTrials': int(self.correct_trials),
            'totalTrials': int(self.total_trials),
            'successRate': float(self.success_rate),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "CorsiScore":
        return cls(
            span_score=data['spanScore'],
            highest_level=data['highestLevel'],
            correct_trials=data['correctTrials'],
            total_trials=data['totalTrials'],
            success_rate=data['successRate'],
        )


@dataclass(frozen=True)
class ClockScore(TaskScore):
    """
    Clock drawing result.

    The drawing itself is scored elsewhere; this records how long it took
    and which time the patient was asked to draw.
    """
    completion_time: float
    target_hour: int
    target_minute: int

    def __post_init__(self):
        _set_fields(self, completion_time=_as_float(self.completion_time, 'completion_time'))
        _as_int(self.target_hour, 'target_hour')
        _as_int(self.target_minute, 'target_minute')
        if not 1 <= self.target_hour <= 12:
            raise ValueError(f"target_hour must be within 1-12, got {self.target_hour}")
        if self.target_minute not in CLOCK_TARGET_MINUTES:
            raise ValueError(
                f"target_minute must be one of {CLOCK_TARGET_MINUTES}, got {self.target_minute}"
            )

    @property
    def target_time(self) -> Tuple[int, int]:
        return (self.target_hour, self.target_minute)

    @staticmethod
    def random_target(rng: Optional[random.Random] = None) -> Tuple[int, int]:
        """Pick a target time for the drawing prompt."""
        rng = rng or random.Random()
        return rng.randint(1, 12), rng.choice(CLOCK_TARGET_MINUTES)

    def to_json(self) -> Dict[str, Any]:
        return {
            'completionTime': float(self.completion_time),
            'targetHour': int(self.target_hour),
            'targetMinute': int(self.target_minute),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ClockScore":
        return cls(
            completion_time=data['completionTime'],
            target_hour=data['targetHour'],
            target_minute=data['targetMinute'],
        )


@dataclass(frozen=True)
class GenericScore(TaskScore):
    """
    Catch-all score: an integer value plus optional string details.

    details is stored as Tuple[Tuple[str, str], ...] instead of Dict for
    immutability; insertion order is preserved. A dict passed in is
    converted, with keys and values turned into strings.
    """
    value: int
    details: Optional[Tuple[Tuple[str, str], ...]] = None

    def __post_init__(self):
        _as_int(self.value, 'value')
        if self.details is None:
            return
        if isinstance(self.details, dict):
            pairs = tuple((str(k), str(v)) for k, v in self.details.items())
        elif isinstance(self.details, (tuple, list)):
            pairs = tuple(
                tuple(pair) if isinstance(pair, (tuple, list)) else (pair,)
                for pair in self.details
            )
            for pair in pairs:
                if len(pair) != 2 or not all(isinstance(part, str) for part in pair):
                    raise ValueError(f"details entries must be (str, str) pairs, got {pair!r}")
            if len({key for key, _ in pairs}) != len(pairs):
                raise ValueError("details keys must be unique")
        else:
            raise ValueError(f"details must be a dict or pairs, got {type(self.details).__name__}")
        _set_fields(self, details=pairs)

    @classmethod
    def create(cls, value: int, details: Optional[Dict[str, str]] = None) -> "GenericScore":
        return cls(value=value, details=details)

    def details_dict(self) -> Optional[Dict[str, str]]:
        if self.details is None:
            return None
        return dict(self.details)

    def to_mmse(self) -> int:
        return clamp_mmse(self.value)

    def to_json(self) -> Dict[str, Any]:
        return {'value': int(self.value), 'details': self.details_dict()}

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "GenericScore":
        details = data.get('details')
        if details is not None and not isinstance(details, dict):
            raise ValueError(f"details must be an object, got {type(details).__name__}")
        return cls(value=data['value'], details=details)


# Registry of known variants, keyed by discriminator
SCORE_TYPES: Dict[str, Type[TaskScore]] = {
    cls.__name__: cls
    for cls in (SpeechScore, SRTTScore, CorsiScore, ClockScore, GenericScore)
}


def score_from_json(type_name: str, fields: Dict[str, Any]) -> TaskScore:
    """
    Build a concrete score from its discriminator and field dict.

    Args:
        type_name: Variant class name (e.g. 'SRTTScore')
        fields: camelCase field dict

    Returns:
        TaskScore: Concrete variant

    Raises:
        ValueError: If type_name is unknown or fields are malformed
    """
    score_cls = SCORE_TYPES.get(type_name)
    if score_cls is None:
        raise ValueError(f"Unknown score type: {type_name}")
    if not isinstance(fields, dict):
        raise ValueError(f"Score fields must be an object, got {type(fields).__name__}")
    try:
        return score_cls.from_json(fields)
    except (KeyError, TypeError) as e:
        raise ValueError(f"Malformed {type_name} fields: {e}") from e


# ========================
# Type-erased envelope
# ========================

@dataclass(frozen=True)
class AnyScore:
    """
    Sealed envelope around exactly one score variant.

    Attributes:
        type_name: Discriminator (variant class name)
        data: UTF-8 JSON bytes of the variant's record

    Rules:
    - wrap() never fails
    - decode(T) returns the original value iff type_name matches T
    - unwrap() resolves the variant by a single registry lookup
    - Unknown type_name or corrupt data: decode/unwrap -> None, to_mmse -> 0
    """
    type_name: str
    data: bytes

    @staticmethod
    def wrap(score: TaskScore) -> "AnyScore":
        payload = json.dumps(score.to_json(), separators=(',', ':'), sort_keys=False)
        return AnyScore(type_name=score.type_name(), data=payload.encode('utf-8'))

    def decode(self, score_type: Type[S]) -> Optional[S]:
        """
        Decode as a specific variant.

        Args:
            score_type: Expected variant class

        Returns:
            The stored variant, or None on discriminator mismatch or
            unreadable payload
        """
        if self.type_name != score_type.type_name():
            return None
        return self._load(score_type)

    def unwrap(self) -> Optional[TaskScore]:
        """Return the stored variant without knowing its type up front."""
        score_type = SCORE_TYPES.get(self.type_name)
        if score_type is None:
            logger.warning(f"Unknown score type '{self.type_name}' (newer data format?)")
            return None
        return self._load(score_type)

    def to_mmse(self) -> int:
        score = self.unwrap()
        if score is None:
            return 0
        return clamp_mmse(score.to_mmse())

    @property
    def is_known_type(self) -> bool:
        return self.type_name in SCORE_TYPES

    def _load(self, score_type: Type[S]) -> Optional[S]:
        try:
            return score_type.from_json(json.loads(self.data.decode('utf-8')))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            # UnicodeDecodeError and JSONDecodeError are ValueErrors
            logger.warning(f"Unreadable {self.type_name} payload: {e}")
            return None

    def to_json(self) -> Dict[str, Any]:
        """
        Serialize to JSON-safe dict.

        Returns:
            dict: {'typeName': str, 'data': base64 str}
        """
        return {
            'typeName': self.type_name,
            'data': base64.b64encode(self.data).decode('ascii'),
        }

    @staticmethod
    def from_json(data: Dict[str, Any]) -> "AnyScore":
        """
        Deserialize from JSON dict.

        The payload is kept as raw bytes; it is only parsed on decode, so
        records of unknown variants round-trip unchanged.

        Raises:
            ValueError: If the record is not a well-formed envelope
        """
        if not isinstance(data, dict):
            raise ValueError(f"Score record must be an object, got {type(data).__name__}")
        type_name = data.get('typeName')
        encoded = data.get('data')
        if not isinstance(type_name, str) or not isinstance(encoded, str):
            raise ValueError("Score record requires string 'typeName' and 'data'")
        try:
            payload = base64.b64decode(encoded, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Score data is not valid base64: {e}") from e
        return AnyScore(type_name=type_name, data=payload)
