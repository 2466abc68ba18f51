"""
Speech inference request/response shapes.

The speech task sends transcribed utterances to a remote prediction
service and stores the returned probability as a SpeechScore. Only the
payload shapes live here; transport belongs to the caller.

Request:
    {"trial_data": [{"utterance": str, "duration": float | null}, ...]}

Response:
    {"probability": float, "prediction": 0 | 1, "confidence": str}
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from cogniplay.scores import SpeechScore

logger = logging.getLogger(__name__)


class InferenceResponseError(ValueError):
    """Inference service returned a payload that doesn't match the contract."""


@dataclass(frozen=True)
class TrialData:
    """One transcribed utterance with its optional duration in seconds."""
    utterance: str
    duration: Optional[float] = None

    def to_json(self) -> Dict[str, Any]:
        return {'utterance': self.utterance, 'duration': self.duration}


@dataclass(frozen=True)
class PredictionResult:
    """
    Parsed inference response.

    Attributes:
        probability: Impairment probability, 0.0-1.0
        prediction: Binary class, 0 or 1
        confidence: Service-provided confidence label
    """
    probability: float
    prediction: int
    confidence: str

    def to_speech_score(self) -> SpeechScore:
        return SpeechScore(probability=self.probability)


def build_prediction_request(trials: Sequence[TrialData]) -> Dict[str, Any]:
    """
    Build the request body for the prediction service.

    Args:
        trials: One or more utterances

    Returns:
        dict: JSON-ready request body

    Raises:
        ValueError: If no trials are given or an utterance is blank
    """
    if not trials:
        raise ValueError("At least one utterance is required")
    for trial in trials:
        if not trial.utterance.strip():
            raise ValueError("Utterances must not be empty")
    return {'trial_data': [trial.to_json() for trial in trials]}


def parse_prediction_response(payload: Dict[str, Any]) -> PredictionResult:
    """
    Validate and parse the prediction service response.

    Args:
        payload: Decoded JSON response

    Returns:
        PredictionResult

    Raises:
        InferenceResponseError: If a field is missing or out of range
    """
    if not isinstance(payload, dict):
        raise InferenceResponseError(f"Response must be an object, got {type(payload).__name__}")

    if 'error' in payload:
        message = payload.get('message') or payload['error']
        raise InferenceResponseError(f"Inference service error: {message}")

    probability = payload.get('probability')
    prediction = payload.get('prediction')
    confidence = payload.get('confidence')

    if isinstance(probability, bool) or not isinstance(probability, (int, float)):
        raise InferenceResponseError(f"probability must be a number, got {probability!r}")
    if not 0.0 <= probability <= 1.0:
        raise InferenceResponseError(f"probability out of range: {probability}")
    if prediction not in (0, 1) or isinstance(prediction, bool):
        raise InferenceResponseError(f"prediction must be 0 or 1, got {prediction!r}")
    if not isinstance(confidence, str):
        raise InferenceResponseError(f"confidence must be a string, got {confidence!r}")

    result = PredictionResult(probability=float(probability), prediction=int(prediction),
                              confidence=confidence)
    logger.debug(f"Parsed prediction: p={result.probability:.3f}, class={result.prediction}")
    return result
