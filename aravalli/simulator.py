# aravalli/simulator.py
"""Simulated environmental readings.

Nothing here looks at pixels or queries a satellite: readings are drawn
from a random source and classified with fixed thresholds. The
`AnalysisSimulator` interface is the seam where a real model would be
plugged in.
"""
import abc
import datetime
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

# --- Classification thresholds ---
NDVI_DEGRADATION_THRESHOLD = 0.2
NIGHTLIGHT_ACTIVITY_THRESHOLD = 50.0
NIGHTLIGHT_CONSTRUCTION_THRESHOLD = 60.0
LEGAL_CONSTRUCTION_CUTOFF = 0.7
TREND_DEGRADATION_SLOPE = -0.01

STATUS_NATURAL = "Natural"
STATUS_SEASONAL = "Seasonal"
STATUS_PERMANENT = "Permanent Degradation"

PREDICTION_STABLE = "Stable ecosystem expected for next 12 months."
PREDICTION_AT_RISK = "High risk of desertification in 6 months if unchecked."


def classify_degradation(ndvi: float, nightlight: float) -> str:
    """Low vegetation with high nightlight is permanent; low vegetation alone is seasonal."""
    if ndvi < NDVI_DEGRADATION_THRESHOLD:
        if nightlight > NIGHTLIGHT_ACTIVITY_THRESHOLD:
            return STATUS_PERMANENT
        return STATUS_SEASONAL
    return STATUS_NATURAL


def spectral_indices(ndvi: float) -> Dict[str, float]:
    return {
        "evi": ndvi * 0.8 + 0.1,
        "savi": ndvi * 0.9 + 0.05,
    }


def prediction_for(status: str) -> str:
    return PREDICTION_STABLE if status == STATUS_NATURAL else PREDICTION_AT_RISK


@dataclass
class SimulatedReading:
    ndvi: float
    nightlight: float
    status: str
    is_construction: bool
    is_legal: bool
    ml_confidence: float
    detected_objects: List[Dict[str, object]] = field(default_factory=list)
    indices: Dict[str, float] = field(default_factory=dict)
    prediction: str = ""

    def to_response(self) -> dict:
        return {
            "ndvi": self.ndvi,
            "status": self.status,
            "nightlight": self.nightlight,
            "isConstruction": self.is_construction,
            "isLegal": self.is_legal,
            "mlConfidence": self.ml_confidence,
            "detectedObjects": self.detected_objects,
            "indices": self.indices,
            "prediction": self.prediction,
        }


class AnalysisSimulator(abc.ABC):
    @abc.abstractmethod
    def simulate(self, location: str, image: str) -> SimulatedReading:
        raise NotImplementedError


class RandomAnalysisSimulator(AnalysisSimulator):
    """Uniform random readings; pass a seeded `random.Random` for reproducible runs."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def simulate(self, location: str, image: str) -> SimulatedReading:
        rng = self.rng
        ndvi = rng.random() * 0.8 - 0.2
        nightlight = rng.random() * 100
        status = classify_degradation(ndvi, nightlight)
        is_construction = nightlight > NIGHTLIGHT_CONSTRUCTION_THRESHOLD
        is_legal = rng.random() > LEGAL_CONSTRUCTION_CUTOFF

        detected_objects = [
            {"label": "Trees", "count": rng.randint(10, 59)},
            {"label": "Structures", "count": rng.randint(1, 5) if is_construction else 0},
            {"label": "Water Bodies", "count": rng.randint(0, 1)},
        ]
        return SimulatedReading(
            ndvi=ndvi,
            nightlight=nightlight,
            status=status,
            is_construction=is_construction,
            is_legal=is_legal,
            ml_confidence=0.85 + rng.random() * 0.14,
            detected_objects=detected_objects,
            indices=spectral_indices(ndvi),
            prediction=prediction_for(status),
        )


# --- Dashboard trend ---
NDVI_SERIES = [
    {"year": "2019", "ndvi": 0.65},
    {"year": "2020", "ndvi": 0.68},
    {"year": "2021", "ndvi": 0.62},
    {"year": "2022", "ndvi": 0.55},
    {"year": "2023", "ndvi": 0.48},
    {"year": "2024", "ndvi": 0.42},
]

NTL_SERIES = [
    {"month": "Jan", "intensity": 20},
    {"month": "Feb", "intensity": 22},
    {"month": "Mar", "intensity": 25},
    {"month": "Apr", "intensity": 85},
    {"month": "May", "intensity": 80},
    {"month": "Jun", "intensity": 30},
]


def linear_slope(values: List[float]) -> float:
    """Least-squares slope of `values` against their index."""
    if len(values) < 2:
        return 0.0
    x = np.arange(len(values), dtype=float)
    slope, _intercept = np.polyfit(x, np.asarray(values, dtype=float), 1)
    return float(slope)


def ndvi_trend(series: Optional[List[dict]] = None) -> dict:
    series = NDVI_SERIES if series is None else series
    slope = linear_slope([point["ndvi"] for point in series])
    return {
        "ndvi": series,
        "nightlight": NTL_SERIES,
        "slope": slope,
        "status": "Degradation" if slope < TREND_DEGRADATION_SLOPE else STATUS_NATURAL,
    }


# --- Mock location details ---
def location_details(location_id: str) -> dict:
    # loc_1: degradation, loc_2: construction, anything else: healthy
    soil_moisture = 85
    canopy_cover = 90
    alerts: List[str] = []
    history = [
        {"year": 2021, "status": "Healthy"},
        {"year": 2022, "status": "Healthy"},
        {"year": 2023, "status": "Healthy"},
    ]

    if location_id == "loc_1":
        soil_moisture = 32
        canopy_cover = 28
        alerts = ["Rapid vegetation loss detected", "Soil erosion risk: High"]
        history = [
            {"year": 2021, "status": "Healthy"},
            {"year": 2022, "status": "Minor Degradation"},
            {"year": 2023, "status": "Critical"},
        ]
    elif location_id == "loc_2":
        soil_moisture = 45
        canopy_cover = 15
        alerts = ["Unauthorized structure detected", "High nightlight intensity"]
        history = [
            {"year": 2021, "status": "Healthy"},
            {"year": 2022, "status": "Stable"},
            {"year": 2023, "status": "Construction"},
        ]

    return {
        "id": location_id,
        "last_analyzed": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "historical_changes": history,
        "soil_moisture": soil_moisture,
        "canopy_cover": canopy_cover,
        "alerts": alerts,
    }
