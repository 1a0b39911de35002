"""
Confidence scoring for single forecasts and two-subject comparisons.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.confidence.scoring import ConfidenceFactors, ConfidenceResult, confidence, score
from engine.confidence.factors import comparison_factors

__all__ = ["ConfidenceFactors", "ConfidenceResult", "confidence", "score", "comparison_factors"]
