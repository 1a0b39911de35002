"""
Verification of past forecasts against observed values and the trust statistics built from them.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.verification.verify import VerifiedForecast, VerifiedPoint, verify, verify_comparison
from engine.verification.trust import TrustStats, summarize

__all__ = ["VerifiedForecast", "VerifiedPoint", "verify", "verify_comparison", "TrustStats", "summarize"]
