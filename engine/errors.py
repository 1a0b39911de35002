"""
Error taxonomy for the forecasting engine and its orchestration layer.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""


class ForecastError(Exception):
    pass


class InsufficientData(ForecastError):
    """Series shorter than the window a computation needs."""

    def __init__(self, needed: int, got: int) -> None:
        super().__init__(f"need at least {needed} data points, got {got}")
        self.needed = needed
        self.got = got


class InvalidInput(ForecastError):
    pass


class LockContention(ForecastError):
    def __init__(self, key: str) -> None:
        super().__init__(f"lock already held: {key}")
        self.key = key


class ComputationFailure(ForecastError):
    def __init__(self, message: str, retry_eligible: bool = True) -> None:
        super().__init__(message)
        self.retry_eligible = retry_eligible
