"""
Series preprocessing for raw time-indexed interest data, turning date-keyed points into ordered numeric series per subject.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from engine.series.preprocess import Series, extract, extract_pair, resolve_subject_key

__all__ = ["Series", "extract", "extract_pair", "resolve_subject_key"]
