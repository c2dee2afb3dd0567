# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Configuration properties for keyset pagination."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from keyquery.core.config import config_properties


@config_properties(prefix="keyquery.pagination")
class KeysetProperties(BaseModel):
    """Bound from ``keyquery.pagination`` (env: ``KEYQUERY_PAGINATION_*``).

    ``probe`` fetches one row beyond the page size to decide ``has_next``
    exactly. With probing off, a full page is assumed to have a successor,
    which is wrong whenever the last page is exactly full.
    """

    default_size: int = Field(default=20, ge=1)
    max_size: int = Field(default=1000, ge=1)
    probe: bool = True

    @model_validator(mode="after")
    def _check_sizes(self) -> KeysetProperties:
        if self.default_size > self.max_size:
            raise ValueError(f"default_size ({self.default_size}) exceeds max_size ({self.max_size})")
        return self
