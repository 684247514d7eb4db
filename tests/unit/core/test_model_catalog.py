# Copyright 2025 subcast
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

"""Unit tests for the model catalog."""

import pytest

from subcast.core.model_catalog import LADDERS, get_ladder
from subcast.models.profile import ProcessingMode, PromptVariant


class TestGetLadder:
    """Tests for get_ladder()."""

    def test_every_mode_has_a_ladder(self):
        assert set(LADDERS) == set(ProcessingMode)

    def test_titan_ladder_order(self):
        """Titan starts on the strongest model and degrades to flash."""
        assert [p.id for p in get_ladder("titan")] == ["gemini-3-pro-preview", "gemini-2.5-pro", "gemini-2.5-flash"]

    def test_silentwave_is_verbatim(self):
        assert {p.prompt_variant for p in get_ladder(ProcessingMode.SILENTWAVE)} == {PromptVariant.VERBATIM}

    def test_mode_lookup_is_case_insensitive(self):
        assert get_ladder("GlobalLink") == get_ladder(ProcessingMode.GLOBALLINK)

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError, match="Unknown processing mode"):
            get_ladder("turbo")

    def test_ladders_have_no_duplicate_models(self):
        for ladder in LADDERS.values():
            ids = [p.id for p in ladder]
            assert len(ids) == len(set(ids))
