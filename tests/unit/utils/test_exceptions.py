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

"""Unit tests for the exception hierarchy."""

from subcast.utils.exceptions import (
    ChunkExhaustedError,
    DispatchError,
    MalformedResponseError,
    QuotaExceededError,
    SubcastError,
    TransientFaultError,
)


class TestSubcastError:
    """Tests for SubcastError formatting."""

    def test_message_only(self):
        error = SubcastError("Something failed")

        assert str(error) == "Something failed"
        assert error.context == {}
        assert repr(error) == "SubcastError(message='Something failed')"

    def test_with_context(self):
        error = ChunkExhaustedError("Processing suspended", chunk_index=3, attempts=6)

        assert str(error) == "Processing suspended (chunk_index=3, attempts=6)"
        assert error.context == {"chunk_index": 3, "attempts": 6}
        assert "context=" in repr(error)


class TestDispatchErrorCategories:
    """Each dispatch error carries the category the retry policy reads."""

    def test_categories(self):
        assert QuotaExceededError("x").category == "quota"
        assert TransientFaultError("x").category == "transient"
        assert MalformedResponseError("x").category == "malformed"

    def test_hierarchy(self):
        for cls in (QuotaExceededError, TransientFaultError, MalformedResponseError):
            assert issubclass(cls, DispatchError)
            assert issubclass(cls, SubcastError)
        assert not issubclass(ChunkExhaustedError, DispatchError)
