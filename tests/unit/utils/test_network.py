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

"""Unit tests for the connectivity check."""

from unittest.mock import patch

import requests

from subcast.utils.network import GEMINI_API_URL, check_connectivity


class TestCheckConnectivity:
    """Tests for check_connectivity()."""

    @patch("subcast.utils.network.requests.head")
    def test_any_response_is_online(self, mock_head):
        """Even an error status proves the host is reachable."""
        mock_head.return_value.status_code = 404

        assert check_connectivity() is True
        mock_head.assert_called_once_with(GEMINI_API_URL, timeout=5, allow_redirects=False)

    @patch("subcast.utils.network.requests.head")
    def test_connection_error_is_offline(self, mock_head):
        mock_head.side_effect = requests.ConnectionError("Name or service not known")

        assert check_connectivity() is False

    @patch("subcast.utils.network.requests.head")
    def test_timeout_is_offline(self, mock_head):
        mock_head.side_effect = requests.Timeout("timed out")

        assert check_connectivity("https://example.com", timeout=1) is False
