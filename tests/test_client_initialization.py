import threading
import time
import pytest
from unittest.mock import patch

import client as client_module
from client import (
    AzureDevOpsConfigurationError,
    AzureDevOpsReviewClient,
    get_review_client,
)
from conftest import REPOSITORY_ID

REMOTE_URL = "https://dev.azure.com/contoso/Fabrikam/_git/FabrikamRepo"


def _fake_ensure(self):
    self.repository_id = REPOSITORY_ID
    return REPOSITORY_ID


class TestGetReviewClient:
    """プロセス共有クライアントの初期化"""

    def test_missing_token_fails_before_git_or_network(self):
        with patch.dict("os.environ", {}, clear=True), \
                patch("client.read_origin_remote_url") as read_remote, \
                patch.object(AzureDevOpsReviewClient, "ensure_repository_id") as ensure:
            with pytest.raises(AzureDevOpsConfigurationError, match="ADO_PAT"):
                get_review_client()

        read_remote.assert_not_called()
        ensure.assert_not_called()

    def test_blank_token_fails(self):
        with patch.dict("os.environ", {"ADO_PAT": "   "}), \
                patch("client.read_origin_remote_url") as read_remote:
            with pytest.raises(AzureDevOpsConfigurationError):
                get_review_client()
        read_remote.assert_not_called()

    def test_unparseable_remote(self):
        with patch.dict("os.environ", {"ADO_PAT": "test-pat"}), \
                patch("client.read_origin_remote_url", return_value="https://github.com/owner/repo.git"), \
                patch.object(AzureDevOpsReviewClient, "ensure_repository_id") as ensure:
            with pytest.raises(AzureDevOpsConfigurationError, match="github.com/owner/repo.git"):
                get_review_client()
        ensure.assert_not_called()

    def test_resolves_coordinates_and_repository(self):
        with patch.dict("os.environ", {"ADO_PAT": " test-pat "}), \
                patch("client.read_origin_remote_url", return_value=REMOTE_URL), \
                patch.object(AzureDevOpsReviewClient, "ensure_repository_id", _fake_ensure):
            review_client = get_review_client()

        assert review_client.pat == "test-pat"
        assert review_client.coordinates.organization == "contoso"
        assert review_client.coordinates.repository == "FabrikamRepo"
        assert review_client.repository_id == REPOSITORY_ID

    def test_repeated_calls_share_instance(self):
        with patch.dict("os.environ", {"ADO_PAT": "test-pat"}), \
                patch("client.read_origin_remote_url", return_value=REMOTE_URL) as read_remote, \
                patch.object(AzureDevOpsReviewClient, "ensure_repository_id", _fake_ensure):
            first = get_review_client()
            second = get_review_client()

        assert first is second
        assert read_remote.call_count == 1

    def test_concurrent_initialization_runs_discovery_once(self):
        """同時に呼ばれても初期化は1回だけで、全員が同じインスタンスを受け取る"""
        def slow_remote():
            time.sleep(0.05)
            return REMOTE_URL

        results = []
        with patch.dict("os.environ", {"ADO_PAT": "test-pat"}), \
                patch("client.read_origin_remote_url", side_effect=slow_remote) as read_remote, \
                patch.object(AzureDevOpsReviewClient, "ensure_repository_id", _fake_ensure):
            threads = [threading.Thread(target=lambda: results.append(get_review_client())) for _ in range(2)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert read_remote.call_count == 1
        assert len(results) == 2
        assert results[0] is results[1]

    def test_failure_is_shared(self):
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(AzureDevOpsConfigurationError) as first:
                get_review_client()
        with patch.dict("os.environ", {"ADO_PAT": "test-pat"}), \
                patch("client.read_origin_remote_url") as read_remote:
            with pytest.raises(AzureDevOpsConfigurationError) as second:
                get_review_client()

        assert first.value is second.value
        read_remote.assert_not_called()

    def test_reset_allows_reinitialization(self):
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(AzureDevOpsConfigurationError):
                get_review_client()

        client_module.reset_review_client()

        with patch.dict("os.environ", {"ADO_PAT": "test-pat"}), \
                patch("client.read_origin_remote_url", return_value=REMOTE_URL), \
                patch.object(AzureDevOpsReviewClient, "ensure_repository_id", _fake_ensure):
            assert get_review_client().repository_id == REPOSITORY_ID
