import logging
import os
import threading
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urljoin

import requests
from azure.devops.v7_1.git import models as git_models
from msrest.authentication import BasicAuthentication

from azure_remote import parse_azure_remote, read_origin_remote_url
from models import (
    Change,
    Comment,
    Iteration,
    PullRequest,
    RepositoryCoordinates,
    Thread,
    ThreadContext,
)

logger = logging.getLogger(__name__)

ADO_API_VERSION = "7.1-preview.1"
PAT_ENV_VAR = "ADO_PAT"
PULL_REQUEST_STATUSES = ("active", "completed", "abandoned")


class AzureDevOpsConfigurationError(ValueError):
    """トークン・リモートURL・リポジトリ情報が揃わず起動できない"""


class AzureDevOpsRequestError(Exception):
    """Azure DevOps が 2xx 以外を返した"""

    def __init__(self, status_code: int, reason: str, body: str):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(f"Azure DevOps request failed ({status_code} {reason}): {body}")


def _to_comment_thread_context(context: ThreadContext) -> git_models.CommentThreadContext:
    def position(value):
        if value is None:
            return None
        return git_models.CommentPosition(line=value.line, offset=value.offset)

    return git_models.CommentThreadContext(
        file_path=context.filePath,
        left_file_start=position(context.leftFileStart),
        left_file_end=position(context.leftFileEnd),
        right_file_start=position(context.rightFileStart),
        right_file_end=position(context.rightFileEnd),
    )


class AzureDevOpsReviewClient:
    def __init__(self, coordinates: RepositoryCoordinates, pat: str, session: Optional[requests.Session] = None):
        """AzureDevOpsReviewClientを初期化

        Args:
            coordinates: gitリモートから解決した organization / project / repository
            pat: Azure DevOpsのPersonal Access Token (PAT)
            session: 送信に使うrequestsセッション（省略時は新規作成）
        """
        self.coordinates = coordinates
        self.pat = pat
        self.creds = BasicAuthentication("", pat)
        self.session = self.creds.signed_session(session)
        self.base_api_url = (
            f"https://dev.azure.com/{quote(coordinates.organization, safe='')}"
            f"/{quote(coordinates.project, safe='')}/_apis/git/"
        )
        self.repository_id: Optional[str] = None

    def ensure_repository_id(self) -> str:
        """リポジトリIDを解決してキャッシュ（解決済みなら何もしない）

        Returns:
            サーバーが割り当てたリポジトリID

        Raises:
            AzureDevOpsConfigurationError: 応答にIDが含まれない場合
        """
        if self.repository_id:
            return self.repository_id

        repository = self._request("GET", f"repositories/{quote(self.coordinates.repository, safe='')}")
        repository_id = repository.get("id") if isinstance(repository, dict) else None
        if not isinstance(repository_id, str) or not repository_id:
            raise AzureDevOpsConfigurationError("Unable to fetch Azure DevOps repository metadata")

        logger.info("Resolved repository %s to id %s", self.coordinates.repository, repository_id)
        self.repository_id = repository_id
        return repository_id

    def list_pull_requests(self, status: str = "active") -> List[PullRequest]:
        """指定ステータスのプルリクエスト一覧を取得

        Args:
            status: "active" / "completed" / "abandoned" のいずれか

        Returns:
            サーバーが返した順のプルリクエストのリスト
        """
        if status not in PULL_REQUEST_STATUSES:
            raise ValueError(
                f"Invalid pull request status: {status} (expected one of {', '.join(PULL_REQUEST_STATUSES)})"
            )
        repository_id = self.ensure_repository_id()
        result = self._request(
            "GET",
            f"repositories/{repository_id}/pullRequests",
            params={"searchCriteria.status": status},
        )
        return [PullRequest.model_validate(pr) for pr in result.get("value", [])]

    def get_pull_request(self, pr_id: int) -> PullRequest:
        """プルリクエストの詳細情報を取得"""
        result = self._request("GET", self._pull_request_path(pr_id))
        return PullRequest.model_validate(result)

    def get_pull_request_threads(self, pr_id: int) -> List[Thread]:
        """プルリクエストのコメントスレッド一覧を取得（フィルタなし、サーバー順）"""
        result = self._request("GET", f"{self._pull_request_path(pr_id)}/threads")
        return [Thread.model_validate(t) for t in result.get("value", [])]

    def get_pull_request_diff(self, pr_id: int) -> List[Change]:
        """最新イテレーションのファイル変更一覧を取得

        Args:
            pr_id: プルリクエストID

        Returns:
            変更ファイルのリスト。イテレーションが無い場合は空リスト

        Note:
            「最新」はID値が最大のイテレーションです。応答の並び順には依存しません。
        """
        iteration_id = self._get_latest_iteration_id(pr_id)
        if iteration_id is None:
            return []

        result = self._request("GET", f"{self._pull_request_path(pr_id)}/iterations/{iteration_id}/changes")
        return [Change.model_validate(c) for c in result.get("changeEntries", [])]

    def post_comment(self, pr_id: int, content: str, thread_context: Optional[ThreadContext] = None) -> Thread:
        """新しいコメントスレッドを作成

        Args:
            pr_id: プルリクエストID
            content: コメント本文
            thread_context: ファイル位置（インラインコメントの場合のみ）。省略時はPR全体へのコメント

        Returns:
            作成されたスレッド
        """
        thread = git_models.GitPullRequestCommentThread(
            status="active",
            thread_context=_to_comment_thread_context(thread_context) if thread_context else None,
            comments=[git_models.Comment(parent_comment_id=0, content=content, comment_type="text")],
        )
        result = self._request("POST", f"{self._pull_request_path(pr_id)}/threads", payload=thread.serialize())
        return Thread.model_validate(result)

    def reply_to_thread(self, pr_id: int, thread_id: int, content: str, comment_type: str = "text") -> Comment:
        """既存スレッドのルートコメントへ返信"""
        comment = git_models.Comment(parent_comment_id=0, content=content, comment_type=comment_type)
        result = self._request(
            "POST",
            f"{self._pull_request_path(pr_id)}/threads/{thread_id}/comments",
            payload=comment.serialize(),
        )
        return Comment.model_validate(result)

    def update_thread_status(self, pr_id: int, thread_id: int, status: str) -> Optional[Thread]:
        """スレッドのステータスを更新

        Args:
            pr_id: プルリクエストID
            thread_id: スレッドID
            status: 設定するステータス（"closed", "fixed" など。値はそのままサーバーへ渡す）

        Returns:
            更新後のスレッド。サーバーが 204 を返した場合は None
        """
        thread = git_models.GitPullRequestCommentThread(status=status)
        result = self._request(
            "PATCH",
            f"{self._pull_request_path(pr_id)}/threads/{thread_id}",
            payload=thread.serialize(),
        )
        if result is None:
            return None
        return Thread.model_validate(result)

    def _get_latest_iteration_id(self, pr_id: int) -> Optional[int]:
        result = self._request("GET", f"{self._pull_request_path(pr_id)}/iterations")
        iterations = [Iteration.model_validate(i) for i in result.get("value", [])]
        if not iterations:
            return None
        return max(iteration.id for iteration in iterations)

    def _pull_request_path(self, pr_id: int) -> str:
        repository_id = self.ensure_repository_id()
        return f"repositories/{repository_id}/pullRequests/{pr_id}"

    def _request(self, method: str, path: str, params: Optional[Dict[str, str]] = None, payload: Any = None) -> Any:
        """Azure DevOps REST APIへ1回だけリクエストを送信

        Returns:
            JSONをデコードした応答。204 の場合は None

        Raises:
            AzureDevOpsRequestError: 2xx 以外の応答
        """
        url = urljoin(self.base_api_url, path)
        query = dict(params or {})
        query.setdefault("api-version", ADO_API_VERSION)
        headers = {"Accept": f"application/json;api-version={ADO_API_VERSION}"}

        logger.debug("%s %s", method, url)
        response = self.session.request(method, url, params=query, headers=headers, json=payload)

        if not response.ok:
            raise AzureDevOpsRequestError(response.status_code, response.reason, response.text)
        if response.status_code == 204:
            return None
        return response.json()


_client_lock = threading.Lock()
_client_instance: Optional[AzureDevOpsReviewClient] = None
_client_error: Optional[BaseException] = None


def initialize_review_client() -> AzureDevOpsReviewClient:
    """環境変数とgitリモートからクライアントを構築し、リポジトリIDまで解決する"""
    pat = os.environ.get(PAT_ENV_VAR, "").strip()
    if not pat:
        raise AzureDevOpsConfigurationError(f"{PAT_ENV_VAR} environment variable is not set")

    remote_url = read_origin_remote_url()
    coordinates = parse_azure_remote(remote_url)
    if coordinates is None:
        raise AzureDevOpsConfigurationError(
            f"Unable to determine Azure DevOps repository details from git remote: {remote_url}"
        )

    client = AzureDevOpsReviewClient(coordinates, pat)
    client.ensure_repository_id()
    return client


def get_review_client() -> AzureDevOpsReviewClient:
    """プロセス全体で共有するクライアントを取得

    初回呼び出しだけが初期化を行い、同時に呼ばれた場合も含めて全員が同じ
    インスタンス（または同じ例外）を受け取ります。
    """
    global _client_instance, _client_error

    with _client_lock:
        if _client_instance is None and _client_error is None:
            try:
                _client_instance = initialize_review_client()
            except Exception as e:
                logger.warning("Azure DevOps client initialization failed: %s", e)
                _client_error = e
        if _client_error is not None:
            raise _client_error
        return _client_instance


def reset_review_client() -> None:
    global _client_instance, _client_error

    with _client_lock:
        _client_instance = None
        _client_error = None
