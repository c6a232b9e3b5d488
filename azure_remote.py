import logging
import re
import subprocess
from typing import Optional

from models import RepositoryCoordinates

logger = logging.getLogger(__name__)

# 先頭から順に試す。いずれも organization / project / repository の3グループを持つ
REMOTE_PATTERNS = [
    # https://dev.azure.com/{org}/{project}/_git/{repo}
    re.compile(r"^https://dev\.azure\.com/(.+?)/(.+?)/_git/(.+?)(?:\.git)?/?$", re.IGNORECASE),
    # https://{user}@dev.azure.com/{org}/{project}/_git/{repo}
    re.compile(r"^https://[\w.%-]+@dev\.azure\.com/(.+?)/(.+?)/_git/(.+?)(?:\.git)?/?$", re.IGNORECASE),
    # git@ssh.dev.azure.com:v3/{org}/{project}/{repo} (vs-ssh.visualstudio.com も同形式)
    re.compile(r"^[\w.-]+@(?:ssh\.dev\.azure\.com|vs-ssh\.visualstudio\.com):v3/(.+?)/(.+?)/(.+?)(?:\.git)?$", re.IGNORECASE),
    # https://{org}.visualstudio.com/{project}/_git/{repo}
    re.compile(r"^https://(?:[\w.%-]+@)?([\w-]+)\.visualstudio\.com/(?:DefaultCollection/)?(.+?)/_git/(.+?)(?:\.git)?/?$", re.IGNORECASE),
]


def parse_azure_remote(remote_url: str) -> Optional[RepositoryCoordinates]:
    """gitのリモートURLからAzure DevOpsのリポジトリ座標を抽出

    Args:
        remote_url: `git remote get-url origin` の出力

    Returns:
        organization / project / repository を持つ RepositoryCoordinates。
        どのパターンにも一致しない場合は None
    """
    candidate = remote_url.strip()
    for pattern in REMOTE_PATTERNS:
        match = pattern.match(candidate)
        if match:
            organization, project, repository = match.groups()
            return RepositoryCoordinates(
                organization=organization,
                project=project,
                repository=repository,
            )
    return None


def read_origin_remote_url(cwd: Optional[str] = None) -> str:
    """作業ディレクトリの origin リモートURLを取得

    gitコマンドの失敗（CalledProcessError、gitが無い場合の FileNotFoundError）は
    そのまま呼び出し元へ伝播します。
    """
    result = subprocess.run(
        ["git", "remote", "get-url", "origin"],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    remote_url = result.stdout.strip()
    logger.debug("origin remote: %s", remote_url)
    return remote_url
