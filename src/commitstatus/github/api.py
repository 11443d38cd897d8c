from gidgethub.abc import GitHubAPI
from sanic.log import logger

from commitstatus.github.model import CommitStatusPayload, IssueComment, PostedStatus


class API:
    gh: GitHubAPI

    call_count: int

    def __init__(self, gh: GitHubAPI):
        self.gh = gh
        self.call_count = 0

    async def post_status(
        self, repo_url: str, sha: str, status: CommitStatusPayload
    ) -> PostedStatus:
        self.call_count += 1
        url = f"{repo_url}/statuses/{sha}"
        logger.debug("Posting %s status for %s on %s", status.state, status.context, url)
        data = await self.gh.post(url, data=status.model_dump(exclude_none=True))
        return PostedStatus.model_validate(data)

    async def post_comment(self, repo_url: str, number: int, body: str) -> IssueComment:
        self.call_count += 1
        url = f"{repo_url}/issues/{number}/comments"
        logger.debug("Commenting on #%d %s", number, url)
        data = await self.gh.post(url, data={"body": body})
        return IssueComment.model_validate(data)

