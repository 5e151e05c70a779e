from __future__ import annotations

import logging

from github import Github, GithubException

from prquorum_core.errors import PullRequestFetchError
from prquorum_core.models import InternalReviewComment, PriorComment, PullRequestFile, ReviewRequest

logger = logging.getLogger(__name__)


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


class GitHubClient:
    """Pull request operations the review engine needs, over PyGithub.

    PyGithub objects are cached per PR number so one review run fetches the
    pull request once.
    """

    def __init__(self, repo_name: str, token: str | None = None, repo_obj=None):
        self.repo_name = repo_name
        self.repo = repo_obj if repo_obj is not None else get_repo(repo_name, token=token)
        self._pulls: dict[int, object] = {}

    def _pull(self, pr_number: int):
        if pr_number not in self._pulls:
            self._pulls[pr_number] = self.repo.get_pull(pr_number)
        return self._pulls[pr_number]

    def get_review_request(self, pr_number: int) -> ReviewRequest:
        try:
            pr = self._pull(pr_number)
            owner, _, name = self.repo_name.partition("/")
            return ReviewRequest(
                owner=owner,
                repo=name,
                pr_number=pr_number,
                head_sha=pr.head.sha,
                base_sha=pr.base.sha,
                title=pr.title or "",
                body=pr.body or "",
                author=pr.user.login if pr.user else "",
            )
        except GithubException as e:
            raise PullRequestFetchError(f"PR #{pr_number} not found in {self.repo_name}: {e}") from e

    def get_files(self, pr_number: int) -> list[PullRequestFile]:
        try:
            files = self._pull(pr_number).get_files()
            return sorted(
                (
                    PullRequestFile(
                        filename=f.filename,
                        status=f.status,
                        additions=f.additions,
                        deletions=f.deletions,
                        changes=f.changes,
                        patch=f.patch or "",
                    )
                    for f in files
                ),
                key=lambda f: f.filename,
            )
        except GithubException as e:
            raise PullRequestFetchError(f"Could not list files of PR #{pr_number}: {e}") from e

    def has_approving_review(self, pr_number: int) -> bool:
        return any(review.state == "APPROVED" for review in self._pull(pr_number).get_reviews())

    def get_review_comments(self, pr_number: int) -> list[PriorComment]:
        comments = []
        for c in self._pull(pr_number).get_review_comments():
            # c.line is None for comments whose line left the diff (e.g. after a
            # force-push); fall back to original_line.
            line = c.line if c.line is not None else getattr(c, "original_line", None)
            user = c.user
            comments.append(
                PriorComment(
                    path=c.path,
                    line=line,
                    body=c.body or "",
                    author=user.login if user else "",
                    is_bot=bool(user and user.type == "Bot"),
                )
            )
        return comments

    def get_author_comments(self, pr_number: int, author: str) -> list[str]:
        pr = self._pull(pr_number)
        return [c.body for c in pr.get_issue_comments() if c.user and c.user.login == author and c.body]

    def post_review_comment(self, pr_number: int, comment: InternalReviewComment) -> None:
        pr = self._pull(pr_number)
        commit = self.repo.get_commit(comment.commit_sha)
        kwargs = {"line": comment.line, "side": "RIGHT"}
        if comment.start_line is not None and comment.start_line < comment.line:
            kwargs["start_line"] = comment.start_line
            kwargs["start_side"] = "RIGHT"
        pr.create_review_comment(comment.body, commit, comment.path, **kwargs)

    def approve(self, pr_number: int, body: str) -> None:
        self._pull(pr_number).create_review(body=body, event="APPROVE")
