"""Tests for token estimation, mismatch extraction and prompt pruning."""

from prquorum_core.models import AuthorContext, PriorComment, PullRequestFile, ReviewRequest, TokenBudget
from prquorum_core.prompts import PromptBundle
from prquorum_core.tokens import TokenBudgetService, adjusted_ceiling, extract_actual_token_count


def _bundle(patch_size=400, context=None, existing=(), author_comments=()):
    request = ReviewRequest(owner="acme", repo="api", pr_number=7, head_sha="h" * 40, base_sha="b" * 40)
    patch = "@@ -1,1 +1,1 @@\n" + "+" + ("x" * patch_size)
    return PromptBundle(
        request=request,
        files=(PullRequestFile(filename="src/a.py", status="modified", patch=patch),),
        author_context=AuthorContext(description="Adds a thing", author_comments=list(author_comments)),
        context=context or {},
        existing_comments=tuple(existing),
    )


class TestExtractActualTokenCount:
    def test_anthropic_message(self):
        err = RuntimeError("Error code: 400 - prompt is too long: 208310 tokens > 200000 maximum")
        assert extract_actual_token_count(err) == 208310

    def test_openai_message(self):
        err = RuntimeError(
            "This model's maximum context length is 128000 tokens. "
            "However, your messages resulted in 130532 tokens. Please reduce the length."
        )
        assert extract_actual_token_count(err) == 130532

    def test_gemini_message(self):
        err = RuntimeError("The input token count (1200000) exceeds the maximum number of tokens allowed (1048576).")
        assert extract_actual_token_count(err) == 1200000

    def test_unrelated_error(self):
        assert extract_actual_token_count(ConnectionError("connection reset by peer")) is None


class TestAdjustedCeiling:
    def test_scales_down_by_undercount_and_safety_factor(self):
        budget = TokenBudget(estimated=1000, ceiling=10000)
        # actual is 20% above the estimate: 10000 * 1000 / (1200 * 1.1) = 7575
        assert adjusted_ceiling(budget, 1200) == 7575

    def test_never_exceeds_original_ceiling(self):
        budget = TokenBudget(estimated=1000, ceiling=10000)
        assert adjusted_ceiling(budget, 500) == 10000

    def test_zero_estimate_keeps_ceiling(self):
        assert adjusted_ceiling(TokenBudget(estimated=0, ceiling=500), 900) == 500

    def test_effective_ceiling(self):
        assert TokenBudget(estimated=1, ceiling=10).effective_ceiling == 10
        assert TokenBudget(estimated=1, ceiling=10, adjusted_ceiling=7).effective_ceiling == 7


class TestTokenBudgetService:
    def test_estimate_rounds_up(self):
        service = TokenBudgetService()
        assert service.estimate("") == 0
        assert service.estimate("abcd") == 1
        assert service.estimate("abcde") == 2

    def test_budget_counts_both_messages(self):
        budget = TokenBudgetService().budget("a" * 40, "b" * 40, ceiling=100)
        assert budget.estimated == 20
        assert budget.ceiling == 100
        assert budget.adjusted_ceiling is None

    def test_user_allowance_reserves_a_quarter(self):
        service = TokenBudgetService()
        assert service.user_allowance("a" * 400, 1000) == 750 - 100

    def test_prune_returns_unchanged_when_it_fits(self):
        bundle = _bundle(context={"code_index": ["src/a.py"]})
        system, user = TokenBudgetService().prune(bundle, ceiling=100_000)
        assert (system, user) == bundle.render()

    def test_prune_drops_context_before_comments(self):
        service = TokenBudgetService()
        bundle = _bundle(
            context={"knowledge_base": "k" * 4000, "code_index": ["src/a.py"]},
            existing=[PriorComment(path="src/a.py", line=1, body="earlier remark", author="dev")],
        )
        system, full_user = bundle.render()
        # Leave room for everything except the knowledge base.
        ceiling = int((service.estimate(system) + service.estimate(full_user) - 900) / 0.75)
        _, user = service.prune(bundle, ceiling)
        assert "k" * 100 not in user
        assert "earlier remark" in user

    def test_prune_truncates_patches_as_last_resort(self):
        service = TokenBudgetService()
        bundle = _bundle(patch_size=20_000, author_comments=["please look at retries"])
        system, user = service.prune(bundle, ceiling=4000)
        assert "[diff truncated]" in user
        assert "please look at retries" not in user
        assert service.estimate(user) <= service.user_allowance(system, 4000)

    def test_system_message_never_pruned(self):
        bundle = _bundle(patch_size=20_000)
        system, _ = TokenBudgetService().prune(bundle, ceiling=2000)
        assert system == bundle.render()[0]
