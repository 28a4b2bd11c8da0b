"""
API tests for the AI tool invocation gateway and usage history
"""
import asyncio
from datetime import datetime, timedelta

from sqlalchemy import select

from crud.usage import UsageRepository
from crud.user import UserRepository
from database_models import UsageRecord
from services.tool_registry import AI_TOOLS
from utils.errors import UpstreamGenerationError

SEO_INPUT = {"input": {"url": "https://example.com", "keywords": "marketing"}}


def ledger_entries(api, user_id):
    async def _fetch(session):
        result = await session.execute(
            select(UsageRecord).where(UsageRecord.user_id == user_id).order_by(UsageRecord.id)
        )
        return list(result.scalars().all())
    return api.run_db(_fetch)


def load_user(api, user_id):
    return api.run_db(lambda session: UserRepository(session).get_user_by_id(user_id))


def test_successful_generations_update_counters_and_ledger(api):
    """
    N sequential successful calls add N to total_generations and to the
    tool's usage count, with one success entry each.
    """
    user_id, headers = api.make_user()

    for n in range(1, 4):
        response = api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["output"]["score"] == 78
        assert isinstance(body["processingTime"], int)
        assert body["usage"]["totalGenerations"] == n
        assert body["usage"]["toolUsageCount"] == n

    user = load_user(api, user_id)
    assert user.total_generations == 3
    assert user.monthly_generations == 3
    assert [(s.tool_id, s.usage_count) for s in user.tool_stats] == [("seo-audit", 3)]

    entries = ledger_entries(api, user_id)
    assert [e.status for e in entries] == ["success"] * 3
    assert entries[0].input == SEO_INPUT["input"]
    assert entries[0].tool_name == AI_TOOLS["seo-audit"].name


def test_expired_trial_is_rejected_without_ledger_entry(api):
    """
    A trial user eight days after signup gets 403 with trialExpired.
    """
    start = datetime.utcnow() - timedelta(days=8)
    user_id, headers = api.make_user(trial_start_date=start, trial_end_date=start + timedelta(days=7))

    response = api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=headers)

    assert response.status_code == 403
    body = response.json()
    assert body["trialExpired"] is True
    assert body["reason"] == "TRIAL_EXPIRED"
    assert ledger_entries(api, user_id) == []
    assert api.generator.calls == 0


def test_tool_outside_plan_is_rejected(api):
    user_id, headers = api.make_user()

    response = api.client.post("/api/ai-tools/competitor-analysis/generate", json={"input": {"competitors": "x"}}, headers=headers)

    assert response.status_code == 403
    body = response.json()
    assert body["reason"] == "TOOL_NOT_IN_PLAN"
    assert body["requiredPlan"] == "pro"
    assert body["availableTools"] == ["seo-audit", "social-media"]
    assert ledger_entries(api, user_id) == []


def test_unknown_tool_is_404(api):
    _, headers = api.make_user(plan="pro", subscription_status="active")
    response = api.client.post("/api/ai-tools/mind-reader/generate", json={"input": {"q": 1}}, headers=headers)
    assert response.status_code == 404
    assert response.json()["reason"] == "UNKNOWN_TOOL"


def test_suspended_user_is_rejected(api):
    user_id, headers = api.make_user(plan="agency", subscription_status="active", is_suspended=True)

    response = api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=headers)

    assert response.status_code == 403
    assert response.json()["reason"] == "ACCOUNT_SUSPENDED"
    assert ledger_entries(api, user_id) == []


def test_inactive_pro_user_keeps_plan_tools(api):
    """
    An inactive paid subscription still resolves to the plan's tool set.
    """
    user_id, headers = api.make_user(plan="pro", subscription_status="inactive")

    response = api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=headers)
    assert response.status_code == 200
    assert [e.status for e in ledger_entries(api, user_id)] == ["success"]

    tools = api.client.get("/api/ai-tools", headers=headers).json()["tools"]
    assert all(tool["hasAccess"] for tool in tools)


def test_missing_input_is_400_and_not_recorded(api):
    user_id, headers = api.make_user()

    for payload in ({}, {"input": {}}, {"input": None}):
        response = api.client.post("/api/ai-tools/seo-audit/generate", json=payload, headers=headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Input data is required"

    assert ledger_entries(api, user_id) == []


def test_eleventh_request_in_a_minute_is_rate_limited(api):
    """
    With a 10 per 60 s limiter the 11th request is rejected with 429 and
    produces no ledger entry.
    """
    user_id, headers = api.make_user()

    for _ in range(10):
        response = api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=headers)
        assert response.status_code == 200

    response = api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=headers)
    assert response.status_code == 429
    assert response.json()["error"] == "RATE_LIMITED"
    assert int(response.headers["Retry-After"]) >= 1

    assert len(ledger_entries(api, user_id)) == 10
    assert load_user(api, user_id).total_generations == 10


def test_rate_limit_is_per_user(api):
    _, first = api.make_user("first@example.com")
    _, second = api.make_user("second@example.com")

    for _ in range(10):
        api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=first)

    assert api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=first).status_code == 429
    assert api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=second).status_code == 200


def test_generation_timeout_records_error_entry(api):
    """
    A generation routine exceeding the timeout yields 500 and an error
    entry with a non-empty message; counters are untouched.
    """
    user_id, headers = api.make_user()
    api.generator.timeout_seconds = 0.05

    async def slow(tool, payload):
        await asyncio.sleep(1)
        return {"late": True}

    api.generator.routine = slow

    response = api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=headers)

    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "AI generation failed"
    assert body["code"] == "GENERATION_TIMEOUT"

    entries = ledger_entries(api, user_id)
    assert len(entries) == 1
    assert entries[0].status == "error"
    assert entries[0].error_message
    assert entries[0].output is None
    assert load_user(api, user_id).total_generations == 0


def test_unparsable_output_returns_fallback(api):
    user_id, headers = api.make_user()

    async def unparsable(tool, payload):
        raise UpstreamGenerationError("Unparsable generation response", fallback={"posts": []}, code="UNPARSABLE_OUTPUT")

    api.generator.routine = unparsable

    response = api.client.post("/api/ai-tools/social-media/generate", json={"input": {"topic": "launch"}}, headers=headers)

    assert response.status_code == 500
    assert response.json()["fallback"] == {"posts": []}
    entries = ledger_entries(api, user_id)
    assert [e.status for e in entries] == ["error"]


def test_unexpected_generation_error_is_recorded(api):
    user_id, headers = api.make_user()

    async def broken(tool, payload):
        raise RuntimeError("template exploded")

    api.generator.routine = broken

    response = api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=headers)

    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "AI generation failed"
    assert body["code"] == "GENERATION_FAILED"
    # Development mode shows the diagnostic detail
    assert body["error"] == "template exploded"
    assert ledger_entries(api, user_id)[0].error_message == "template exploded"


def test_unexpected_error_detail_is_hidden_in_production(api, monkeypatch):
    """
    Outside development the response carries a generic error; the full
    message is kept only in the ledger entry.
    """
    import main

    monkeypatch.setattr(main, "IS_PRODUCTION", True)
    user_id, headers = api.make_user()

    async def leaky(tool, payload):
        raise KeyError("db_password=hunter2")

    api.generator.routine = leaky

    response = api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=headers)

    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "AI generation failed"
    assert body["error"] == "Internal Server Error"
    assert "hunter2" not in response.text
    assert "hunter2" in ledger_entries(api, user_id)[0].error_message


def test_upstream_error_detail_is_hidden_in_production(api, monkeypatch):
    import main

    monkeypatch.setattr(main, "IS_PRODUCTION", True)
    _, headers = api.make_user()

    async def unparsable(tool, payload):
        raise UpstreamGenerationError("raw model text: sk-secret", fallback={"posts": []}, code="UNPARSABLE_OUTPUT")

    api.generator.routine = unparsable

    response = api.client.post("/api/ai-tools/social-media/generate", json={"input": {"topic": "launch"}}, headers=headers)

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Internal Server Error"
    assert body["fallback"] == {"posts": []}
    assert "sk-secret" not in response.text


def test_ledger_failure_still_returns_output(api, monkeypatch):
    """
    When the ledger commit fails the caller still gets the output, the
    counters stay unchanged, and the failure is counted.
    """
    from sqlalchemy.exc import OperationalError
    from sqlalchemy.ext.asyncio import AsyncSession
    from services import usage_ledger

    user_id, headers = api.make_user()
    original_commit = AsyncSession.commit

    async def failing_commit(self):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    # Only the ledger's commit fails; the request session's final commit is unaffected
    original_record = usage_ledger.UsageLedger.record

    async def record_with_failing_commit(self, attempt):
        monkeypatch.setattr(AsyncSession, "commit", failing_commit)
        try:
            return await original_record(self, attempt)
        finally:
            monkeypatch.setattr(AsyncSession, "commit", original_commit)

    monkeypatch.setattr(usage_ledger.UsageLedger, "record", record_with_failing_commit)

    response = api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=headers)

    assert response.status_code == 200
    assert response.json()["usage"]["totalGenerations"] == 0
    assert api.ledger_stats.failed_writes == 1
    assert ledger_entries(api, user_id) == []
    assert load_user(api, user_id).total_generations == 0

    health = api.client.get("/api/health").json()
    assert health["ledgerWriteFailures"] == 1


def test_tool_listing_for_pro_user(api):
    _, headers = api.make_user(plan="pro", subscription_status="active")

    response = api.client.get("/api/ai-tools", headers=headers)

    assert response.status_code == 200
    tools = response.json()["tools"]
    assert len(tools) == len(AI_TOOLS)
    assert all(tool["hasAccess"] for tool in tools)


def test_tool_listing_for_trial_user(api):
    _, headers = api.make_user()

    body = api.client.get("/api/ai-tools", headers=headers).json()

    for tool in body["tools"]:
        assert tool["hasAccess"] is tool["freeInTrial"]
        assert tool["isTrialTool"] is tool["freeInTrial"]
    assert body["subscription"]["plan"] == "free_trial"
    assert body["subscription"]["trialDaysRemaining"] == 7
    assert body["subscription"]["isTrialExpired"] is False


def test_tool_listing_requires_auth(api):
    response = api.client.get("/api/ai-tools")
    assert response.status_code == 401
    assert response.json()["message"] == "No token, authorization denied"


def test_usage_history_pagination_and_detail(api):
    user_id, headers = api.make_user()
    _, other_headers = api.make_user("other@example.com")
    api.client.post("/api/ai-tools/seo-audit/generate", json=SEO_INPUT, headers=headers)
    api.client.post("/api/ai-tools/social-media/generate", json={"input": {"topic": "x"}}, headers=headers)
    api.client.post("/api/ai-tools/social-media/generate", json={"input": {"topic": "y"}}, headers=headers)

    response = api.client.get("/api/ai-tools/usage-history?page=1&limit=2", headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["pagination"] == {"current": 1, "pages": 2, "total": 3, "limit": 2}
    assert [item["toolId"] for item in body["usage"]] == ["social-media", "social-media"]
    assert "output" not in body["usage"][0]

    filtered = api.client.get("/api/ai-tools/usage-history?toolId=seo-audit", headers=headers).json()
    assert filtered["pagination"]["total"] == 1

    record_id = filtered["usage"][0]["id"]
    detail = api.client.get(f"/api/ai-tools/usage-history/{record_id}", headers=headers)
    assert detail.status_code == 200
    assert detail.json()["usage"]["input"] == SEO_INPUT["input"]

    assert api.client.get(f"/api/ai-tools/usage-history/{record_id}", headers=other_headers).status_code == 404

    exported = api.client.get("/api/ai-tools/usage-history/export", headers=headers).json()
    assert exported["total"] == 3
    assert all("output" in item for item in exported["usage"])


def test_usage_history_rejects_bad_filters(api):
    _, headers = api.make_user()
    assert api.client.get("/api/ai-tools/usage-history?status=maybe", headers=headers).status_code == 400
    assert api.client.get("/api/ai-tools/usage-history?startDate=yesterday", headers=headers).status_code == 400
