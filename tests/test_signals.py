from lead_radar.models import Author, Post, SearchCriteria
from lead_radar.signals import detect_signals, relevance_score


def _post(title: str, body: str = "") -> Post:
    return Post(
        id="p1",
        platform="reddit",
        title=title,
        body=body,
        url="https://www.reddit.com/r/sales/comments/p1",
        author=Author(username="someone", profile_url="https://www.reddit.com/user/someone"),
        metrics={"score": 3, "comments": 1},
        created_at="2026-02-19T00:00:00+00:00",
    )


def test_crm_scenario_scores_keyword_and_intent() -> None:
    criteria = SearchCriteria(keywords=("CRM",), intent_keywords=("looking for",))

    signals = detect_signals(_post("Looking for a CRM"), criteria)

    assert signals.matched_keywords == ("CRM",)
    assert signals.matched_intent_keywords == ("looking for",)
    assert signals.matched_pain_keywords == ()
    assert signals.matched_competitors == ()
    # 40 + 12.5 rounds half up
    assert signals.relevance_score == 53


def test_empty_keyword_list_uses_denominator_of_one() -> None:
    criteria = SearchCriteria(keywords=(), intent_keywords=("need",))

    signals = detect_signals(_post("We need help with invoicing"), criteria)

    assert signals.matched_keywords == ()
    assert signals.relevance_score == 13


def test_matching_is_case_insensitive_substring() -> None:
    criteria = SearchCriteria(keywords=("cat",))

    signals = detect_signals(_post("CATEGORY theory for managers"), criteria)

    assert signals.matched_keywords == ("cat",)
    assert signals.relevance_score == 40


def test_body_text_is_searched_too() -> None:
    criteria = SearchCriteria(keywords=("crm", "pipeline"), pain_keywords=("frustrated",))

    signals = detect_signals(_post("Sales ops question", "Frustrated with our pipeline"), criteria)

    assert signals.matched_keywords == ("pipeline",)
    assert signals.matched_pain_keywords == ("frustrated",)
    assert signals.relevance_score == 30


def test_components_are_capped_and_total_stays_within_100() -> None:
    criteria = SearchCriteria(
        keywords=("crm", "sales"),
        intent_keywords=("looking for", "recommend", "need a"),
        pain_keywords=("slow", "expensive", "hate"),
        competitors=("salesforce", "hubspot"),
    )
    text = "looking for a crm, recommend sales tools, need a fix. salesforce is slow, expensive, hate hubspot"

    signals = detect_signals(_post(text), criteria)

    assert signals.relevance_score == 100
    assert relevance_score(10, 1, 10, 10, 10) == 100


def test_no_matches_scores_zero() -> None:
    criteria = SearchCriteria(keywords=("crm",), competitors=("hubspot",))

    assert detect_signals(_post("Weekend hiking photos"), criteria).relevance_score == 0


def test_detection_is_deterministic() -> None:
    criteria = SearchCriteria(keywords=("crm", "erp"), pain_keywords=("manual",))
    post = _post("Manual CRM updates", "our erp is fine")

    assert detect_signals(post, criteria) == detect_signals(post, criteria)
